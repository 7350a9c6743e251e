# ===============================================================
# backend/app/reports.py
# ===============================================================
"""
Survey completion reports: per-mission figures and organisation-wide stats.
"""

import logging
from typing import Any, Dict, Optional

from sqlmodel import Session

from . import crud
from .errors import InvalidGeometry
from .flight_path import path_for_mission
from .geometry import estimate_area, format_area, path_length_m
from .models import Mission, MissionStatus

logger = logging.getLogger(__name__)


def mission_report(mission: Mission) -> Dict[str, Any]:
    """Area, planned path length and estimated flight time for one mission."""
    params = mission.flight_parameters
    area_km2 = estimate_area(mission.survey_area)
    try:
        path = path_for_mission(mission)
    except InvalidGeometry as e:
        logger.warning("[Mission %s] No flight path for report: %s", mission.id, e)
        path = []

    distance_m = path_length_m(path)
    speed = float(params.get("speed") or 0)
    duration_min = distance_m / speed / 60 if speed else 0.0

    return {
        "mission_id": mission.id,
        "name": mission.name,
        "drone_id": mission.drone_id,
        "status": mission.status,
        "flight_pattern": params.get("flight_pattern"),
        "altitude": params.get("altitude"),
        "area_km2": area_km2,
        "area_label": format_area(area_km2),
        "waypoint_count": len(path),
        "distance_km": distance_m / 1000,
        "estimated_duration_min": duration_min,
        "started_at": mission.started_at,
        "completed_at": mission.completed_at,
    }


def survey_summary(session: Session) -> Dict[str, Any]:
    """Mission counts by status plus the report of every completed mission."""
    missions = crud.list_missions(session)
    counts = {status.value: 0 for status in MissionStatus}
    for mission in missions:
        counts[MissionStatus(mission.status).value] += 1

    completed = [mission_report(m) for m in missions if m.status == MissionStatus.COMPLETED]
    total_area = sum(r["area_km2"] for r in completed)
    return {
        "total_missions": len(missions),
        "by_status": counts,
        "completed": completed,
        "total_area_km2": total_area,
        "total_area_label": format_area(total_area),
        "avg_distance_km": sum(r["distance_km"] for r in completed) / len(completed) if completed else 0.0,
        "avg_duration_min": sum(r["estimated_duration_min"] for r in completed) / len(completed) if completed else 0.0,
    }


def get_mission_report(session: Session, mission_id: int) -> Optional[Dict[str, Any]]:
    mission = crud.get_mission(session, mission_id)
    if not mission:
        return None
    return mission_report(mission)
