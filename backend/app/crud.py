# ===============================================================
# backend/app/crud.py
# ===============================================================
"""
CRUD (Create, Read, Update, Delete) operations for the Drone Survey Mission Planner.
Handles database logic for:
 - Drones (registry, availability lookup)
 - Missions (guarded edits, status transitions, deletion)
 - Flight path previews

Lookups return ``None`` when the entity does not exist; rule violations
raise the ``PlannerError`` family from ``errors.py``.
"""

import logging
from datetime import datetime
from types import SimpleNamespace
from typing import List, Optional

from sqlmodel import Session, select

from .errors import DroneUnavailable, DuplicateSerial, NotFound, ScheduleConflict
from .flight_path import Waypoint, path_for_mission
from .mission_status import (
    ACTIVE_STATUSES,
    MissionStateMachine,
    check_delete,
    check_edit,
    event_for_status,
)
from .models import (
    Drone, DroneCreate, DroneStatus, DroneUpdate,
    Mission, MissionCreate, MissionStatus, MissionUpdate,
    utcnow,
)
from .scheduling import overlaps_window, schedules_overlap

logger = logging.getLogger(__name__)

state_machine = MissionStateMachine()


# ===============================================================
# 🛩️ DRONES
# ===============================================================

def _serial_taken(session: Session, serial_number: str, exclude_id: Optional[int] = None) -> bool:
    query = select(Drone).where(Drone.serial_number == serial_number)
    if exclude_id is not None:
        query = query.where(Drone.id != exclude_id)
    return session.exec(query).first() is not None


def create_drone(session: Session, data: DroneCreate) -> Drone:
    """Register a new drone (serial numbers are unique)."""
    if _serial_taken(session, data.serial_number):
        raise DuplicateSerial("A drone with this serial number already exists")
    drone = Drone.model_validate(data)
    session.add(drone)
    session.commit()
    session.refresh(drone)
    logger.info("[Drone %s] Registered %s (%s)", drone.id, drone.name, drone.serial_number)
    return drone


def list_drones(session: Session, status: Optional[DroneStatus] = None) -> List[Drone]:
    query = select(Drone)
    if status is not None:
        query = query.where(Drone.status == status)
    return session.exec(query.order_by(Drone.id)).all()


def get_drone(session: Session, drone_id: int) -> Optional[Drone]:
    return session.get(Drone, drone_id)


def update_drone(session: Session, drone_id: int, data: DroneUpdate) -> Optional[Drone]:
    drone = session.get(Drone, drone_id)
    if not drone:
        return None
    changes = data.model_dump(exclude_unset=True)
    if "serial_number" in changes and _serial_taken(session, changes["serial_number"], drone_id):
        raise DuplicateSerial("A drone with this serial number already exists")
    drone.sqlmodel_update(changes)
    drone.last_updated = utcnow()
    session.add(drone)
    session.commit()
    session.refresh(drone)
    return drone


def _active_missions(session: Session, drone_id: int, exclude_id: Optional[int] = None) -> List[Mission]:
    query = select(Mission).where(
        Mission.drone_id == drone_id, Mission.status.in_(list(ACTIVE_STATUSES))
    )
    if exclude_id is not None:
        query = query.where(Mission.id != exclude_id)
    return session.exec(query).all()


def delete_drone(session: Session, drone_id: int) -> bool:
    """Delete a drone unless it is flying or booked by an active mission."""
    drone = session.get(Drone, drone_id)
    if not drone:
        return False
    if drone.status == DroneStatus.IN_MISSION or _active_missions(session, drone_id):
        raise DroneUnavailable("Cannot delete a drone that is assigned to active missions")
    session.delete(drone)
    session.commit()
    return True


def get_available_drones(
    session: Session, start: Optional[datetime] = None, end: Optional[datetime] = None
) -> List[Drone]:
    """
    Drones marked available. With ``start`` (and optionally ``end``), drones
    booked by a scheduled/in-progress mission in that window are left out.
    """
    drones = list_drones(session, DroneStatus.AVAILABLE)
    if start is None:
        return drones
    return [
        drone for drone in drones
        if not any(overlaps_window(m.schedule, start, end) for m in _active_missions(session, drone.id))
    ]


# ===============================================================
# 🎯 MISSIONS
# ===============================================================

def _check_assignment(
    session: Session,
    drone_id: int,
    schedule,
    exclude_id: Optional[int] = None,
    check_status: bool = True,
) -> Drone:
    """Drone must exist, be available and have no overlapping active mission."""
    drone = session.get(Drone, drone_id)
    if not drone:
        raise NotFound("Selected drone not found")
    if check_status and drone.status != DroneStatus.AVAILABLE:
        raise DroneUnavailable("Selected drone is not available")
    for other in _active_missions(session, drone_id, exclude_id):
        if schedules_overlap(schedule, other.schedule):
            raise ScheduleConflict(
                f"The selected drone is already assigned to mission {other.id} at this time"
            )
    return drone


def create_mission(session: Session, data: MissionCreate) -> Mission:
    _check_assignment(session, data.drone_id, data.schedule)
    mission = Mission(
        name=data.name,
        description=data.description,
        drone_id=data.drone_id,
        status=data.status,
        survey_area=data.survey_area.model_dump(mode="json"),
        flight_parameters=data.flight_parameters.model_dump(mode="json"),
        schedule=data.schedule.model_dump(mode="json"),
    )
    session.add(mission)
    session.commit()
    session.refresh(mission)
    logger.info("[Mission %s] Created for drone %s (%s)", mission.id, mission.drone_id, mission.status.value)
    return mission


def list_missions(session: Session, status: Optional[MissionStatus] = None) -> List[Mission]:
    query = select(Mission)
    if status is not None:
        query = query.where(Mission.status == status)
    return session.exec(query.order_by(Mission.created_at.desc(), Mission.id.desc())).all()


def get_mission(session: Session, mission_id: int) -> Optional[Mission]:
    return session.get(Mission, mission_id)


def update_mission(
    session: Session,
    mission_id: int,
    data: MissionUpdate,
    machine: Optional[MissionStateMachine] = None,
    now: Optional[datetime] = None,
) -> Optional[Mission]:
    """
    Apply a partial update. Every rule is checked before anything is written:
    edit lock by status, drone reassignment / schedule overlap, then the
    status transition guard. A status change flips the drone as a side effect.
    """
    machine = machine or state_machine
    mission = session.get(Mission, mission_id)
    if not mission:
        return None

    changes = data.model_dump(exclude_unset=True, mode="json")
    check_edit(mission, changes)

    target = changes.pop("status", None)
    new_schedule = changes.get("schedule", mission.schedule)
    new_drone_id = changes.get("drone_id", mission.drone_id)
    drone_changed = new_drone_id != mission.drone_id
    if drone_changed or "schedule" in changes:
        _check_assignment(session, new_drone_id, new_schedule, exclude_id=mission.id, check_status=drone_changed)

    event = None
    if target is not None and MissionStatus(target) != mission.status:
        event = event_for_status(mission.status, target)
        machine.check(SimpleNamespace(status=mission.status, schedule=new_schedule), event, now)

    for name, value in changes.items():
        setattr(mission, name, value)
    mission.updated_at = utcnow()

    if event is not None:
        drone = session.get(Drone, mission.drone_id)
        machine.fire(mission, event, drone=drone, now=now)
        if drone is not None:
            drone.last_updated = utcnow()
            session.add(drone)

    session.add(mission)
    session.commit()
    session.refresh(mission)
    return mission


def delete_mission(session: Session, mission_id: int) -> bool:
    mission = session.get(Mission, mission_id)
    if not mission:
        return False
    check_delete(mission)
    session.delete(mission)
    session.commit()
    return True


# ===============================================================
# ✈️ FLIGHT PATH PREVIEW
# ===============================================================

def mission_flight_path(session: Session, mission_id: int) -> Optional[List[Waypoint]]:
    mission = session.get(Mission, mission_id)
    if not mission:
        return None
    return path_for_mission(mission)
