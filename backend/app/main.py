# ===============================================================
# backend/app/main.py
# ===============================================================
"""
Mission Planner API: drone registry, survey missions, status transitions
and completion reports.

Run with: uvicorn backend.app.main:app --reload --port 8000
"""

from datetime import datetime
from typing import List, Optional
import logging
import os

from fastapi import FastAPI, Depends, HTTPException
from sqlmodel import Session

from backend.app import crud, models, reports
from backend.app.database import init_db, get_session
from backend.app.errors import PlannerError
from backend.app.geometry import estimate_area, format_area

# ===============================================================
# GLOBAL CONFIG
# ===============================================================

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Mission Planner API")


def _reject(e: PlannerError):
    raise HTTPException(e.status_code, str(e))


# ===============================================================
# STARTUP
# ===============================================================

@app.on_event("startup")
def on_startup():
    init_db()
    logger.info("✅ Backend online.")


# ===============================================================
# DRONE CRUD
# ===============================================================

@app.post("/drones", response_model=models.DroneRead, status_code=201)
def create_drone(data: models.DroneCreate, session: Session = Depends(get_session)):
    try:
        return crud.create_drone(session, data)
    except PlannerError as e:
        _reject(e)

@app.get("/drones", response_model=List[models.DroneRead])
def list_drones(status: Optional[models.DroneStatus] = None, session: Session = Depends(get_session)):
    return crud.list_drones(session, status)

@app.get("/drones/available", response_model=List[models.DroneRead])
def available_drones(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    session: Session = Depends(get_session),
):
    return crud.get_available_drones(session, start, end)

@app.get("/drones/{drone_id}", response_model=models.DroneRead)
def get_drone(drone_id: int, session: Session = Depends(get_session)):
    drone = crud.get_drone(session, drone_id)
    if not drone:
        raise HTTPException(404, "Drone not found")
    return drone

@app.patch("/drones/{drone_id}", response_model=models.DroneRead)
def update_drone(drone_id: int, data: models.DroneUpdate, session: Session = Depends(get_session)):
    try:
        drone = crud.update_drone(session, drone_id, data)
    except PlannerError as e:
        _reject(e)
    if not drone:
        raise HTTPException(404, "Drone not found")
    return drone

@app.delete("/drones/{drone_id}")
def delete_drone(drone_id: int, session: Session = Depends(get_session)):
    try:
        success = crud.delete_drone(session, drone_id)
    except PlannerError as e:
        _reject(e)
    if not success:
        raise HTTPException(404, "Drone not found")
    return {"id": drone_id, "message": "Drone removed"}


# ===============================================================
# MISSION CRUD
# ===============================================================

@app.post("/missions", response_model=models.MissionRead, status_code=201)
def create_mission(data: models.MissionCreate, session: Session = Depends(get_session)):
    try:
        return crud.create_mission(session, data)
    except PlannerError as e:
        _reject(e)

@app.get("/missions", response_model=List[models.MissionRead])
def list_missions(status: Optional[models.MissionStatus] = None, session: Session = Depends(get_session)):
    return crud.list_missions(session, status)

@app.get("/missions/{mission_id}", response_model=models.MissionRead)
def get_mission(mission_id: int, session: Session = Depends(get_session)):
    mission = crud.get_mission(session, mission_id)
    if not mission:
        raise HTTPException(404, "Mission not found")
    return mission

@app.patch("/missions/{mission_id}", response_model=models.MissionRead)
def update_mission(mission_id: int, data: models.MissionUpdate, session: Session = Depends(get_session)):
    try:
        mission = crud.update_mission(session, mission_id, data)
    except PlannerError as e:
        _reject(e)
    if not mission:
        raise HTTPException(404, "Mission not found")
    return mission

@app.delete("/missions/{mission_id}")
def delete_mission(mission_id: int, session: Session = Depends(get_session)):
    try:
        success = crud.delete_mission(session, mission_id)
    except PlannerError as e:
        _reject(e)
    if not success:
        raise HTTPException(404, "Mission not found")
    return {"id": mission_id, "message": "Mission removed"}


# ===============================================================
# FLIGHT PATH & AREA
# ===============================================================

@app.get("/missions/{mission_id}/flightpath")
def mission_flight_path(mission_id: int, session: Session = Depends(get_session)):
    try:
        path = crud.mission_flight_path(session, mission_id)
    except PlannerError as e:
        _reject(e)
    if path is None:
        raise HTTPException(404, "Mission not found")
    return [wp._asdict() for wp in path]

@app.get("/missions/{mission_id}/area")
def mission_area(mission_id: int, session: Session = Depends(get_session)):
    mission = crud.get_mission(session, mission_id)
    if not mission:
        raise HTTPException(404, "Mission not found")
    area = estimate_area(mission.survey_area)
    return {"mission_id": mission_id, "area_km2": area, "area_label": format_area(area)}


# ===============================================================
# REPORTS
# ===============================================================

@app.get("/reports/summary")
def report_summary(session: Session = Depends(get_session)):
    return reports.survey_summary(session)

@app.get("/reports/missions/{mission_id}")
def report_mission(mission_id: int, session: Session = Depends(get_session)):
    report = reports.get_mission_report(session, mission_id)
    if not report:
        raise HTTPException(404, "Mission not found")
    return report
