# worker/app/main.py
"""
Mission Simulation Worker: hosts the monitoring view and its simulated
flight on the event loop, reading missions from (and pushing status-only
updates to) the Mission Planner API.

Run with: uvicorn worker.app.main:app --port 8001
"""
import asyncio
import logging
import os
from typing import Optional

import requests
from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from backend.app.errors import PlannerError
from worker.app.api_client import BackendClient
from worker.app.mission_runner import MonitoringView, SimulationDriver

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Config
SIM_TICK_SECONDS = float(os.getenv("SIM_TICK_SECONDS", "1.0"))

app = FastAPI(title="Mission Simulation Worker")


class MonitorRequest(BaseModel):
    mission_id: Optional[int] = None


def log_update_failure(mission_id, future):
    """Done-callback for a background status push; surfaces anything it raised."""
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error("[Worker][Mission %s] Status update failed: %r", mission_id, error)


@app.on_event("startup")
async def on_startup():
    loop = asyncio.get_running_loop()
    client = getattr(app.state, "client", None) or BackendClient()

    def notify(mission_id, status):
        future = loop.run_in_executor(None, client.update_status, mission_id, status)
        future.add_done_callback(lambda fut: log_update_failure(mission_id, fut))

    app.state.client = client
    app.state.view = MonitoringView(SimulationDriver(loop, tick_seconds=SIM_TICK_SECONDS), notify=notify)
    logger.info("[Worker] Online, tick every %.2fs, backend %s", SIM_TICK_SECONDS,
                getattr(client, "base_url", "?"))


@app.on_event("shutdown")
async def on_shutdown():
    view = getattr(app.state, "view", None)
    if view is not None:
        view.driver.clear()


def _view() -> MonitoringView:
    return app.state.view


def _reject(e: PlannerError):
    raise HTTPException(e.status_code, str(e))


async def _fetch(mission_id: int):
    """Mission + assigned drone from the backend (blocking calls off the loop)."""
    client = app.state.client
    try:
        mission = await run_in_threadpool(client.get_mission, mission_id)
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else 502
        raise HTTPException(404 if status == 404 else 502, f"Mission {mission_id} unavailable: {e}")
    except requests.RequestException as e:
        logger.error("[Worker][Mission %s] Backend read failed: %s", mission_id, e)
        raise HTTPException(502, f"Backend unreachable: {e}")

    try:
        drone = await run_in_threadpool(client.get_drone, mission.drone_id)
    except requests.RequestException as e:
        logger.warning("[Worker][Mission %s] Drone %s not loaded: %s", mission_id, mission.drone_id, e)
        drone = None
    return mission, drone


# -------------------------
# Endpoints
# -------------------------
@app.get("/health")
async def health():
    view = _view()
    return {"status": "ok", "mission_id": getattr(view.mission, "id", None), "running": view.driver.running}


@app.get("/monitor")
async def monitor():
    return _view().map_payload()


@app.post("/monitor/select")
async def monitor_select(payload: MonitorRequest):
    view = _view()
    mission, drone = (None, None)
    if payload.mission_id is not None:
        mission, drone = await _fetch(payload.mission_id)
    try:
        view.select(mission, drone)
    except PlannerError as e:
        _reject(e)
    return view.map_payload()


@app.post("/monitor/start")
async def monitor_start(payload: MonitorRequest):
    view = _view()
    if payload.mission_id is not None:
        mission, drone = await _fetch(payload.mission_id)
    elif view.mission is not None:
        mission, drone = view.mission, view.drone
    else:
        raise HTTPException(400, "No mission selected")
    try:
        view.start(mission, drone)
    except PlannerError as e:
        _reject(e)
    return view.map_payload()


@app.post("/monitor/complete")
async def monitor_complete():
    view = _view()
    try:
        view.complete()
    except PlannerError as e:
        _reject(e)
    return view.map_payload()


@app.post("/monitor/abort")
async def monitor_abort():
    view = _view()
    try:
        view.abort()
    except PlannerError as e:
        _reject(e)
    return view.map_payload()
