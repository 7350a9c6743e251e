# worker/app/mission_runner.py
# Simulated mission execution for the monitoring view.
# A SimulationDriver walks a generated flight path on a periodic timer;
# a MonitoringView binds it to the one mission currently being watched and
# applies the mission state machine when the path runs out.
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from backend.app.errors import InvalidGeometry, InvalidTransition, SimulationAlreadyRunning
from backend.app.flight_path import Waypoint, path_for_mission
from backend.app.mission_status import MissionEvent, MissionStateMachine
from backend.app.models import MissionStatus

logger = logging.getLogger(__name__)

DEFAULT_TICK_SECONDS = 1.0


def _as_dict(wp: Optional[Waypoint]) -> Optional[Dict[str, float]]:
    return wp._asdict() if wp is not None else None


@dataclass
class SimulationState:
    """Live simulation values; mutated only by the owning SimulationDriver."""
    mission_id: Optional[int] = None
    flight_path: List[Waypoint] = field(default_factory=list)
    drone_position: Optional[Waypoint] = None
    trail: List[Waypoint] = field(default_factory=list)
    completion_percent: int = 0
    step_index: int = 0

    def snapshot(self) -> Dict[str, Any]:
        return {
            "mission_id": self.mission_id,
            "flight_path": [wp._asdict() for wp in self.flight_path],
            "drone_position": _as_dict(self.drone_position),
            "trail": [wp._asdict() for wp in self.trail],
            "completion_percent": self.completion_percent,
            "step_index": self.step_index,
        }


class SimulationDriver:
    """
    Timer-driven stepper over one flight path.

    ``scheduler`` is anything with ``call_later(delay, callback)`` returning a
    handle with ``cancel()``: the worker's asyncio loop, or a fake clock in
    tests. Only one timer is ever pending.
    """

    def __init__(self, scheduler, tick_seconds: float = DEFAULT_TICK_SECONDS,
                 on_finished: Optional[Callable[[Any], None]] = None):
        self.scheduler = scheduler
        self.tick_seconds = tick_seconds
        self.on_finished = on_finished
        self.mission = None
        self.state: Optional[SimulationState] = None
        self._handle = None

    @property
    def running(self) -> bool:
        return self._handle is not None

    # -------------------------
    # Timer plumbing
    # -------------------------
    def _schedule(self):
        self._handle = self.scheduler.call_later(self.tick_seconds, self.tick)

    def _cancel(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    # -------------------------
    # Lifecycle
    # -------------------------
    def start(self, mission, path: Optional[List[Waypoint]] = None) -> SimulationState:
        """
        Generate the path and begin stepping. Geometry errors propagate
        before any state is touched.
        """
        if self.running:
            raise SimulationAlreadyRunning(
                f"Simulation already running for mission {self.state.mission_id}; stop it first"
            )
        if path is None:
            path = path_for_mission(mission)
        if len(path) < 2:
            raise InvalidGeometry("A flight path needs at least 2 waypoints")

        self.mission = mission
        self.state = SimulationState(
            mission_id=getattr(mission, "id", None),
            flight_path=list(path),
            drone_position=path[0],
            trail=[path[0]],
        )
        self._schedule()
        logger.info("[Worker][Mission %s] Simulation started: %d waypoints", self.state.mission_id, len(path))
        return self.state

    def tick(self) -> bool:
        """Advance one waypoint. Returns True while more steps remain."""
        state = self.state
        if state is None or not self.running:
            return False
        self._cancel()

        last = len(state.flight_path) - 1
        state.step_index = min(state.step_index + 1, last)
        position = state.flight_path[state.step_index]
        state.drone_position = position
        state.trail.append(position)
        state.completion_percent = round(100 * state.step_index / last)

        if state.step_index >= last:
            state.completion_percent = 100
            logger.info("[Worker][Mission %s] Flight path finished.", state.mission_id)
            if self.on_finished:
                self.on_finished(self.mission)
            return False

        self._schedule()
        return True

    def stop(self):
        """Cancel the pending tick. Safe to call at any time, any number of times."""
        if self.running:
            logger.info("[Worker][Mission %s] Simulation stopped at step %d.",
                        self.state.mission_id, self.state.step_index)
        self._cancel()

    def clear(self):
        self.stop()
        self.mission = None
        self.state = None

    def snapshot(self) -> Optional[Dict[str, Any]]:
        return self.state.snapshot() if self.state else None


class MonitoringView:
    """
    The single mission shown on the monitoring page.

    ``notify(mission_id, status)`` pushes a status-only update to the
    backend; it is fire-and-forget and must not raise.
    """

    def __init__(self, driver: SimulationDriver, machine: Optional[MissionStateMachine] = None,
                 notify: Optional[Callable[[int, MissionStatus], Any]] = None):
        self.driver = driver
        self.driver.on_finished = self._path_exhausted
        self.machine = machine or MissionStateMachine()
        self.notify = notify
        self.mission = None
        self.drone = None

    def select(self, mission, drone=None):
        """Switch the watched mission; simulate it if it is in progress."""
        self.driver.clear()
        self.mission, self.drone = mission, drone
        if mission is not None and MissionStatus(mission.status) == MissionStatus.IN_PROGRESS:
            self.driver.start(mission)

    def start(self, mission, drone=None, now: Optional[datetime] = None):
        """
        Start a scheduled mission: guard, path generation + driver start,
        then the status/drone flip and the backend update.
        """
        self.machine.check(mission, MissionEvent.START, now)
        path = path_for_mission(mission)
        self.driver.clear()
        self.driver.start(mission, path)
        self.mission, self.drone = mission, drone
        self.machine.fire(mission, MissionEvent.START, drone=drone, now=now)
        self._notify(mission)

    def complete(self):
        self._finish(MissionEvent.COMPLETE)

    def abort(self):
        self._finish(MissionEvent.ABORT)

    def _finish(self, event: MissionEvent):
        if self.mission is None:
            raise InvalidTransition("No mission selected")
        self.machine.check(self.mission, event)
        self.driver.stop()
        self.machine.fire(self.mission, event, drone=self.drone)
        self._notify(self.mission)

    def _path_exhausted(self, mission):
        if mission is not self.mission:
            return
        try:
            self._finish(MissionEvent.COMPLETE)
        except InvalidTransition as e:
            logger.warning("[Worker][Mission %s] Auto-complete skipped: %s", getattr(mission, "id", "?"), e)

    def _notify(self, mission):
        if self.notify is not None:
            self.notify(mission.id, MissionStatus(mission.status))

    def map_payload(self) -> Dict[str, Any]:
        """Data for the map widget and progress bar."""
        mission = self.mission
        snapshot = self.driver.snapshot() or {}
        status = MissionStatus(mission.status) if mission is not None else None
        area = getattr(mission, "survey_area", None)
        if hasattr(area, "model_dump"):
            area = area.model_dump()

        default_percent = 100 if status == MissionStatus.COMPLETED else 0
        return {
            "mission_id": getattr(mission, "id", None),
            "status": status.value if status else None,
            "survey_area": area,
            "drone_position": snapshot.get("drone_position"),
            "flight_path": snapshot.get("flight_path", []),
            "trail": snapshot.get("trail", []),
            "completion_percent": snapshot.get("completion_percent", default_percent),
            "step_index": snapshot.get("step_index", 0),
            "running": self.driver.running,
        }
