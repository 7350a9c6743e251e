# tests/test_mission_runner.py
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from backend.app.errors import (
    DegeneratePolygon,
    InvalidGeometry,
    InvalidTransition,
    SimulationAlreadyRunning,
    StartTooEarly,
)
from backend.app.flight_path import Waypoint, generate_flight_path
from backend.app.mission_status import MissionStateMachine
from backend.app.models import DroneStatus, MissionStatus
from worker.app.mission_runner import MonitoringView, SimulationDriver

NOW = datetime(2030, 5, 1, 12, 0, tzinfo=timezone.utc)
UNIT_SQUARE = {"type": "Polygon", "coordinates": [[[0, 0], [0, 1], [1, 1], [1, 0], [0, 0]]]}


class FakeHandle:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Manual clock exposing the ``call_later`` surface of an asyncio loop."""

    def __init__(self):
        self.now = 0.0
        self.handles = []

    def call_later(self, delay, callback):
        handle = FakeHandle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self):
        return [h for h in self.handles if not h.cancelled and h.when is not None]

    def advance(self, seconds):
        """Move the clock forward, firing due callbacks in order."""
        target = self.now + seconds
        while True:
            due = sorted((h for h in self.pending if h.when <= target), key=lambda h: h.when)
            if not due:
                break
            handle = due[0]
            self.now = handle.when
            handle.when = None  # fired
            handle.callback()
        self.now = target


def mission(status="in-progress", pattern="grid", area=UNIT_SQUARE, at=NOW - timedelta(minutes=5)):
    return SimpleNamespace(
        id=3,
        status=MissionStatus(status),
        survey_area=area,
        flight_parameters={"altitude": 50, "speed": 5, "flight_pattern": pattern},
        schedule={"type": "oneTime", "date_time": at.isoformat(), "duration_minutes": 30},
        started_at=None,
        completed_at=None,
    )


@pytest.fixture
def clock():
    return FakeScheduler()


@pytest.fixture
def driver(clock):
    return SimulationDriver(clock, tick_seconds=1.0)


# -------------------------
# SimulationDriver
# -------------------------
def test_start_places_drone_at_home(driver, clock):
    state = driver.start(mission())

    assert state.drone_position == Waypoint(0, 0, 50)
    assert state.trail == [Waypoint(0, 0, 50)]
    assert state.completion_percent == 0
    assert state.step_index == 0
    assert driver.running
    assert len(clock.pending) == 1


@pytest.mark.parametrize("ticks", [1, 2, 5, 11, 23, 30])
def test_tick_arithmetic(driver, clock, ticks):
    state = driver.start(mission())
    last = len(state.flight_path) - 1

    clock.advance(ticks)

    steps = min(ticks, last)
    assert state.completion_percent == round(100 * steps / last)
    assert len(state.trail) == steps + 1
    assert state.drone_position == state.flight_path[steps]


def test_trail_is_the_flown_prefix(driver, clock):
    state = driver.start(mission(pattern="perimeter"))
    clock.advance(4)
    assert state.trail == state.flight_path[:5]


def test_finishing_stops_the_timer(driver, clock):
    finished = []
    driver.on_finished = finished.append
    m = mission()
    state = driver.start(m)
    length = len(state.flight_path)

    clock.advance(length + 10)

    assert state.completion_percent == 100
    assert state.step_index == length - 1
    assert len(state.trail) == length
    assert not driver.running
    assert clock.pending == []
    assert finished == [m]


def test_only_one_timer_runs(driver, clock):
    driver.start(mission())
    with pytest.raises(SimulationAlreadyRunning):
        driver.start(mission())

    driver.stop()
    driver.stop()
    assert not driver.running
    assert clock.pending == []
    driver.start(mission())
    assert len(clock.pending) == 1


def test_manual_tick_does_not_double_schedule(driver, clock):
    driver.start(mission())
    driver.tick()
    driver.tick()
    assert len(clock.pending) == 1
    assert driver.state.step_index == 2


def test_stopped_driver_ignores_ticks(driver, clock):
    state = driver.start(mission())
    clock.advance(2)
    driver.stop()
    assert driver.tick() is False
    clock.advance(10)
    assert state.step_index == 2


def test_degenerate_area_leaves_no_state(driver, clock):
    flat = {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [2, 0], [0, 0]]]}
    with pytest.raises(DegeneratePolygon):
        driver.start(mission(area=flat))
    assert driver.state is None
    assert not driver.running
    assert clock.pending == []


@pytest.mark.parametrize("path", [[], [Waypoint(0, 0, 50)]])
def test_short_explicit_path_is_rejected(driver, clock, path):
    with pytest.raises(InvalidGeometry):
        driver.start(mission(), path)
    assert driver.state is None
    assert driver.mission is None
    assert clock.pending == []


def test_clear_and_snapshot(driver, clock):
    driver.start(mission())
    clock.advance(1)
    snap = driver.snapshot()
    assert snap["mission_id"] == 3
    assert snap["step_index"] == 1
    assert snap["drone_position"] == snap["trail"][-1]
    assert snap["trail"][0] == {"lng": 0, "lat": 0, "altitude": 50}

    driver.clear()
    assert driver.snapshot() is None
    assert not driver.running


# -------------------------
# MonitoringView
# -------------------------
@pytest.fixture
def notified():
    return []


@pytest.fixture
def view(driver, notified):
    machine = MissionStateMachine(clock=lambda: NOW)
    return MonitoringView(driver, machine, notify=lambda mission_id, status: notified.append((mission_id, status)))


def test_select_simulates_in_progress_missions_only(view):
    view.select(mission("scheduled"))
    assert view.driver.state is None
    assert view.map_payload()["completion_percent"] == 0

    view.select(mission("in-progress"))
    assert view.driver.running

    view.select(mission("completed"))
    assert not view.driver.running
    assert view.map_payload()["completion_percent"] == 100


def test_select_switch_stops_previous_timer(view, clock):
    view.select(mission("in-progress"))
    view.select(mission("in-progress"))
    assert len(clock.pending) == 1


def test_start_before_schedule_is_rejected(view, clock, notified):
    m, drone = mission("scheduled", at=NOW + timedelta(hours=1)), SimpleNamespace(status=DroneStatus.AVAILABLE)

    with pytest.raises(StartTooEarly):
        view.start(m, drone)

    assert m.status == MissionStatus.SCHEDULED
    assert drone.status == DroneStatus.AVAILABLE
    assert clock.pending == []
    assert notified == []


def test_start_after_schedule_runs_and_ticks(view, clock, notified):
    m, drone = mission("scheduled"), SimpleNamespace(status=DroneStatus.AVAILABLE)

    view.start(m, drone)

    assert m.status == MissionStatus.IN_PROGRESS
    assert drone.status == DroneStatus.IN_MISSION
    assert notified == [(3, MissionStatus.IN_PROGRESS)]

    clock.advance(1.0)
    assert view.map_payload()["completion_percent"] > 0


def test_path_exhaustion_completes_the_mission(view, clock, notified):
    m, drone = mission("scheduled", pattern="crosshatch"), SimpleNamespace(status=DroneStatus.AVAILABLE)
    view.start(m, drone)
    length = len(generate_flight_path(UNIT_SQUARE, "crosshatch", 50))

    clock.advance(length - 1)

    assert m.status == MissionStatus.COMPLETED
    assert m.completed_at == NOW
    assert drone.status == DroneStatus.AVAILABLE
    assert notified[-1] == (3, MissionStatus.COMPLETED)
    assert clock.pending == []

    step = view.driver.state.step_index
    clock.advance(10)
    assert view.driver.state.step_index == step
    payload = view.map_payload()
    assert payload["completion_percent"] == 100
    assert payload["status"] == "completed"
    assert payload["running"] is False


def test_abort_stops_simulation(view, clock, notified):
    m, drone = mission("scheduled"), SimpleNamespace(status=DroneStatus.AVAILABLE)
    view.start(m, drone)
    clock.advance(3)

    view.abort()

    assert m.status == MissionStatus.ABORTED
    assert drone.status == DroneStatus.AVAILABLE
    assert not view.driver.running
    assert view.map_payload()["step_index"] == 3
    assert notified[-1] == (3, MissionStatus.ABORTED)


def test_complete_requires_a_running_mission(view):
    with pytest.raises(InvalidTransition):
        view.complete()
    view.select(mission("scheduled"))
    with pytest.raises(InvalidTransition):
        view.complete()


def test_start_with_degenerate_area_changes_nothing(view, notified):
    flat = {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [2, 0], [0, 0]]]}
    m = mission("scheduled", area=flat)
    with pytest.raises(DegeneratePolygon):
        view.start(m)
    assert m.status == MissionStatus.SCHEDULED
    assert notified == []


def test_failed_start_keeps_the_running_mission(view, clock, notified):
    running = mission("in-progress")
    view.select(running)
    clock.advance(2)

    flat = {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [2, 0], [0, 0]]]}
    with pytest.raises(DegeneratePolygon):
        view.start(mission("scheduled", area=flat))

    assert view.mission is running
    assert view.driver.running
    assert view.driver.state.step_index == 2
    assert notified == []

    clock.advance(len(view.driver.state.flight_path))
    assert running.status == MissionStatus.COMPLETED
    assert notified == [(3, MissionStatus.COMPLETED)]


def test_map_payload_contract(view, clock):
    view.select(mission("in-progress"))
    clock.advance(2)
    payload = view.map_payload()

    assert set(payload) == {
        "mission_id", "status", "survey_area", "drone_position", "flight_path",
        "trail", "completion_percent", "step_index", "running",
    }
    assert payload["survey_area"] == UNIT_SQUARE
    assert payload["drone_position"] == payload["trail"][-1]
    assert len(payload["trail"]) == 3
