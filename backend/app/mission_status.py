# ===============================================================
# backend/app/mission_status.py
# ===============================================================
"""
Mission status state machine.

    draft -> scheduled -> in-progress -> completed | aborted
                      \\-> cancelled

Guards are evaluated before anything is mutated, so a rejected transition
never leaves a half-applied status or drone flip behind. The same machine
runs server-side (CRUD status updates) and in the simulation worker.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .errors import InvalidTransition, MissionLocked, MissionNotEditable, StartTooEarly
from .models import DroneStatus, MissionStatus, utcnow
from .scheduling import as_utc, coerce_schedule

logger = logging.getLogger(__name__)


class MissionEvent(str, Enum):
    SCHEDULE = "schedule"
    START = "start"
    COMPLETE = "complete"
    ABORT = "abort"
    CANCEL = "cancel"


TRANSITIONS = {
    (MissionStatus.DRAFT, MissionEvent.SCHEDULE): MissionStatus.SCHEDULED,
    (MissionStatus.SCHEDULED, MissionEvent.START): MissionStatus.IN_PROGRESS,
    (MissionStatus.SCHEDULED, MissionEvent.CANCEL): MissionStatus.CANCELLED,
    (MissionStatus.IN_PROGRESS, MissionEvent.COMPLETE): MissionStatus.COMPLETED,
    (MissionStatus.IN_PROGRESS, MissionEvent.ABORT): MissionStatus.ABORTED,
}

DRONE_EFFECTS = {
    MissionEvent.START: DroneStatus.IN_MISSION,
    MissionEvent.COMPLETE: DroneStatus.AVAILABLE,
    MissionEvent.ABORT: DroneStatus.AVAILABLE,
}

EDITABLE_STATUSES = {MissionStatus.DRAFT, MissionStatus.SCHEDULED}
ACTIVE_STATUSES = {MissionStatus.SCHEDULED, MissionStatus.IN_PROGRESS}


def event_for_status(current: Any, target: Any) -> MissionEvent:
    """Map a status-only update (current -> target) onto its event."""
    current, target = MissionStatus(current), MissionStatus(target)
    for (source, event), destination in TRANSITIONS.items():
        if source == current and destination == target:
            return event
    raise InvalidTransition(f"Cannot change mission status from {current.value} to {target.value}")


def check_edit(mission: Any, changes: Dict[str, Any]) -> None:
    """Reject field edits outside draft/scheduled; in-progress accepts status only."""
    status = MissionStatus(mission.status)
    fields = [name for name in changes if name != "status"]
    if status == MissionStatus.IN_PROGRESS:
        if fields:
            raise MissionLocked(
                "Cannot update mission details while in progress. Only status changes are allowed."
            )
    elif fields and status not in EDITABLE_STATUSES:
        raise MissionNotEditable(f"Cannot update mission with status: {status.value}")


def check_delete(mission: Any) -> None:
    if MissionStatus(mission.status) == MissionStatus.IN_PROGRESS:
        raise MissionLocked("Cannot delete a mission that is in progress")


class MissionStateMachine:
    """
    Applies mission events to anything shaped like a mission (``status``,
    ``schedule``, ``started_at``, ``completed_at``) and an optional drone
    (``status``).
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock

    def check(self, mission: Any, event: MissionEvent, now: Optional[datetime] = None) -> MissionStatus:
        """Return the target status or raise without touching anything."""
        event = MissionEvent(event)
        current = MissionStatus(mission.status)
        target = TRANSITIONS.get((current, event))
        if target is None:
            raise InvalidTransition(f"Cannot {event.value} a mission that is {current.value}")

        if event == MissionEvent.START:
            scheduled_at = as_utc(coerce_schedule(mission.schedule).date_time)
            moment = as_utc(now or self.clock())
            if moment < scheduled_at:
                raise StartTooEarly(
                    f"Mission can only be started at or after its scheduled time ({scheduled_at.isoformat()})"
                )
        return target

    def can_fire(self, mission: Any, event: MissionEvent, now: Optional[datetime] = None) -> bool:
        try:
            self.check(mission, event, now)
        except InvalidTransition:
            return False
        return True

    def fire(self, mission: Any, event: MissionEvent, drone: Any = None, now: Optional[datetime] = None) -> MissionStatus:
        event = MissionEvent(event)
        now = now or self.clock()
        target = self.check(mission, event, now)
        previous = MissionStatus(mission.status)

        mission.status = target
        if event == MissionEvent.START:
            mission.started_at = now
        elif event in (MissionEvent.COMPLETE, MissionEvent.ABORT):
            mission.completed_at = now

        if drone is not None and event in DRONE_EFFECTS:
            drone.status = DRONE_EFFECTS[event]

        logger.info(
            "[Mission %s] %s: %s -> %s",
            getattr(mission, "id", "?"), event.value, previous.value, target.value,
        )
        return target
