# ===============================================================
# backend/app/errors.py
# ===============================================================
"""
Error taxonomy for the Drone Survey Mission Planner.

Every error is a ``ValueError`` so CRUD callers can keep catching
``ValueError`` the way the API routes always have. ``status_code`` is the
HTTP status the routes answer with.
"""


class PlannerError(ValueError):
    """Base class for every rejected mission / drone / geometry action."""
    status_code = 400


class NotFound(PlannerError):
    """Referenced drone or mission does not exist."""
    status_code = 404


# ===============================================================
# 🗺️ GEOMETRY
# ===============================================================

class InvalidGeometry(PlannerError):
    """Malformed polygon: bad coordinates, wrong shape, too few vertices."""
    status_code = 422


class DegeneratePolygon(InvalidGeometry):
    """Zero-area ring, zero bounding-box extent or fewer than 3 vertices."""
    status_code = 422


# ===============================================================
# 🚀 MISSION STATE MACHINE
# ===============================================================

class InvalidTransition(PlannerError):
    status_code = 409


class StartTooEarly(InvalidTransition):
    """Mission start requested before its scheduled date/time."""


class MissionNotEditable(PlannerError):
    status_code = 409


class MissionLocked(PlannerError):
    """Non-status change (or delete) attempted while the mission is in progress."""
    status_code = 409


# ===============================================================
# 🛩️ DRONE ASSIGNMENT
# ===============================================================

class DroneUnavailable(PlannerError):
    status_code = 409


class ScheduleConflict(PlannerError):
    status_code = 409


class DuplicateSerial(PlannerError):
    status_code = 409


# ===============================================================
# 📡 SIMULATION
# ===============================================================

class SimulationAlreadyRunning(PlannerError):
    status_code = 409
