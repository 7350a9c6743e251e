# ===============================================================
# backend/app/models.py
# ===============================================================
"""
Data models for the Drone Survey Mission Planner backend.
Defines SQLModel ORM tables and API schemas for:
 - Drones
 - Missions (survey area, flight parameters, schedule)

Survey area, flight parameters and schedule are stored as JSON columns
and validated through the nested schemas below on the way in and out.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import field_validator, model_validator
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from .flight_path import FlightPattern
from .geometry import validate_ring


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def reject_explicit_nulls(update: SQLModel, nullable=()) -> None:
    """Partial updates may omit a field but not null out a required one."""
    nulled = sorted(
        name for name in update.model_fields_set
        if name not in nullable and getattr(update, name) is None
    )
    if nulled:
        raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")


# ===============================================================
# 🏷️ ENUMERATIONS
# ===============================================================

class DroneStatus(str, Enum):
    AVAILABLE = "available"
    IN_MISSION = "in-mission"
    MAINTENANCE = "maintenance"
    OFFLINE = "offline"


class HealthStatus(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    NEEDS_ATTENTION = "needs-attention"
    CRITICAL = "critical"


class MissionStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


class ScheduleType(str, Enum):
    ONE_TIME = "oneTime"
    RECURRING = "recurring"


class RecurrenceFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# ===============================================================
# 🗺️ MISSION VALUE SCHEMAS (stored as JSON)
# ===============================================================

class SurveyArea(SQLModel):
    """GeoJSON Polygon; the outer ring is validated and closed."""
    type: str = Field(default="Polygon")
    coordinates: List[List[List[float]]]

    @field_validator("type")
    @classmethod
    def _polygon_only(cls, value: str) -> str:
        if value != "Polygon":
            raise ValueError("Survey area must be a GeoJSON Polygon")
        return value

    @field_validator("coordinates")
    @classmethod
    def _valid_outer_ring(cls, value: List[List[List[float]]]) -> List[List[List[float]]]:
        ring = validate_ring(value)
        return [[[lng, lat] for lng, lat in ring]] + value[1:]


class FlightParameters(SQLModel):
    altitude: float = Field(ge=10, le=500, description="Flight altitude (m)")
    speed: float = Field(ge=1, le=20, description="Cruise speed (m/s)")
    flight_pattern: FlightPattern = Field(default=FlightPattern.GRID)
    overlap: float = Field(default=70, ge=0, le=90, description="Image overlap (%)")


class Recurrence(SQLModel):
    frequency: RecurrenceFrequency
    interval: int = Field(default=1, ge=1, le=30)
    end_date: Optional[datetime] = None


class Schedule(SQLModel):
    type: ScheduleType = Field(default=ScheduleType.ONE_TIME)
    date_time: datetime
    duration_minutes: int = Field(ge=1, le=1440, description="Planned mission duration (min)")
    recurrence: Optional[Recurrence] = None

    @model_validator(mode="after")
    def _recurrence_required(self):
        if self.type == ScheduleType.RECURRING and self.recurrence is None:
            raise ValueError("Recurring schedules need a recurrence rule")
        return self


# ===============================================================
# 🛩️ DRONES
# ===============================================================

class DroneBase(SQLModel):
    name: str = Field(index=True, description="Drone display name")
    serial_number: str = Field(unique=True, index=True, description="Manufacturer serial number")
    model: str = Field(default="", description="Drone model")
    status: DroneStatus = Field(default=DroneStatus.AVAILABLE)
    battery_level: int = Field(default=100, ge=0, le=100, description="Battery percentage (0–100)")
    max_flight_time: int = Field(default=30, ge=5, le=180, description="Max flight time (min)")
    health_status: HealthStatus = Field(default=HealthStatus.GOOD)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    location_name: Optional[str] = None


class Drone(DroneBase, table=True):
    """
    Represents a physical drone entity with its operational state.
    ``status`` is flipped by mission transitions (in-mission / available).
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    last_updated: datetime = Field(default_factory=utcnow)


class DroneCreate(DroneBase):
    pass


class DroneRead(DroneBase):
    id: int
    last_updated: Optional[datetime] = None


class DroneUpdate(SQLModel):
    name: Optional[str] = None
    serial_number: Optional[str] = None
    model: Optional[str] = None
    status: Optional[DroneStatus] = None
    battery_level: Optional[int] = Field(default=None, ge=0, le=100)
    max_flight_time: Optional[int] = Field(default=None, ge=5, le=180)
    health_status: Optional[HealthStatus] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    location_name: Optional[str] = None

    @model_validator(mode="after")
    def _required_fields_stay_set(self):
        reject_explicit_nulls(self, nullable=("latitude", "longitude", "location_name"))
        return self


# ===============================================================
# 🚀 MISSIONS
# ===============================================================

class MissionBase(SQLModel):
    name: str = Field(index=True, description="Mission name")
    description: str = Field(default="")
    drone_id: int = Field(foreign_key="drone.id", description="Assigned drone ID")


class Mission(MissionBase, table=True):
    """
    A survey mission: polygon + flight parameters + schedule, flown by one drone.
    ``status`` is the authoritative state-machine value.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    status: MissionStatus = Field(default=MissionStatus.SCHEDULED, index=True)
    survey_area: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    flight_parameters: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    schedule: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = Field(default=None, description="Start timestamp of mission")
    completed_at: Optional[datetime] = Field(default=None, description="Completion/abort timestamp")


class MissionCreate(MissionBase):
    survey_area: SurveyArea
    flight_parameters: FlightParameters
    schedule: Schedule
    status: MissionStatus = MissionStatus.SCHEDULED

    @field_validator("status")
    @classmethod
    def _initial_status(cls, value: MissionStatus) -> MissionStatus:
        if value not in (MissionStatus.DRAFT, MissionStatus.SCHEDULED):
            raise ValueError("New missions start as draft or scheduled")
        return value


class MissionRead(MissionBase):
    id: int
    status: MissionStatus
    survey_area: SurveyArea
    flight_parameters: FlightParameters
    schedule: Schedule
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class MissionUpdate(SQLModel):
    """Partial update. ``{"status": ...}`` alone is a status-only transition."""
    name: Optional[str] = None
    description: Optional[str] = None
    drone_id: Optional[int] = None
    survey_area: Optional[SurveyArea] = None
    flight_parameters: Optional[FlightParameters] = None
    schedule: Optional[Schedule] = None
    status: Optional[MissionStatus] = None

    @model_validator(mode="after")
    def _required_fields_stay_set(self):
        reject_explicit_nulls(self)
        return self
