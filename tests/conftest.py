# tests/conftest.py
import os
import tempfile
from datetime import datetime, timezone

# keep the app's startup init_db away from the real database file
os.environ.setdefault("MP_DB", os.path.join(tempfile.mkdtemp(), "mission_planner_test.db"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from backend.app import crud
from backend.app.database import get_session, init_db
from backend.app.main import app
from backend.app.models import DroneCreate, MissionCreate

T0 = datetime(2030, 5, 1, 9, 0, tzinfo=timezone.utc)


def square(lng: float = 10.0, lat: float = 50.0, size: float = 0.01):
    """Closed GeoJSON square with its first vertex at the SW corner."""
    return {
        "type": "Polygon",
        "coordinates": [[
            [lng, lat], [lng + size, lat], [lng + size, lat + size], [lng, lat + size], [lng, lat],
        ]],
    }


def mission_body(drone_id: int, **overrides):
    body = {
        "name": "North field",
        "description": "Crop survey",
        "drone_id": drone_id,
        "survey_area": square(),
        "flight_parameters": {"altitude": 100, "speed": 10, "flight_pattern": "grid"},
        "schedule": {"type": "oneTime", "date_time": T0.isoformat(), "duration_minutes": 60},
    }
    body.update(overrides)
    return body


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_drone(session):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        data = {"name": f"Scout {counter['n']}", "serial_number": f"SN-{counter['n']:04d}", "model": "Quad X"}
        data.update(overrides)
        return crud.create_drone(session, DroneCreate(**data))

    return _make


@pytest.fixture
def make_mission(session, make_drone):
    def _make(drone=None, **overrides):
        drone = drone or make_drone()
        return crud.create_mission(session, MissionCreate.model_validate(mission_body(drone.id, **overrides)))

    return _make
