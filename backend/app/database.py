# ===============================================================
# backend/app/database.py
# ===============================================================
"""
Database configuration and session management for the Drone Survey Mission Planner.
Handles database engine creation, initialization, and session lifecycle.
"""

from sqlmodel import SQLModel, create_engine, Session
from typing import Generator
import os


# ===============================================================
# ⚙️ CONFIGURATION
# ===============================================================

# Path to SQLite database (can be overridden via environment variable)
DB_FILE = os.environ.get("MP_DB", "backend/mission_planner.db")

DATABASE_URL = f"sqlite:///{DB_FILE}"

# "check_same_thread" is disabled so FastAPI's threadpool can share the engine
engine = create_engine(
    DATABASE_URL,
    echo=False,  # set to True for SQL query logging
    connect_args={"check_same_thread": False},
)


# ===============================================================
# 🧱 DATABASE INITIALIZATION
# ===============================================================

def init_db(bind=None) -> None:
    """
    Create the drone and mission tables on ``bind`` (the main engine by default).

    Models are imported here so their tables are registered on the metadata
    without a circular import at module load.
    """
    from .models import Drone, Mission  # noqa: F401
    SQLModel.metadata.create_all(bind or engine)


# ===============================================================
# 🔁 DATABASE SESSION HANDLING
# ===============================================================

def get_session() -> Generator[Session, None, None]:
    """
    FastAPI dependency yielding a session on the main engine.

    Tests swap it out through ``app.dependency_overrides[get_session]``.
    """
    with Session(engine) as session:
        yield session
