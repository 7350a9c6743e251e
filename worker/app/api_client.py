# worker/app/api_client.py
# REST client for the Mission Planner API (mission/drone reads, status-only updates).
import logging
import os
from typing import List, Optional

import requests

from backend.app.models import DroneRead, MissionRead, MissionStatus

BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:8000")

logger = logging.getLogger(__name__)


class BackendClient:
    """
    Thin ``requests`` wrapper around the backend.
    Reads raise on failure so callers can report them; status updates are
    fire-and-forget: failures are logged, never retried.
    """

    def __init__(self, base_url: str = BACKEND_URL, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = session or requests.Session()

    def _get(self, path: str):
        r = self.http.get(f"{self.base_url}/{path}", timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    # -------------------------
    # Reads
    # -------------------------
    def get_mission(self, mission_id: int) -> MissionRead:
        return MissionRead.model_validate(self._get(f"missions/{mission_id}"))

    def list_missions(self) -> List[MissionRead]:
        return [MissionRead.model_validate(m) for m in self._get("missions")]

    def get_drone(self, drone_id: int) -> DroneRead:
        return DroneRead.model_validate(self._get(f"drones/{drone_id}"))

    # -------------------------
    # Status-only update
    # -------------------------
    def update_status(self, mission_id: int, status: MissionStatus) -> bool:
        status = MissionStatus(status)
        try:
            r = self.http.patch(
                f"{self.base_url}/missions/{mission_id}",
                json={"status": status.value},
                timeout=self.timeout,
            )
            r.raise_for_status()
            logger.info("[Worker][Mission %s] Backend status -> %s", mission_id, status.value)
            return True
        except requests.RequestException as e:
            logger.error("[Worker][Mission %s] Status update to %s failed: %s", mission_id, status.value, e)
            return False
