"""
Shared pytest fixtures for the space simulator tests.

Provides:
  - In-memory SQLite DB with migrations applied and the mission catalog seeded
  - FastAPI TestClient with auth bypassed (acts as the dev pilot)
  - Helper functions for creating profiles, sessions and missions
"""

import json
import os
import secrets
import sqlite3
import sys
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Generator, Optional

import pytest

# ---------------------------------------------------------------------------
# Ensure the project root is on sys.path so we can import app modules
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Force DEV_SKIP_AUTH so all endpoints act as the dev pilot by default.
os.environ.setdefault("DEV_SKIP_AUTH", "1")
os.environ.setdefault("DEV_USER_ID", "pilot")

# Use a writable temp directory for the test DB so the app startup succeeds.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="simulator_test_")
os.environ["DB_DIR"] = _TEST_DB_DIR
os.environ.pop("DB_PATH", None)


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def db_conn() -> Generator[sqlite3.Connection, None, None]:
    """Yield an in-memory SQLite connection with migrations applied and missions seeded."""
    from catalog_service import seed_missions_if_empty
    from db_migrations import apply_migrations

    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON;")

    apply_migrations(conn)
    seed_missions_if_empty(conn)
    conn.commit()

    yield conn
    conn.close()


@pytest.fixture()
def file_db_path(tmp_path: Path) -> Path:
    """A migrated, seeded on-disk database for tests that need several connections."""
    from catalog_service import seed_missions_if_empty
    from db import connect_db
    from db_migrations import apply_migrations

    path = tmp_path / "concurrency.db"
    conn = connect_db(path)
    try:
        apply_migrations(conn)
        seed_missions_if_empty(conn)
        conn.commit()
    finally:
        conn.close()
    return path


# ---------------------------------------------------------------------------
# FastAPI TestClient
# ---------------------------------------------------------------------------

@pytest.fixture()
def client():
    """Return a Starlette TestClient wired to the FastAPI app.

    Auth is bypassed via DEV_SKIP_AUTH=1; the dev pilot starts every test idle
    with an empty journey log.
    """
    from fastapi.testclient import TestClient
    from main import app

    with TestClient(app) as c:
        _reset_dev_pilot()
        yield c


def _reset_dev_pilot() -> None:
    from auth_service import DEV_USER_ID
    from constants import INITIAL_SHIP_STATUS
    from db import connect_db

    conn = connect_db()
    try:
        conn.execute("DELETE FROM journey_events WHERE user_id=?", (DEV_USER_ID,))
        conn.execute(
            """
            UPDATE users
            SET active_mission_id=NULL, active_mission_name=NULL, active_started_at=NULL,
                active_duration_s=NULL, ship_status_json=?
            WHERE user_id=?
            """,
            (json.dumps(INITIAL_SHIP_STATUS), DEV_USER_ID),
        )
        conn.commit()
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Test data helpers
# ---------------------------------------------------------------------------

class TestHelpers:
    """Stateless helper methods for common test-data operations."""

    @staticmethod
    def create_pilot(
        conn: sqlite3.Connection,
        user_id: str = "testuser",
        *,
        crew_current: Optional[int] = 5,
        ship_extra: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Insert a profile row. ``crew_current=None`` leaves the crew count out."""
        from profile_repository import create_profile

        ship: Dict[str, Any] = {"name": "Test Ship", "fuel": 100}
        ship.update(ship_extra or {})
        if crew_current is not None:
            ship["crewCurrent"] = crew_current
        create_profile(conn, user_id, display_name=user_id, ship_status=ship)
        conn.commit()
        return user_id

    @staticmethod
    def create_session(
        conn: sqlite3.Connection,
        user_id: str,
        *,
        expires_in_s: Optional[float] = 3600.0,
    ) -> str:
        """Insert a session row and return its bearer token."""
        from auth_repository import insert_session

        token = secrets.token_urlsafe(32)
        expires_at = None if expires_in_s is None else time.time() + expires_in_s
        insert_session(conn, token, user_id, expires_at)
        conn.commit()
        return token

    @staticmethod
    def add_mission(
        conn: sqlite3.Connection,
        mission_id: str,
        *,
        name: Optional[str] = None,
        crew_required: Optional[int] = 3,
        duration_s: int = 600,
    ) -> str:
        conn.execute(
            "INSERT INTO missions (id,name,crew_required,duration_s,description) VALUES (?,?,?,?,'')",
            (mission_id, name or mission_id.replace("_", " ").title(), crew_required, duration_s),
        )
        conn.commit()
        return mission_id


@pytest.fixture()
def helpers() -> TestHelpers:
    return TestHelpers()
