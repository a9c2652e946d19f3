"""
Database migration tests — verify that migrations apply cleanly and
produce the expected schema.

Catches:
  - SQL syntax errors in migration functions
  - Idempotency failures (running migrations twice)
  - Missing tables or columns after migration
  - Journey log / active mission constraints not enforced by the schema
"""

import sqlite3
import sys
import time
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
import os; os.environ.setdefault("DEV_SKIP_AUTH", "1")


def _fresh_conn() -> sqlite3.Connection:
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


# ── Migration application ─────────────────────────────────────────────────

class TestMigrationsApply:
    def test_all_migrations_apply_to_fresh_db(self):
        """All migrations should apply without error to an empty database."""
        from db_migrations import apply_migrations

        conn = _fresh_conn()
        apply_migrations(conn)

        rows = conn.execute("SELECT migration_id FROM schema_migrations ORDER BY migration_id").fetchall()
        ids = [r["migration_id"] for r in rows]
        assert len(ids) >= 1
        assert ids[0] == "0001_initial"
        conn.close()

    def test_migrations_are_idempotent(self):
        """Running apply_migrations twice should not raise."""
        from db_migrations import apply_migrations

        conn = _fresh_conn()
        apply_migrations(conn)
        apply_migrations(conn)
        count = conn.execute("SELECT COUNT(*) FROM schema_migrations").fetchone()[0]
        from db_migrations import _migrations
        assert count == len(_migrations())
        conn.close()

    def test_migration_ids_are_sequential(self):
        from db_migrations import _migrations

        ids = [m.migration_id for m in _migrations()]
        assert ids == sorted(ids), f"Migration IDs are not sorted: {ids}"

    def test_no_duplicate_migration_ids(self):
        from db_migrations import _migrations

        ids = [m.migration_id for m in _migrations()]
        assert len(ids) == len(set(ids)), f"Duplicate migration IDs: {[x for x in ids if ids.count(x) > 1]}"


# ── Schema expectations ───────────────────────────────────────────────────

EXPECTED_TABLES = [
    "users",
    "sessions",
    "missions",
    "journey_events",
    "schema_migrations",
]


class TestSchemaAfterMigrations:
    def test_expected_tables_exist(self, db_conn: sqlite3.Connection):
        tables = {
            r[0]
            for r in db_conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
        }
        for t in EXPECTED_TABLES:
            assert t in tables, f"Expected table '{t}' not found. Tables: {tables}"

    def test_users_table_has_core_columns(self, db_conn: sqlite3.Connection):
        cols = {r["name"] for r in db_conn.execute("PRAGMA table_info(users)").fetchall()}
        for c in ("user_id", "ship_status_json", "active_mission_id", "active_started_at", "version"):
            assert c in cols, f"users table missing column: {c}"

    def test_foreign_keys_enabled(self, db_conn: sqlite3.Connection):
        fk = db_conn.execute("PRAGMA foreign_keys;").fetchone()
        assert fk[0] == 1


class TestSchemaConstraints:
    def test_journey_events_reject_updates(self, db_conn: sqlite3.Connection, helpers):
        helpers.create_pilot(db_conn, "ann")
        db_conn.execute(
            "INSERT INTO journey_events (user_id,mission_id,mission_name,status,event_at) VALUES (?,?,?,?,?)",
            ("ann", "lunar_survey", "Lunar Survey", "started", time.time()),
        )
        db_conn.commit()
        with pytest.raises(sqlite3.DatabaseError):
            db_conn.execute("UPDATE journey_events SET status='completed' WHERE user_id='ann'")
        db_conn.rollback()

    def test_journey_events_reject_unknown_status(self, db_conn: sqlite3.Connection, helpers):
        helpers.create_pilot(db_conn, "ann")
        with pytest.raises(sqlite3.IntegrityError):
            db_conn.execute(
                "INSERT INTO journey_events (user_id,mission_id,mission_name,status,event_at) VALUES (?,?,?,?,?)",
                ("ann", "lunar_survey", "Lunar Survey", "paused", time.time()),
            )
        db_conn.rollback()

    def test_active_mission_requires_start_timestamp(self, db_conn: sqlite3.Connection, helpers):
        helpers.create_pilot(db_conn, "ann")
        with pytest.raises(sqlite3.IntegrityError):
            db_conn.execute("UPDATE users SET active_mission_id='lunar_survey' WHERE user_id='ann'")
        db_conn.rollback()
