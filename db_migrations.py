import sqlite3
import time
from dataclasses import dataclass
from typing import Callable, List


@dataclass(frozen=True)
class Migration:
    migration_id: str
    description: str
    apply: Callable[[sqlite3.Connection], None]


def _migration_0001_initial(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS users (
          user_id TEXT PRIMARY KEY,
          display_name TEXT NOT NULL DEFAULT '',
          ship_status_json TEXT NOT NULL DEFAULT '{}',
          active_mission_id TEXT,
          active_mission_name TEXT,
          active_started_at REAL,
          active_duration_s INTEGER,
          version INTEGER NOT NULL DEFAULT 0,
          created_at REAL NOT NULL,
          CHECK ((active_mission_id IS NULL) = (active_started_at IS NULL))
        );

        CREATE TABLE IF NOT EXISTS sessions (
          token TEXT PRIMARY KEY,
          user_id TEXT NOT NULL REFERENCES users(user_id) ON DELETE CASCADE,
          created_at REAL NOT NULL,
          expires_at REAL
        );
        CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id);

        CREATE TABLE IF NOT EXISTS missions (
          id TEXT PRIMARY KEY,
          name TEXT NOT NULL,
          crew_required INTEGER,
          duration_s INTEGER NOT NULL,
          description TEXT NOT NULL DEFAULT ''
        );
        CREATE INDEX IF NOT EXISTS idx_missions_name ON missions(name);

        CREATE TABLE IF NOT EXISTS journey_events (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          user_id TEXT NOT NULL REFERENCES users(user_id) ON DELETE CASCADE,
          mission_id TEXT NOT NULL,
          mission_name TEXT NOT NULL,
          status TEXT NOT NULL CHECK (status IN ('started','canceled','completed')),
          event_at REAL NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_journey_user_time ON journey_events(user_id, event_at, id);

        CREATE TRIGGER IF NOT EXISTS trg_journey_events_no_update
        BEFORE UPDATE ON journey_events
        BEGIN
          SELECT RAISE(ABORT, 'journey_events is append-only');
        END;
        """
    )


def _migrations() -> List[Migration]:
    return [
        Migration("0001_initial", "Create profile, session, mission catalog and journey log tables", _migration_0001_initial),
    ]


def apply_migrations(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
          migration_id TEXT PRIMARY KEY,
          description TEXT NOT NULL,
          applied_at REAL NOT NULL
        );
        """
    )

    applied = {
        str(r["migration_id"])
        for r in conn.execute("SELECT migration_id FROM schema_migrations").fetchall()
    }

    for migration in _migrations():
        if migration.migration_id in applied:
            continue
        migration.apply(conn)
        conn.execute(
            "INSERT INTO schema_migrations (migration_id,description,applied_at) VALUES (?,?,?)",
            (migration.migration_id, migration.description, time.time()),
        )
    conn.commit()
