"""
User profile store and the per-user transaction primitive.

``run_user_transaction`` is the only way mission state is written. It opens a
``BEGIN IMMEDIATE`` transaction, reads the profile fresh, hands it to a body
that returns a ``WriteSet``, and commits the profile update together with the
journey appends. The profile update is conditioned on the ``version`` that was
read, so a concurrent writer is detected as a conflict and the whole attempt
is rolled back and replayed.
"""

import json
import logging
import os
import sqlite3
import time
from typing import Any, Callable, Dict, Optional

from constants import INITIAL_SHIP_STATUS, TX_RETRY_BACKOFF_S
from journey_repository import append_journey_event
from mission_errors import StorageUnavailable, TransactionConflict, UserNotFound
from mission_models import ActiveMission, ShipStatus, UserProfile, WriteSet

MISSION_TX_MAX_ATTEMPTS = max(1, int(os.environ.get("MISSION_TX_MAX_ATTEMPTS", "5")))

_CONFLICT_ERROR_CODES = {sqlite3.SQLITE_BUSY, sqlite3.SQLITE_LOCKED}

TransactionBody = Callable[[UserProfile], WriteSet]


class _VersionConflict(Exception):
    pass


def _is_conflict(exc: sqlite3.Error) -> bool:
    return getattr(exc, "sqlite_errorcode", None) in _CONFLICT_ERROR_CODES


def _row_to_profile(row: sqlite3.Row) -> UserProfile:
    active: Optional[ActiveMission] = None
    if row["active_mission_id"] is not None:
        duration = row["active_duration_s"]
        active = ActiveMission(
            mission_id=str(row["active_mission_id"]),
            mission_name=str(row["active_mission_name"] or ""),
            start_timestamp=float(row["active_started_at"]),
            duration_seconds=None if duration is None else int(duration),
        )
    return UserProfile(
        user_id=str(row["user_id"]),
        display_name=str(row["display_name"] or ""),
        ship_status=ShipStatus.from_json(row["ship_status_json"]),
        active_mission=active,
        version=int(row["version"]),
    )


def get_profile(conn: sqlite3.Connection, user_id: str) -> Optional[UserProfile]:
    row = conn.execute(
        """
        SELECT user_id,display_name,ship_status_json,active_mission_id,active_mission_name,
               active_started_at,active_duration_s,version
        FROM users WHERE user_id=?
        """,
        (user_id,),
    ).fetchone()
    if not row:
        return None
    return _row_to_profile(row)


def create_profile(
    conn: sqlite3.Connection,
    user_id: str,
    *,
    display_name: str = "",
    ship_status: Optional[Dict[str, Any]] = None,
) -> None:
    status = INITIAL_SHIP_STATUS if ship_status is None else ship_status
    conn.execute(
        "INSERT INTO users (user_id,display_name,ship_status_json,version,created_at) VALUES (?,?,?,0,?)",
        (user_id, display_name, json.dumps(status, sort_keys=True), time.time()),
    )


def ensure_profile(conn: sqlite3.Connection, user_id: str, *, display_name: str = "") -> bool:
    """Create a profile with the initial ship status if missing. Returns True when created."""
    if conn.execute("SELECT 1 FROM users WHERE user_id=?", (user_id,)).fetchone():
        return False
    create_profile(conn, user_id, display_name=display_name)
    return True


def _apply_write_set(conn: sqlite3.Connection, profile: UserProfile, writes: WriteSet, committed_at: float) -> None:
    if not writes.touches_profile and not writes.journey:
        return

    if writes.set_active is not None:
        intent = writes.set_active
        cur = conn.execute(
            """
            UPDATE users
            SET active_mission_id=?, active_mission_name=?, active_started_at=?, active_duration_s=?,
                version=version+1
            WHERE user_id=? AND version=?
            """,
            (intent.mission_id, intent.mission_name, committed_at, intent.duration_seconds,
             profile.user_id, profile.version),
        )
    elif writes.clear_active:
        cur = conn.execute(
            """
            UPDATE users
            SET active_mission_id=NULL, active_mission_name=NULL, active_started_at=NULL,
                active_duration_s=NULL, version=version+1
            WHERE user_id=? AND version=?
            """,
            (profile.user_id, profile.version),
        )
    else:
        cur = conn.execute(
            "UPDATE users SET version=version+1 WHERE user_id=? AND version=?",
            (profile.user_id, profile.version),
        )
    if cur.rowcount != 1:
        raise _VersionConflict(profile.user_id)

    for entry in writes.journey:
        append_journey_event(conn, profile.user_id, entry, committed_at)


def run_user_transaction(
    conn: sqlite3.Connection,
    user_id: str,
    body: TransactionBody,
    *,
    max_attempts: int = MISSION_TX_MAX_ATTEMPTS,
) -> float:
    """Run ``body`` against a fresh profile snapshot and commit its writes atomically.

    Returns the commit timestamp stamped onto the active mission and journey rows.
    Exceptions raised by ``body`` abort the attempt with no side effects and are
    not retried. Storage conflicts are retried up to ``max_attempts`` times and
    then surface as ``TransactionConflict``; any other storage error surfaces as
    ``StorageUnavailable``.
    """
    if conn.in_transaction:
        raise RuntimeError("run_user_transaction requires a connection with no open transaction")

    for attempt in range(1, max_attempts + 1):
        try:
            conn.execute("BEGIN IMMEDIATE")
            profile = get_profile(conn, user_id)
            if profile is None:
                raise UserNotFound()
            writes = body(profile)
            committed_at = time.time()
            _apply_write_set(conn, profile, writes, committed_at)
            conn.commit()
            return committed_at
        except _VersionConflict:
            conn.rollback()
            logging.warning("Profile version conflict for user %s (attempt %d/%d)", user_id, attempt, max_attempts)
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.rollback()
            if not _is_conflict(exc):
                raise StorageUnavailable(f"Storage error for user {user_id}: {exc}") from exc
            logging.warning("Storage busy for user %s (attempt %d/%d): %s", user_id, attempt, max_attempts, exc)
        except BaseException:
            if conn.in_transaction:
                conn.rollback()
            raise
        if attempt < max_attempts:
            time.sleep(TX_RETRY_BACKOFF_S * attempt)

    raise TransactionConflict(f"Transaction for user {user_id} conflicted {max_attempts} times")
