import sqlite3
from typing import List

from mission_models import JourneyAppend, JourneyEvent


def append_journey_event(conn: sqlite3.Connection, user_id: str, entry: JourneyAppend, event_at: float) -> int:
    """Insert one journey row. Only called from inside a user transaction."""
    if not conn.in_transaction:
        raise RuntimeError("journey events must be appended inside a transaction")
    cur = conn.execute(
        "INSERT INTO journey_events (user_id,mission_id,mission_name,status,event_at) VALUES (?,?,?,?,?)",
        (user_id, entry.mission_id, entry.mission_name, entry.status, event_at),
    )
    return int(cur.lastrowid)


def list_journey_events(conn: sqlite3.Connection, user_id: str) -> List[JourneyEvent]:
    rows = conn.execute(
        """
        SELECT id,mission_id,mission_name,status,event_at
        FROM journey_events
        WHERE user_id=?
        ORDER BY event_at DESC, id DESC
        """,
        (user_id,),
    ).fetchall()
    return [
        JourneyEvent(
            id=int(r["id"]),
            mission_id=str(r["mission_id"]),
            mission_name=str(r["mission_name"]),
            status=str(r["status"]),
            event_timestamp=float(r["event_at"]),
        )
        for r in rows
    ]