import sqlite3
import time
from typing import Optional


def find_session(conn: sqlite3.Connection, token: str) -> Optional[sqlite3.Row]:
    return conn.execute(
        "SELECT token,user_id,created_at,expires_at FROM sessions WHERE token=?",
        (token,),
    ).fetchone()


def insert_session(conn: sqlite3.Connection, token: str, user_id: str, expires_at: Optional[float]) -> None:
    conn.execute(
        "INSERT INTO sessions (token,user_id,created_at,expires_at) VALUES (?,?,?,?)",
        (token, user_id, time.time(), expires_at),
    )


def delete_expired_sessions(conn: sqlite3.Connection, now: float) -> int:
    cur = conn.execute("DELETE FROM sessions WHERE expires_at IS NOT NULL AND expires_at<=?", (now,))
    return int(cur.rowcount or 0)
