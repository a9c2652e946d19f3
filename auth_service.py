import logging
import os
import sqlite3
import time
from typing import Optional

from fastapi import Request

from auth_repository import find_session
from mission_errors import InvalidToken, TokenExpired, Unauthenticated

BEARER_PREFIX = "Bearer "
DEV_SKIP_AUTH = os.environ.get("DEV_SKIP_AUTH", "").strip().lower() in ("1", "true", "yes")
DEV_USER_ID = os.environ.get("DEV_USER_ID", "pilot").strip() or "pilot"


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    if not header.startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX):].strip()
    return token or None


def verify_token(conn: sqlite3.Connection, token: str, now: Optional[float] = None) -> str:
    """Resolve a bearer token to its user id, or raise TokenExpired / InvalidToken."""
    row = find_session(conn, token)
    if not row:
        raise InvalidToken()
    expires_at = row["expires_at"]
    if expires_at is not None and float(expires_at) <= (time.time() if now is None else now):
        raise TokenExpired()
    return str(row["user_id"])


def require_user(conn: sqlite3.Connection, request: Request) -> str:
    if DEV_SKIP_AUTH:
        return DEV_USER_ID
    token = bearer_token(request)
    if not token:
        raise Unauthenticated()
    try:
        user_id = verify_token(conn, token)
    except (InvalidToken, TokenExpired) as exc:
        logging.warning("Token verification failed: %s", exc.message)
        raise
    logging.debug("Token verified for user %s", user_id)
    return user_id
