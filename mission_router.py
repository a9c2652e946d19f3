"""
Mission API routes.

Handles:
  /api/missions
  /api/missions/start
  /api/missions/cancel
  /api/missions/complete
  /api/user/status
  /api/user/journey-log
"""

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from auth_service import require_user
from db import get_db
import mission_service

router = APIRouter(tags=["missions"])


# ── Pydantic models ────────────────────────────────────────

# Fields are optional so a missing id reaches the engine and is reported as
# MissingParameters with a {message} body instead of a 422 validation error.
class StartMissionReq(BaseModel):
    missionId: Optional[str] = None


class CompleteMissionReq(BaseModel):
    missionId: Optional[str] = None
    missionName: Optional[str] = None


# ── Routes ─────────────────────────────────────────────────

@router.get("/api/missions")
def api_missions(conn: sqlite3.Connection = Depends(get_db)) -> List[Dict[str, Any]]:
    return [m.to_payload() for m in mission_service.list_missions(conn)]


@router.get("/api/user/status")
def api_user_status(request: Request, conn: sqlite3.Connection = Depends(get_db)) -> Dict[str, Any]:
    user_id = require_user(conn, request)
    return mission_service.get_user_status(conn, user_id)


@router.get("/api/user/journey-log")
def api_user_journey_log(request: Request, conn: sqlite3.Connection = Depends(get_db)) -> List[Dict[str, Any]]:
    user_id = require_user(conn, request)
    events = mission_service.get_journey_log(conn, user_id)
    logging.info("Retrieved %d journey events for user %s", len(events), user_id)
    return [e.to_payload() for e in events]


@router.post("/api/missions/start")
def api_missions_start(
    request: Request,
    req: Optional[StartMissionReq] = None,
    conn: sqlite3.Connection = Depends(get_db),
) -> Dict[str, Any]:
    user_id = require_user(conn, request)
    mission_id = req.missionId if req else None
    logging.info("POST /api/missions/start user=%s mission=%s", user_id, mission_id)
    result = mission_service.start_mission(conn, user_id, mission_id)
    return result.to_payload()


@router.post("/api/missions/cancel")
def api_missions_cancel(request: Request, conn: sqlite3.Connection = Depends(get_db)) -> Dict[str, Any]:
    user_id = require_user(conn, request)
    logging.info("POST /api/missions/cancel user=%s", user_id)
    result = mission_service.cancel_mission(conn, user_id)
    return result.to_payload()


@router.post("/api/missions/complete")
def api_missions_complete(
    request: Request,
    req: Optional[CompleteMissionReq] = None,
    conn: sqlite3.Connection = Depends(get_db),
) -> Dict[str, Any]:
    user_id = require_user(conn, request)
    mission_id = req.missionId if req else None
    mission_name = req.missionName if req else None
    logging.info("POST /api/missions/complete user=%s mission=%s", user_id, mission_id)
    result = mission_service.complete_mission(conn, user_id, mission_id, mission_name)
    return result.to_payload()
