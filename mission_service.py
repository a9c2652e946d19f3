"""
Mission lifecycle engine — start, cancel and complete a user's active mission.

A user is Idle (no active mission) or Active (exactly one). Every transition
runs inside ``profile_repository.run_user_transaction`` so the profile update
and its journey-log row commit together or not at all. The engine keeps no
state of its own; all mutual exclusion comes from the storage transaction.

Failures are raised as ``mission_errors.MissionError`` subclasses. Raw sqlite
errors never escape: the transaction primitive translates them.
"""

import logging
import sqlite3
from typing import Any, Dict, List, Optional

import catalog_service
from journey_repository import list_journey_events
from mission_errors import (
    AlreadyActive,
    IncompleteMissionData,
    IncompleteShipData,
    InsufficientCrew,
    MissingParameters,
    MissionCatalogEmpty,
    MissionError,
    MissionMismatch,
    MissionNotFound,
    NoActiveMission,
    StorageUnavailable,
    UserNotFound,
)
from mission_models import (
    JOURNEY_CANCELED,
    JOURNEY_COMPLETED,
    JOURNEY_STARTED,
    ActiveMission,
    ActiveMissionIntent,
    JourneyAppend,
    JourneyEvent,
    MissionDefinition,
    ShipStatus,
    TransitionResult,
    UserProfile,
    WriteSet,
)
from profile_repository import get_profile, run_user_transaction


# ── Eligibility ──────────────────────────────────────────────────────────────

def check_eligibility(ship: Optional[ShipStatus], mission: MissionDefinition) -> Optional[MissionError]:
    """Return the reason ``ship`` may not start ``mission``, or None when it may."""
    if ship is None or ship.crew_current is None:
        return IncompleteShipData()
    if mission.crew_required is None:
        return IncompleteMissionData()
    if ship.crew_current < mission.crew_required:
        return InsufficientCrew(required=mission.crew_required, available=ship.crew_current)
    return None


def _clean(value: Optional[str]) -> str:
    return str(value or "").strip()


def _read(conn: sqlite3.Connection, what: str, fn, *args):
    try:
        return fn(conn, *args)
    except sqlite3.Error as exc:
        raise StorageUnavailable(f"Failed to read {what}: {exc}") from exc


# ── Transitions ──────────────────────────────────────────────────────────────

def start_mission(conn: sqlite3.Connection, user_id: str, mission_id: Optional[str]) -> TransitionResult:
    mission_id = _clean(mission_id)
    if not mission_id:
        raise MissingParameters("Mission ID is required.")

    # The catalog is immutable, so it is read once outside the transaction.
    mission = _read(conn, "mission catalog", catalog_service.get_mission, mission_id)
    started: Dict[str, ActiveMissionIntent] = {}

    def body(profile: UserProfile) -> WriteSet:
        if mission is None:
            raise MissionNotFound()
        if profile.active_mission is not None:
            raise AlreadyActive()
        reason = check_eligibility(profile.ship_status, mission)
        if reason is not None:
            raise reason
        intent = ActiveMissionIntent(
            mission_id=mission.id,
            mission_name=mission.name,
            duration_seconds=mission.duration_seconds,
        )
        started["intent"] = intent
        return WriteSet(
            set_active=intent,
            journey=[JourneyAppend(mission.id, mission.name, JOURNEY_STARTED)],
        )

    committed_at = run_user_transaction(conn, user_id, body)
    intent = started["intent"]

    # Prefer the stored row, but only while it is still the mission this call committed;
    # a later transition for the same user may land before the re-read.
    profile = _read(conn, "user profile", get_profile, user_id)
    active = profile.active_mission if profile is not None else None
    if active is None or active.mission_id != intent.mission_id or active.start_timestamp != committed_at:
        active = ActiveMission(
            mission_id=intent.mission_id,
            mission_name=intent.mission_name,
            start_timestamp=committed_at,
            duration_seconds=intent.duration_seconds,
        )
    logging.info("Mission %s started for user %s", active.mission_id, user_id)
    return TransitionResult(
        message="Mission started successfully",
        mission_id=active.mission_id,
        mission_name=active.mission_name,
        active_mission=active,
    )


def cancel_mission(conn: sqlite3.Connection, user_id: str) -> TransitionResult:
    canceled: Dict[str, ActiveMission] = {}

    def body(profile: UserProfile) -> WriteSet:
        active = profile.active_mission
        if active is None:
            raise NoActiveMission("No active mission to cancel.")
        canceled["mission"] = active
        return WriteSet(
            clear_active=True,
            journey=[JourneyAppend(active.mission_id, active.mission_name, JOURNEY_CANCELED)],
        )

    run_user_transaction(conn, user_id, body)

    mission = canceled["mission"]
    logging.info("Mission %s canceled for user %s", mission.mission_id, user_id)
    return TransitionResult(
        message=f'Mission "{mission.mission_name}" canceled successfully.',
        mission_id=mission.mission_id,
        mission_name=mission.mission_name,
    )


def complete_mission(
    conn: sqlite3.Connection,
    user_id: str,
    mission_id: Optional[str],
    mission_name: Optional[str],
) -> TransitionResult:
    mission_id = _clean(mission_id)
    mission_name = _clean(mission_name)
    if not mission_id or not mission_name:
        raise MissingParameters("Mission ID and Mission Name are required.")

    def body(profile: UserProfile) -> WriteSet:
        active = profile.active_mission
        if active is None:
            logging.warning("User %s tried to complete mission %s with no active mission", user_id, mission_id)
            raise NoActiveMission(
                "No active mission found to complete. It might have been canceled or already completed."
            )
        if active.mission_id != mission_id:
            logging.warning(
                "Mismatch: active mission for user %s is %s, client sent %s",
                user_id, active.mission_id, mission_id,
            )
            raise MissionMismatch()
        return WriteSet(
            clear_active=True,
            journey=[JourneyAppend(mission_id, mission_name, JOURNEY_COMPLETED)],
        )

    run_user_transaction(conn, user_id, body)

    logging.info("Mission %s completed for user %s", mission_id, user_id)
    return TransitionResult(
        message=f'Mission "{mission_name}" completed successfully.',
        mission_id=mission_id,
        mission_name=mission_name,
    )


# ── Reads ────────────────────────────────────────────────────────────────────

def list_missions(conn: sqlite3.Connection) -> List[MissionDefinition]:
    missions = _read(conn, "mission catalog", catalog_service.list_missions)
    if not missions:
        raise MissionCatalogEmpty()
    return missions


def get_user_status(conn: sqlite3.Connection, user_id: str) -> Dict[str, Any]:
    profile = _read(conn, "user profile", get_profile, user_id)
    if profile is None:
        raise UserNotFound()
    return {
        "activeMission": profile.active_mission.to_payload() if profile.active_mission else None,
        "shipStatus": profile.ship_status.to_payload() if profile.ship_status else None,
    }


def get_journey_log(conn: sqlite3.Connection, user_id: str) -> List[JourneyEvent]:
    return _read(conn, "journey log", list_journey_events, user_id)
