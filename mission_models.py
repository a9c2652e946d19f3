"""
Mission lifecycle data contracts.

Plain frozen dataclasses shared by the catalog, the profile/journey stores and
the lifecycle engine. ``to_payload`` methods produce the camelCase JSON shapes
served to the game client.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

JOURNEY_STARTED = "started"
JOURNEY_CANCELED = "canceled"
JOURNEY_COMPLETED = "completed"
JOURNEY_STATUSES = (JOURNEY_STARTED, JOURNEY_CANCELED, JOURNEY_COMPLETED)

STATE_IDLE = "idle"
STATE_ACTIVE = "active"


def iso_utc(ts: Optional[float]) -> Optional[str]:
    if ts is None:
        return None
    dt = datetime.fromtimestamp(float(ts), tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class MissionDefinition:
    id: str
    name: str
    crew_required: Optional[int]
    duration_seconds: int
    description: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "crew": self.crew_required,
            "durationSeconds": self.duration_seconds,
            "description": self.description,
        }


@dataclass(frozen=True)
class ShipStatus:
    """Ship state; only ``crew_current`` matters to the engine, the rest is passed through."""

    crew_current: Optional[int]
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, raw: Optional[str]) -> Optional["ShipStatus"]:
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            return None
        if not isinstance(data, dict) or not data:
            return None
        extra = {k: v for k, v in data.items() if k != "crewCurrent"}
        return cls(crew_current=_optional_int(data.get("crewCurrent")), extra=extra)

    def to_payload(self) -> Dict[str, Any]:
        payload = dict(self.extra)
        if self.crew_current is not None:
            payload["crewCurrent"] = self.crew_current
        return payload


@dataclass(frozen=True)
class ActiveMission:
    mission_id: str
    mission_name: str
    start_timestamp: float
    duration_seconds: Optional[int]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "missionId": self.mission_id,
            "missionName": self.mission_name,
            "startDate": iso_utc(self.start_timestamp),
            "durationSeconds": self.duration_seconds,
        }


@dataclass(frozen=True)
class JourneyEvent:
    id: int
    mission_id: str
    mission_name: str
    status: str
    event_timestamp: float

    def to_payload(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "missionId": self.mission_id,
            "missionName": self.mission_name,
            "status": self.status,
            "eventDate": iso_utc(self.event_timestamp),
        }


@dataclass(frozen=True)
class UserProfile:
    user_id: str
    display_name: str
    ship_status: Optional[ShipStatus]
    active_mission: Optional[ActiveMission]
    version: int

    @property
    def state(self) -> str:
        return STATE_ACTIVE if self.active_mission is not None else STATE_IDLE


# ── Transaction write-set ────────────────────────────────────────────────────

@dataclass(frozen=True)
class ActiveMissionIntent:
    """Active mission to store; the start timestamp is stamped by the store at commit."""

    mission_id: str
    mission_name: str
    duration_seconds: Optional[int]


@dataclass(frozen=True)
class JourneyAppend:
    mission_id: str
    mission_name: str
    status: str


@dataclass(frozen=True)
class WriteSet:
    """What a transaction body wants committed.

    ``set_active`` replaces the active mission; ``clear_active`` removes it.
    At most one of the two may be set.
    """

    set_active: Optional[ActiveMissionIntent] = None
    clear_active: bool = False
    journey: List[JourneyAppend] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.set_active is not None and self.clear_active:
            raise ValueError("WriteSet cannot both set and clear the active mission")
        for entry in self.journey:
            if entry.status not in JOURNEY_STATUSES:
                raise ValueError(f"Unknown journey status: {entry.status}")

    @property
    def touches_profile(self) -> bool:
        return self.set_active is not None or self.clear_active


@dataclass(frozen=True)
class TransitionResult:
    message: str
    mission_id: str
    mission_name: str
    active_mission: Optional[ActiveMission] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"message": self.message}
        if self.active_mission is not None:
            payload["activeMission"] = self.active_mission.to_payload()
        return payload
