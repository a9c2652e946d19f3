"""
Mission catalog — read-only mission definitions.

Definitions live in the ``missions`` table. On first startup the table is
seeded from ``config/missions.json``; the lifecycle engine only ever reads it.
"""

import json
import os
import sqlite3
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from db import APP_DIR
from mission_models import MissionDefinition

MISSION_CATALOG_PATH = Path(os.environ.get("MISSION_CATALOG_PATH", str(APP_DIR / "config" / "missions.json")))


class MissionCatalogError(ValueError):
    pass


def _as_optional_int(value: Any, field: str) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise MissionCatalogError(f"{field} must be an integer")


def _normalize_seed_entry(entry: Dict[str, Any], index: int) -> MissionDefinition:
    ctx = f"missions[{index}]"
    mission_id = str(entry.get("id") or "").strip()
    name = str(entry.get("name") or "").strip()
    if not mission_id:
        raise MissionCatalogError(f"{ctx}.id must be a non-empty string")
    if not name:
        raise MissionCatalogError(f"{ctx}.name must be a non-empty string")

    crew_required = _as_optional_int(entry.get("crew"), f"{ctx}.crew")
    if crew_required is not None and crew_required < 0:
        raise MissionCatalogError(f"{ctx}.crew must be non-negative")

    duration = _as_optional_int(entry.get("durationSeconds"), f"{ctx}.durationSeconds")
    if duration is None or duration <= 0:
        raise MissionCatalogError(f"{ctx}.durationSeconds must be a positive integer")

    return MissionDefinition(
        id=mission_id,
        name=name,
        crew_required=crew_required,
        duration_seconds=duration,
        description=str(entry.get("description") or ""),
    )


@lru_cache(maxsize=4)
def load_mission_seed(path: Path = MISSION_CATALOG_PATH) -> tuple:
    if not path.exists():
        raise MissionCatalogError(f"Mission catalog not found: {path}")
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise MissionCatalogError(f"Invalid JSON in {path}: {exc}") from exc
    entries = raw.get("missions") if isinstance(raw, dict) else None
    if not isinstance(entries, list):
        raise MissionCatalogError("Root config must be an object with a 'missions' list")

    missions = [_normalize_seed_entry(e, i) for i, e in enumerate(entries) if isinstance(e, dict)]
    ids = [m.id for m in missions]
    dupes = sorted({i for i in ids if ids.count(i) > 1})
    if dupes:
        raise MissionCatalogError(f"Duplicate mission ids: {dupes}")
    return tuple(missions)


def seed_missions_if_empty(conn: sqlite3.Connection, path: Path = MISSION_CATALOG_PATH) -> int:
    """Insert the seed catalog when no missions exist. Returns the number inserted."""
    row = conn.execute("SELECT COUNT(*) AS n FROM missions").fetchone()
    if int(row["n"] or 0) > 0:
        return 0
    missions = load_mission_seed(path)
    conn.executemany(
        "INSERT INTO missions (id,name,crew_required,duration_s,description) VALUES (?,?,?,?,?)",
        [(m.id, m.name, m.crew_required, m.duration_seconds, m.description) for m in missions],
    )
    return len(missions)


def _row_to_mission(row: sqlite3.Row) -> MissionDefinition:
    crew = row["crew_required"]
    return MissionDefinition(
        id=str(row["id"]),
        name=str(row["name"]),
        crew_required=None if crew is None else int(crew),
        duration_seconds=int(row["duration_s"]),
        description=str(row["description"] or ""),
    )


def list_missions(conn: sqlite3.Connection) -> List[MissionDefinition]:
    rows = conn.execute(
        "SELECT id,name,crew_required,duration_s,description FROM missions ORDER BY name ASC, id ASC"
    ).fetchall()
    return [_row_to_mission(r) for r in rows]


def get_mission(conn: sqlite3.Connection, mission_id: str) -> Optional[MissionDefinition]:
    row = conn.execute(
        "SELECT id,name,crew_required,duration_s,description FROM missions WHERE id=?",
        (mission_id,),
    ).fetchone()
    if not row:
        return None
    return _row_to_mission(row)
