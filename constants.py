"""
Canonical shared constants for the space simulator server.
"""

from typing import Any, Dict

# ---------------------------------------------------------------------------
# Player profiles
# ---------------------------------------------------------------------------

# Ship status given to a freshly created pilot profile.
INITIAL_SHIP_STATUS: Dict[str, Any] = {
    "name": "Pathfinder",
    "hull": 100,
    "fuel": 100,
    "crewCurrent": 5,
    "crewMax": 6,
}

# ---------------------------------------------------------------------------
# Mission transactions
# ---------------------------------------------------------------------------

# Backoff between conflicting transaction attempts, scaled by attempt number.
TX_RETRY_BACKOFF_S = 0.05

SERVICE_NAME = "space-simulator"
