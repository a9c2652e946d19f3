"""
Typed failures raised by the mission lifecycle engine and the request layer.

Every failure carries a ``fault`` class and an HTTP ``status_code`` so the
request layer can map it without inspecting message text:

  client  4xx  the request cannot succeed as sent
  server  5xx  storage trouble or exhausted retries; public message is generic
  auth    401/403  credential problems, raised before the engine is invoked
"""

from typing import Optional

CLIENT_FAULT = "client"
SERVER_FAULT = "server"
AUTH_FAULT = "auth"


class MissionError(Exception):
    fault = CLIENT_FAULT
    status_code = 400
    default_message = "Mission request failed."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        return self.message


# ── Client faults ────────────────────────────────────────────────────────────

class MissingParameters(MissionError):
    default_message = "Mission ID is required."


class UserNotFound(MissionError):
    status_code = 404
    default_message = "User profile not found."


class MissionNotFound(MissionError):
    status_code = 404
    default_message = "Mission details not found."


class MissionCatalogEmpty(MissionError):
    status_code = 404
    default_message = "No missions found"


class AlreadyActive(MissionError):
    status_code = 409
    default_message = "User already has an active mission."


class NoActiveMission(MissionError):
    status_code = 409
    default_message = "No active mission."


class MissionMismatch(MissionError):
    status_code = 409
    default_message = "The mission to complete does not match the currently active mission."


class IneligibleReason(MissionError):
    """Base for eligibility failures found before a mission may start."""


class InsufficientCrew(IneligibleReason):
    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(f"Insufficient crew. Required: {required}, Available: {available}")


class IncompleteShipData(IneligibleReason):
    default_message = "Ship status data is incomplete for user."


class IncompleteMissionData(IneligibleReason):
    default_message = "Mission data is incomplete (missing crew requirement)."


# ── Server faults ────────────────────────────────────────────────────────────

class ServerFault(MissionError):
    fault = SERVER_FAULT
    status_code = 500
    default_message = "Internal server error."

    @property
    def public_message(self) -> str:
        return "Server error processing mission request."


class StorageUnavailable(ServerFault):
    status_code = 503
    default_message = "Mission storage is unavailable."


class TransactionConflict(ServerFault):
    status_code = 503
    default_message = "Transaction retries exhausted."


# ── Auth faults ──────────────────────────────────────────────────────────────

class AuthFault(MissionError):
    fault = AUTH_FAULT
    status_code = 401


class Unauthenticated(AuthFault):
    default_message = "Unauthorized: No token provided"


class TokenExpired(AuthFault):
    default_message = "Unauthorized: Token expired"


class InvalidToken(AuthFault):
    status_code = 403
    default_message = "Forbidden: Invalid token"
