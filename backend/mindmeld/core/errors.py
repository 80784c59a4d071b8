"""Error Hierarchy: typed, categorized exceptions for all MindMeld failure modes.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Domain errors (400-level) never mutate state; infrastructure errors (500-level) are critical
    - to_response() produces the REST error envelope
    - No internal details leaked in user-facing messages

Design Decisions:
    - Single hierarchy with MindMeldError base: FastAPI global handler catches all
    - ErrorContext as dataclass: rich observability without coupling to logging framework
    - Judge failures are NOT raised to players: the rating orchestrator swallows them
      with the fallback rating. ExternalServiceError only escapes where no fallback exists
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    VALIDATION = "validation"
    FORBIDDEN = "forbidden"
    INVALID_PHASE = "invalid_phase"
    RESOURCE_NOT_FOUND = "resource_not_found"
    DATABASE = "database"
    EXTERNAL_API = "external_api"
    INTERNAL = "internal"
    CONFLICT = "conflict"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    room_id: str | None = None
    round_id: str | None = None
    player_id: str | None = None
    debug_info: dict[str, Any] | None = None
    retry_after_ms: int | None = None


class MindMeldError(Exception):
    """Base exception for all MindMeld errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to standardized REST error response."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "room_id": self.context.room_id,
                    "round_id": self.context.round_id,
                    "player_id": self.context.player_id,
                    "retry_after_ms": self.context.retry_after_ms,
                },
            }
        }


# ─── Domain Errors (400-level) ──────────────────────────────────

class InvalidInputError(MindMeldError):
    """Input outside declared bounds (name length, round count, prompt length)."""
    def __init__(self, message: str, field: str, context: ErrorContext | None = None):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 400,
        )
        self.field = field


class ForbiddenError(MindMeldError):
    """Creator-only operation attempted by someone else."""
    def __init__(self, message: str, context: ErrorContext | None = None):
        super().__init__(
            message, "FORBIDDEN", ErrorCategory.FORBIDDEN,
            ErrorSeverity.ERROR, context, 403,
        )


class PlayerNotInRoomError(MindMeldError):
    """Player is not an active member of the room the operation targets."""
    def __init__(self, player_id: str, context: ErrorContext | None = None):
        super().__init__(
            f"Player '{player_id}' is not a member of this room",
            "PLAYER_NOT_IN_ROOM", ErrorCategory.FORBIDDEN,
            ErrorSeverity.ERROR, context, 403,
        )


class InvalidPhaseError(MindMeldError):
    """Operation attempted outside the state it is valid in."""
    def __init__(
        self, operation: str, expected: str, actual: str,
        context: ErrorContext | None = None,
    ):
        super().__init__(
            f"Cannot {operation}: expected '{expected}', currently '{actual}'",
            "INVALID_PHASE", ErrorCategory.INVALID_PHASE,
            ErrorSeverity.ERROR, context, 409,
        )
        self.expected = expected
        self.actual = actual


class RoomNotJoinableError(InvalidPhaseError):
    """Join attempted after the room left the lobby."""
    def __init__(self, status: str, context: ErrorContext | None = None):
        super().__init__("join room", "lobby", status, context)
        self.code = "ROOM_NOT_JOINABLE"
        self.message = "Room is not accepting new players"


class AlreadySubmittedError(MindMeldError):
    """Submitted answers and guesses are locked."""
    def __init__(self, kind: str, context: ErrorContext | None = None):
        super().__init__(
            f"{kind} already submitted and can no longer be edited",
            "ALREADY_SUBMITTED", ErrorCategory.INVALID_PHASE,
            ErrorSeverity.WARNING, context, 409,
        )


class NotEnoughPlayersError(MindMeldError):
    """Game cannot start (or progress) below the minimum player count."""
    def __init__(self, have: int, need: int, context: ErrorContext | None = None):
        super().__init__(
            f"At least {need} players are required, room has {have}",
            "NOT_ENOUGH_PLAYERS", ErrorCategory.VALIDATION,
            ErrorSeverity.ERROR, context, 409,
        )


class ResourceNotFoundError(MindMeldError):
    """Requested resource does not exist."""
    def __init__(
        self, resource_type: str, resource_id: str, context: ErrorContext | None = None,
    ):
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            "RESOURCE_NOT_FOUND", ErrorCategory.RESOURCE_NOT_FOUND,
            ErrorSeverity.ERROR, context, 404,
        )
        self.resource_type = resource_type


class RoomNotFoundError(ResourceNotFoundError):
    def __init__(self, room_ref: str, context: ErrorContext | None = None):
        super().__init__("Room", room_ref, context)
        self.code = "ROOM_NOT_FOUND"


class RoundNotFoundError(ResourceNotFoundError):
    def __init__(self, round_id: str, context: ErrorContext | None = None):
        super().__init__("Round", round_id, context)
        self.code = "ROUND_NOT_FOUND"


class PlayerNotFoundError(ResourceNotFoundError):
    def __init__(self, player_id: str, context: ErrorContext | None = None):
        super().__init__("Player", player_id, context)
        self.code = "PLAYER_NOT_FOUND"


# ─── Infrastructure Errors (500-level) ──────────────────────────

class RoomCreationFailedError(MindMeldError):
    """No unique room code found within the attempt budget. Transient: retry."""
    def __init__(self, attempts: int, context: ErrorContext | None = None):
        super().__init__(
            f"Failed to generate a unique room code after {attempts} attempts",
            "ROOM_CREATION_FAILED", ErrorCategory.CONFLICT,
            ErrorSeverity.ERROR, context, 503,
        )
        self.attempts = attempts


class DatabaseError(MindMeldError):
    """Database operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Database {operation} failed: {message}",
            "DATABASE_ERROR", ErrorCategory.DATABASE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation


class ExternalServiceError(MindMeldError):
    """Question generator or judge call failed."""
    def __init__(
        self,
        message: str,
        api_error_type: str,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ):
        ctx = context or ErrorContext()
        ctx.retry_after_ms = retry_after_ms
        super().__init__(
            f"External service error ({api_error_type}): {message}",
            "EXTERNAL_SERVICE_ERROR", ErrorCategory.EXTERNAL_API,
            ErrorSeverity.CRITICAL, ctx, 503,
        )
        self.api_error_type = api_error_type


class QuestionGenerationError(ExternalServiceError):
    """No question could be produced; no round was created."""
    def __init__(self, reason: str, context: ErrorContext | None = None):
        super().__init__(reason, "question_generation", context=context)
        self.code = "QUESTION_GENERATION_FAILED"
