"""
Error taxonomy for the session engine.

Every store operation fails by raising one of these before touching state.
The transport layer maps ``code`` to an HTTP status or a socket ``error``
event; the core only guarantees the kind and enough context (offending field,
suggested correction) to build a useful message.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable error kinds."""

    VALIDATION = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INACTIVE_SESSION = "INACTIVE_SESSION"
    NAME_CONFLICT = "NAME_CONFLICT"
    AUTHORIZATION = "AUTHORIZATION_ERROR"
    SESSION_FULL = "SESSION_FULL"


class SessionError(Exception):
    """Base exception for session engine operations."""

    code: ErrorCode = ErrorCode.VALIDATION
    recoverable: bool = True

    def __init__(
        self,
        message: str,
        field: str | None = None,
        suggestion: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.field = field
        self.suggestion = suggestion

    def to_dict(self) -> dict:
        """Body shared by HTTP error responses and socket error events."""
        return {
            "error": self.code.value,
            "message": self.message,
            "field": self.field,
            "suggestion": self.suggestion,
        }

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationError(SessionError):
    """Malformed input: bad name, tag text, category or vote value."""

    code = ErrorCode.VALIDATION


class NotFoundError(SessionError):
    """Referenced session, participant or tag does not exist."""

    code = ErrorCode.NOT_FOUND
    recoverable = False


class InactiveSessionError(SessionError):
    """Session exists but is no longer accepting changes."""

    code = ErrorCode.INACTIVE_SESSION
    recoverable = False


class NameConflictError(SessionError):
    """Display name already used in the session."""

    code = ErrorCode.NAME_CONFLICT

    def __init__(self, name: str, conflicting_code: str | None = None):
        super().__init__(f'Name "{name}" is already taken in this session', field="name")
        self.name = name
        self.conflicting_code = conflicting_code


class AuthorizationError(SessionError):
    """Non-admin attempted an admin-only action."""

    code = ErrorCode.AUTHORIZATION


class SessionFullError(SessionError):
    """Participant code space (100-999) is exhausted."""

    code = ErrorCode.SESSION_FULL
    recoverable = False
