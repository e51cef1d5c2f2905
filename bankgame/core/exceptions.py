"""
Custom exception hierarchy for the bank engine and services.

Every rejected request maps to exactly one of these classes. Each class
carries the HTTP-equivalent status the API layer answers with and a stable
machine-readable code so clients can decide what to do next.
"""

from typing import Optional


class BankError(Exception):
    """Base exception for all game-related errors."""

    status_code = 500
    default_code = "bank_error"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code


class ValidationError(BankError):
    """Missing or malformed intent fields. Never mutates state."""

    status_code = 400
    default_code = "invalid_request"


class AuthError(BankError):
    """Missing or invalid caller identity."""

    status_code = 401
    default_code = "invalid_session"


class AuthorizationError(BankError):
    """Caller is known but may not do this (not a member, not host, not your turn)."""

    status_code = 403
    default_code = "forbidden"


class NotFoundError(BankError):
    """Game, player or tile does not exist."""

    status_code = 404
    default_code = "not_found"


class StateError(BankError):
    """Action does not fit the current lifecycle status or turn phase."""

    status_code = 400
    default_code = "invalid_state"


class ConflictError(BankError):
    """
    Optimistic-concurrency failure.

    Raised on a version mismatch or when a conditional state transition lost
    the race. The only error a caller should retry, after a fresh read.
    """

    status_code = 409
    default_code = "version_conflict"


class UpstreamError(BankError):
    """Persistence or identity collaborator failed."""

    status_code = 500
    default_code = "upstream_failure"
