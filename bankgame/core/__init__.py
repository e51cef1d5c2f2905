"""
Core domain layer for the bank server.

Exposes the error taxonomy; the rules engine and the action processor live
in ``bankgame.core.game``.
"""

from bankgame.core.exceptions import (
    AuthError,
    AuthorizationError,
    BankError,
    ConflictError,
    NotFoundError,
    StateError,
    UpstreamError,
    ValidationError,
)

__all__ = [
    "AuthError",
    "AuthorizationError",
    "BankError",
    "ConflictError",
    "NotFoundError",
    "StateError",
    "UpstreamError",
    "ValidationError",
]
