"""
Application services layer.

Provides use-case oriented services that glue the action processor with
persistence and external integrations (identity, realtime fan-out).
"""

from .action_service import GameActionService, game_state_message
from .identity import HttpIdentityVerifier, IdentityVerifier, parse_bearer_token
from .notifier import RealtimeNotifier
from .snapshot import SnapshotService, serialize_snapshot

__all__ = [
    "GameActionService",
    "HttpIdentityVerifier",
    "IdentityVerifier",
    "RealtimeNotifier",
    "SnapshotService",
    "game_state_message",
    "parse_bearer_token",
    "serialize_snapshot",
]
