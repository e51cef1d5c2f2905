"""
GameActionService runs the action processor and publishes committed changes.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from bankgame.core.exceptions import UpstreamError
from bankgame.core.game.actions import Action, ActionType
from bankgame.core.game.processor import ActionProcessor, ActionResult
from bankgame.services.notifier import RealtimeNotifier

logger = logging.getLogger(__name__)


def game_state_message(result: ActionResult) -> Dict[str, Any]:
    """Realtime message describing one committed action."""
    return {
        "type": "game_state",
        "game_id": result.game.game_id,
        "version": result.version,
        "events": [event.to_dict() for event in result.events],
    }


class GameActionService:
    """Use-case service for player intents."""

    def __init__(self, processor: ActionProcessor, notifier: Optional[RealtimeNotifier] = None):
        self.processor = processor
        self.notifier = notifier

    async def apply(self, user_id: str, action: Action) -> ActionResult:
        """
        Apply an intent and notify subscribers once it is committed.

        Raises:
            BankError: Any rejection from the processor
            UpstreamError: Storage failed outside a transaction
        """
        try:
            result = await self.processor.apply(user_id, action)
        except SQLAlchemyError as exc:
            logger.exception(f"Database failure while applying {action.action_type.value}")
            raise UpstreamError("Database operation failed") from exc

        if action.action_type != ActionType.CREATE_GAME and not result.already_ended:
            self._publish(result)
        return result

    def _publish(self, result: ActionResult) -> None:
        if self.notifier is None:
            return
        try:
            delivered = self.notifier.publish(result.game.game_id, game_state_message(result))
        except Exception:
            logger.exception(f"Realtime publish failed for {result.game.game_id}")
            return
        if delivered:
            logger.debug(f"Published v{result.version} of {result.game.game_id} to {delivered} clients")
