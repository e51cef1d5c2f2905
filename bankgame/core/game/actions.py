"""
Player intents accepted by the action processor.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from bankgame.core.exceptions import ValidationError


class ActionType(str, Enum):
    """Types of actions a player can take."""

    CREATE_GAME = "CREATE_GAME"
    JOIN_GAME = "JOIN_GAME"
    START_GAME = "START_GAME"
    END_GAME = "END_GAME"
    ROLL_DICE = "ROLL_DICE"
    BUY_PROPERTY = "BUY_PROPERTY"
    DECLINE_PROPERTY = "DECLINE_PROPERTY"
    CONFIRM_CARD = "CONFIRM_CARD"
    BUILD_HOUSE = "BUILD_HOUSE"
    END_TURN = "END_TURN"


HOST_ACTIONS = frozenset({ActionType.START_GAME, ActionType.END_GAME})

# Actions that carry no expected version.
UNVERSIONED_ACTIONS = frozenset({ActionType.CREATE_GAME, ActionType.JOIN_GAME})

TILE_ACTIONS = frozenset(
    {ActionType.BUY_PROPERTY, ActionType.DECLINE_PROPERTY, ActionType.BUILD_HOUSE}
)


@dataclass(frozen=True)
class Action:
    """Represents a game action that can be taken."""

    action_type: ActionType
    game_id: Optional[str] = None
    expected_version: Optional[int] = None
    tile_index: Optional[int] = None
    join_code: Optional[str] = None
    display_name: Optional[str] = None
    board_pack_id: Optional[str] = None
    starting_cash: Optional[int] = None

    def validate(self) -> None:
        """
        Check that the fields this action needs are present.

        Raises:
            ValidationError: If a required field is missing or malformed
        """
        if self.action_type == ActionType.CREATE_GAME:
            if self.starting_cash is not None and self.starting_cash < 0:
                raise ValidationError("startingCash must not be negative")
        elif self.action_type == ActionType.JOIN_GAME:
            if not self.game_id and not self.join_code:
                raise ValidationError("gameId or joinCode is required", code="missing_game_id")
        if self.action_type in UNVERSIONED_ACTIONS:
            return

        if not self.game_id:
            raise ValidationError("gameId is required", code="missing_game_id")
        if self.expected_version is None:
            raise ValidationError("expectedVersion is required", code="missing_expected_version")
        if self.expected_version < 0:
            raise ValidationError("expectedVersion must not be negative")
        if self.action_type in TILE_ACTIONS and self.tile_index is None:
            raise ValidationError("tileIndex is required", code="missing_tile_index")

    def __repr__(self) -> str:
        return f"Action({self.action_type.value}, game={self.game_id}, expected={self.expected_version})"
