from bankgame.core.game.actions import Action, ActionType
from bankgame.core.game.board import BoardCatalog, BoardPack, Economy
from bankgame.core.game.events import EventType, GameEvent
from bankgame.core.game.player import Loan, Player, PropertyOwnership
from bankgame.core.game.turn_state import BuyPropertyDecision, CardDecision, TurnPhase, TurnState

__all__ = [
    "Action",
    "ActionType",
    "BoardCatalog",
    "BoardPack",
    "Economy",
    "EventType",
    "GameEvent",
    "Loan",
    "Player",
    "PropertyOwnership",
    "BuyPropertyDecision",
    "CardDecision",
    "TurnPhase",
    "TurnState",
]
