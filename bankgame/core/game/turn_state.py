"""
Turn state: the single mutable record per game.

The pending decision is a closed union. Code that consumes it checks the
concrete class, never optional fields.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union

from bankgame.core.game.macro import ActiveModifier


class TurnPhase(str, Enum):
    AWAITING_ROLL = "AWAITING_ROLL"
    AWAITING_DECISION = "AWAITING_DECISION"


@dataclass(frozen=True)
class BuyPropertyDecision:
    """The current player may buy an unowned tile."""

    tile_index: int
    price: int

    kind: ClassVar[str] = "BUY_PROPERTY"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "tile_index": self.tile_index, "price": self.price}


@dataclass(frozen=True)
class CardDecision:
    """The current player must confirm a drawn card before it applies."""

    deck: str
    card_id: str
    title: str
    card_kind: str

    kind: ClassVar[str] = "CARD"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind,
            "deck": self.deck,
            "card_id": self.card_id,
            "title": self.title,
            "card_kind": self.card_kind,
        }


PendingAction = Union[BuyPropertyDecision, CardDecision, None]


def pending_action_from_dict(data: Optional[Dict[str, Any]]) -> PendingAction:
    """Decode a stored pending decision. Unknown shapes decode to None."""
    if not data:
        return None
    kind = data.get("type")
    if kind == BuyPropertyDecision.kind:
        return BuyPropertyDecision(tile_index=int(data["tile_index"]), price=int(data["price"]))
    if kind == CardDecision.kind:
        return CardDecision(
            deck=data["deck"],
            card_id=data["card_id"],
            title=data.get("title", ""),
            card_kind=data.get("card_kind", ""),
        )
    return None


def pending_action_to_dict(action: PendingAction) -> Optional[Dict[str, Any]]:
    return action.to_dict() if action is not None else None


@dataclass(frozen=True)
class TurnState:
    """Per-game turn state. Replaced, never mutated, by the processor."""

    version: int = 0
    current_player_id: Optional[str] = None
    last_roll: Optional[int] = None
    consecutive_doubles_count: int = 0
    turn_phase: TurnPhase = TurnPhase.AWAITING_ROLL
    pending_action: PendingAction = None
    balances: Dict[str, int] = field(default_factory=dict)
    round_number: int = 1
    active_modifiers: List[ActiveModifier] = field(default_factory=list)
    last_macro_card_id: Optional[str] = None
    chance_index: int = 0
    community_index: int = 0

    @property
    def has_extra_roll(self) -> bool:
        """The last roll was a double that still grants another roll."""
        return self.consecutive_doubles_count > 0

    def balance_of(self, player_id: str) -> int:
        return self.balances.get(player_id, 0)

    def with_changes(self, **changes) -> "TurnState":
        """Copy with changes. Keeps phase consistent with the pending decision."""
        updated = replace(self, **changes)
        phase = (
            TurnPhase.AWAITING_DECISION
            if updated.pending_action is not None
            else TurnPhase.AWAITING_ROLL
        )
        if updated.turn_phase != phase:
            updated = replace(updated, turn_phase=phase)
        return updated

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "current_player_id": self.current_player_id,
            "last_roll": self.last_roll,
            "consecutive_doubles_count": self.consecutive_doubles_count,
            "turn_phase": self.turn_phase.value,
            "pending_action": pending_action_to_dict(self.pending_action),
            "balances": dict(self.balances),
            "round_number": self.round_number,
            "active_modifiers": [m.to_dict() for m in self.active_modifiers],
            "last_macro_card_id": self.last_macro_card_id,
            "chance_index": self.chance_index,
            "community_index": self.community_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TurnState":
        return cls(
            version=int(data.get("version", 0)),
            current_player_id=data.get("current_player_id"),
            last_roll=data.get("last_roll"),
            consecutive_doubles_count=int(data.get("consecutive_doubles_count") or 0),
            turn_phase=TurnPhase(data.get("turn_phase") or TurnPhase.AWAITING_ROLL.value),
            pending_action=pending_action_from_dict(data.get("pending_action")),
            balances={k: int(v) for k, v in (data.get("balances") or {}).items()},
            round_number=int(data.get("round_number") or 1),
            active_modifiers=[
                ActiveModifier.from_dict(m) for m in data.get("active_modifiers") or []
            ],
            last_macro_card_id=data.get("last_macro_card_id"),
            chance_index=int(data.get("chance_index") or 0),
            community_index=int(data.get("community_index") or 0),
        )
