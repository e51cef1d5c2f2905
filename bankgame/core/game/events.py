"""
Event log types.

Each event type has its own payload structure. Events are immutable and
keyed by (game, version); the version sequence is the ordering.
"""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Type


class EventType(str, Enum):
    """Types of game events."""

    START_GAME = "START_GAME"
    END_GAME = "END_GAME"

    ROLL_DICE = "ROLL_DICE"
    ROLLED_DOUBLE = "ROLLED_DOUBLE"
    MOVE_PLAYER = "MOVE_PLAYER"
    LAND_ON_TILE = "LAND_ON_TILE"

    LAND_PROPERTY = "LAND_PROPERTY"
    LAND_TAX = "LAND_TAX"
    LAND_EVENT = "LAND_EVENT"
    LAND_JAIL = "LAND_JAIL"
    LAND_GO_TO_JAIL = "LAND_GO_TO_JAIL"
    LAND_START = "LAND_START"
    LAND_FREE_PARKING = "LAND_FREE_PARKING"

    OFFER_PURCHASE = "OFFER_PURCHASE"
    MOVE_RESOLVED = "MOVE_RESOLVED"
    ALLOW_EXTRA_ROLL = "ALLOW_EXTRA_ROLL"
    GO_TO_JAIL = "GO_TO_JAIL"
    END_TURN = "END_TURN"

    DECLINE_PROPERTY = "DECLINE_PROPERTY"
    BUY_PROPERTY = "BUY_PROPERTY"
    CARD_APPLIED = "CARD_APPLIED"
    BUILD_HOUSE = "BUILD_HOUSE"


class EventPayload:
    """Base for typed payloads. Subclasses are dataclasses."""

    event_type: ClassVar[EventType]

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class StartGame(EventPayload):
    event_type: ClassVar[EventType] = EventType.START_GAME
    player_order: List[str]
    starting_cash: int


@dataclass(frozen=True)
class EndGame(EventPayload):
    event_type: ClassVar[EventType] = EventType.END_GAME
    ended_by: str


@dataclass(frozen=True)
class RollDice(EventPayload):
    event_type: ClassVar[EventType] = EventType.ROLL_DICE
    dice: List[int]
    total: int
    is_double: bool


@dataclass(frozen=True)
class RolledDouble(EventPayload):
    event_type: ClassVar[EventType] = EventType.ROLLED_DOUBLE
    consecutive_doubles: int


@dataclass(frozen=True)
class MovePlayer(EventPayload):
    event_type: ClassVar[EventType] = EventType.MOVE_PLAYER
    from_index: int
    to_index: int
    spaces: int
    passed_start: bool = False
    salary: int = 0


@dataclass(frozen=True)
class LandOnTile(EventPayload):
    event_type: ClassVar[EventType] = EventType.LAND_ON_TILE
    tile_index: int
    tile_id: str
    tile_type: str
    tile_name: str


@dataclass(frozen=True)
class LandProperty(EventPayload):
    event_type: ClassVar[EventType] = EventType.LAND_PROPERTY
    tile_index: int
    owner_player_id: Optional[str] = None
    rent: int = 0


@dataclass(frozen=True)
class LandTax(EventPayload):
    event_type: ClassVar[EventType] = EventType.LAND_TAX
    tile_index: int
    amount: int


@dataclass(frozen=True)
class LandEvent(EventPayload):
    # card_title is catalog display text; card_id is the control data.
    event_type: ClassVar[EventType] = EventType.LAND_EVENT
    tile_index: int
    deck: str
    card_id: Optional[str] = None
    card_title: str = ""
    card_kind: Optional[str] = None


@dataclass(frozen=True)
class LandJail(EventPayload):
    event_type: ClassVar[EventType] = EventType.LAND_JAIL
    tile_index: int


@dataclass(frozen=True)
class LandGoToJail(EventPayload):
    event_type: ClassVar[EventType] = EventType.LAND_GO_TO_JAIL
    tile_index: int
    jail_index: int


@dataclass(frozen=True)
class LandStart(EventPayload):
    event_type: ClassVar[EventType] = EventType.LAND_START
    tile_index: int


@dataclass(frozen=True)
class LandFreeParking(EventPayload):
    event_type: ClassVar[EventType] = EventType.LAND_FREE_PARKING
    tile_index: int


@dataclass(frozen=True)
class OfferPurchase(EventPayload):
    event_type: ClassVar[EventType] = EventType.OFFER_PURCHASE
    tile_index: int
    price: int


@dataclass(frozen=True)
class MoveResolved(EventPayload):
    event_type: ClassVar[EventType] = EventType.MOVE_RESOLVED
    tile_index: int


@dataclass(frozen=True)
class AllowExtraRoll(EventPayload):
    event_type: ClassVar[EventType] = EventType.ALLOW_EXTRA_ROLL
    consecutive_doubles: int


@dataclass(frozen=True)
class GoToJail(EventPayload):
    event_type: ClassVar[EventType] = EventType.GO_TO_JAIL
    from_index: int
    jail_index: int
    reason: str


@dataclass(frozen=True)
class EndTurn(EventPayload):
    """Turn passed. Round completion and any macro draw ride along here."""

    event_type: ClassVar[EventType] = EventType.END_TURN
    from_player_id: str
    next_player_id: str
    round_completed: bool = False
    round_number: int = 1
    expired_modifiers: List[str] = field(default_factory=list)
    macro_card_id: Optional[str] = None
    macro_card_name: Optional[str] = None
    macro_balance_deltas: Dict[str, int] = field(default_factory=dict)
    macro_color_groups: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DeclineProperty(EventPayload):
    event_type: ClassVar[EventType] = EventType.DECLINE_PROPERTY
    tile_index: int


@dataclass(frozen=True)
class BuyProperty(EventPayload):
    event_type: ClassVar[EventType] = EventType.BUY_PROPERTY
    tile_index: int
    price: int


@dataclass(frozen=True)
class CardApplied(EventPayload):
    event_type: ClassVar[EventType] = EventType.CARD_APPLIED
    deck: str
    card_id: str
    card_kind: str
    card_title: str = ""
    amount: int = 0


@dataclass(frozen=True)
class BuildHouse(EventPayload):
    event_type: ClassVar[EventType] = EventType.BUILD_HOUSE
    tile_index: int
    level: int
    cost: int


PAYLOAD_TYPES: Dict[EventType, Type[EventPayload]] = {
    cls.event_type: cls
    for cls in (
        StartGame,
        EndGame,
        RollDice,
        RolledDouble,
        MovePlayer,
        LandOnTile,
        LandProperty,
        LandTax,
        LandEvent,
        LandJail,
        LandGoToJail,
        LandStart,
        LandFreeParking,
        OfferPurchase,
        MoveResolved,
        AllowExtraRoll,
        GoToJail,
        EndTurn,
        DeclineProperty,
        BuyProperty,
        CardApplied,
        BuildHouse,
    )
}


def decode_payload(event_type: EventType, data: Dict[str, Any]) -> EventPayload:
    """Rebuild a typed payload from its stored form, ignoring unknown keys."""
    cls = PAYLOAD_TYPES[event_type]
    names = {f.name for f in dataclasses.fields(cls)}
    return cls(**{key: value for key, value in data.items() if key in names})


@dataclass(frozen=True)
class GameEvent:
    """A logged event in the game."""

    version: int
    payload: EventPayload
    player_id: Optional[str] = None

    @property
    def event_type(self) -> EventType:
        return self.payload.event_type

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "event_type": self.event_type.value,
            "player_id": self.player_id,
            "payload": self.payload.to_dict(),
        }

    def __repr__(self) -> str:
        player_str = self.player_id or "System"
        return f"[v{self.version} {player_str}] {self.event_type.value}: {self.payload.to_dict()}"


class EventBuffer:
    """Collects the events of one action, numbering them from a base version."""

    def __init__(self, base_version: int, player_id: Optional[str] = None):
        self.base_version = base_version
        self.player_id = player_id
        self.events: List[GameEvent] = []

    def log(self, payload: EventPayload) -> None:
        """Append an event at the next version."""
        version = self.base_version + len(self.events) + 1
        self.events.append(GameEvent(version, payload, self.player_id))

    @property
    def last_version(self) -> int:
        return self.base_version + len(self.events)

    def types(self) -> List[EventType]:
        return [event.event_type for event in self.events]
