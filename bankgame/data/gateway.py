"""
Persistence gateway contract.

The action processor talks to storage only through this protocol. Reads
happen before an action's transaction; writes happen inside
``transaction()``, and the conditional turn-state update is always the last
write so that nothing partial is visible when it fails.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import AsyncContextManager, Dict, List, Optional, Protocol, Sequence

from bankgame.core.game.events import GameEvent
from bankgame.core.game.player import Loan, Player, PropertyOwnership
from bankgame.core.game.turn_state import TurnState


class GameStatus(str, Enum):
    LOBBY = "lobby"
    IN_PROGRESS = "in_progress"
    ENDED = "ended"


WATCHABLE_STATUSES = (GameStatus.LOBBY, GameStatus.IN_PROGRESS)


@dataclass(frozen=True)
class GameRecord:
    game_id: str
    join_code: str
    status: GameStatus
    host_user_id: str
    board_pack_id: str
    starting_cash: int
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "game_id": self.game_id,
            "join_code": self.join_code,
            "status": self.status.value,
            "host_user_id": self.host_user_id,
            "board_pack_id": self.board_pack_id,
            "starting_cash": self.starting_cash,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class GameSnapshot:
    """Everything a viewer needs, read at a single point in time."""

    game: GameRecord
    players: List[Player]
    turn_state: Optional[TurnState]
    events: List[GameEvent]
    ownership: Dict[int, PropertyOwnership]
    loans: List[Loan] = field(default_factory=list)
    latest_event_version: int = 0


class PersistenceGateway(Protocol):
    """Storage operations used by the action processor and the read side."""

    # ---- Reads ----

    async def get_game(self, game_id: str) -> Optional[GameRecord]: ...

    async def find_game_by_join_code(self, join_code: str) -> Optional[GameRecord]: ...

    async def list_players(self, game_id: str) -> List[Player]: ...

    async def get_turn_state(self, game_id: str) -> Optional[TurnState]: ...

    async def list_ownership(self, game_id: str) -> Dict[int, PropertyOwnership]: ...

    async def list_loans(self, game_id: str) -> List[Loan]: ...

    async def list_events(
        self, game_id: str, limit: Optional[int] = None, newest_first: bool = False
    ) -> List[GameEvent]: ...

    async def read_snapshot(self, game_id: str, recent_events: int) -> Optional[GameSnapshot]: ...

    # ---- Writes (inside transaction) ----

    def transaction(self) -> AsyncContextManager[None]: ...

    async def lock_game(self, game_id: str) -> Optional[GameRecord]: ...

    async def create_game(self, game: GameRecord, host: Player, turn_state: TurnState) -> None: ...

    async def upsert_player(self, game_id: str, user_id: str, display_name: str) -> Player: ...

    async def update_game_status(
        self, game_id: str, expected: Sequence[GameStatus], status: GameStatus
    ) -> bool: ...

    async def update_player_position(self, game_id: str, player_id: str, position: int) -> None: ...

    async def insert_ownership(self, game_id: str, entry: PropertyOwnership) -> None: ...

    async def update_ownership_level(self, game_id: str, tile_index: int, houses: int) -> None: ...

    async def append_events(self, game_id: str, events: Sequence[GameEvent]) -> None: ...

    async def update_turn_state(
        self, game_id: str, expected_version: int, turn_state: TurnState
    ) -> bool: ...
