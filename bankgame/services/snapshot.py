"""
Public snapshot of a persisted game.

Produces a UI-friendly view for players and spectators: game meta, players
with balances, turn state, recent events (newest first), ownership and an
economy summary of the active macro modifiers.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, List

from bankgame.core.exceptions import NotFoundError, ValidationError
from bankgame.core.game.board import BoardCatalog, BoardPack
from bankgame.core.game.macro import summarize
from bankgame.data.gateway import WATCHABLE_STATUSES, GameRecord, GameSnapshot, PersistenceGateway

logger = logging.getLogger(__name__)


def serialize_snapshot(snapshot: GameSnapshot, pack: BoardPack) -> Dict[str, Any]:
    """Serialize a GameSnapshot into a public, stable JSON dict.

    The snapshot includes:
    - game meta and board pack
    - players with position, balance and owned tiles
    - turn state (including the pending decision and modifiers)
    - the most recent events, newest first
    - ownership rows and the composed economy summary
    """
    state = snapshot.turn_state
    balances = state.balances if state else {}

    ownership: List[Dict[str, Any]] = []
    for tile_index in sorted(snapshot.ownership):
        entry = snapshot.ownership[tile_index]
        tile = pack.get_tile(tile_index)
        ownership.append(
            {
                "tile_index": tile_index,
                "tile_name": tile.name if tile else None,
                "color_group": tile.color_group if tile else None,
                "owner_player_id": entry.owner_id,
                "houses": entry.houses,
                "collateral_loan_id": entry.collateral_loan_id,
                "purchase_mortgage_id": entry.purchase_mortgage_id,
            }
        )

    players: List[Dict[str, Any]] = []
    for player in snapshot.players:
        players.append(
            {
                "player_id": player.player_id,
                "user_id": player.user_id,
                "display_name": player.display_name,
                "position": player.position,
                "is_eliminated": player.is_eliminated,
                "join_order": player.join_order,
                "balance": balances.get(player.player_id),
                "properties": [
                    row["tile_index"] for row in ownership if row["owner_player_id"] == player.player_id
                ],
            }
        )

    summary = summarize(
        state.active_modifiers if state else [],
        pack.economy.base_loan_rate_per_turn,
        state.round_number if state else 1,
    )

    return {
        "game": snapshot.game.to_dict(),
        "board_pack": {
            "id": pack.pack_id,
            "name": pack.display_name,
            "currency_code": pack.economy.currency_code,
            "currency_symbol": pack.economy.currency_symbol,
        },
        "players": players,
        "turn_state": state.to_dict() if state else None,
        "events": [event.to_dict() for event in snapshot.events],
        "ownership": ownership,
        "loans": [asdict(loan) for loan in snapshot.loans if loan.is_active()],
        "economy": asdict(summary),
    }


class SnapshotService:
    """Read model for watchable games."""

    def __init__(self, gateway: PersistenceGateway, catalog: BoardCatalog, recent_events: int = 12):
        self.gateway = gateway
        self.catalog = catalog
        self.recent_events = recent_events

    async def get_snapshot(self, game_id: str) -> Dict[str, Any]:
        """
        Read one consistent view of a game.

        Raises:
            NotFoundError: Game missing or no longer watchable
        """
        snapshot = await self.gateway.read_snapshot(game_id, self.recent_events)
        self._ensure_watchable(snapshot.game if snapshot else None)

        if not self._consistent(snapshot):
            logger.warning(
                f"Snapshot of {game_id} saw event v{snapshot.latest_event_version} "
                f"but turn state v{snapshot.turn_state.version if snapshot.turn_state else None}; re-reading"
            )
            snapshot = await self.gateway.read_snapshot(game_id, self.recent_events)
            self._ensure_watchable(snapshot.game if snapshot else None)
            if not self._consistent(snapshot):
                logger.warning(f"Snapshot of {game_id} still inconsistent after re-read")

        pack = self.catalog.get_pack(snapshot.game.board_pack_id)
        return serialize_snapshot(snapshot, pack)

    async def resolve_join_code(self, join_code: str) -> GameRecord:
        """
        Map a join code to its watchable game.

        Raises:
            ValidationError: Empty join code
            NotFoundError: Unknown code or game no longer watchable
        """
        code = (join_code or "").strip().upper()
        if not code:
            raise ValidationError("Enter a join code to continue", code="missing_join_code")
        game = await self.gateway.find_game_by_join_code(code)
        if game is None or game.status not in WATCHABLE_STATUSES:
            raise NotFoundError(
                "That join code is invalid or the game is no longer watchable",
                code="game_not_found",
            )
        return game

    @staticmethod
    def _ensure_watchable(game: GameRecord | None) -> None:
        if game is None or game.status not in WATCHABLE_STATUSES:
            raise NotFoundError("This game is not available to watch", code="game_not_found")

    @staticmethod
    def _consistent(snapshot: GameSnapshot) -> bool:
        if snapshot.turn_state is None:
            return False
        return snapshot.latest_event_version == snapshot.turn_state.version
