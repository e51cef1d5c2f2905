"""
Repository pattern for game data operations.

SQLAlchemy implementation of the persistence gateway. Reads convert rows to
the engine's plain dataclasses; writes run inside ``transaction()`` which
commits on success and maps database failures onto the error taxonomy.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bankgame.core.exceptions import ConflictError, UpstreamError
from bankgame.core.game.events import EventType, GameEvent, decode_payload
from bankgame.core.game.macro import ActiveModifier
from bankgame.core.game.player import Loan, Player, PropertyOwnership
from bankgame.core.game.turn_state import (
    TurnPhase,
    TurnState,
    pending_action_from_dict,
    pending_action_to_dict,
)
from bankgame.data import models
from bankgame.data.gateway import GameRecord, GameSnapshot, GameStatus

logger = logging.getLogger(__name__)


def _to_game(row: models.Game) -> GameRecord:
    return GameRecord(
        game_id=row.id,
        join_code=row.join_code,
        status=GameStatus(row.status),
        host_user_id=row.host_user_id,
        board_pack_id=row.board_pack_id,
        starting_cash=row.starting_cash,
        created_at=row.created_at,
    )


def _to_player(row: models.Player) -> Player:
    return Player(
        player_id=row.id,
        user_id=row.user_id,
        display_name=row.display_name,
        position=row.position,
        is_eliminated=row.is_eliminated,
        join_order=row.join_order,
    )


def _to_turn_state(row: models.GameStateRow) -> TurnState:
    return TurnState(
        version=row.version,
        current_player_id=row.current_player_id,
        last_roll=row.last_roll,
        consecutive_doubles_count=row.doubles_count,
        turn_phase=TurnPhase(row.turn_phase),
        pending_action=pending_action_from_dict(row.pending_action),
        balances={k: int(v) for k, v in (row.balances or {}).items()},
        round_number=row.round_number,
        active_modifiers=[ActiveModifier.from_dict(m) for m in row.active_modifiers or []],
        last_macro_card_id=row.last_macro_card_id,
        chance_index=row.chance_index,
        community_index=row.community_index,
    )


def _turn_state_values(state: TurnState) -> Dict[str, object]:
    return {
        "version": state.version,
        "current_player_id": state.current_player_id,
        "last_roll": state.last_roll,
        "doubles_count": state.consecutive_doubles_count,
        "turn_phase": state.turn_phase.value,
        "pending_action": pending_action_to_dict(state.pending_action),
        "balances": dict(state.balances),
        "round_number": state.round_number,
        "active_modifiers": [m.to_dict() for m in state.active_modifiers],
        "last_macro_card_id": state.last_macro_card_id,
        "chance_index": state.chance_index,
        "community_index": state.community_index,
    }


def _to_ownership(row: models.PropertyOwnership) -> PropertyOwnership:
    return PropertyOwnership(
        tile_index=row.tile_index,
        owner_id=row.owner_player_id,
        houses=row.houses,
        collateral_loan_id=row.collateral_loan_id,
        purchase_mortgage_id=row.purchase_mortgage_id,
    )


def _to_loan(row: models.PlayerLoan) -> Loan:
    return Loan(
        loan_id=row.id,
        player_id=row.player_id,
        collateral_tile_index=row.collateral_tile_index,
        principal=row.principal,
        rate_per_turn=row.rate_per_turn,
        status=row.status,
    )


def _to_event(row: models.GameEvent) -> GameEvent:
    event_type = EventType(row.event_type)
    return GameEvent(
        version=row.version,
        payload=decode_payload(event_type, row.payload or {}),
        player_id=row.player_id,
    )


class GameRepository:
    """
    Repository for game-related database operations.

    Implements the persistence gateway on top of one async session.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize repository with a database session.

        Args:
            session: Active async SQLAlchemy session
        """
        self.session = session

    @property
    def dialect(self) -> str:
        return self.session.get_bind().dialect.name

    # ---- Transactions ----

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """
        Commit the writes made inside the block, or roll all of them back.

        Raises:
            ConflictError: A unique key was violated (duplicate event version,
                tile already owned, join code taken)
            UpstreamError: Any other database failure
        """
        try:
            yield
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            logger.warning(f"Integrity conflict, transaction rolled back: {exc.orig}")
            raise ConflictError("Concurrent write detected") from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("Database failure, transaction rolled back")
            raise UpstreamError("Database operation failed") from exc
        except Exception:
            await self.session.rollback()
            raise

    # ---- Game Operations ----

    async def get_game(self, game_id: str) -> Optional[GameRecord]:
        """
        Fetch game by id.

        Args:
            game_id: Game identifier

        Returns:
            GameRecord or None if not found
        """
        row = await self.session.get(models.Game, game_id, populate_existing=True)
        return _to_game(row) if row else None

    async def find_game_by_join_code(self, join_code: str) -> Optional[GameRecord]:
        stmt = (
            select(models.Game)
            .where(models.Game.join_code == join_code)
            .execution_options(populate_existing=True)
        )
        row = (await self.session.execute(stmt)).scalar_one_or_none()
        return _to_game(row) if row else None

    async def lock_game(self, game_id: str) -> Optional[GameRecord]:
        """
        Read a game row and hold a write lock on it until the transaction ends.

        Lobby changes (joining, starting) take this lock first, so a join can
        never land in a game that has already been started.
        """
        stmt = (
            select(models.Game)
            .where(models.Game.id == game_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = (await self.session.execute(stmt)).scalar_one_or_none()
        return _to_game(row) if row else None

    async def create_game(self, game: GameRecord, host: Player, turn_state: TurnState) -> None:
        """
        Insert a game with its host player and initial turn state.

        Args:
            game: Game to create (status lobby)
            host: Host player, join order 0
            turn_state: Initial turn state (version 0)
        """
        self.session.add(
            models.Game(
                id=game.game_id,
                join_code=game.join_code,
                status=game.status.value,
                host_user_id=game.host_user_id,
                board_pack_id=game.board_pack_id,
                starting_cash=game.starting_cash,
            )
        )
        await self.session.flush()
        self.session.add(
            models.Player(
                id=host.player_id,
                game_id=game.game_id,
                user_id=host.user_id,
                display_name=host.display_name,
                join_order=host.join_order,
            )
        )
        self.session.add(models.GameStateRow(game_id=game.game_id, **_turn_state_values(turn_state)))
        await self.session.flush()
        logger.info(f"Created game: {game.game_id} (code {game.join_code})")

    async def update_game_status(
        self, game_id: str, expected: Sequence[GameStatus], status: GameStatus
    ) -> bool:
        """
        Conditionally move a game to a new lifecycle status.

        Returns:
            True if this call performed the transition
        """
        stmt = (
            update(models.Game)
            .where(
                models.Game.id == game_id,
                models.Game.status.in_([s.value for s in expected]),
            )
            .values(status=status.value, updated_at=models.utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        flipped = result.rowcount == 1
        if flipped:
            logger.info(f"Game {game_id} status -> {status.value}")
        return flipped

    # ---- Player Operations ----

    async def list_players(self, game_id: str) -> List[Player]:
        stmt = (
            select(models.Player)
            .where(models.Player.game_id == game_id)
            .order_by(models.Player.join_order, models.Player.created_at, models.Player.id)
            .execution_options(populate_existing=True)
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return [_to_player(row) for row in rows]

    async def upsert_player(self, game_id: str, user_id: str, display_name: str) -> Player:
        """
        Insert a player, or refresh the display name of an existing one.

        Joining twice is idempotent: (game_id, user_id) is the conflict key.
        Call with the game row locked (see ``lock_game``) so join orders stay
        unique.
        """
        order_stmt = select(func.coalesce(func.max(models.Player.join_order), -1) + 1).where(
            models.Player.game_id == game_id
        )
        join_order = (await self.session.execute(order_stmt)).scalar_one()

        insert = postgresql.insert if self.dialect == "postgresql" else sqlite.insert
        stmt = insert(models.Player).values(
            id=models.new_id(),
            game_id=game_id,
            user_id=user_id,
            display_name=display_name,
            position=0,
            is_eliminated=False,
            join_order=join_order,
            created_at=models.utc_now(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["game_id", "user_id"],
            set_={"display_name": stmt.excluded.display_name},
        )
        await self.session.execute(stmt)

        row_stmt = (
            select(models.Player)
            .where(models.Player.game_id == game_id, models.Player.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        row = (await self.session.execute(row_stmt)).scalar_one()
        return _to_player(row)

    async def update_player_position(self, game_id: str, player_id: str, position: int) -> None:
        stmt = (
            update(models.Player)
            .where(models.Player.game_id == game_id, models.Player.id == player_id)
            .values(position=position)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    # ---- Turn State ----

    async def get_turn_state(self, game_id: str) -> Optional[TurnState]:
        row = await self.session.get(models.GameStateRow, game_id, populate_existing=True)
        return _to_turn_state(row) if row else None

    async def update_turn_state(
        self, game_id: str, expected_version: int, turn_state: TurnState
    ) -> bool:
        """
        Write the turn state only if it is still at the expected version.

        Returns:
            True if exactly one row was updated
        """
        stmt = (
            update(models.GameStateRow)
            .where(
                models.GameStateRow.game_id == game_id,
                models.GameStateRow.version == expected_version,
            )
            .values(**_turn_state_values(turn_state), updated_at=models.utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    # ---- Ownership and Loans ----

    async def list_ownership(self, game_id: str) -> Dict[int, PropertyOwnership]:
        stmt = (
            select(models.PropertyOwnership)
            .where(models.PropertyOwnership.game_id == game_id)
            .order_by(models.PropertyOwnership.tile_index)
            .execution_options(populate_existing=True)
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return {row.tile_index: _to_ownership(row) for row in rows}

    async def insert_ownership(self, game_id: str, entry: PropertyOwnership) -> None:
        self.session.add(
            models.PropertyOwnership(
                game_id=game_id,
                tile_index=entry.tile_index,
                owner_player_id=entry.owner_id,
                houses=entry.houses,
                collateral_loan_id=entry.collateral_loan_id,
                purchase_mortgage_id=entry.purchase_mortgage_id,
            )
        )
        await self.session.flush()

    async def update_ownership_level(self, game_id: str, tile_index: int, houses: int) -> None:
        stmt = (
            update(models.PropertyOwnership)
            .where(
                models.PropertyOwnership.game_id == game_id,
                models.PropertyOwnership.tile_index == tile_index,
            )
            .values(houses=houses)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def list_loans(self, game_id: str) -> List[Loan]:
        stmt = (
            select(models.PlayerLoan)
            .where(models.PlayerLoan.game_id == game_id)
            .order_by(models.PlayerLoan.created_at)
        )
        rows = (await self.session.execute(stmt)).scalars().all()
        return [_to_loan(row) for row in rows]

    # ---- Event Operations ----

    async def append_events(self, game_id: str, events: Sequence[GameEvent]) -> None:
        """
        Append events to the log.

        A version already taken raises IntegrityError at flush, which the
        surrounding transaction reports as a conflict.
        """
        if not events:
            return
        self.session.add_all(
            [
                models.GameEvent(
                    game_id=game_id,
                    version=event.version,
                    event_type=event.event_type.value,
                    player_id=event.player_id,
                    payload=event.payload.to_dict(),
                )
                for event in events
            ]
        )
        await self.session.flush()
        logger.debug(f"Appended {len(events)} events to {game_id}")

    async def list_events(
        self, game_id: str, limit: Optional[int] = None, newest_first: bool = False
    ) -> List[GameEvent]:
        """
        Fetch events of a game in version order.

        Args:
            game_id: Game identifier
            limit: Maximum number of events to return
            newest_first: Return the highest versions first

        Returns:
            List of GameEvent
        """
        order = models.GameEvent.version.desc() if newest_first else models.GameEvent.version
        stmt = select(models.GameEvent).where(models.GameEvent.game_id == game_id).order_by(order)
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = (await self.session.execute(stmt)).scalars().all()
        return [_to_event(row) for row in rows]

    async def latest_event_version(self, game_id: str) -> int:
        stmt = select(func.max(models.GameEvent.version)).where(models.GameEvent.game_id == game_id)
        return (await self.session.execute(stmt)).scalar_one_or_none() or 0

    # ---- Snapshot ----

    async def read_snapshot(self, game_id: str, recent_events: int) -> Optional[GameSnapshot]:
        """
        Read a whole game at one point in time.

        On PostgreSQL the reads share one REPEATABLE READ transaction; SQLite
        transactions are serializable already.
        """
        await self.session.rollback()
        try:
            if self.dialect == "postgresql":
                await self.session.connection(
                    execution_options={"isolation_level": "REPEATABLE READ"}
                )
            game = await self.get_game(game_id)
            if game is None:
                return None
            snapshot = GameSnapshot(
                game=game,
                players=await self.list_players(game_id),
                turn_state=await self.get_turn_state(game_id),
                events=await self.list_events(game_id, limit=recent_events, newest_first=True),
                ownership=await self.list_ownership(game_id),
                loans=await self.list_loans(game_id),
                latest_event_version=await self.latest_event_version(game_id),
            )
        except SQLAlchemyError as exc:
            logger.exception(f"Snapshot read failed for {game_id}")
            raise UpstreamError("Database read failed") from exc
        finally:
            await self.session.rollback()
        return snapshot
