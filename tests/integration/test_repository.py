"""
Integration tests for the SQLAlchemy repository on an in-memory SQLite
database.
"""

import asyncio

import pytest

from bankgame.core.exceptions import ConflictError
from bankgame.core.game.actions import Action, ActionType
from bankgame.core.game.board import BoardCatalog
from bankgame.core.game.events import GameEvent, MoveResolved
from bankgame.core.game.player import PropertyOwnership
from bankgame.core.game.processor import ActionProcessor
from bankgame.core.game.turn_state import BuyPropertyDecision, TurnPhase
from bankgame.data import GameRepository, GameStatus, close_db, create_tables, init_db, models
from bankgame.data.session import get_session_factory
from fakes import GUEST, HOST, LoadedDice

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def with_database(body):
    """Run body(repo, processor) against a fresh schema."""

    async def runner():
        await init_db(TEST_DATABASE_URL)
        await create_tables()
        try:
            async with get_session_factory()() as session:
                repo = GameRepository(session)
                processor = ActionProcessor(
                    repo, BoardCatalog(), LoadedDice(), macro_interval_rounds=0
                )
                return await body(repo, processor)
        finally:
            await close_db()

    return asyncio.run(runner())


async def start_game(processor):
    created = await processor.apply(HOST, Action(ActionType.CREATE_GAME, display_name="Alice"))
    game_id = created.game.game_id
    await processor.apply(GUEST, Action(ActionType.JOIN_GAME, game_id=game_id, display_name="Bob"))
    await processor.apply(HOST, Action(ActionType.START_GAME, game_id=game_id, expected_version=0))
    return game_id


def test_game_lifecycle_round_trips():
    async def body(repo, processor):
        game_id = await start_game(processor)
        processor.rng.queue(2, 4)
        await processor.apply(HOST, Action(ActionType.ROLL_DICE, game_id=game_id, expected_version=1))

        game = await repo.get_game(game_id)
        assert game.status == GameStatus.IN_PROGRESS
        assert (await repo.find_game_by_join_code(game.join_code)).game_id == game_id

        players = await repo.list_players(game_id)
        assert [p.display_name for p in players] == ["Alice", "Bob"]
        assert [p.join_order for p in players] == [0, 1]
        assert players[0].position == 6

        state = await repo.get_turn_state(game_id)
        assert state.version == 7
        assert state.pending_action == BuyPropertyDecision(tile_index=6, price=100)
        assert state.turn_phase == TurnPhase.AWAITING_DECISION
        assert state.balances == {players[0].player_id: 1500, players[1].player_id: 1500}

        events = await repo.list_events(game_id)
        assert [e.version for e in events] == list(range(1, 8))
        assert events[0].event_type.value == "START_GAME"
        assert events[-1].payload == MoveResolved(tile_index=6)

        bought = await processor.apply(
            HOST, Action(ActionType.BUY_PROPERTY, game_id=game_id, expected_version=7, tile_index=6)
        )
        ownership = await repo.list_ownership(game_id)
        assert ownership[6].owner_id == players[0].player_id
        assert (await repo.get_turn_state(game_id)) == bought.turn_state

    with_database(body)


def test_join_is_idempotent():
    async def body(repo, processor):
        created = await processor.apply(HOST, Action(ActionType.CREATE_GAME, display_name="Alice"))
        game_id = created.game.game_id
        join = Action(ActionType.JOIN_GAME, join_code=created.game.join_code, display_name="Bob")
        first = await processor.apply(GUEST, join)
        rename = Action(ActionType.JOIN_GAME, game_id=game_id, display_name="Robert")
        second = await processor.apply(GUEST, rename)

        assert first.player.player_id == second.player.player_id
        players = await repo.list_players(game_id)
        assert [(p.display_name, p.join_order) for p in players] == [("Alice", 0), ("Robert", 1)]

    with_database(body)


def test_join_order_follows_highest_seat():
    async def body(repo, processor):
        created = await processor.apply(HOST, Action(ActionType.CREATE_GAME, display_name="Alice"))
        game_id = created.game.game_id
        repo.session.add(
            models.Player(game_id=game_id, user_id="user-eve", display_name="Eve", join_order=5)
        )
        await repo.session.commit()

        joined = await processor.apply(GUEST, Action(ActionType.JOIN_GAME, game_id=game_id))

        assert joined.player.join_order == 6
        players = await repo.list_players(game_id)
        assert [p.join_order for p in players] == [0, 5, 6]

    with_database(body)


def test_lock_game_reads_current_status():
    async def body(repo, processor):
        game_id = await start_game(processor)

        async with repo.transaction():
            locked = await repo.lock_game(game_id)
            assert await repo.lock_game("missing") is None

        assert locked.game_id == game_id
        assert locked.status == GameStatus.IN_PROGRESS

    with_database(body)


def test_conditional_writes():
    async def body(repo, processor):
        game_id = await start_game(processor)
        state = await repo.get_turn_state(game_id)

        async with repo.transaction():
            assert not await repo.update_turn_state(game_id, 0, state.with_changes(version=2))
            assert not await repo.update_game_status(
                game_id, [GameStatus.LOBBY], GameStatus.IN_PROGRESS
            )
        assert (await repo.get_turn_state(game_id)).version == 1

        async with repo.transaction():
            assert await repo.update_game_status(
                game_id, [GameStatus.LOBBY, GameStatus.IN_PROGRESS], GameStatus.ENDED
            )
        assert (await repo.get_game(game_id)).status == GameStatus.ENDED

    with_database(body)


def test_duplicate_event_version_conflicts_and_rolls_back():
    async def body(repo, processor):
        game_id = await start_game(processor)
        player_id = (await repo.list_players(game_id))[0].player_id

        with pytest.raises(ConflictError):
            async with repo.transaction():
                await repo.update_player_position(game_id, player_id, 12)
                await repo.append_events(game_id, [GameEvent(1, MoveResolved(tile_index=12))])

        assert (await repo.list_players(game_id))[0].position == 0
        assert len(await repo.list_events(game_id)) == 1

    with_database(body)


def test_tile_can_only_be_owned_once():
    async def body(repo, processor):
        game_id = await start_game(processor)
        players = await repo.list_players(game_id)

        async with repo.transaction():
            await repo.insert_ownership(game_id, PropertyOwnership(6, owner_id=players[0].player_id))
        with pytest.raises(ConflictError):
            async with repo.transaction():
                await repo.insert_ownership(game_id, PropertyOwnership(6, owner_id=players[1].player_id))

        async with repo.transaction():
            await repo.update_ownership_level(game_id, 6, 3)
        ownership = await repo.list_ownership(game_id)
        assert ownership[6].owner_id == players[0].player_id
        assert ownership[6].houses == 3

    with_database(body)


def test_stale_action_is_rejected():
    async def body(repo, processor):
        game_id = await start_game(processor)
        with pytest.raises(ConflictError):
            await processor.apply(HOST, Action(ActionType.END_GAME, game_id=game_id, expected_version=0))
        assert (await repo.get_game(game_id)).status == GameStatus.IN_PROGRESS

    with_database(body)


def test_snapshot_read():
    async def body(repo, processor):
        game_id = await start_game(processor)
        players = await repo.list_players(game_id)
        repo.session.add(
            models.PlayerLoan(
                game_id=game_id,
                player_id=players[0].player_id,
                collateral_tile_index=1,
                principal=200,
                rate_per_turn=0.01,
            )
        )
        await repo.session.commit()
        processor.rng.queue(1, 3)
        await processor.apply(HOST, Action(ActionType.ROLL_DICE, game_id=game_id, expected_version=1))

        snapshot = await repo.read_snapshot(game_id, recent_events=2)

        assert snapshot.game.game_id == game_id
        assert snapshot.latest_event_version == snapshot.turn_state.version == 6
        assert [e.version for e in snapshot.events] == [6, 5]
        assert [p.player_id for p in snapshot.players] == [p.player_id for p in players]
        assert snapshot.loans[0].principal == 200
        assert await repo.read_snapshot("missing", recent_events=2) is None

    with_database(body)
