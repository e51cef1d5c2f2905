"""Shared test fixtures for the bank server tests."""

import pytest

from bankgame.core.game.actions import ActionType
from bankgame.core.game.board import BoardCatalog
from bankgame.core.game.processor import ActionProcessor
from fakes import GUEST, HOST, InMemoryGateway, LoadedDice, act, run


@pytest.fixture
def catalog():
    """Catalog with the built-in packs."""
    return BoardCatalog()


@pytest.fixture
def gateway():
    """Empty in-memory gateway."""
    return InMemoryGateway()


@pytest.fixture
def dice():
    """Scripted dice; queue values with dice.queue(...)."""
    return LoadedDice()


@pytest.fixture
def processor(gateway, catalog, dice):
    """Processor with macro draws disabled so balances are predictable."""
    return ActionProcessor(gateway, catalog, dice, macro_interval_rounds=0)


@pytest.fixture
def started_game(processor, gateway):
    """Two-player classic game, started, host to move. Returns (game_id, host, guest)."""
    created = act(processor, HOST, ActionType.CREATE_GAME, display_name="Alice")
    game_id = created.game.game_id
    act(processor, GUEST, ActionType.JOIN_GAME, game_id=game_id, display_name="Bob")
    act(processor, HOST, ActionType.START_GAME, game_id=game_id, version=0)
    players = run(gateway.list_players(game_id))
    return game_id, players[0], players[1]
