"""
Tests for game snapshots and join code resolution.
"""

import pytest

from bankgame.core.exceptions import NotFoundError, ValidationError
from bankgame.core.game.actions import ActionType
from bankgame.core.game.macro import ActiveModifier, MacroKind
from bankgame.core.game.player import Loan, PropertyOwnership
from bankgame.core.game.processor import ActionProcessor
from bankgame.services.snapshot import SnapshotService
from fakes import HOST, InMemoryGateway, act, run


@pytest.fixture
def snapshots(gateway, catalog):
    return SnapshotService(gateway, catalog, recent_events=3)


def test_snapshot_of_running_game(processor, gateway, dice, snapshots, started_game):
    game_id, host, guest = started_game
    gateway.set_ownership(game_id, PropertyOwnership(1, owner_id=guest.player_id, houses=2))
    gateway.set_state(
        game_id,
        active_modifiers=[ActiveModifier("steady-growth", MacroKind.RENT_MULTIPLIER, 1.1, 4)],
    )
    dice.queue(1, 3)
    act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)

    snap = run(snapshots.get_snapshot(game_id))

    assert snap["game"]["status"] == "in_progress"
    assert snap["board_pack"] == {
        "id": "classic",
        "name": "Classic",
        "currency_code": "USD",
        "currency_symbol": "$",
    }
    players = {p["player_id"]: p for p in snap["players"]}
    assert players[host.player_id]["balance"] == 1300
    assert players[host.player_id]["position"] == 4
    assert players[guest.player_id]["properties"] == [1]
    assert snap["turn_state"]["version"] == 6
    assert [e["version"] for e in snap["events"]] == [6, 5, 4]
    assert snap["ownership"] == [
        {
            "tile_index": 1,
            "tile_name": "Mediterranean Avenue",
            "color_group": "brown",
            "owner_player_id": guest.player_id,
            "houses": 2,
            "collateral_loan_id": None,
            "purchase_mortgage_id": None,
        }
    ]
    assert snap["economy"]["rent_multiplier"] == 1.1
    assert len(snap["economy"]["active_modifiers"]) == 1


def test_snapshot_lists_only_active_loans(gateway, snapshots, started_game):
    game_id, host, _ = started_game
    gateway.add_loan(game_id, Loan("l1", host.player_id, 1, 200, 0.01))
    gateway.add_loan(game_id, Loan("l2", host.player_id, 3, 100, 0.01, status="repaid"))

    snap = run(snapshots.get_snapshot(game_id))

    assert [loan["loan_id"] for loan in snap["loans"]] == ["l1"]


def test_lobby_game_is_watchable(processor, snapshots):
    created = act(processor, HOST, ActionType.CREATE_GAME, display_name="Alice")

    snap = run(snapshots.get_snapshot(created.game.game_id))

    assert snap["game"]["status"] == "lobby"
    assert snap["events"] == []
    assert snap["players"][0]["balance"] is None


def test_ended_game_is_not_watchable(processor, snapshots, started_game):
    game_id, _, _ = started_game
    act(processor, HOST, ActionType.END_GAME, game_id=game_id, version=1)

    with pytest.raises(NotFoundError):
        run(snapshots.get_snapshot(game_id))


def test_unknown_game(snapshots):
    with pytest.raises(NotFoundError) as exc:
        run(snapshots.get_snapshot("missing"))
    assert exc.value.code == "game_not_found"


class TornReadGateway(InMemoryGateway):
    """Returns one snapshot whose event log is ahead of the turn state."""

    def __init__(self):
        super().__init__()
        self.reads = 0

    async def read_snapshot(self, game_id, recent_events):
        self.reads += 1
        snapshot = await super().read_snapshot(game_id, recent_events)
        if self.reads == 1:
            snapshot.latest_event_version += 1
        return snapshot


def test_inconsistent_snapshot_is_read_again(catalog, dice):
    gateway = TornReadGateway()
    processor = ActionProcessor(gateway, catalog, dice, macro_interval_rounds=0)
    created = act(processor, HOST, ActionType.CREATE_GAME, display_name="Alice")
    service = SnapshotService(gateway, catalog)

    snap = run(service.get_snapshot(created.game.game_id))

    assert gateway.reads == 2
    assert snap["turn_state"]["version"] == 0


def test_resolve_join_code(processor, snapshots):
    created = act(processor, HOST, ActionType.CREATE_GAME, display_name="Alice")

    game = run(snapshots.resolve_join_code(f"  {created.game.join_code.lower()} "))

    assert game.game_id == created.game.game_id


def test_resolve_empty_join_code(snapshots):
    with pytest.raises(ValidationError) as exc:
        run(snapshots.resolve_join_code("   "))
    assert exc.value.code == "missing_join_code"


def test_resolve_unknown_or_ended_game(processor, snapshots, started_game):
    game_id, _, _ = started_game
    code = act(processor, HOST, ActionType.END_GAME, game_id=game_id, version=1).game.join_code

    with pytest.raises(NotFoundError):
        run(snapshots.resolve_join_code(code))
    with pytest.raises(NotFoundError):
        run(snapshots.resolve_join_code("NOPE42"))
