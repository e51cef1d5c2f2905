"""
Tests for rolling, moving, landing and passing the turn.
"""

import pytest

from bankgame.core.exceptions import AuthorizationError, StateError
from bankgame.core.game.actions import ActionType
from bankgame.core.game.player import PropertyOwnership
from bankgame.core.game.turn_state import BuyPropertyDecision, CardDecision, TurnPhase
from fakes import GUEST, HOST, act


def types(result):
    return [e.event_type.value for e in result.events]


def test_roll_onto_unowned_property_offers_purchase(processor, gateway, dice, started_game):
    game_id, host, _ = started_game
    dice.queue(2, 4)

    result = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)

    assert types(result) == [
        "ROLL_DICE",
        "MOVE_PLAYER",
        "LAND_ON_TILE",
        "LAND_PROPERTY",
        "OFFER_PURCHASE",
        "MOVE_RESOLVED",
    ]
    assert [e.version for e in result.events] == [2, 3, 4, 5, 6, 7]
    state = result.turn_state
    assert state.version == 7
    assert state.last_roll == 6
    assert state.turn_phase == TurnPhase.AWAITING_DECISION
    assert state.pending_action == BuyPropertyDecision(tile_index=6, price=100)
    assert gateway.player(game_id, host.player_id).position == 6
    assert gateway.states[game_id] == state


def test_roll_payloads(processor, dice, started_game):
    game_id, _, _ = started_game
    dice.queue(2, 4)

    events = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1).events

    roll, move, land = events[0].payload, events[1].payload, events[2].payload
    assert roll.dice == [2, 4] and roll.total == 6 and not roll.is_double
    assert (move.from_index, move.to_index, move.passed_start) == (0, 6, False)
    assert land.tile_id == "oriental-avenue"
    assert events[4].payload.price == 100


def test_not_your_turn(processor, dice, started_game):
    game_id, _, _ = started_game
    with pytest.raises(AuthorizationError) as exc:
        act(processor, GUEST, ActionType.ROLL_DICE, game_id=game_id, version=1)
    assert exc.value.code == "not_your_turn"


def test_no_roll_while_decision_pending(processor, dice, started_game):
    game_id, _, _ = started_game
    dice.queue(2, 4)
    act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)

    with pytest.raises(StateError) as exc:
        act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=7)
    assert exc.value.code == "decision_pending"


def test_single_roll_per_turn(processor, gateway, dice, started_game):
    game_id, host, _ = started_game
    dice.queue(1, 3)
    result = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)
    assert types(result)[-2] == "LAND_TAX"

    with pytest.raises(StateError) as exc:
        act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=result.version)
    assert exc.value.code == "already_rolled"


def test_tax_is_debited(processor, dice, started_game):
    game_id, host, _ = started_game
    dice.queue(1, 3)

    result = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)

    assert types(result) == ["ROLL_DICE", "MOVE_PLAYER", "LAND_ON_TILE", "LAND_TAX", "MOVE_RESOLVED"]
    assert result.events[3].payload.amount == 200
    assert result.turn_state.balances[host.player_id] == 1300
    assert result.turn_state.pending_action is None


def test_double_grants_extra_roll(processor, dice, started_game):
    game_id, host, _ = started_game
    dice.queue(2, 2)

    result = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)

    assert types(result) == [
        "ROLL_DICE",
        "ROLLED_DOUBLE",
        "MOVE_PLAYER",
        "LAND_ON_TILE",
        "LAND_TAX",
        "MOVE_RESOLVED",
        "ALLOW_EXTRA_ROLL",
    ]
    assert result.turn_state.consecutive_doubles_count == 1
    assert result.turn_state.current_player_id == host.player_id

    dice.queue(1, 2)
    again = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=result.version)
    assert again.turn_state.consecutive_doubles_count == 0
    assert again.events[1].payload.from_index == 4


def test_double_onto_offer_defers_extra_roll(processor, dice, started_game):
    game_id, _, _ = started_game
    dice.queue(3, 3)

    result = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)

    assert types(result)[-2:] == ["OFFER_PURCHASE", "MOVE_RESOLVED"]
    assert "ALLOW_EXTRA_ROLL" not in types(result)


def test_three_doubles_go_to_jail(processor, gateway, dice, started_game):
    game_id, host, guest = started_game
    gateway.set_state(game_id, consecutive_doubles_count=2, last_roll=4)
    gateway.set_position(game_id, host.player_id, 8)
    dice.queue(5, 5)

    result = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)

    assert types(result) == ["ROLL_DICE", "ROLLED_DOUBLE", "GO_TO_JAIL", "END_TURN"]
    assert [e.version for e in result.events] == [2, 3, 4, 5]
    assert result.events[2].payload.from_index == 8
    assert result.events[2].payload.reason == "three_doubles"
    state = result.turn_state
    assert state.consecutive_doubles_count == 0
    assert state.current_player_id == guest.player_id
    assert state.last_roll is None
    assert gateway.player(game_id, host.player_id).position == 10


def test_end_turn(processor, dice, started_game):
    game_id, host, guest = started_game
    dice.queue(1, 3)
    rolled = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)

    result = act(processor, HOST, ActionType.END_TURN, game_id=game_id, version=rolled.version)

    assert types(result) == ["END_TURN"]
    payload = result.events[0].payload
    assert payload.from_player_id == host.player_id
    assert payload.next_player_id == guest.player_id
    assert not payload.round_completed
    assert result.turn_state.current_player_id == guest.player_id
    assert result.turn_state.last_roll is None
    assert result.turn_state.consecutive_doubles_count == 0


def test_end_turn_requires_roll(processor, started_game):
    game_id, _, _ = started_game
    with pytest.raises(StateError) as exc:
        act(processor, HOST, ActionType.END_TURN, game_id=game_id, version=1)
    assert exc.value.code == "not_rolled"


def test_end_turn_blocked_by_pending_decision(processor, dice, started_game):
    game_id, _, _ = started_game
    dice.queue(2, 4)
    rolled = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)
    with pytest.raises(StateError) as exc:
        act(processor, HOST, ActionType.END_TURN, game_id=game_id, version=rolled.version)
    assert exc.value.code == "decision_pending"


def test_rent_moves_between_balances(processor, gateway, dice, started_game):
    game_id, host, guest = started_game
    gateway.set_ownership(game_id, PropertyOwnership(6, owner_id=guest.player_id))
    dice.queue(2, 4)

    result = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)

    assert types(result) == ["ROLL_DICE", "MOVE_PLAYER", "LAND_ON_TILE", "LAND_PROPERTY", "MOVE_RESOLVED"]
    land = result.events[3].payload
    assert land.owner_player_id == guest.player_id
    assert land.rent == 6
    assert result.turn_state.balances == {host.player_id: 1494, guest.player_id: 1506}
    assert result.turn_state.pending_action is None


def test_full_color_set_rent(processor, gateway, dice, started_game):
    game_id, host, guest = started_game
    for index in (6, 8, 9):
        gateway.set_ownership(game_id, PropertyOwnership(index, owner_id=guest.player_id))
    dice.queue(2, 4)

    result = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)

    assert result.events[3].payload.rent == 12


def test_own_property_pays_no_rent(processor, gateway, dice, started_game):
    game_id, host, _ = started_game
    gateway.set_ownership(game_id, PropertyOwnership(6, owner_id=host.player_id))
    dice.queue(2, 4)

    result = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)

    assert result.events[3].payload.rent == 0
    assert result.turn_state.balances[host.player_id] == 1500


def test_passing_start_pays_salary(processor, gateway, dice, started_game):
    game_id, host, _ = started_game
    gateway.set_position(game_id, host.player_id, 38)
    dice.queue(1, 3)

    result = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)

    move = result.events[1].payload
    assert (move.from_index, move.to_index) == (38, 2)
    assert move.passed_start and move.salary == 200
    assert result.turn_state.balances[host.player_id] == 1700


def test_landing_on_event_tile_draws_card(processor, gateway, dice, started_game):
    game_id, host, _ = started_game
    dice.queue(3, 4)

    result = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)

    assert types(result) == ["ROLL_DICE", "MOVE_PLAYER", "LAND_ON_TILE", "LAND_EVENT", "MOVE_RESOLVED"]
    land = result.events[3].payload
    assert land.deck == "CHANCE"
    assert land.card_id == "classic-chance-advance-go"
    assert result.turn_state.pending_action == CardDecision(
        deck="CHANCE",
        card_id="classic-chance-advance-go",
        title="Advance to Go (Collect $200)",
        card_kind="MOVE_TO",
    )
    assert result.turn_state.chance_index == 1
    assert result.turn_state.turn_phase == TurnPhase.AWAITING_DECISION


def test_go_to_jail_tile(processor, gateway, dice, started_game):
    game_id, host, _ = started_game
    gateway.set_position(game_id, host.player_id, 26)
    dice.queue(1, 3)

    result = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)

    assert types(result) == ["ROLL_DICE", "MOVE_PLAYER", "LAND_ON_TILE", "LAND_GO_TO_JAIL", "MOVE_RESOLVED"]
    assert result.events[-1].payload.tile_index == 10
    assert gateway.player(game_id, host.player_id).position == 10
    assert result.turn_state.current_player_id == host.player_id


def test_land_on_free_parking(processor, gateway, dice, started_game):
    game_id, host, _ = started_game
    gateway.set_position(game_id, host.player_id, 16)
    dice.queue(1, 3)
    result = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)
    assert types(result)[3] == "LAND_FREE_PARKING"


def test_versions_are_contiguous(processor, gateway, dice, started_game):
    game_id, _, _ = started_game
    dice.queue(1, 3, 2, 4)
    r1 = act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)
    r2 = act(processor, HOST, ActionType.END_TURN, game_id=game_id, version=r1.version)
    r3 = act(processor, GUEST, ActionType.ROLL_DICE, game_id=game_id, version=r2.version)

    log = gateway.events[game_id]
    assert [e.version for e in log] == list(range(1, len(log) + 1))
    assert gateway.states[game_id].version == len(log) == r3.version


def test_failed_write_leaves_nothing_behind(processor, gateway, dice, started_game):
    game_id, host, _ = started_game
    gateway.fail_on = "update_player_position"
    dice.queue(2, 4)

    with pytest.raises(RuntimeError):
        act(processor, HOST, ActionType.ROLL_DICE, game_id=game_id, version=1)

    assert gateway.states[game_id].version == 1
    assert len(gateway.events[game_id]) == 1
    assert gateway.player(game_id, host.player_id).position == 0
    assert gateway.states[game_id].pending_action is None
