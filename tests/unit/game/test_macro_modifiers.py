"""
Tests for macro cards: drawing, activation, ageing and composition.
"""

import random

import pytest

from bankgame.core.game.board import CLASSIC_PACK
from bankgame.core.game.economy import apply_one_off_effects
from bankgame.core.game.macro import (
    MACRO_DECK_V1,
    ActiveModifier,
    MacroCard,
    MacroEffect,
    MacroKind,
    MacroRarity,
    activate_card,
    compose_delta,
    compose_multiplier,
    draw_macro_card,
    effective_loan_rate,
    get_macro_card,
    get_macro_deck,
    new_loans_blocked,
    summarize,
    tick_modifiers,
)
from bankgame.core.game.player import Loan, PropertyOwnership


def card(card_id, *effects, weight=1, duration=3):
    return MacroCard(card_id, card_id.title(), MacroRarity.COMMON, weight, duration, "", tuple(effects))


def modifier(kind, magnitude, remaining=3, started_round=1):
    return ActiveModifier("test", kind, magnitude, remaining, started_round)


def test_deck_lookup():
    assert get_macro_deck("macro-v1") is MACRO_DECK_V1
    assert get_macro_deck("unknown") is MACRO_DECK_V1
    assert get_macro_card("wage-growth").duration_rounds == 4
    assert get_macro_card("nope") is None


def test_deck_card_ids_are_unique():
    ids = [c.card_id for c in MACRO_DECK_V1]
    assert len(ids) == len(set(ids))


def test_draw_never_repeats_previous_card():
    deck = (card("a"), card("b"))
    rng = random.Random(3)
    for _ in range(20):
        assert draw_macro_card(deck, "a", rng).card_id == "b"


def test_draw_single_card_deck_may_repeat():
    deck = (card("only"),)
    assert draw_macro_card(deck, "only", random.Random(1)).card_id == "only"


def test_draw_skips_zero_weight_cards():
    deck = (card("never", weight=0), card("always", weight=5))
    rng = random.Random(11)
    assert {draw_macro_card(deck, None, rng).card_id for _ in range(20)} == {"always"}


def test_draw_from_empty_deck_raises():
    with pytest.raises(ValueError):
        draw_macro_card((), None, random.Random(1))


def test_equal_mode_draw():
    deck = (card("a", weight=0), card("b", weight=0))
    drawn = {draw_macro_card(deck, None, random.Random(seed), mode="equal").card_id for seed in range(30)}
    assert drawn == {"a", "b"}


def test_compose_with_no_modifiers():
    assert compose_multiplier([], MacroKind.RENT_MULTIPLIER) == 1
    assert compose_delta([], MacroKind.SALARY_BONUS) == 0


def test_compose_is_order_independent():
    mods = [modifier(MacroKind.RENT_MULTIPLIER, m) for m in (1.1, 0.9, 1.25)]
    forward = compose_multiplier(mods, MacroKind.RENT_MULTIPLIER)
    backward = compose_multiplier(list(reversed(mods)), MacroKind.RENT_MULTIPLIER)
    assert forward == backward
    assert forward == pytest.approx(1.1 * 0.9 * 1.25)


def test_compose_delta_sums():
    mods = [modifier(MacroKind.SALARY_BONUS, 50), modifier(MacroKind.SALARY_BONUS, -20)]
    assert compose_delta(mods, MacroKind.SALARY_BONUS) == 30


def test_tick_drops_expired():
    active, expired = tick_modifiers([
        modifier(MacroKind.RENT_MULTIPLIER, 1.2, remaining=2),
        modifier(MacroKind.BUILD_COST_MULTIPLIER, 1.1, remaining=1),
    ])
    assert [m.kind for m in active] == [MacroKind.RENT_MULTIPLIER]
    assert active[0].remaining_rounds == 1
    assert [m.kind for m in expired] == [MacroKind.BUILD_COST_MULTIPLIER]


def test_activate_tracks_only_lasting_effects():
    mixed = card(
        "mixed",
        MacroEffect(MacroKind.RENT_MULTIPLIER, 1.2),
        MacroEffect(MacroKind.CASH_DELTA, 100),
        duration=4,
    )
    mods = activate_card(mixed, round_number=3)
    assert [(m.kind, m.remaining_rounds, m.started_round) for m in mods] == [
        (MacroKind.RENT_MULTIPLIER, 4, 3)
    ]
    assert activate_card(card("instant", MacroEffect(MacroKind.RENT_MULTIPLIER, 2.0), duration=0), 1) == []


def test_active_modifier_round_trip():
    mod = modifier(MacroKind.INTEREST_TREND, 0.001, remaining=5, started_round=2)
    assert ActiveModifier.from_dict(mod.to_dict()) == mod


def test_loan_rate_trend_and_flat():
    mods = [
        modifier(MacroKind.INTEREST_TREND, 0.001, started_round=2),
        modifier(MacroKind.INTEREST_FLAT_DELTA, 0.002),
    ]
    # Trend compounds for rounds 2, 3 and 4
    assert effective_loan_rate(0.008, mods, round_number=4) == pytest.approx(0.008 + 0.003 + 0.002)


def test_loan_rate_never_negative():
    mods = [modifier(MacroKind.INTEREST_FLAT_DELTA, -0.05)]
    assert effective_loan_rate(0.008, mods, round_number=1) == 0.0


def test_new_loans_blocked():
    assert not new_loans_blocked([])
    assert new_loans_blocked([modifier(MacroKind.NEW_LOANS_BLOCKED, 0)])
    assert not new_loans_blocked([modifier(MacroKind.NEW_LOANS_BLOCKED, 0, remaining=0)])


def test_summary():
    summary = summarize([modifier(MacroKind.RENT_MULTIPLIER, 1.5)], 0.008, round_number=1)
    assert summary.rent_multiplier == 1.5
    assert summary.build_cost_multiplier == 1
    assert summary.effective_loan_rate == pytest.approx(0.008)
    assert summary.active_modifiers[0]["kind"] == "RENT_MULTIPLIER"


def test_cash_delta_pays_everyone():
    shock = apply_one_off_effects(
        card("payout", MacroEffect(MacroKind.CASH_DELTA, 100), duration=0),
        CLASSIC_PACK, ["a", "b"], {}, [], random.Random(1),
    )
    assert shock.deltas == {"a": 100, "b": 100}


def test_regional_disaster_charges_per_level():
    ownership = {
        1: PropertyOwnership(1, owner_id="a", houses=3),
        3: PropertyOwnership(3, owner_id="a", houses=2),
        6: PropertyOwnership(6, owner_id="b", houses=0),
    }
    disaster = card("quake", MacroEffect(MacroKind.REGIONAL_DISASTER, 25, color_sets=8), duration=0)
    shock = apply_one_off_effects(disaster, CLASSIC_PACK, ["a", "b"], ownership, [], random.Random(1))
    assert shock.deltas == {"a": -125}
    assert sorted(shock.affected_color_groups) == sorted(CLASSIC_PACK.color_groups())


def test_bank_stress_test_hits_leveraged_players():
    loans = [
        Loan("l1", "a", 1, principal=1000, rate_per_turn=0.01),
        Loan("l2", "a", 3, principal=500, rate_per_turn=0.02),
        Loan("l3", "b", 6, principal=2000, rate_per_turn=0.01),
        Loan("l4", "b", 8, principal=100, rate_per_turn=0.01, status="repaid"),
    ]
    stress = card("stress", MacroEffect(MacroKind.BANK_STRESS_TEST, min_loans=2), duration=0)
    shock = apply_one_off_effects(stress, CLASSIC_PACK, ["a", "b"], {}, loans, random.Random(1))
    assert shock.deltas == {"a": -10}
