"""
Macro-economic modifiers and the weighted macro deck.

A macro card carries one or more typed effects and a duration in rounds.
Effects with a positive duration become active modifiers that scale or
offset the rules engine's outputs until they expire. One-off effects hit
balances once, at the moment the card is drawn.
"""

import math
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple


class MacroKind(str, Enum):
    """Types of macro effects."""

    RENT_MULTIPLIER = "RENT_MULTIPLIER"
    RAIL_RENT_MULTIPLIER = "RAIL_RENT_MULTIPLIER"
    BUILD_COST_MULTIPLIER = "BUILD_COST_MULTIPLIER"
    SALARY_MULTIPLIER = "SALARY_MULTIPLIER"
    SALARY_BONUS = "SALARY_BONUS"
    CASH_DELTA = "CASH_DELTA"
    NEW_LOANS_BLOCKED = "NEW_LOANS_BLOCKED"
    INTEREST_TREND = "INTEREST_TREND"
    INTEREST_FLAT_DELTA = "INTEREST_FLAT_DELTA"
    UTILITY_RENT_BONUS_PER_HOUSE = "UTILITY_RENT_BONUS_PER_HOUSE"
    REGIONAL_DISASTER = "REGIONAL_DISASTER"
    BANK_STRESS_TEST = "BANK_STRESS_TEST"


MULTIPLIER_KINDS = frozenset(
    {
        MacroKind.RENT_MULTIPLIER,
        MacroKind.RAIL_RENT_MULTIPLIER,
        MacroKind.BUILD_COST_MULTIPLIER,
        MacroKind.SALARY_MULTIPLIER,
    }
)

# Applied to balances at draw time and never tracked.
ONE_OFF_KINDS = frozenset(
    {
        MacroKind.CASH_DELTA,
        MacroKind.REGIONAL_DISASTER,
        MacroKind.BANK_STRESS_TEST,
    }
)


class MacroRarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    BLACK_SWAN = "black_swan"


@dataclass(frozen=True)
class MacroEffect:
    """
    One typed effect of a macro card.

    magnitude is a factor for multiplier kinds, an amount for cash and
    salary bonus kinds, a rate for interest kinds, the cost per house for
    REGIONAL_DISASTER, and unused for NEW_LOANS_BLOCKED.
    """

    kind: MacroKind
    magnitude: float = 0.0
    color_sets: int = 0
    min_loans: int = 0


@dataclass(frozen=True)
class MacroCard:
    card_id: str
    name: str
    rarity: MacroRarity
    weight: float
    duration_rounds: int
    headline: str
    effects: Tuple[MacroEffect, ...]


@dataclass
class ActiveModifier:
    """A drawn effect still in force."""

    card_id: str
    kind: MacroKind
    magnitude: float
    remaining_rounds: int
    started_round: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "card_id": self.card_id,
            "kind": self.kind.value,
            "magnitude": self.magnitude,
            "remaining_rounds": self.remaining_rounds,
            "started_round": self.started_round,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActiveModifier":
        return cls(
            card_id=data["card_id"],
            kind=MacroKind(data["kind"]),
            magnitude=float(data["magnitude"]),
            remaining_rounds=int(data["remaining_rounds"]),
            started_round=int(data.get("started_round", 1)),
        )


def _card(card_id, name, rarity, weight, duration, headline, *effects) -> MacroCard:
    return MacroCard(card_id, name, rarity, weight, duration, headline, tuple(effects))


MACRO_DECK_V1: Tuple[MacroCard, ...] = (
    _card("steady-growth", "Steady Growth", MacroRarity.COMMON, 10, 5,
          "Demand firms up across the board.",
          MacroEffect(MacroKind.RENT_MULTIPLIER, 1.1)),
    _card("soft-landing", "Soft Landing", MacroRarity.COMMON, 9, 5,
          "Rates cool as inflation eases.",
          MacroEffect(MacroKind.INTEREST_TREND, -0.01)),
    _card("supply-chain-squeeze", "Supply Chain Squeeze", MacroRarity.COMMON, 9, 5,
          "Construction bottlenecks raise material costs.",
          MacroEffect(MacroKind.BUILD_COST_MULTIPLIER, 1.25)),
    _card("housing-boom", "Housing Boom", MacroRarity.COMMON, 8, 6,
          "New builds flood the market.",
          MacroEffect(MacroKind.BUILD_COST_MULTIPLIER, 0.75)),
    _card("rental-recession", "Rental Recession", MacroRarity.COMMON, 8, 5,
          "Vacancies rise and landlords cut deals.",
          MacroEffect(MacroKind.RENT_MULTIPLIER, 0.8)),
    _card("wage-growth", "Wage Growth", MacroRarity.COMMON, 7, 4,
          "Pay packets grow faster than prices.",
          MacroEffect(MacroKind.SALARY_MULTIPLIER, 1.1)),
    _card("credit-tightening", "Credit Tightening", MacroRarity.UNCOMMON, 6, 5,
          "Lenders ratchet up rates each round.",
          MacroEffect(MacroKind.INTEREST_TREND, 0.01)),
    _card("liquidity-squeeze", "Liquidity Squeeze", MacroRarity.UNCOMMON, 6, 8,
          "New credit freezes overnight.",
          MacroEffect(MacroKind.NEW_LOANS_BLOCKED, 1.0)),
    _card("consumer-boom", "Consumer Boom", MacroRarity.UNCOMMON, 7, 0,
          "Spending splashes through the economy.",
          MacroEffect(MacroKind.CASH_DELTA, 50)),
    _card("universal-basic-payment", "Universal Basic Payment", MacroRarity.UNCOMMON, 6, 0,
          "A direct payout hits every wallet.",
          MacroEffect(MacroKind.CASH_DELTA, 100)),
    _card("quantitative-easing", "Quantitative Easing", MacroRarity.UNCOMMON, 5, 0,
          "Fresh money pours into the system.",
          MacroEffect(MacroKind.CASH_DELTA, 150)),
    _card("tax-increase", "Tax Increase", MacroRarity.UNCOMMON, 6, 0,
          "A surprise levy drains cash.",
          MacroEffect(MacroKind.CASH_DELTA, -100)),
    _card("commuter-stipend", "Commuter Stipend", MacroRarity.UNCOMMON, 5, 5,
          "Employers top up every pass of Go.",
          MacroEffect(MacroKind.SALARY_BONUS, 50)),
    _card("logistics-boom", "Logistics Boom", MacroRarity.UNCOMMON, 5, 6,
          "Freight demand spikes.",
          MacroEffect(MacroKind.RAIL_RENT_MULTIPLIER, 1.5)),
    _card("energy-price-spike", "Energy Price Spike", MacroRarity.UNCOMMON, 4, 12,
          "Utility bills climb with energy prices.",
          MacroEffect(MacroKind.UTILITY_RENT_BONUS_PER_HOUSE, 0.03)),
    _card("bond-market-shock", "Bond Market Shock", MacroRarity.UNCOMMON, 6, 10,
          "Yields spike and financing costs jump.",
          MacroEffect(MacroKind.INTEREST_FLAT_DELTA, 0.05)),
    _card("market-crash", "Market Crash", MacroRarity.BLACK_SWAN, 2, 3,
          "Confidence evaporates overnight.",
          MacroEffect(MacroKind.RENT_MULTIPLIER, 0.3)),
    _card("regional-disaster", "Regional Disaster", MacroRarity.BLACK_SWAN, 2, 0,
          "A disaster zone is declared.",
          MacroEffect(MacroKind.REGIONAL_DISASTER, 50, color_sets=2)),
    _card("bank-stress-test", "Bank Stress Test", MacroRarity.BLACK_SWAN, 2, 0,
          "Regulators demand immediate proof of solvency.",
          MacroEffect(MacroKind.BANK_STRESS_TEST, 0, min_loans=3)),
)

MACRO_DECKS: Dict[str, Tuple[MacroCard, ...]] = {
    "macro-v1": MACRO_DECK_V1,
}


def get_macro_deck(deck_id: Optional[str]) -> Tuple[MacroCard, ...]:
    return MACRO_DECKS.get(deck_id or "", MACRO_DECK_V1)


def get_macro_card(card_id: Optional[str]) -> Optional[MacroCard]:
    for deck in MACRO_DECKS.values():
        for card in deck:
            if card.card_id == card_id:
                return card
    return None


def draw_macro_card(
    deck: Tuple[MacroCard, ...],
    exclude_id: Optional[str],
    rng: random.Random,
    mode: str = "weighted",
) -> MacroCard:
    """
    Draw a macro card, never repeating the previous draw when avoidable.

    Args:
        deck: Cards to draw from
        exclude_id: Id of the previously drawn card
        rng: Random source
        mode: "weighted" (by card weight) or "equal"

    Returns:
        The drawn card

    Raises:
        ValueError: If the deck is empty
    """
    if not deck:
        raise ValueError("Macro deck is empty")

    candidates = [card for card in deck if card.card_id != exclude_id] or list(deck)
    weights = [max(0.0, float(card.weight)) for card in candidates]

    if mode != "weighted" or sum(weights) <= 0:
        return candidates[rng.randrange(len(candidates))]

    roll = rng.random() * sum(weights)
    for card, weight in zip(candidates, weights):
        roll -= weight
        if roll < 0:
            return card
    # Float residue can leave roll at exactly zero; fall back to the last
    # card that can actually be drawn.
    return [card for card, weight in zip(candidates, weights) if weight > 0][-1]


def _of_kind(modifiers: Iterable[ActiveModifier], kind: MacroKind) -> List[float]:
    return [m.magnitude for m in modifiers if m.kind == kind and m.remaining_rounds > 0]


def compose_multiplier(modifiers: Iterable[ActiveModifier], kind: MacroKind) -> float:
    """Product of all active multipliers of one kind (1.0 when none)."""
    # Sorting makes the float product independent of activation order.
    return math.prod(sorted(_of_kind(modifiers, kind)))


def compose_delta(modifiers: Iterable[ActiveModifier], kind: MacroKind) -> float:
    """Sum of all active deltas of one kind (0.0 when none)."""
    return math.fsum(_of_kind(modifiers, kind))


def tick_modifiers(
    modifiers: Iterable[ActiveModifier],
) -> Tuple[List[ActiveModifier], List[ActiveModifier]]:
    """
    Age modifiers by one completed round.

    Returns:
        (still active, expired) modifiers
    """
    active: List[ActiveModifier] = []
    expired: List[ActiveModifier] = []
    for modifier in modifiers:
        aged = ActiveModifier(
            card_id=modifier.card_id,
            kind=modifier.kind,
            magnitude=modifier.magnitude,
            remaining_rounds=modifier.remaining_rounds - 1,
            started_round=modifier.started_round,
        )
        (active if aged.remaining_rounds > 0 else expired).append(aged)
    return active, expired


def activate_card(card: MacroCard, round_number: int) -> List[ActiveModifier]:
    """Turn a drawn card's lasting effects into active modifiers."""
    if card.duration_rounds <= 0:
        return []
    return [
        ActiveModifier(
            card_id=card.card_id,
            kind=effect.kind,
            magnitude=float(effect.magnitude),
            remaining_rounds=card.duration_rounds,
            started_round=round_number,
        )
        for effect in card.effects
        if effect.kind not in ONE_OFF_KINDS
    ]


def new_loans_blocked(modifiers: Iterable[ActiveModifier]) -> bool:
    return bool(_of_kind(modifiers, MacroKind.NEW_LOANS_BLOCKED))


def effective_loan_rate(
    base_rate: float,
    modifiers: Iterable[ActiveModifier],
    round_number: int,
) -> float:
    """
    Loan rate per turn after interest modifiers.

    Trend modifiers compound once per round since activation, flat deltas
    apply as-is. The result never goes below zero.
    """
    modifiers = list(modifiers)
    trend = math.fsum(
        m.magnitude * max(1, round_number - m.started_round + 1)
        for m in modifiers
        if m.kind == MacroKind.INTEREST_TREND and m.remaining_rounds > 0
    )
    flat = compose_delta(modifiers, MacroKind.INTEREST_FLAT_DELTA)
    return max(0.0, base_rate + trend + flat)


@dataclass
class MacroSummary:
    """Composed view of the active modifiers, for display."""

    rent_multiplier: float = 1.0
    rail_rent_multiplier: float = 1.0
    build_cost_multiplier: float = 1.0
    salary_multiplier: float = 1.0
    salary_bonus: float = 0.0
    utility_rent_bonus_per_house: float = 0.0
    new_loans_blocked: bool = False
    effective_loan_rate: float = 0.0
    active_modifiers: List[Dict[str, Any]] = field(default_factory=list)


def summarize(
    modifiers: Iterable[ActiveModifier],
    base_loan_rate: float,
    round_number: int,
) -> MacroSummary:
    modifiers = list(modifiers)
    return MacroSummary(
        rent_multiplier=compose_multiplier(modifiers, MacroKind.RENT_MULTIPLIER),
        rail_rent_multiplier=compose_multiplier(modifiers, MacroKind.RAIL_RENT_MULTIPLIER),
        build_cost_multiplier=compose_multiplier(modifiers, MacroKind.BUILD_COST_MULTIPLIER),
        salary_multiplier=compose_multiplier(modifiers, MacroKind.SALARY_MULTIPLIER),
        salary_bonus=compose_delta(modifiers, MacroKind.SALARY_BONUS),
        utility_rent_bonus_per_house=compose_delta(
            modifiers, MacroKind.UTILITY_RENT_BONUS_PER_HOUSE
        ),
        new_loans_blocked=new_loans_blocked(modifiers),
        effective_loan_rate=effective_loan_rate(base_loan_rate, modifiers, round_number),
        active_modifiers=[m.to_dict() for m in modifiers],
    )
