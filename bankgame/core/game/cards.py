"""
Chance and Community Chest card definitions.

Decks are static catalog data. Games draw them in a fixed order and keep
their own position in each deck in the turn state.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple


class CardKind(str, Enum):
    """Types of card effects."""

    PAY = "PAY"
    RECEIVE = "RECEIVE"
    MOVE_TO = "MOVE_TO"
    MOVE_REL = "MOVE_REL"
    GO_TO_JAIL = "GO_TO_JAIL"


class DeckKind(str, Enum):
    CHANCE = "CHANCE"
    COMMUNITY = "COMMUNITY"


@dataclass(frozen=True)
class CardDefinition:
    """A single card. Title is display text only."""

    card_id: str
    title: str
    kind: CardKind
    amount: int = 0
    tile_index: Optional[int] = None
    spaces: int = 0

    def __repr__(self) -> str:
        return f"CardDefinition('{self.card_id}')"


def draw_card(deck: Tuple[CardDefinition, ...], index: int) -> Optional[CardDefinition]:
    """
    Draw the card at a deck position, wrapping around the end of the deck.

    Args:
        deck: Ordered cards of one deck
        index: The game's running draw counter for that deck

    Returns:
        The card, or None for an empty deck
    """
    if not deck:
        return None
    return deck[index % len(deck)]


def _cards(prefix: str, rows: List[tuple]) -> Tuple[CardDefinition, ...]:
    cards = []
    for slug, title, kind, *rest in rows:
        value = rest[0] if rest else None
        if kind in (CardKind.PAY, CardKind.RECEIVE):
            card = CardDefinition(f"{prefix}-{slug}", title, kind, amount=value)
        elif kind == CardKind.MOVE_TO:
            card = CardDefinition(f"{prefix}-{slug}", title, kind, tile_index=value)
        elif kind == CardKind.MOVE_REL:
            card = CardDefinition(f"{prefix}-{slug}", title, kind, spaces=value)
        else:
            card = CardDefinition(f"{prefix}-{slug}", title, kind)
        cards.append(card)
    return tuple(cards)


CLASSIC_CHANCE_CARDS = _cards(
    "classic-chance",
    [
        ("advance-go", "Advance to Go (Collect $200)", CardKind.MOVE_TO, 0),
        ("illinois", "Advance to Illinois Ave.", CardKind.MOVE_TO, 24),
        ("st-charles", "Advance to St. Charles Place", CardKind.MOVE_TO, 11),
        ("dividend", "Bank pays you dividend of $50", CardKind.RECEIVE, 50),
        ("back-three", "Go Back 3 Spaces", CardKind.MOVE_REL, -3),
        ("go-to-jail", "Go to Jail", CardKind.GO_TO_JAIL),
        ("poor-tax", "Pay poor tax of $15", CardKind.PAY, 15),
        ("reading", "Take a trip to Reading Railroad", CardKind.MOVE_TO, 5),
        ("boardwalk", "Take a walk on the Boardwalk", CardKind.MOVE_TO, 39),
        ("building-loan", "Your building loan matures. Collect $150", CardKind.RECEIVE, 150),
        ("crossword", "You have won a crossword competition. Collect $100", CardKind.RECEIVE, 100),
    ],
)

CLASSIC_COMMUNITY_CARDS = _cards(
    "classic-community",
    [
        ("advance-go", "Advance to Go (Collect $200)", CardKind.MOVE_TO, 0),
        ("bank-error", "Bank error in your favor. Collect $200", CardKind.RECEIVE, 200),
        ("doctor", "Doctor's fees. Pay $50", CardKind.PAY, 50),
        ("stock-sale", "From sale of stock you get $50", CardKind.RECEIVE, 50),
        ("go-to-jail", "Go to Jail", CardKind.GO_TO_JAIL),
        ("holiday-fund", "Holiday Fund matures. Receive $100", CardKind.RECEIVE, 100),
        ("tax-refund", "Income tax refund. Collect $20", CardKind.RECEIVE, 20),
        ("life-insurance", "Life insurance matures. Collect $100", CardKind.RECEIVE, 100),
        ("hospital", "Pay hospital fees of $100", CardKind.PAY, 100),
        ("school-fees", "Pay school fees of $50", CardKind.PAY, 50),
        ("consultancy", "Receive $25 consultancy fee", CardKind.RECEIVE, 25),
        ("beauty-contest", "You have won second prize in a beauty contest. Collect $10", CardKind.RECEIVE, 10),
        ("inherit", "You inherit $100", CardKind.RECEIVE, 100),
    ],
)

CLASSIC_UK_CHANCE_CARDS = _cards(
    "classic-uk-chance",
    [
        ("advance-go", "Move to Go and collect salary", CardKind.MOVE_TO, 0),
        ("pall-mall", "Advance to Pall Mall", CardKind.MOVE_TO, 11),
        ("trafalgar", "Advance to Trafalgar Square", CardKind.MOVE_TO, 24),
        ("mayfair", "Stroll to Mayfair", CardKind.MOVE_TO, 39),
        ("marylebone", "Take a trip to Marylebone Station", CardKind.MOVE_TO, 15),
        ("back-three", "Move back three spaces", CardKind.MOVE_REL, -3),
        ("dividend", "Collect a dividend from the bank", CardKind.RECEIVE, 50),
        ("building-loan", "Building loan matures", CardKind.RECEIVE, 150),
        ("crossword", "Win a competition prize", CardKind.RECEIVE, 100),
        ("speeding-fine", "Pay a speeding fine", CardKind.PAY, 15),
        ("poor-tax", "Pay the poor tax", CardKind.PAY, 15),
        ("go-to-jail", "Head straight to jail", CardKind.GO_TO_JAIL),
    ],
)

CLASSIC_UK_COMMUNITY_CARDS = _cards(
    "classic-uk-community",
    [
        ("advance-go", "Advance to Go and collect salary", CardKind.MOVE_TO, 0),
        ("bank-error", "Bank correction in your favor", CardKind.RECEIVE, 200),
        ("doctor", "Pay the doctor's bill", CardKind.PAY, 50),
        ("stock", "Collect proceeds from a stock sale", CardKind.RECEIVE, 50),
        ("holiday-fund", "Holiday fund matures", CardKind.RECEIVE, 100),
        ("tax-refund", "Receive an income tax refund", CardKind.RECEIVE, 20),
        ("life-insurance", "Life insurance matures", CardKind.RECEIVE, 100),
        ("hospital", "Pay hospital fees", CardKind.PAY, 100),
        ("school-fees", "Pay school fees", CardKind.PAY, 50),
        ("consultancy", "Receive a consultancy fee", CardKind.RECEIVE, 25),
        ("inherit", "Receive an inheritance", CardKind.RECEIVE, 100),
        ("beauty-contest", "Collect a contest prize", CardKind.RECEIVE, 10),
        ("go-to-jail", "Go directly to jail", CardKind.GO_TO_JAIL),
        ("birthday", "Receive a birthday gift from the bank", CardKind.RECEIVE, 50),
    ],
)
