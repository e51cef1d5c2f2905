"""
Player, ownership and loan records as seen by the rules engine.
"""

from dataclasses import dataclass
from typing import Optional

# Development levels per hotel.
HOTEL_LEVEL = 5


@dataclass(frozen=True)
class Player:
    """A seat in one game."""

    player_id: str
    user_id: str
    display_name: str
    position: int = 0
    is_eliminated: bool = False
    join_order: int = 0

    def __repr__(self) -> str:
        return (
            f"Player(id={self.player_id}, name='{self.display_name}', "
            f"position={self.position}, eliminated={self.is_eliminated})"
        )


@dataclass
class PropertyOwnership:
    """Tracks ownership state of one tile."""

    tile_index: int
    owner_id: Optional[str] = None
    houses: int = 0
    collateral_loan_id: Optional[str] = None
    purchase_mortgage_id: Optional[str] = None

    def is_owned(self) -> bool:
        """Check if the tile is owned by any player."""
        return self.owner_id is not None

    def is_encumbered(self) -> bool:
        """Check if an active collateral loan is held against the tile."""
        return self.collateral_loan_id is not None

    @property
    def hotel_count(self) -> int:
        return max(0, self.houses) // HOTEL_LEVEL

    @property
    def house_count(self) -> int:
        return max(0, self.houses) - self.hotel_count * HOTEL_LEVEL


@dataclass(frozen=True)
class Loan:
    """A collateral loan. Read-only input to the rules engine."""

    loan_id: str
    player_id: str
    collateral_tile_index: int
    principal: int
    rate_per_turn: float
    status: str = "active"

    def is_active(self) -> bool:
        return self.status == "active"
