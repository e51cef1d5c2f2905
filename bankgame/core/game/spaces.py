"""
Board tile definitions and types.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


class TileType(str, Enum):
    """Types of tiles on a board pack."""

    START = "START"
    PROPERTY = "PROPERTY"
    RAIL = "RAIL"
    UTILITY = "UTILITY"
    TAX = "TAX"
    EVENT = "EVENT"
    JAIL = "JAIL"
    GO_TO_JAIL = "GO_TO_JAIL"
    FREE_PARKING = "FREE_PARKING"


OWNABLE_TILE_TYPES = frozenset({TileType.PROPERTY, TileType.RAIL, TileType.UTILITY})

DEFAULT_HOUSE_RENT_MULTIPLIERS: Tuple[int, ...] = (1, 5, 15, 45, 80)


@dataclass(frozen=True)
class Tile:
    """A single board tile. Immutable catalog data."""

    index: int
    tile_id: str
    tile_type: TileType
    name: str
    price: Optional[int] = None
    base_rent: Optional[int] = None
    tax_amount: Optional[int] = None
    color_group: Optional[str] = None
    house_cost: Optional[int] = None
    # Rent for development levels 0..4.
    rent_by_houses: Tuple[int, ...] = ()
    deck: Optional[str] = None

    @property
    def is_ownable(self) -> bool:
        return self.tile_type in OWNABLE_TILE_TYPES

    def __repr__(self) -> str:
        return f"Tile(index={self.index}, name='{self.name}', type={self.tile_type.value})"


def build_rent_by_houses(
    base_rent: int,
    multipliers: Tuple[int, ...] = DEFAULT_HOUSE_RENT_MULTIPLIERS,
) -> Tuple[int, ...]:
    """Derive a level 0..4 rent table from base rent and per-level multipliers."""
    return tuple(base_rent * multiplier for multiplier in multipliers)


def go(index: int = 0) -> Tile:
    return Tile(index, "go", TileType.START, "Go")


def property_tile(
    index: int,
    tile_id: str,
    name: str,
    price: int,
    color_group: str,
    house_cost: int,
    rent_by_houses: Tuple[int, ...],
) -> Tile:
    return Tile(
        index,
        tile_id,
        TileType.PROPERTY,
        name,
        price=price,
        base_rent=rent_by_houses[0],
        color_group=color_group,
        house_cost=house_cost,
        rent_by_houses=rent_by_houses,
    )


def rail(index: int, tile_id: str, name: str, price: int = 200) -> Tile:
    return Tile(index, tile_id, TileType.RAIL, name, price=price, base_rent=25)


def utility(index: int, tile_id: str, name: str, price: int = 150) -> Tile:
    return Tile(index, tile_id, TileType.UTILITY, name, price=price)


def tax(index: int, tile_id: str, name: str, amount: int) -> Tile:
    return Tile(index, tile_id, TileType.TAX, name, tax_amount=amount)


def chance(index: int, tile_id: str) -> Tile:
    return Tile(index, tile_id, TileType.EVENT, "Chance", deck="CHANCE")


def community_chest(index: int, tile_id: str) -> Tile:
    return Tile(index, tile_id, TileType.EVENT, "Community Chest", deck="COMMUNITY")


def jail(index: int = 10) -> Tile:
    return Tile(index, "jail", TileType.JAIL, "Jail")


def go_to_jail(index: int = 30) -> Tile:
    return Tile(index, "go-to-jail", TileType.GO_TO_JAIL, "Go To Jail")


def free_parking(index: int = 20) -> Tile:
    return Tile(index, "free-parking", TileType.FREE_PARKING, "Free Parking")
