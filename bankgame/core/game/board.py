"""
Board packs and the board catalog.

A board pack bundles the tile layout, the economy constants and the card
decks for one themed board. Packs are immutable and shared by every game
that uses them.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from bankgame.core.game.cards import (
    CLASSIC_CHANCE_CARDS,
    CLASSIC_COMMUNITY_CARDS,
    CLASSIC_UK_CHANCE_CARDS,
    CLASSIC_UK_COMMUNITY_CARDS,
    CardDefinition,
    DeckKind,
)
from bankgame.core.game.spaces import (
    Tile,
    TileType,
    build_rent_by_houses,
    chance,
    community_chest,
    free_parking,
    go,
    go_to_jail,
    jail,
    property_tile,
    rail,
    tax,
    utility,
)

logger = logging.getLogger(__name__)

DEFAULT_PACK_ID = "classic"


@dataclass(frozen=True)
class Economy:
    """Per-pack economic constants."""

    currency_code: str = "USD"
    currency_symbol: str = "$"
    hotel_increment_multiplier: float = 1.25
    rail_rent_by_count: Tuple[int, ...] = (0, 25, 50, 100, 200)
    utility_single_multiplier: int = 4
    utility_double_multiplier: int = 10
    utility_base_amount: int = 1
    starting_balance: int = 1500
    pass_start_amount: int = 200
    base_loan_rate_per_turn: float = 0.008


@dataclass(frozen=True)
class BoardPack:
    """A complete board: tiles, economy and decks."""

    pack_id: str
    display_name: str
    tiles: Tuple[Tile, ...]
    economy: Economy = field(default_factory=Economy)
    chance_cards: Tuple[CardDefinition, ...] = ()
    community_cards: Tuple[CardDefinition, ...] = ()
    macro_deck_id: str = "macro-v1"

    @property
    def size(self) -> int:
        return len(self.tiles)

    def get_tile(self, index: int) -> Optional[Tile]:
        """Get the tile at an index, or None when the index is off the board."""
        if 0 <= index < len(self.tiles):
            return self.tiles[index]
        return None

    def get_color_group(self, color: str) -> List[int]:
        """Get all property indexes in a color group."""
        return [
            tile.index
            for tile in self.tiles
            if tile.tile_type == TileType.PROPERTY and tile.color_group == color
        ]

    def color_groups(self) -> Dict[str, List[int]]:
        """Build a mapping of color groups to property indexes."""
        groups: Dict[str, List[int]] = {}
        for tile in self.tiles:
            if tile.tile_type == TileType.PROPERTY and tile.color_group:
                groups.setdefault(tile.color_group, []).append(tile.index)
        return groups

    def tiles_of_type(self, tile_type: TileType) -> List[int]:
        return [tile.index for tile in self.tiles if tile.tile_type == tile_type]

    @property
    def jail_index(self) -> int:
        jails = self.tiles_of_type(TileType.JAIL)
        return jails[0] if jails else 0

    def deck(self, kind: Optional[str]) -> Tuple[CardDefinition, ...]:
        if kind == DeckKind.CHANCE.value:
            return self.chance_cards
        if kind == DeckKind.COMMUNITY.value:
            return self.community_cards
        return ()


def _classic_tiles() -> Tuple[Tile, ...]:
    return (
        # Bottom row (0-10)
        go(0),
        property_tile(1, "mediterranean-avenue", "Mediterranean Avenue", 60, "brown", 50, (2, 10, 30, 90, 160)),
        community_chest(2, "community-chest-1"),
        property_tile(3, "baltic-avenue", "Baltic Avenue", 60, "brown", 50, (4, 20, 60, 180, 320)),
        tax(4, "income-tax", "Income Tax", 200),
        rail(5, "reading-railroad", "Reading Railroad"),
        property_tile(6, "oriental-avenue", "Oriental Avenue", 100, "light_blue", 50, (6, 30, 90, 270, 400)),
        chance(7, "chance-1"),
        property_tile(8, "vermont-avenue", "Vermont Avenue", 100, "light_blue", 50, (6, 30, 90, 270, 400)),
        property_tile(9, "connecticut-avenue", "Connecticut Avenue", 120, "light_blue", 50, (8, 40, 100, 300, 450)),
        jail(10),
        # Left side (11-20)
        property_tile(11, "st-charles-place", "St. Charles Place", 140, "pink", 100, (10, 50, 150, 450, 625)),
        utility(12, "electric-company", "Electric Company"),
        property_tile(13, "states-avenue", "States Avenue", 140, "pink", 100, (10, 50, 150, 450, 625)),
        property_tile(14, "virginia-avenue", "Virginia Avenue", 160, "pink", 100, (12, 60, 180, 500, 700)),
        rail(15, "pennsylvania-railroad", "Pennsylvania Railroad"),
        property_tile(16, "st-james-place", "St. James Place", 180, "orange", 100, (14, 70, 200, 550, 750)),
        community_chest(17, "community-chest-2"),
        property_tile(18, "tennessee-avenue", "Tennessee Avenue", 180, "orange", 100, (14, 70, 200, 550, 750)),
        property_tile(19, "new-york-avenue", "New York Avenue", 200, "orange", 100, (16, 80, 220, 600, 800)),
        free_parking(20),
        # Top row (21-30)
        property_tile(21, "kentucky-avenue", "Kentucky Avenue", 220, "red", 150, (18, 90, 250, 700, 875)),
        chance(22, "chance-2"),
        property_tile(23, "indiana-avenue", "Indiana Avenue", 220, "red", 150, (18, 90, 250, 700, 875)),
        property_tile(24, "illinois-avenue", "Illinois Avenue", 240, "red", 150, (20, 100, 300, 750, 925)),
        rail(25, "b-and-o-railroad", "B. & O. Railroad"),
        property_tile(26, "atlantic-avenue", "Atlantic Avenue", 260, "yellow", 150, (22, 110, 330, 800, 975)),
        property_tile(27, "ventnor-avenue", "Ventnor Avenue", 260, "yellow", 150, (22, 110, 330, 800, 975)),
        utility(28, "water-works", "Water Works"),
        property_tile(29, "marvin-gardens", "Marvin Gardens", 280, "yellow", 150, (24, 120, 360, 850, 1025)),
        go_to_jail(30),
        # Right side (31-39)
        property_tile(31, "pacific-avenue", "Pacific Avenue", 300, "green", 200, (26, 130, 390, 900, 1100)),
        property_tile(32, "north-carolina-avenue", "North Carolina Avenue", 300, "green", 200, (26, 130, 390, 900, 1100)),
        community_chest(33, "community-chest-3"),
        property_tile(34, "pennsylvania-avenue", "Pennsylvania Avenue", 320, "green", 200, (28, 150, 450, 1000, 1200)),
        rail(35, "short-line", "Short Line"),
        chance(36, "chance-3"),
        property_tile(37, "park-place", "Park Place", 350, "dark_blue", 200, (35, 175, 500, 1100, 1300)),
        tax(38, "luxury-tax", "Luxury Tax", 100),
        property_tile(39, "boardwalk", "Boardwalk", 400, "dark_blue", 200, (50, 200, 600, 1400, 1700)),
    )


# Per-group house rent multipliers applied to base rent on the UK board.
UK_HOUSE_RENT_MULTIPLIERS: Dict[str, Tuple[int, ...]] = {
    "brown": (1, 5, 15, 45, 80),
    "light_blue": (1, 5, 14, 40, 70),
    "pink": (1, 5, 13, 36, 62),
    "orange": (1, 5, 12, 33, 56),
    "red": (1, 5, 11, 30, 50),
    "yellow": (1, 5, 10, 28, 45),
    "green": (1, 5, 9, 24, 38),
    "dark_blue": (1, 5, 8, 22, 32),
}

UK_HOUSE_COSTS: Dict[str, int] = {
    "brown": 50,
    "light_blue": 50,
    "pink": 100,
    "orange": 100,
    "red": 150,
    "yellow": 150,
    "green": 200,
    "dark_blue": 200,
}


def _uk_property(index: int, tile_id: str, name: str, price: int, color: str, base_rent: int) -> Tile:
    rents = build_rent_by_houses(base_rent, UK_HOUSE_RENT_MULTIPLIERS[color])
    return property_tile(index, tile_id, name, price, color, UK_HOUSE_COSTS[color], rents)


def _classic_uk_tiles() -> Tuple[Tile, ...]:
    return (
        go(0),
        _uk_property(1, "old-kent-road", "Old Kent Road", 60, "brown", 2),
        community_chest(2, "community-chest-1"),
        _uk_property(3, "whitechapel-road", "Whitechapel Road", 60, "brown", 4),
        tax(4, "income-tax", "Income Tax", 200),
        rail(5, "kings-cross-station", "King's Cross Station"),
        _uk_property(6, "the-angel-islington", "The Angel Islington", 100, "light_blue", 6),
        chance(7, "chance-1"),
        _uk_property(8, "euston-road", "Euston Road", 100, "light_blue", 6),
        _uk_property(9, "pentonville-road", "Pentonville Road", 120, "light_blue", 8),
        jail(10),
        _uk_property(11, "pall-mall", "Pall Mall", 140, "pink", 10),
        utility(12, "electric-company", "Electric Company"),
        _uk_property(13, "whitehall", "Whitehall", 140, "pink", 10),
        _uk_property(14, "northumberland-avenue", "Northumberland Avenue", 160, "pink", 12),
        rail(15, "marylebone-station", "Marylebone Station"),
        _uk_property(16, "bow-street", "Bow Street", 180, "orange", 14),
        community_chest(17, "community-chest-2"),
        _uk_property(18, "marlborough-street", "Marlborough Street", 180, "orange", 14),
        _uk_property(19, "vine-street", "Vine Street", 200, "orange", 16),
        free_parking(20),
        _uk_property(21, "strand", "Strand", 220, "red", 18),
        chance(22, "chance-2"),
        _uk_property(23, "fleet-street", "Fleet Street", 220, "red", 18),
        _uk_property(24, "trafalgar-square", "Trafalgar Square", 240, "red", 20),
        rail(25, "fenchurch-street-station", "Fenchurch St. Station"),
        _uk_property(26, "leicester-square", "Leicester Square", 260, "yellow", 22),
        _uk_property(27, "coventry-street", "Coventry Street", 260, "yellow", 22),
        utility(28, "water-works", "Water Works"),
        _uk_property(29, "piccadilly", "Piccadilly", 280, "yellow", 24),
        go_to_jail(30),
        _uk_property(31, "regent-street", "Regent Street", 300, "green", 26),
        _uk_property(32, "oxford-street", "Oxford Street", 300, "green", 26),
        community_chest(33, "community-chest-3"),
        _uk_property(34, "bond-street", "Bond Street", 320, "green", 28),
        rail(35, "liverpool-street-station", "Liverpool Street Station"),
        chance(36, "chance-3"),
        _uk_property(37, "park-lane", "Park Lane", 350, "dark_blue", 35),
        tax(38, "super-tax", "Super Tax", 100),
        _uk_property(39, "mayfair", "Mayfair", 400, "dark_blue", 50),
    )


CLASSIC_PACK = BoardPack(
    pack_id="classic",
    display_name="Classic",
    tiles=_classic_tiles(),
    economy=Economy(),
    chance_cards=CLASSIC_CHANCE_CARDS,
    community_cards=CLASSIC_COMMUNITY_CARDS,
)

CLASSIC_UK_PACK = BoardPack(
    pack_id="classic-uk",
    display_name="Classic UK",
    tiles=_classic_uk_tiles(),
    economy=Economy(currency_code="GBP", currency_symbol="£"),
    chance_cards=CLASSIC_UK_CHANCE_CARDS,
    community_cards=CLASSIC_UK_COMMUNITY_CARDS,
)


class BoardCatalog:
    """Static board packs keyed by pack id."""

    def __init__(self, packs: Optional[List[BoardPack]] = None, default_pack_id: str = DEFAULT_PACK_ID):
        packs = packs if packs is not None else [CLASSIC_PACK, CLASSIC_UK_PACK]
        self.packs: Dict[str, BoardPack] = {pack.pack_id: pack for pack in packs}
        if default_pack_id not in self.packs:
            raise ValueError(f"Default board pack '{default_pack_id}' is not in the catalog")
        self.default_pack_id = default_pack_id

    def has_pack(self, pack_id: Optional[str]) -> bool:
        return pack_id in self.packs

    def get_pack(self, pack_id: Optional[str]) -> BoardPack:
        """
        Get a board pack, falling back to the default pack for unknown ids.

        Args:
            pack_id: Pack identifier stored on the game

        Returns:
            The matching pack, or the default pack
        """
        pack = self.packs.get(pack_id) if pack_id else None
        if pack is None:
            logger.warning(f"Unknown board pack '{pack_id}', using '{self.default_pack_id}'")
            return self.packs[self.default_pack_id]
        return pack

    def pack_ids(self) -> List[str]:
        return sorted(self.packs)
