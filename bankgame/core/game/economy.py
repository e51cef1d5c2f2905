"""
Economic rules: rent, development cost, pass-start salary and one-off
macro shocks.

Every function here is pure. Unknown tiles or groups fall back to zero or
to the economy defaults instead of raising.
"""

import math
import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from bankgame.core.game.board import BoardPack, Economy
from bankgame.core.game.macro import (
    ActiveModifier,
    MacroCard,
    MacroKind,
    compose_delta,
    compose_multiplier,
)
from bankgame.core.game.player import HOTEL_LEVEL, Loan, PropertyOwnership
from bankgame.core.game.spaces import Tile, TileType

# Roll assumed for utility rent when the game has no roll recorded.
DEFAULT_UTILITY_ROLL = 7

OwnershipMap = Mapping[int, PropertyOwnership]


def round_money(amount: float) -> int:
    """Round half up to a whole currency unit."""
    return int(math.floor(amount + 0.5))


def dev_breakdown(level: int) -> Dict[str, int]:
    """Split a development level into hotels and remaining houses."""
    level = max(0, level)
    hotels = level // HOTEL_LEVEL
    return {"hotel_count": hotels, "house_count": level - hotels * HOTEL_LEVEL}


def _owned_by(ownership: OwnershipMap, owner_id: str) -> List[PropertyOwnership]:
    return [entry for entry in ownership.values() if entry.owner_id == owner_id]


def owns_full_color_set(pack: BoardPack, ownership: OwnershipMap, owner_id: str, color: Optional[str]) -> bool:
    """Check if a player owns every property of a color group."""
    if not color:
        return False
    group = pack.get_color_group(color)
    if not group:
        return False
    for index in group:
        entry = ownership.get(index)
        if entry is None or entry.owner_id != owner_id:
            return False
    return True


def property_rent_for_level(tile: Tile, level: int, economy: Economy) -> int:
    """
    Rent of a property at a development level.

    Levels 0..4 read the tile's table directly. Above that, every five
    levels count as one hotel, each adding the level-4 rent scaled by the
    hotel increment multiplier.
    """
    table = tile.rent_by_houses
    if not table:
        return tile.base_rent or 0
    level = max(0, level)
    if level <= 4:
        return table[min(level, len(table) - 1)]
    hotels = level // HOTEL_LEVEL
    remainder = level % HOTEL_LEVEL
    top = table[min(4, len(table) - 1)]
    increment = math.ceil(top * economy.hotel_increment_multiplier)
    return table[min(remainder, len(table) - 1)] + hotels * increment


def property_rent(pack: BoardPack, tile: Tile, ownership: OwnershipMap) -> int:
    """Unmodified property rent, doubling level-0 rent on a full color set."""
    entry = ownership.get(tile.index)
    if entry is None or not entry.is_owned():
        return 0
    rent = property_rent_for_level(tile, entry.houses, pack.economy)
    if entry.houses == 0 and owns_full_color_set(pack, ownership, entry.owner_id, tile.color_group):
        rent *= 2
    return rent


def rail_rent(pack: BoardPack, owner_id: str, ownership: OwnershipMap) -> int:
    """Rail rent by how many rails the owner holds."""
    rails = pack.tiles_of_type(TileType.RAIL)
    count = sum(
        1 for index in rails if index in ownership and ownership[index].owner_id == owner_id
    )
    table = pack.economy.rail_rent_by_count
    if not table:
        return 0
    return table[min(count, len(table) - 1)]


def utility_rent(
    pack: BoardPack,
    owner_id: str,
    ownership: OwnershipMap,
    last_roll: Optional[int],
) -> int:
    """Utility rent: roll x (single or double multiplier) x base amount."""
    utilities = pack.tiles_of_type(TileType.UTILITY)
    count = sum(
        1 for index in utilities if index in ownership and ownership[index].owner_id == owner_id
    )
    economy = pack.economy
    multiplier = economy.utility_double_multiplier if count >= 2 else economy.utility_single_multiplier
    roll = last_roll if last_roll else DEFAULT_UTILITY_ROLL
    return roll * multiplier * economy.utility_base_amount


def total_houses(ownership: OwnershipMap, owner_id: str) -> int:
    return sum(max(0, entry.houses) for entry in _owned_by(ownership, owner_id))


def rent_due(
    pack: BoardPack,
    tile: Tile,
    ownership: OwnershipMap,
    modifiers: Iterable[ActiveModifier] = (),
    last_roll: Optional[int] = None,
) -> int:
    """
    Rent owed for landing on an owned tile, after macro modifiers.

    Args:
        pack: Board pack of the game
        tile: Tile landed on
        ownership: Ownership entries keyed by tile index
        modifiers: Active macro modifiers
        last_roll: Dice total of the landing roll (utilities only)

    Returns:
        Rent amount, 0 for unowned or non-ownable tiles
    """
    entry = ownership.get(tile.index)
    if entry is None or not entry.is_owned():
        return 0

    modifiers = list(modifiers)
    if tile.tile_type == TileType.PROPERTY:
        base = property_rent(pack, tile, ownership)
        return round_money(base * compose_multiplier(modifiers, MacroKind.RENT_MULTIPLIER))
    if tile.tile_type == TileType.RAIL:
        base = rail_rent(pack, entry.owner_id, ownership)
        return round_money(base * compose_multiplier(modifiers, MacroKind.RAIL_RENT_MULTIPLIER))
    if tile.tile_type == TileType.UTILITY:
        base = utility_rent(pack, entry.owner_id, ownership, last_roll)
        bonus = compose_delta(modifiers, MacroKind.UTILITY_RENT_BONUS_PER_HOUSE)
        if bonus:
            base = base * (1 + bonus * total_houses(ownership, entry.owner_id))
        return round_money(base)
    return 0


def development_cost(tile: Tile, modifiers: Iterable[ActiveModifier] = ()) -> int:
    """Cost of one development level on a property, after macro modifiers."""
    if tile.house_cost is None:
        return 0
    return round_money(tile.house_cost * compose_multiplier(modifiers, MacroKind.BUILD_COST_MULTIPLIER))


def hotel_bonus(pack: BoardPack, ownership: OwnershipMap, player_id: str) -> int:
    """House cost per hotel the player holds on unencumbered properties."""
    bonus = 0
    for entry in _owned_by(ownership, player_id):
        if entry.is_encumbered():
            continue
        tile = pack.get_tile(entry.tile_index)
        if tile is None or tile.tile_type != TileType.PROPERTY or tile.house_cost is None:
            continue
        bonus += entry.hotel_count * tile.house_cost
    return bonus


def pass_start_salary(
    pack: BoardPack,
    ownership: OwnershipMap,
    player_id: str,
    modifiers: Iterable[ActiveModifier] = (),
) -> int:
    """
    Salary credited when a player passes or lands on start.

    (base amount + hotel bonus) scaled by every salary multiplier, then
    every salary bonus added. Both compositions are order independent.
    """
    modifiers = list(modifiers)
    base = pack.economy.pass_start_amount + hotel_bonus(pack, ownership, player_id)
    scaled = round_money(base * compose_multiplier(modifiers, MacroKind.SALARY_MULTIPLIER))
    return scaled + round_money(compose_delta(modifiers, MacroKind.SALARY_BONUS))


@dataclass
class ShockResult:
    """Balance changes produced by one-off macro effects."""

    deltas: Dict[str, int] = field(default_factory=dict)
    affected_color_groups: List[str] = field(default_factory=list)

    def add(self, player_id: str, amount: int) -> None:
        if amount:
            self.deltas[player_id] = self.deltas.get(player_id, 0) + amount


def apply_one_off_effects(
    card: MacroCard,
    pack: BoardPack,
    player_ids: Iterable[str],
    ownership: OwnershipMap,
    loans: Iterable[Loan],
    rng: random.Random,
) -> ShockResult:
    """
    Resolve a drawn card's one-off effects into per-player balance deltas.

    CASH_DELTA pays every player the magnitude. REGIONAL_DISASTER picks
    color groups at random and charges the magnitude per development level
    held there. BANK_STRESS_TEST charges one turn of interest on the largest
    active loan of every player holding at least min_loans active loans.
    """
    player_ids = list(player_ids)
    loans = [loan for loan in loans if loan.is_active()]
    result = ShockResult()

    for effect in card.effects:
        if effect.kind == MacroKind.CASH_DELTA:
            for player_id in player_ids:
                result.add(player_id, round_money(effect.magnitude))

        elif effect.kind == MacroKind.REGIONAL_DISASTER:
            groups = sorted(pack.color_groups())
            picked = rng.sample(groups, min(effect.color_sets, len(groups)))
            result.affected_color_groups.extend(picked)
            hit = {index for color in picked for index in pack.get_color_group(color)}
            for player_id in player_ids:
                levels = sum(
                    max(0, entry.houses)
                    for entry in _owned_by(ownership, player_id)
                    if entry.tile_index in hit
                )
                result.add(player_id, -round_money(levels * effect.magnitude))

        elif effect.kind == MacroKind.BANK_STRESS_TEST:
            for player_id in player_ids:
                held = [loan for loan in loans if loan.player_id == player_id]
                if not held or len(held) < effect.min_loans:
                    continue
                largest = max(held, key=lambda loan: loan.principal)
                result.add(player_id, -round_money(largest.principal * largest.rate_per_turn))

    return result
