"""
Turn order over the stable join-order list of players.
"""

from typing import List, Optional, Sequence, Tuple

from bankgame.core.game.player import Player


def ordered_players(players: Sequence[Player]) -> List[Player]:
    """Players sorted by join order."""
    return sorted(players, key=lambda p: p.join_order)


def first_player_id(players: Sequence[Player]) -> Optional[str]:
    """First non-eliminated player by join order."""
    for player in ordered_players(players):
        if not player.is_eliminated:
            return player.player_id
    return None


def next_player_id(players: Sequence[Player], current_player_id: Optional[str]) -> Tuple[Optional[str], bool]:
    """
    Find the player whose turn comes after the current one.

    Eliminated players are skipped. The wrap flag is True when the turn
    passes back to the first non-eliminated player, i.e. a round completed.

    Args:
        players: All players of the game
        current_player_id: Player whose turn is ending

    Returns:
        (next player id, wrapped)
    """
    order = ordered_players(players)
    if not order:
        return None, False

    ids = [p.player_id for p in order]
    start = ids.index(current_player_id) if current_player_id in ids else -1

    for offset in range(1, len(order) + 1):
        candidate = order[(start + offset) % len(order)]
        if candidate.is_eliminated:
            continue
        return candidate.player_id, candidate.player_id == first_player_id(order)
    return current_player_id, False
