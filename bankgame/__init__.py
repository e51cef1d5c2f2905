"""
Authoritative bank server for a multiplayer economic board game.
"""
