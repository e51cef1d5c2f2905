"""
SQLAlchemy models for the bank server.

Architecture:
- Game: lifecycle and catalog choice of each game
- Player: seats in a game, one per (game, user)
- GameStateRow: the versioned turn state, one row per game
- GameEvent: append-only event log keyed by (game, version)
- PropertyOwnership: one row per owned tile
- PlayerLoan: collateral loans, read by the rules engine

JSON columns map to JSONB on PostgreSQL and to plain JSON elsewhere, so the
same models run on SQLite for tests.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")
# SQLite only autoincrements INTEGER PRIMARY KEY columns.
EventIdType = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


def utc_now() -> datetime:
    """Generate timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Game(Base):
    """Game metadata table."""

    __tablename__ = "games"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    join_code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default="lobby",
        index=True,
        comment="lobby | in_progress | ended",
    )
    host_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    board_pack_id: Mapped[str] = mapped_column(String(64), nullable=False, default="classic")
    starting_cash: Mapped[int] = mapped_column(Integer, nullable=False, default=1500)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    def __repr__(self) -> str:
        return f"<Game(id={self.id}, code={self.join_code}, status={self.status})>"


class Player(Base):
    """Player participation in a game."""

    __tablename__ = "players"
    __table_args__ = (
        UniqueConstraint("game_id", "user_id", name="uq_player_game_user"),
        Index("idx_players_game_order", "game_id", "join_order"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    game_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_eliminated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    join_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    def __repr__(self) -> str:
        return f"<Player(id={self.id}, name={self.display_name}, game={self.game_id})>"


class GameStateRow(Base):
    """Versioned turn state. Updated only with a version precondition."""

    __tablename__ = "game_state"

    game_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("games.id", ondelete="CASCADE"), primary_key=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_player_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    last_roll: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    doubles_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    turn_phase: Mapped[str] = mapped_column(String(32), nullable=False, default="AWAITING_ROLL")
    pending_action: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    balances: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    round_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    active_modifiers: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSONType, nullable=False, default=list
    )
    last_macro_card_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    chance_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    community_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    def __repr__(self) -> str:
        return f"<GameStateRow(game={self.game_id}, version={self.version})>"


class GameEvent(Base):
    """Append-only event log. (game_id, version) is unique."""

    __tablename__ = "game_events"
    __table_args__ = (
        UniqueConstraint("game_id", "version", name="uq_event_game_version"),
        Index("idx_events_type", "event_type"),
    )

    id: Mapped[int] = mapped_column(EventIdType, primary_key=True, autoincrement=True)
    game_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    player_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    def __repr__(self) -> str:
        return f"<GameEvent(game={self.game_id}, v={self.version}, type={self.event_type})>"


class PropertyOwnership(Base):
    """Ownership of one tile in one game."""

    __tablename__ = "property_ownership"
    __table_args__ = (
        UniqueConstraint("game_id", "tile_index", name="uq_ownership_game_tile"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    game_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    tile_index: Mapped[int] = mapped_column(Integer, nullable=False)
    owner_player_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    houses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    collateral_loan_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    purchase_mortgage_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )


class PlayerLoan(Base):
    """Collateral loan against an owned tile."""

    __tablename__ = "player_loans"
    __table_args__ = (Index("idx_loans_game_player", "game_id", "player_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    game_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[str] = mapped_column(String(36), nullable=False)
    collateral_tile_index: Mapped[int] = mapped_column(Integer, nullable=False)
    principal: Mapped[int] = mapped_column(Integer, nullable=False)
    rate_per_turn: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
