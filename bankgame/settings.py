"""
Central application configuration using pydantic-settings.

This module provides typed access to environment-based configuration for:
- The identity service that verifies bearer tokens
- Game defaults (board pack, join codes, macro cadence, realtime queues)

Database configuration lives in `bankgame.data.config.DatabaseSettings`.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from bankgame.data.config import get_settings as get_database_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class AuthSettings(BaseSettings):
    """
    Configuration for the identity service.

    Environment variables (prefix: AUTH_):
        AUTH_BASE_URL        - Base URL of the identity service
        AUTH_API_KEY         - Optional API key sent with every lookup
        AUTH_TIMEOUT_SECONDS - Request timeout in seconds (default: 5)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="AUTH_",
    )

    base_url: str = Field(
        default="http://localhost:54321",
        description="Base URL of the identity service.",
    )
    api_key: Optional[SecretStr] = Field(
        default=None,
        description="API key for the identity service.",
    )
    timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="HTTP request timeout in seconds.",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class GameSettings(BaseSettings):
    """
    Game defaults.

    Environment variables (prefix: GAME_):
        GAME_DEFAULT_BOARD_PACK     - Pack used when a game names none (default: classic)
        GAME_JOIN_CODE_LENGTH       - Characters in a join code (default: 6)
        GAME_MACRO_INTERVAL_ROUNDS  - Rounds between macro draws, 0 disables (default: 5)
        GAME_RECENT_EVENTS_LIMIT    - Events returned by the snapshot (default: 12)
        GAME_SUBSCRIBER_QUEUE_SIZE  - Buffered messages per realtime subscriber (default: 100)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="GAME_",
    )

    default_board_pack: str = Field(default="classic")
    join_code_length: int = Field(default=6, ge=4, le=16)
    macro_interval_rounds: int = Field(default=5, ge=0)
    recent_events_limit: int = Field(default=12, ge=1, le=200)
    subscriber_queue_size: int = Field(default=100, ge=1)


@lru_cache
def get_auth_settings() -> AuthSettings:
    """Return cached identity service settings instance."""
    return AuthSettings()


@lru_cache
def get_game_settings() -> GameSettings:
    """Return cached game settings instance."""
    return GameSettings()


def configure_logging(level: Optional[str] = None) -> None:
    """Apply the configured log level once, at application start-up."""
    level_name = (level or get_database_settings().log_level).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
