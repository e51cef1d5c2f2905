from bankgame.data.config import get_settings
from bankgame.data.gateway import GameRecord, GameSnapshot, GameStatus, PersistenceGateway
from bankgame.data.models import Base
from bankgame.data.repository import GameRepository
from bankgame.data.session import (
    close_db,
    create_tables,
    get_engine,
    get_session,
    init_db,
)

__all__ = [
    "get_settings",
    "GameRecord",
    "GameSnapshot",
    "GameStatus",
    "PersistenceGateway",
    "Base",
    "GameRepository",
    "close_db",
    "create_tables",
    "get_engine",
    "get_session",
    "init_db",
]
