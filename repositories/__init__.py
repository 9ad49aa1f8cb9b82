"""
Repository layer for data access abstraction.
"""

from repositories.base_repository import BaseRepository
from repositories.errors import GameStateError, StorageUnavailableError
from repositories.game_repository import GameRepository
from repositories.history_repository import HistoryRepository
from repositories.interfaces import (
    IGameRepository,
    IHistoryRepository,
    IPlayerRepository,
)
from repositories.player_repository import PlayerRepository

__all__ = [
    "BaseRepository",
    "GameRepository",
    "HistoryRepository",
    "PlayerRepository",
    "IGameRepository",
    "IHistoryRepository",
    "IPlayerRepository",
    "GameStateError",
    "StorageUnavailableError",
]
