"""
Domain models - pure data structures representing business entities.
"""

from domain.models.game import (
    RANDOM_MAP,
    Game,
    AcceptOutcome,
    CompletionOutcome,
    GameMode,
    GamePlayer,
    GameStatus,
    GameTeam,
    GameView,
    HistoryEvent,
    HistoryEventType,
    JoinOutcome,
    LeaveOutcome,
    MapSelectionMode,
    SelectionOutcome,
)
from domain.models.player import Player
from domain.models.team import LobbyPlan, Team, TeamCandidate

__all__ = [
    "RANDOM_MAP",
    "AcceptOutcome",
    "CompletionOutcome",
    "Game",
    "GameMode",
    "GamePlayer",
    "GameStatus",
    "GameTeam",
    "GameView",
    "HistoryEvent",
    "HistoryEventType",
    "JoinOutcome",
    "LeaveOutcome",
    "LobbyPlan",
    "MapSelectionMode",
    "Player",
    "SelectionOutcome",
    "Team",
    "TeamCandidate",
]
