"""
Service layer interfaces (ABCs).

These abstract base classes define the contracts for the matchmaking services.
Services inherit from their corresponding interface so callers (the API layer,
the cleanup worker, tests) can depend on the contract and mock it easily.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from domain.models.game import (
        AcceptOutcome,
        CompletionOutcome,
        Game,
        GameMode,
        GameView,
        JoinOutcome,
        LeaveOutcome,
        SelectionOutcome,
    )
    from services.result import Result


class IMapCatalog(ABC):
    """Source of the playable maps for each game mode."""

    @abstractmethod
    def get_maps(self, game_mode: "GameMode | str") -> list[str]:
        """Playable map ids for a mode; may be empty."""
        ...

    @abstractmethod
    def contains(self, game_mode: "GameMode | str", map_id: str) -> bool: ...


class IGameLifecycleService(ABC):
    """Interface for the queue -> lobby -> match state machine."""

    @abstractmethod
    def create_queue(
        self,
        host_id: str,
        game_mode: str,
        map_selection_mode: str,
        server_id: str | None = None,
        password: str | None = None,
        ranked: bool = False,
        max_players: int | None = None,
        host_username: str | None = None,
        now: int | None = None,
    ) -> "Result[Game]":
        """Open a new queue hosted by host_id."""
        ...

    @abstractmethod
    def join_queue(
        self,
        game_id: str,
        player_id: str,
        password: str | None = None,
        username: str | None = None,
        now: int | None = None,
    ) -> "Result[JoinOutcome]":
        """Join a queue; the join that fills it forms the lobby."""
        ...

    @abstractmethod
    def leave_or_disband(self, player_id: str, now: int | None = None) -> "Result[LeaveOutcome]":
        """Leave the caller's open game, disbanding it if they host it."""
        ...

    @abstractmethod
    def start_match(
        self, game_id: str, server_id: str | None = None, now: int | None = None
    ) -> "Result[Game]":
        """Move a lobby with a settled map to in_progress."""
        ...

    @abstractmethod
    def complete_game(
        self, game_id: str, team1_score: int, team2_score: int, now: int | None = None
    ) -> "Result[CompletionOutcome]":
        """Record the final score and apply rating changes once."""
        ...

    @abstractmethod
    def accept_match_result(self, game_id: str, player_id: str) -> "Result[AcceptOutcome]":
        """Acknowledge a completed game's result."""
        ...

    @abstractmethod
    def get_game(self, game_id: str) -> "Result[GameView]":
        ...

    @abstractmethod
    def get_user_game(self, player_id: str) -> "Result[GameView | None]":
        ...

    @abstractmethod
    def list_active_queues(self) -> "Result[list[dict[str, Any]]]":
        ...


class IMapSelectionService(ABC):
    """Interface for lobby map selection."""

    @abstractmethod
    def select_map(self, game_id: str, player_id: str, map_id: str) -> "Result[SelectionOutcome]":
        ...

    @abstractmethod
    def resolve_random_map(self, game_id: str) -> "Result[Game]":
        ...


class IQueueCleanupService(ABC):
    """Interface for the periodic stale-queue sweep."""

    @abstractmethod
    def run(self, now: int | None = None):
        ...


class IRatingRecalculationService(ABC):
    """Interface for rebuilding ratings from completed games."""

    @abstractmethod
    def recalculate_all(self) -> "Result[dict[str, int]]":
        ...
