"""
Abstract repository interfaces for data access.

These interfaces define the contracts implemented by concrete repositories.
"""

from abc import ABC, abstractmethod


class IPlayerRepository(ABC):
    @abstractmethod
    def ensure_player(self, player_id: str, username: str | None = None): ...

    @abstractmethod
    def get_player(self, player_id: str): ...

    @abstractmethod
    def get_ratings(self, player_ids: list[str]) -> dict[str, int]: ...


class IHistoryRepository(ABC):
    @abstractmethod
    def record_events(self, events: list) -> int: ...

    @abstractmethod
    def get_game_events(self, game_id: str) -> list: ...

    @abstractmethod
    def get_player_events(self, player_id: str, limit: int = 50) -> list: ...


class IGameRepository(ABC):
    @abstractmethod
    def get_game(self, game_id: str): ...

    @abstractmethod
    def get_game_by_match_number(self, match_number: int): ...

    @abstractmethod
    def get_game_view(self, game_id: str): ...

    @abstractmethod
    def get_game_players(self, game_id: str) -> list: ...

    @abstractmethod
    def get_game_teams(self, game_id: str) -> list: ...

    @abstractmethod
    def get_active_game_id(self, player_id: str) -> str | None: ...

    @abstractmethod
    def get_active_game_view(self, player_id: str): ...

    @abstractmethod
    def list_games_by_status(self, status) -> list: ...

    @abstractmethod
    def find_stale_queues(self, cutoff: int) -> list: ...

    @abstractmethod
    def create_game(
        self,
        game_id: str,
        host_player_id: str,
        game_mode,
        map_selection_mode,
        max_players: int,
        now: int,
        server_id: str | None = None,
        password: str | None = None,
        ranked: bool = False,
        host_username: str | None = None,
    ): ...

    @abstractmethod
    def join_queue(
        self,
        game_id: str,
        player_id: str,
        now: int,
        plan_lobby,
        password: str | None = None,
        username: str | None = None,
    ): ...

    @abstractmethod
    def leave_game(self, player_id: str, now: int, resolve=None): ...

    @abstractmethod
    def cancel_stale_queue(self, game_id: str, cutoff: int, now: int) -> list[str] | None: ...

    @abstractmethod
    def release_completed_games(self, cutoff: int) -> int: ...

    @abstractmethod
    def start_match(self, game_id: str, server_id: str | None, now: int): ...

    @abstractmethod
    def complete_game(
        self, game_id: str, team1_score: int, team2_score: int, now: int, rate_match
    ): ...

    @abstractmethod
    def accept_match_result(self, game_id: str, player_id: str): ...

    @abstractmethod
    def submit_map_selection(
        self, game_id: str, player_id: str, map_id: str, now_ms: int, resolve
    ): ...

    @abstractmethod
    def set_selected_map(self, game_id: str, map_id: str | None, now_ms: int): ...

    @abstractmethod
    def replay_completed_games(self, base_rating: int, rate_match) -> tuple[int, int]: ...
