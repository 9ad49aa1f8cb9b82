"""
Game domain models: the queue/lobby/match state machine and its records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

RANDOM_MAP = "random"


class GameMode(str, Enum):
    FIVE_V_FIVE = "5v5"
    WINGMAN = "wingman"
    THREE_V_THREE = "3v3"
    ONE_V_ONE = "1v1"

    @property
    def capacity(self) -> int:
        """Total number of players for a full game in this mode."""
        return _MODE_CAPACITY[self]


_MODE_CAPACITY = {
    GameMode.FIVE_V_FIVE: 10,
    GameMode.WINGMAN: 4,
    GameMode.THREE_V_THREE: 6,
    GameMode.ONE_V_ONE: 2,
}


class MapSelectionMode(str, Enum):
    ALL_PICK = "all-pick"
    HOST_PICK = "host-pick"
    RANDOM_MAP = "random-map"


class GameStatus(str, Enum):
    QUEUE = "queue"
    LOBBY = "lobby"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def can_transition(cls, source: GameStatus, target: GameStatus) -> bool:
        return target in _TRANSITIONS.get(source, frozenset())


_TRANSITIONS = {
    GameStatus.QUEUE: frozenset({GameStatus.LOBBY, GameStatus.CANCELLED}),
    GameStatus.LOBBY: frozenset({GameStatus.IN_PROGRESS, GameStatus.CANCELLED}),
    GameStatus.IN_PROGRESS: frozenset({GameStatus.COMPLETED}),
}

# Statuses in which a player still counts as "in" the game
OPEN_STATUSES = (GameStatus.QUEUE, GameStatus.LOBBY)


class HistoryEventType(str, Enum):
    JOIN = "join"
    LEAVE = "leave"
    DISBAND = "disband"
    TIMEOUT = "timeout"
    LOBBY = "lobby"
    MAP_SELECTED = "map_selected"
    START = "start"
    COMPLETE = "complete"
    ACCEPT = "accept"


@dataclass
class Game:
    """A single queue -> lobby -> match lifecycle."""

    game_id: str
    match_number: int
    game_mode: GameMode
    map_selection_mode: MapSelectionMode
    host_player_id: str
    max_players: int
    current_players: int
    status: GameStatus
    start_time: int
    server_id: str | None = None
    password: str | None = None
    ranked: bool = False
    selected_map: str | None = None
    map_selection_complete: bool = False
    map_anim_select_start_time: int | None = None  # epoch ms
    team1_score: int | None = None
    team2_score: int | None = None
    created_at: int = 0
    updated_at: int = 0
    completed_at: int | None = None

    @property
    def is_full(self) -> bool:
        return self.current_players >= self.max_players

    @property
    def has_password(self) -> bool:
        return bool(self.password)

    @property
    def team_size(self) -> int:
        return max(1, self.max_players // 2)

    def check_password(self, password: str | None) -> bool:
        if not self.password:
            return True
        return password == self.password

    def to_public_dict(self, reveal_duration_ms: int | None = None) -> dict[str, Any]:
        """Serializable view without the password."""
        data = {
            "game_id": self.game_id,
            "match_number": self.match_number,
            "game_mode": self.game_mode.value,
            "map_selection_mode": self.map_selection_mode.value,
            "host_player_id": self.host_player_id,
            "server_id": self.server_id,
            "has_password": self.has_password,
            "ranked": self.ranked,
            "start_time": self.start_time,
            "max_players": self.max_players,
            "current_players": self.current_players,
            "status": self.status.value,
            "selected_map": self.selected_map,
            "map_selection_complete": self.map_selection_complete,
            "map_anim_select_start_time": self.map_anim_select_start_time,
        }
        if reveal_duration_ms is not None and self.map_anim_select_start_time is not None:
            data["map_reveal_ends_at"] = self.map_anim_select_start_time + reveal_duration_ms
        return data


@dataclass
class GamePlayer:
    """Membership of one player in one game."""

    game_id: str
    player_id: str
    joined_at: int
    team_id: int | None = None
    map_selection: str | None = None
    accepted_match_result: bool = False
    username: str | None = None
    current_elo: int | None = None
    elo_change_win: int | None = None
    elo_change_loss: int | None = None
    elo_change: int | None = None


@dataclass
class GameTeam:
    game_id: str
    team_number: int
    team_name: str
    average_elo: int
    team_id: int | None = None


@dataclass
class GameView:
    """A game together with its players and teams."""

    game: Game
    players: list[GamePlayer] = field(default_factory=list)
    teams: list[GameTeam] = field(default_factory=list)

    def player_ids(self) -> list[str]:
        return [p.player_id for p in self.players]

    def team_members(self, team_number: int) -> list[GamePlayer]:
        team_ids = {t.team_id for t in self.teams if t.team_number == team_number}
        return [p for p in self.players if p.team_id in team_ids]


@dataclass
class HistoryEvent:
    game_id: str
    player_id: str
    event_type: HistoryEventType
    event_data: dict[str, Any] = field(default_factory=dict)
    created_at: int | None = None
    event_id: int | None = None


@dataclass
class JoinOutcome:
    view: GameView
    lobby_formed: bool = False


@dataclass
class LeaveOutcome:
    game: Game
    player_id: str
    was_host: bool
    # Members of the game at the moment of the transition, leaver included
    members: list[str] = field(default_factory=list)
    # Set when a non-host leave emptied a team and the lobby was cancelled
    lobby_cancelled: bool = False
    # Set when the leave completed an all-pick selection
    map_resolved: bool = False

    @property
    def disbanded(self) -> bool:
        return self.was_host or self.lobby_cancelled


@dataclass
class CompletionOutcome:
    game: Game
    applied: bool
    # player_id -> rating delta actually applied
    rating_changes: dict[str, int] = field(default_factory=dict)

    @property
    def is_tie(self) -> bool:
        return self.game.team1_score == self.game.team2_score


@dataclass
class AcceptOutcome:
    game_id: str
    player_id: str
    all_accepted: bool
    pending_players: int


@dataclass
class SelectionOutcome:
    game: Game
    selections: int
    total_players: int
    resolved: bool
