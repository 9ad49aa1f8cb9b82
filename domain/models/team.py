"""
Team domain models used when a full queue is split into a lobby.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class TeamCandidate:
    """A queued player considered for team assignment."""

    player_id: str
    rating: int
    joined_at: int = 0
    username: str | None = None
    is_host: bool = False


@dataclass
class Team:
    """One side of a lobby."""

    team_number: int
    capacity: int
    members: list[TeamCandidate] = field(default_factory=list)
    name: str = ""

    @property
    def total_rating(self) -> int:
        return sum(m.rating for m in self.members)

    @property
    def is_full(self) -> bool:
        return len(self.members) >= self.capacity

    def player_ids(self) -> list[str]:
        return [m.player_id for m in self.members]

    def ratings(self) -> dict[str, int]:
        return {m.player_id: m.rating for m in self.members}


@dataclass
class LobbyPlan:
    """Everything written when a full queue becomes a lobby."""

    teams: tuple[Team, Team]
    team_averages: dict[int, int]
    # player_id -> (win delta, loss delta)
    projections: dict[str, tuple[int, int]] = field(default_factory=dict)
    selected_map: str | None = None
    map_selection_complete: bool = False
