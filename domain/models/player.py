"""
Player domain model.
"""

from dataclasses import dataclass

from config import ELO_BASE_RATING


@dataclass
class Player:
    """
    Represents a player in the matchmaking system.

    This is a pure domain model with no infrastructure dependencies.
    """

    player_id: str
    username: str | None = None
    current_elo: int = ELO_BASE_RATING
    created_at: int | None = None
    updated_at: int | None = None

    @property
    def display_name(self) -> str:
        return self.username or self.player_id
