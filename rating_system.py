"""
ELO rating system implementation for team matches.
"""

import math
from dataclasses import dataclass, field

from config import ELO_BASE_RATING, ELO_K_FACTOR


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with .5 always rounding towards +infinity."""
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class RatingChange:
    """Rating movement of a single player in one match."""

    player_id: str
    old_rating: int
    new_rating: int

    @property
    def change(self) -> int:
        return self.new_rating - self.old_rating


@dataclass
class MatchRatingResult:
    """Outcome of rating a decisive team match."""

    winning_changes: list[RatingChange] = field(default_factory=list)
    losing_changes: list[RatingChange] = field(default_factory=list)
    winning_average: int = 0
    losing_average: int = 0
    k_factor: int = ELO_K_FACTOR

    def all_changes(self) -> list[RatingChange]:
        return self.winning_changes + self.losing_changes


class EloRatingSystem:
    """
    Manages ELO ratings for players in team matches.

    Each player is rated individually against the average rating of the
    opposing team. A winner always gains at least one point; losers are
    not clamped.
    """

    def __init__(self, k_factor: int = ELO_K_FACTOR, base_rating: int = ELO_BASE_RATING):
        self.k_factor = k_factor
        self.base_rating = base_rating

    @staticmethod
    def expected_score(player_rating: float, opponent_rating: float) -> float:
        """Probability that player_rating beats opponent_rating."""
        return 1.0 / (1.0 + 10 ** ((opponent_rating - player_rating) / 400.0))

    def new_rating(
        self, current: int, expected: float, actual: float, k_factor: int | None = None
    ) -> int:
        """
        Compute a player's rating after a match.

        Args:
            current: Rating before the match
            expected: Expected score from expected_score()
            actual: 1.0 for a win, 0.0 for a loss
            k_factor: Overrides the system K-factor when given
        """
        k = self.k_factor if k_factor is None else k_factor
        raw = current + k * (actual - expected)
        if actual >= 1.0:
            raw = max(raw, current + 1)
        return round_half_up(raw)

    def team_average(self, ratings: list[int]) -> int:
        """Rounded mean of a team's ratings, base rating for an empty team."""
        if not ratings:
            return self.base_rating
        return round_half_up(sum(ratings) / len(ratings))

    def process_match(
        self,
        winning_team: dict[str, int],
        losing_team: dict[str, int],
        k_factor: int | None = None,
    ) -> MatchRatingResult:
        """
        Rate a decisive match.

        Args:
            winning_team: Mapping of player_id -> current rating for the winners
            losing_team: Mapping of player_id -> current rating for the losers
            k_factor: Overrides the system K-factor when given

        Returns:
            MatchRatingResult with one RatingChange per player
        """
        k = self.k_factor if k_factor is None else k_factor
        winning_average = self.team_average(list(winning_team.values()))
        losing_average = self.team_average(list(losing_team.values()))

        winning_changes = []
        for player_id, rating in winning_team.items():
            expected = self.expected_score(rating, losing_average)
            winning_changes.append(
                RatingChange(player_id, rating, self.new_rating(rating, expected, 1.0, k))
            )

        losing_changes = []
        for player_id, rating in losing_team.items():
            expected = self.expected_score(rating, winning_average)
            losing_changes.append(
                RatingChange(player_id, rating, self.new_rating(rating, expected, 0.0, k))
            )

        return MatchRatingResult(
            winning_changes=winning_changes,
            losing_changes=losing_changes,
            winning_average=winning_average,
            losing_average=losing_average,
            k_factor=k,
        )

    def projected_changes(
        self, team: dict[str, int], opponent_average: int
    ) -> dict[str, tuple[int, int]]:
        """
        Preview each player's rating delta for a win and for a loss.

        Returns:
            Mapping of player_id -> (win_delta, loss_delta)
        """
        projections = {}
        for player_id, rating in team.items():
            expected = self.expected_score(rating, opponent_average)
            win_delta = self.new_rating(rating, expected, 1.0) - rating
            loss_delta = self.new_rating(rating, expected, 0.0) - rating
            projections[player_id] = (win_delta, loss_delta)
        return projections
