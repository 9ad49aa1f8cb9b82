"""
Rebuild every player's rating from the completed game log.
"""

import logging

from rating_system import EloRatingSystem
from repositories.errors import StorageUnavailableError
from repositories.interfaces import IGameRepository
from services import error_codes
from services.interfaces import IRatingRecalculationService
from services.result import Result

logger = logging.getLogger("matchmaker.services.recalculation")


class RatingRecalculationService(IRatingRecalculationService):
    """
    Resets all ratings to the base rating and replays decisive completed
    games in match-number order through the same ELO engine used live.
    """

    def __init__(self, game_repo: IGameRepository, rating_system: EloRatingSystem | None = None):
        self.game_repo = game_repo
        self.rating_system = rating_system or EloRatingSystem()

    def recalculate_all(self) -> Result:
        logger.info(f"Recalculating all ratings from base {self.rating_system.base_rating}")
        try:
            games_replayed, players_reset = self.game_repo.replay_completed_games(
                self.rating_system.base_rating, self.rating_system.process_match
            )
        except StorageUnavailableError as e:
            logger.error(f"Rating recalculation failed: {e}")
            return Result.fail("Storage unavailable", code=error_codes.STORAGE_UNAVAILABLE)

        logger.info(f"Replayed {games_replayed} games over {players_reset} players")
        return Result.ok({"games_replayed": games_replayed, "players_reset": players_reset})
