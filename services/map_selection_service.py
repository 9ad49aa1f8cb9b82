"""
Map selection for lobbies.

Three protocols, chosen when the queue is created:
- host-pick: the host's first valid pick decides the map
- all-pick: every player picks; once all have, one pick is drawn at random
- random-map: a catalog map is drawn when the lobby forms
"""

import logging
import random
import time

from domain.models.game import (
    RANDOM_MAP,
    Game,
    GameMode,
    GameStatus,
    HistoryEventType,
    MapSelectionMode,
)
from repositories.errors import GameStateError, StorageUnavailableError
from repositories.interfaces import IGameRepository
from services import error_codes
from services.history_service import HistoryService
from services.interfaces import IMapCatalog, IMapSelectionService
from services.result import Result

logger = logging.getLogger("matchmaker.services.map_selection")


class MapSelectionService(IMapSelectionService):
    """Collects picks and resolves the lobby's map exactly once."""

    def __init__(
        self,
        game_repo: IGameRepository,
        history: HistoryService,
        catalog: IMapCatalog,
        rng: random.Random | None = None,
        clock=time.time,
    ):
        self.game_repo = game_repo
        self.history = history
        self.catalog = catalog
        self.rng = rng or random.Random()
        self.clock = clock

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def draw_catalog_map(self, game_mode: GameMode | str) -> str | None:
        """Uniform draw from the mode's catalog, None if it is empty."""
        maps = self.catalog.get_maps(game_mode)
        if not maps:
            return None
        return self.rng.choice(maps)

    def resolve_final_map(self, game_mode: GameMode | str, picks: list[str]) -> str | None:
        """
        Turn a complete list of picks into the final map.

        Each "random" pick is replaced by a uniform draw from the distinct
        concrete picks, or from the catalog when nobody picked a concrete map.
        The final map is then a uniform draw over the resulting list, so maps
        picked by more players are proportionally more likely.
        """
        concrete = sorted({p for p in picks if p and p != RANDOM_MAP})
        fallback = concrete or self.catalog.get_maps(game_mode)

        resolved = []
        for pick in picks:
            if pick == RANDOM_MAP:
                if fallback:
                    resolved.append(self.rng.choice(fallback))
            elif pick:
                resolved.append(pick)

        if not resolved:
            return None
        return self.rng.choice(resolved)

    def _validate_map_id(self, game: Game, map_id: str) -> str | None:
        if map_id == RANDOM_MAP:
            return None
        # An empty catalog accepts any map id
        if not self.catalog.get_maps(game.game_mode):
            return None
        if not self.catalog.contains(game.game_mode, map_id):
            return f"Map {map_id} is not available for {game.game_mode.value}"
        return None

    def select_map(self, game_id: str, player_id: str, map_id: str) -> Result:
        """
        Record a player's pick, resolving the map when the game's rule is met.

        Returns:
            Result with a SelectionOutcome (selections made, total players,
            whether the map was resolved by this call)
        """
        map_id = (map_id or "").strip()
        if not map_id:
            return Result.fail("Map id is required", code=error_codes.VALIDATION_ERROR)

        try:
            game = self.game_repo.get_game(game_id)
        except StorageUnavailableError as e:
            logger.error(f"select_map could not read game {game_id}: {e}")
            return Result.fail("Storage unavailable", code=error_codes.STORAGE_UNAVAILABLE)

        if game is None:
            return Result.fail("Game not found", code=error_codes.NOT_FOUND)
        if game.status != GameStatus.LOBBY:
            return Result.fail(
                f"Game is {game.status.value}, not in lobby",
                code=error_codes.INVALID_STATE_TRANSITION,
            )
        if game.map_selection_complete:
            return Result.fail(
                "Map selection is already complete", code=error_codes.SELECTION_ALREADY_COMPLETE
            )
        if game.map_selection_mode == MapSelectionMode.RANDOM_MAP:
            return Result.fail(
                "Maps are drawn at random for this game", code=error_codes.VALIDATION_ERROR
            )
        if (
            game.map_selection_mode == MapSelectionMode.HOST_PICK
            and player_id != game.host_player_id
        ):
            return Result.fail("Only the host can pick the map", code=error_codes.PERMISSION_DENIED)

        invalid = self._validate_map_id(game, map_id)
        if invalid:
            return Result.fail(invalid, code=error_codes.VALIDATION_ERROR)

        try:
            outcome = self.game_repo.submit_map_selection(
                game_id,
                player_id,
                map_id,
                self._now_ms(),
                resolve=lambda picks: self.resolve_final_map(game.game_mode, picks),
            )
        except (GameStateError, StorageUnavailableError) as e:
            logger.info(f"select_map rejected for {player_id} in {game_id}: {e}")
            return Result.fail(str(e), code=error_codes.code_for_exception(e))

        logger.debug(
            f"Player {player_id} picked {map_id} in {game_id} "
            f"({outcome.selections}/{outcome.total_players})"
        )
        if outcome.resolved:
            self.history.record(
                game_id,
                [player_id],
                HistoryEventType.MAP_SELECTED,
                {
                    "pick": map_id,
                    "selected_map": outcome.game.selected_map,
                    "map_selection_mode": game.map_selection_mode.value,
                },
            )
        return Result.ok(outcome)

    def resolve_random_map(self, game_id: str) -> Result:
        """Draw the map for a random-map lobby that has not been resolved yet."""
        try:
            game = self.game_repo.get_game(game_id)
            if game is None:
                return Result.fail("Game not found", code=error_codes.NOT_FOUND)
            if game.map_selection_mode != MapSelectionMode.RANDOM_MAP:
                return Result.fail(
                    "Game does not use random map selection", code=error_codes.VALIDATION_ERROR
                )
            if game.map_selection_complete:
                return Result.fail(
                    "Map selection is already complete",
                    code=error_codes.SELECTION_ALREADY_COMPLETE,
                )
            updated = self.game_repo.set_selected_map(
                game_id, self.draw_catalog_map(game.game_mode), self._now_ms()
            )
        except (GameStateError, StorageUnavailableError) as e:
            return Result.fail(str(e), code=error_codes.code_for_exception(e))
        return Result.ok(updated)
