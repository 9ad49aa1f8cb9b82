"""
Map catalog: which maps are playable in each game mode.
"""

import logging

from config import MAP_POOLS
from domain.models.game import GameMode
from services.interfaces import IMapCatalog

logger = logging.getLogger("matchmaker.services.map_catalog")


class StaticMapCatalog(IMapCatalog):
    """Catalog backed by a fixed per-mode mapping (config.MAP_POOLS by default)."""

    def __init__(self, pools: dict[str, list[str]] | None = None):
        source = MAP_POOLS if pools is None else pools
        self._pools = {str(mode): list(maps) for mode, maps in source.items()}

    def get_maps(self, game_mode: GameMode | str) -> list[str]:
        mode = GameMode(game_mode).value
        maps = self._pools.get(mode, [])
        if not maps:
            logger.warning(f"Map catalog has no maps for mode {mode}")
        return list(maps)

    def contains(self, game_mode: GameMode | str, map_id: str) -> bool:
        return map_id in self._pools.get(GameMode(game_mode).value, [])
