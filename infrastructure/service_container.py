"""
Service container for dependency injection and initialization.

This module centralizes repository and service creation and wiring for the
cleanup worker, admin scripts and whatever API layer fronts the engine.

Usage:
    container = ServiceContainer(ServiceConfig.from_env())
    await container.initialize()

    lifecycle = container.lifecycle_service
    result = lifecycle.create_queue("steam-1", "5v5", "all-pick")
"""

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import config
from domain.services.team_balancing_service import TeamBalancingService
from infrastructure.schema_manager import SchemaManager
from rating_system import EloRatingSystem
from repositories.game_repository import GameRepository
from repositories.history_repository import HistoryRepository
from repositories.player_repository import PlayerRepository
from services.game_lifecycle_service import GameLifecycleService
from services.history_service import HistoryService
from services.interfaces import IMapCatalog
from services.map_catalog_service import StaticMapCatalog
from services.map_selection_service import MapSelectionService
from services.queue_cleanup_service import QueueCleanupService
from services.rating_recalculation_service import RatingRecalculationService

logger = logging.getLogger("matchmaker.infrastructure.container")


@dataclass
class RepositoryContainer:
    """Container for all repositories."""

    game: GameRepository | None = None
    player: PlayerRepository | None = None
    history: HistoryRepository | None = None


@dataclass
class ServiceConfig:
    """Configuration for service initialization."""

    # Database
    db_path: str = "matchmaker.db"
    store_timeout_seconds: float = 5.0
    store_retry_delays: list[float] = field(default_factory=lambda: [0.05, 0.2, 0.5])

    # Rating settings
    elo_k_factor: int = 32
    elo_base_rating: int = 1000

    # Cleanup settings
    queue_timeout_minutes: int = 10
    completed_game_grace_minutes: int = 60

    # Map selection
    map_reveal_duration_ms: int = 10_000
    map_pools: dict[str, list[str]] | None = None  # None = config.MAP_POOLS
    random_seed: int | None = None

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        """Build a config from the values loaded by config.py."""
        return cls(
            db_path=config.DB_PATH,
            store_timeout_seconds=config.STORE_TIMEOUT_SECONDS,
            store_retry_delays=list(config.STORE_RETRY_DELAYS),
            elo_k_factor=config.ELO_K_FACTOR,
            elo_base_rating=config.ELO_BASE_RATING,
            queue_timeout_minutes=config.QUEUE_TIMEOUT_MINUTES,
            completed_game_grace_minutes=config.COMPLETED_GAME_GRACE_MINUTES,
            map_reveal_duration_ms=config.MAP_REVEAL_DURATION_MS,
        )


class ServiceContainer:
    """
    Central container for all application services.

    Handles proper initialization order and dependency injection.

    Example:
        container = ServiceContainer(config)
        await container.initialize()

        # Services are now available
        sweep = container.cleanup_service
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        catalog: IMapCatalog | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the container with configuration.

        Args:
            config: Service configuration (uses defaults if None)
            catalog: Map catalog collaborator (static catalog from config if None)
            clock: Time source shared by all services
        """
        self.config = config or ServiceConfig()
        self.catalog = catalog
        self.clock = clock
        self._initialized = False
        self._repos = RepositoryContainer()
        self._services: dict[str, Any] = {}

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """
        Initialize all services in correct order.

        This method is idempotent - calling it multiple times has no effect.
        """
        if self._initialized:
            logger.debug("ServiceContainer already initialized, skipping")
            return

        logger.info("Initializing ServiceContainer...")
        self.initialize_sync()
        logger.info("ServiceContainer initialization complete")

    def initialize_sync(self) -> None:
        """Blocking initialization for scripts without an event loop."""
        if self._initialized:
            return
        self._init_database()
        self._init_repositories()
        self._init_services()
        self._initialized = True

    def _init_database(self) -> None:
        """Initialize database and run migrations."""
        logger.debug(f"Initializing database at {self.config.db_path}")
        SchemaManager(self.config.db_path).initialize()

    def _init_repositories(self) -> None:
        logger.debug("Initializing repositories")

        store_kwargs = {
            "timeout_seconds": self.config.store_timeout_seconds,
            "retry_delays": self.config.store_retry_delays,
        }
        self._services["rating_system"] = EloRatingSystem(
            k_factor=self.config.elo_k_factor, base_rating=self.config.elo_base_rating
        )
        db_path = self.config.db_path
        self._repos.game = GameRepository(
            db_path, rating_system=self._services["rating_system"], **store_kwargs
        )
        self._repos.player = PlayerRepository(db_path, **store_kwargs)
        self._repos.history = HistoryRepository(db_path, **store_kwargs)

    def _init_services(self) -> None:
        """Initialize services in dependency order."""
        logger.debug("Initializing services")

        rating_system = self._services["rating_system"]
        catalog = self.catalog or StaticMapCatalog(self.config.map_pools)
        rng = random.Random(self.config.random_seed)

        history = HistoryService(self._repos.history)
        self._services["history"] = history

        map_selection = MapSelectionService(
            game_repo=self._repos.game,
            history=history,
            catalog=catalog,
            rng=rng,
            clock=self.clock,
        )
        self._services["map_selection"] = map_selection

        self._services["lifecycle"] = GameLifecycleService(
            game_repo=self._repos.game,
            player_repo=self._repos.player,
            history=history,
            map_selection=map_selection,
            rating_system=rating_system,
            team_balancer=TeamBalancingService(),
            reveal_duration_ms=self.config.map_reveal_duration_ms,
            clock=self.clock,
        )

        self._services["cleanup"] = QueueCleanupService(
            game_repo=self._repos.game,
            history=history,
            timeout_minutes=self.config.queue_timeout_minutes,
            completed_grace_minutes=self.config.completed_game_grace_minutes,
            clock=self.clock,
        )

        self._services["recalculation"] = RatingRecalculationService(
            game_repo=self._repos.game, rating_system=rating_system
        )

    # =========================================================================
    # Service accessors
    # =========================================================================

    @property
    def game_repo(self) -> GameRepository:
        return self._repos.game

    @property
    def player_repo(self) -> PlayerRepository:
        return self._repos.player

    @property
    def history_repo(self) -> HistoryRepository:
        return self._repos.history

    @property
    def rating_system(self) -> "EloRatingSystem | None":
        return self._services.get("rating_system")

    @property
    def history_service(self) -> "HistoryService | None":
        return self._services.get("history")

    @property
    def lifecycle_service(self) -> "GameLifecycleService | None":
        return self._services.get("lifecycle")

    @property
    def map_selection_service(self) -> "MapSelectionService | None":
        return self._services.get("map_selection")

    @property
    def cleanup_service(self) -> "QueueCleanupService | None":
        return self._services.get("cleanup")

    @property
    def recalculation_service(self) -> "RatingRecalculationService | None":
        return self._services.get("recalculation")
