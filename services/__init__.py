"""
Application services layer.

Services orchestrate business operations using repositories and domain services.
"""

from services.game_lifecycle_service import GameLifecycleService
from services.history_service import HistoryService
from services.map_catalog_service import StaticMapCatalog
from services.map_selection_service import MapSelectionService
from services.queue_cleanup_service import CleanupReport, QueueCleanupService
from services.rating_recalculation_service import RatingRecalculationService

# Result type for consistent error handling
from services.result import Result

# Service interfaces (ABCs)
from services.interfaces import (
    IGameLifecycleService,
    IMapCatalog,
    IMapSelectionService,
    IQueueCleanupService,
    IRatingRecalculationService,
)

__all__ = [
    "CleanupReport",
    "GameLifecycleService",
    "HistoryService",
    "MapSelectionService",
    "QueueCleanupService",
    "RatingRecalculationService",
    "StaticMapCatalog",
    "Result",
    "IGameLifecycleService",
    "IMapCatalog",
    "IMapSelectionService",
    "IQueueCleanupService",
    "IRatingRecalculationService",
]
