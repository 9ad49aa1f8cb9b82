"""
Pytest fixtures for tests.

Performance optimization: Uses a session-scoped schema template to avoid
running migrations for every test. Migrations run once and each test copies
the resulting database file instead of re-initializing it.
"""

import random
import shutil

import pytest

from domain.services.team_balancing_service import TeamBalancingService
from infrastructure.schema_manager import SchemaManager
from rating_system import EloRatingSystem
from repositories.game_repository import GameRepository
from repositories.history_repository import HistoryRepository
from repositories.player_repository import PlayerRepository
from services.game_lifecycle_service import GameLifecycleService
from services.history_service import HistoryService
from services.map_catalog_service import StaticMapCatalog
from services.map_selection_service import MapSelectionService
from services.queue_cleanup_service import QueueCleanupService
from services.rating_recalculation_service import RatingRecalculationService

# =============================================================================
# CENTRALIZED CONSTANTS
# =============================================================================

TEST_MAP_POOLS = {
    "5v5": ["de_dust2", "de_inferno", "de_mirage", "de_nuke"],
    "wingman": ["de_inferno", "de_vertigo"],
    "3v3": ["de_overpass"],
    "1v1": ["aim_map", "aim_redline"],
}
"""Small deterministic catalog used by service tests."""

BASE_TIME = 1_700_000_000
"""Epoch seconds used as "now" by tests that control the clock."""


class FakeClock:
    """Settable time source for services."""

    def __init__(self, start: float = BASE_TIME):
        self.now = float(start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def _schema_template_path(tmp_path_factory):
    """
    Create a schema template database once per test session.

    All migrations run ONCE here. Tests copy from this template
    instead of running schema initialization each time.
    """
    template_dir = tmp_path_factory.mktemp("schema_template")
    template_path = str(template_dir / "template.db")
    SchemaManager(template_path).initialize()
    yield template_path


@pytest.fixture
def temp_db_path(tmp_path):
    """Create a temporary database path (no schema)."""
    path = str(tmp_path / "temp.db")
    yield path


@pytest.fixture
def repo_db_path(_schema_template_path, tmp_path):
    """
    Create a temporary database with initialized schema for repository tests.

    Fast: file copy instead of schema initialization.
    """
    test_db_path = str(tmp_path / "test.db")
    shutil.copy2(_schema_template_path, test_db_path)
    yield test_db_path


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rating_system():
    return EloRatingSystem(k_factor=32, base_rating=1000)


# =============================================================================
# REPOSITORY FIXTURES
# =============================================================================


@pytest.fixture
def game_repository(repo_db_path, rating_system):
    """Create a game repository with temp database."""
    return GameRepository(repo_db_path, rating_system=rating_system, retry_delays=[0.01])


@pytest.fixture
def player_repository(repo_db_path):
    """Create a player repository with temp database."""
    return PlayerRepository(repo_db_path, retry_delays=[0.01])


@pytest.fixture
def history_repository(repo_db_path):
    """Create a history repository with temp database."""
    return HistoryRepository(repo_db_path, retry_delays=[0.01])


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def catalog():
    return StaticMapCatalog(TEST_MAP_POOLS)


@pytest.fixture
def history_service(history_repository):
    return HistoryService(history_repository)


@pytest.fixture
def map_selection_service(game_repository, history_service, catalog, clock):
    return MapSelectionService(
        game_repo=game_repository,
        history=history_service,
        catalog=catalog,
        rng=random.Random(1234),
        clock=clock,
    )


@pytest.fixture
def lifecycle_service(
    game_repository,
    player_repository,
    history_service,
    map_selection_service,
    rating_system,
    clock,
):
    return GameLifecycleService(
        game_repo=game_repository,
        player_repo=player_repository,
        history=history_service,
        map_selection=map_selection_service,
        rating_system=rating_system,
        team_balancer=TeamBalancingService(),
        clock=clock,
    )


@pytest.fixture
def cleanup_service(game_repository, history_service, clock):
    return QueueCleanupService(
        game_repo=game_repository,
        history=history_service,
        timeout_minutes=10,
        completed_grace_minutes=60,
        clock=clock,
    )


@pytest.fixture
def recalculation_service(game_repository, rating_system):
    return RatingRecalculationService(game_repo=game_repository, rating_system=rating_system)


# =============================================================================
# SCENARIO HELPERS
# =============================================================================


@pytest.fixture
def make_lobby(lifecycle_service):
    """
    Factory that creates a queue and fills it.

    Returns the game id; the game is in lobby status afterwards.
    """

    def _make(
        host="host",
        game_mode="wingman",
        selection_mode="all-pick",
        joiners=None,
        max_players=None,
    ):
        game = lifecycle_service.create_queue(
            host, game_mode, selection_mode, max_players=max_players
        ).unwrap()
        if joiners is None:
            joiners = [f"p{i}" for i in range(1, game.max_players)]
        for player_id in joiners:
            lifecycle_service.join_queue(game.game_id, player_id).unwrap()
        return game.game_id

    return _make


@pytest.fixture
def make_started_game(lifecycle_service, map_selection_service, make_lobby):
    """Factory for an in-progress host-pick game."""

    def _make(host="host", game_mode="wingman", joiners=None, max_players=None):
        game_id = make_lobby(
            host=host,
            game_mode=game_mode,
            selection_mode="host-pick",
            joiners=joiners,
            max_players=max_players,
        )
        map_selection_service.select_map(game_id, host, "random").unwrap()
        lifecycle_service.start_match(game_id, "server-1").unwrap()
        return game_id

    return _make
