"""
Tests for join races: many players hitting the same queue at once.

Each join runs in its own thread with its own connection, so the database's
write lock is the only thing serializing them.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

from domain.models.game import GameStatus
from services import error_codes


def _join_all(lifecycle_service, game_id, player_ids):
    barrier = threading.Barrier(len(player_ids))

    def join(player_id):
        barrier.wait()
        return player_id, lifecycle_service.join_queue(game_id, player_id)

    with ThreadPoolExecutor(max_workers=len(player_ids)) as pool:
        return dict(pool.map(join, player_ids))


def test_last_slot_goes_to_one_player(lifecycle_service, game_repository):
    """Two players racing for the last 1v1 slot: one joins, the other sees a full queue."""
    game = lifecycle_service.create_queue("host", "1v1", "host-pick").unwrap()

    results = _join_all(lifecycle_service, game.game_id, ["a", "b"])

    winners = [pid for pid, r in results.items() if r.success]
    losers = [r for r in results.values() if not r.success]
    assert len(winners) == 1
    assert len(losers) == 1
    assert losers[0].is_error(error_codes.QUEUE_FULL)

    view = game_repository.get_game_view(game.game_id)
    assert view.game.status == GameStatus.LOBBY
    assert view.game.current_players == 2
    assert len(view.teams) == 2
    assert len(view.team_members(1)) == 1
    assert len(view.team_members(2)) == 1
    loser_id = next(pid for pid, r in results.items() if not r.success)
    assert game_repository.get_active_game_id(loser_id) is None


def test_full_queue_never_overfills(lifecycle_service, game_repository):
    game = lifecycle_service.create_queue("host", "5v5", "all-pick").unwrap()
    players = [f"p{i}" for i in range(14)]

    results = _join_all(lifecycle_service, game.game_id, players)

    joined = [pid for pid, r in results.items() if r.success]
    rejected = [r for r in results.values() if not r.success]
    assert len(joined) == 9
    assert all(r.is_error(error_codes.QUEUE_FULL) for r in rejected)

    view = game_repository.get_game_view(game.game_id)
    assert view.game.current_players == 10
    assert len(view.players) == 10
    assert view.game.status == GameStatus.LOBBY
    assert sum(1 for r in results.values() if r.success and r.value.lobby_formed) == 1


def test_player_racing_two_queues_lands_in_one(lifecycle_service, game_repository):
    first = lifecycle_service.create_queue("h1", "5v5", "all-pick").unwrap()
    second = lifecycle_service.create_queue("h2", "5v5", "all-pick").unwrap()
    barrier = threading.Barrier(2)

    def join(game_id):
        barrier.wait()
        return lifecycle_service.join_queue(game_id, "runner")

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(join, [first.game_id, second.game_id]))

    assert sum(1 for r in results if r.success) == 1
    assert any(r.is_error(error_codes.ALREADY_IN_GAME) for r in results)
    counts = [
        game_repository.get_game(gid).current_players for gid in (first.game_id, second.game_id)
    ]
    assert sorted(counts) == [1, 2]
