"""
Tests for GameRepository's conditional transitions.
"""

import pytest

from domain.models.game import GameMode, GameStatus, MapSelectionMode
from domain.models.team import LobbyPlan, TeamCandidate
from domain.services.team_balancing_service import TeamBalancingService
from repositories.errors import (
    AlreadyInGameError,
    BadPasswordError,
    GameNotFoundError,
    InvalidTransitionError,
    NotInQueueError,
    PlayerNotInGameError,
    QueueFullError,
    SelectionCompleteError,
)
from tests.conftest import BASE_TIME


def _plan(view):
    """Minimal lobby planner: balanced teams at the stored ratings."""
    candidates = [
        TeamCandidate(
            player_id=p.player_id,
            rating=p.current_elo,
            joined_at=p.joined_at,
            username=p.username,
            is_host=p.player_id == view.game.host_player_id,
        )
        for p in view.players
    ]
    team1, team2 = TeamBalancingService().split_teams(candidates, view.game.max_players)
    return LobbyPlan(teams=(team1, team2), team_averages={1: 1000, 2: 1000})


def _create(
    repo,
    game_id="g1",
    host="host",
    mode=GameMode.WINGMAN,
    max_players=4,
    selection=MapSelectionMode.HOST_PICK,
    **kwargs,
):
    return repo.create_game(
        game_id=game_id,
        host_player_id=host,
        game_mode=mode,
        map_selection_mode=selection,
        max_players=max_players,
        now=BASE_TIME,
        **kwargs,
    )


def _fill(repo, game_id="g1", players=("p1", "p2", "p3"), now=BASE_TIME):
    outcome = None
    for player_id in players:
        outcome = repo.join_queue(game_id, player_id, now, plan_lobby=_plan)
    return outcome


class TestCreateGame:
    def test_host_is_first_player(self, game_repository):
        game = _create(game_repository)

        assert game.status == GameStatus.QUEUE
        assert game.current_players == 1
        assert game.start_time == BASE_TIME
        assert game_repository.get_active_game_id("host") == "g1"
        assert [p.player_id for p in game_repository.get_game_players("g1")] == ["host"]

    def test_match_numbers_increment(self, game_repository):
        first = _create(game_repository, game_id="g1", host="a")
        second = _create(game_repository, game_id="g2", host="b")
        assert second.match_number == first.match_number + 1
        assert game_repository.get_game_by_match_number(second.match_number).game_id == "g2"

    def test_host_with_active_game_is_rejected(self, game_repository):
        _create(game_repository, game_id="g1")
        with pytest.raises(AlreadyInGameError):
            _create(game_repository, game_id="g2")
        assert game_repository.get_game("g2") is None

    def test_new_player_starts_at_base_rating(self, game_repository, player_repository):
        _create(game_repository, host_username="alice")
        player = player_repository.get_player("host")
        assert player.current_elo == 1000
        assert player.username == "alice"


class TestJoinQueue:
    def test_join_increments_and_touches(self, game_repository):
        _create(game_repository)
        outcome = game_repository.join_queue("g1", "p1", BASE_TIME + 30, plan_lobby=_plan)

        assert outcome.lobby_formed is False
        assert outcome.view.game.current_players == 2
        assert outcome.view.game.updated_at == BASE_TIME + 30

    def test_filling_join_forms_lobby_with_teams(self, game_repository):
        _create(game_repository)
        outcome = _fill(game_repository)

        assert outcome.lobby_formed is True
        view = outcome.view
        assert view.game.status == GameStatus.LOBBY
        assert view.game.current_players == 4
        assert [t.team_number for t in view.teams] == [1, 2]
        assert all(p.team_id is not None for p in view.players)
        assert {p.player_id for p in view.team_members(1)} == {"host", "p2"}

    def test_join_unknown_game(self, game_repository):
        with pytest.raises(GameNotFoundError):
            game_repository.join_queue("missing", "p1", BASE_TIME, plan_lobby=_plan)

    def test_join_twice_is_already_in_game(self, game_repository):
        _create(game_repository)
        game_repository.join_queue("g1", "p1", BASE_TIME, plan_lobby=_plan)
        with pytest.raises(AlreadyInGameError):
            game_repository.join_queue("g1", "p1", BASE_TIME, plan_lobby=_plan)

    def test_join_lobby_is_queue_full(self, game_repository):
        _create(game_repository)
        _fill(game_repository)
        with pytest.raises(QueueFullError):
            game_repository.join_queue("g1", "late", BASE_TIME, plan_lobby=_plan)
        assert game_repository.get_active_game_id("late") is None

    def test_password_checked_for_joiners(self, game_repository):
        _create(game_repository, password="secret")
        with pytest.raises(BadPasswordError):
            game_repository.join_queue("g1", "p1", BASE_TIME, plan_lobby=_plan, password="nope")
        outcome = game_repository.join_queue(
            "g1", "p1", BASE_TIME, plan_lobby=_plan, password="secret"
        )
        assert outcome.view.game.current_players == 2

    def test_failed_plan_rolls_back_join(self, game_repository):
        _create(game_repository, mode=GameMode.ONE_V_ONE, max_players=2)

        def broken_plan(view):
            raise ValueError("boom")

        with pytest.raises(ValueError):
            game_repository.join_queue("g1", "p1", BASE_TIME, plan_lobby=broken_plan)

        game = game_repository.get_game("g1")
        assert game.status == GameStatus.QUEUE
        assert game.current_players == 1
        assert game_repository.get_active_game_id("p1") is None

    def test_settled_plan_stamps_reveal_from_join_time(self, game_repository):
        _create(game_repository, mode=GameMode.ONE_V_ONE, max_players=2)

        def settled_plan(view):
            plan = _plan(view)
            plan.selected_map = "aim_map"
            plan.map_selection_complete = True
            return plan

        outcome = game_repository.join_queue("g1", "p1", BASE_TIME + 42, plan_lobby=settled_plan)

        game = outcome.view.game
        assert game.selected_map == "aim_map"
        assert game.map_anim_select_start_time == (BASE_TIME + 42) * 1000

    def test_unsettled_plan_has_no_reveal(self, game_repository):
        _create(game_repository)
        outcome = _fill(game_repository)
        assert outcome.view.game.map_anim_select_start_time is None


class TestLeaveGame:
    def test_joiner_leaves_queue(self, game_repository):
        _create(game_repository)
        game_repository.join_queue("g1", "p1", BASE_TIME, plan_lobby=_plan)

        outcome = game_repository.leave_game("p1", BASE_TIME + 5)

        assert outcome.was_host is False
        assert outcome.game.current_players == 1
        assert outcome.game.status == GameStatus.QUEUE
        assert game_repository.get_active_game_id("p1") is None

    def test_host_leave_disbands(self, game_repository):
        _create(game_repository)
        game_repository.join_queue("g1", "p1", BASE_TIME, plan_lobby=_plan)

        outcome = game_repository.leave_game("host", BASE_TIME + 5)

        assert outcome.disbanded
        assert outcome.game.status == GameStatus.CANCELLED
        assert set(outcome.members) == {"host", "p1"}
        assert game_repository.get_active_game_id("host") is None
        assert game_repository.get_active_game_id("p1") is None

    def test_leave_without_game(self, game_repository):
        with pytest.raises(NotInQueueError):
            game_repository.leave_game("nobody", BASE_TIME)

    def test_joiner_leaves_lobby_keeps_lobby(self, game_repository):
        _create(game_repository)
        _fill(game_repository)

        outcome = game_repository.leave_game("p3", BASE_TIME + 5)

        assert outcome.game.status == GameStatus.LOBBY
        assert outcome.game.current_players == 3
        assert "p3" not in game_repository.get_game_view("g1").player_ids()
        assert outcome.lobby_cancelled is False

    def test_leave_settles_all_pick_when_rest_have_picked(self, game_repository):
        _create(game_repository, selection=MapSelectionMode.ALL_PICK)
        _fill(game_repository)
        for player_id in ("host", "p1", "p2"):
            game_repository.submit_map_selection(
                "g1", player_id, "de_inferno", BASE_TIME * 1000, resolve=lambda picks: picks[0]
            )
        seen = []

        def resolve(game_mode, picks):
            seen.append((game_mode, picks))
            return picks[0]

        outcome = game_repository.leave_game("p3", BASE_TIME + 5, resolve=resolve)

        assert outcome.map_resolved is True
        assert seen == [(GameMode.WINGMAN, ["de_inferno"] * 3)]
        game = game_repository.get_game("g1")
        assert game.map_selection_complete is True
        assert game.selected_map == "de_inferno"
        assert game.map_anim_select_start_time == (BASE_TIME + 5) * 1000
        assert game_repository.start_match("g1", "srv", BASE_TIME + 6).status == (
            GameStatus.IN_PROGRESS
        )

    def test_leave_keeps_all_pick_open_while_picks_missing(self, game_repository):
        _create(game_repository, selection=MapSelectionMode.ALL_PICK)
        _fill(game_repository)
        game_repository.submit_map_selection(
            "g1", "host", "de_inferno", BASE_TIME * 1000, resolve=lambda picks: picks[0]
        )

        outcome = game_repository.leave_game(
            "p3", BASE_TIME + 5, resolve=lambda mode, picks: picks[0]
        )

        assert outcome.map_resolved is False
        assert game_repository.get_game("g1").map_selection_complete is False

    def test_leave_emptying_a_team_cancels_lobby(self, game_repository):
        _create(game_repository, mode=GameMode.ONE_V_ONE, max_players=2)
        game_repository.join_queue("g1", "p1", BASE_TIME, plan_lobby=_plan)

        outcome = game_repository.leave_game("p1", BASE_TIME + 5)

        assert outcome.lobby_cancelled is True
        assert outcome.disbanded is True
        assert outcome.game.status == GameStatus.CANCELLED
        assert set(outcome.members) == {"host", "p1"}
        assert game_repository.get_active_game_id("host") is None
        assert game_repository.get_active_game_id("p1") is None

    def test_leave_in_progress_game(self, game_repository):
        _create(game_repository)
        _fill(game_repository)
        game_repository.set_selected_map("g1", "de_inferno", BASE_TIME * 1000)
        game_repository.start_match("g1", "srv", BASE_TIME)

        with pytest.raises(InvalidTransitionError, match="in_progress"):
            game_repository.leave_game("p1", BASE_TIME + 5)


class TestStaleQueues:
    def test_cancel_stale_queue(self, game_repository):
        _create(game_repository)
        cutoff = BASE_TIME + 600

        assert [g.game_id for g in game_repository.find_stale_queues(cutoff)] == ["g1"]
        members = game_repository.cancel_stale_queue("g1", cutoff, cutoff + 60)

        assert members == ["host"]
        assert game_repository.get_game("g1").status == GameStatus.CANCELLED
        assert game_repository.get_active_game_id("host") is None

    def test_touched_queue_is_not_cancelled(self, game_repository):
        _create(game_repository)
        cutoff = BASE_TIME + 600
        game_repository.join_queue("g1", "p1", cutoff + 1, plan_lobby=_plan)

        assert game_repository.cancel_stale_queue("g1", cutoff, cutoff + 60) is None
        assert game_repository.get_game("g1").status == GameStatus.QUEUE

    def test_disbanded_queue_is_not_cancelled_again(self, game_repository):
        _create(game_repository)
        game_repository.leave_game("host", BASE_TIME)
        assert game_repository.cancel_stale_queue("g1", BASE_TIME + 600, BASE_TIME + 660) is None


class TestStartAndComplete:
    def _lobby(self, repo):
        _create(repo)
        _fill(repo)

    def test_start_requires_map(self, game_repository):
        self._lobby(game_repository)
        with pytest.raises(InvalidTransitionError, match="Map selection"):
            game_repository.start_match("g1", "srv", BASE_TIME)

    def test_start_requires_lobby(self, game_repository):
        _create(game_repository)
        with pytest.raises(InvalidTransitionError, match="Cannot start a game that is queue"):
            game_repository.start_match("g1", "srv", BASE_TIME)

    def test_start_after_selection(self, game_repository):
        self._lobby(game_repository)
        game_repository.set_selected_map("g1", "de_inferno", BASE_TIME * 1000)

        game = game_repository.start_match("g1", "srv-1", BASE_TIME + 10)
        assert game.status == GameStatus.IN_PROGRESS
        assert game.server_id == "srv-1"

    def test_complete_applies_ratings_once(self, game_repository, rating_system):
        self._lobby(game_repository)
        game_repository.set_selected_map("g1", "de_inferno", 0)
        game_repository.start_match("g1", None, BASE_TIME)

        first = game_repository.complete_game(
            "g1", 16, 10, BASE_TIME + 60, rate_match=rating_system.process_match
        )
        second = game_repository.complete_game(
            "g1", 16, 10, BASE_TIME + 61, rate_match=rating_system.process_match
        )

        assert first.applied is True
        assert first.rating_changes == {"host": 16, "p2": 16, "p1": -16, "p3": -16}
        assert second.applied is False
        players = {p.player_id: p for p in game_repository.get_game_players("g1")}
        assert players["host"].current_elo == 1016
        assert players["p1"].current_elo == 984
        assert players["host"].elo_change == 16
        teams = game_repository.get_game_teams("g1")
        assert [t.average_elo for t in teams] == [1016, 984]

    def test_complete_from_lobby_is_invalid(self, game_repository, rating_system):
        self._lobby(game_repository)
        with pytest.raises(InvalidTransitionError, match="Cannot complete a game that is lobby"):
            game_repository.complete_game(
                "g1", 1, 0, BASE_TIME, rate_match=rating_system.process_match
            )


class TestAcceptAndRelease:
    def _completed(self, repo, rating_system):
        _create(repo)
        _fill(repo)
        repo.set_selected_map("g1", "de_inferno", 0)
        repo.start_match("g1", None, BASE_TIME)
        repo.complete_game("g1", 13, 13, BASE_TIME + 100, rate_match=rating_system.process_match)

    def test_completed_game_holds_slot_until_accept(self, game_repository, rating_system):
        self._completed(game_repository, rating_system)
        assert game_repository.get_active_game_id("host") == "g1"
        with pytest.raises(AlreadyInGameError):
            _create(game_repository, game_id="g2")

        outcome = game_repository.accept_match_result("g1", "host")

        assert outcome.pending_players == 3
        assert outcome.all_accepted is False
        assert game_repository.get_active_game_id("host") is None

    def test_accept_by_outsider(self, game_repository, rating_system):
        self._completed(game_repository, rating_system)
        with pytest.raises(PlayerNotInGameError):
            game_repository.accept_match_result("g1", "stranger")

    def test_release_after_grace(self, game_repository, rating_system):
        self._completed(game_repository, rating_system)

        assert game_repository.release_completed_games(BASE_TIME + 100) == 0
        assert game_repository.release_completed_games(BASE_TIME + 101) == 4
        assert game_repository.get_active_game_id("p1") is None


class TestMapSelectionWrites:
    def test_second_resolution_is_rejected(self, game_repository):
        _create(game_repository)
        _fill(game_repository)
        game_repository.set_selected_map("g1", "de_inferno", 123)

        with pytest.raises(SelectionCompleteError):
            game_repository.set_selected_map("g1", "de_vertigo", 456)
        game = game_repository.get_game("g1")
        assert game.selected_map == "de_inferno"
        assert game.map_anim_select_start_time == 123

    def test_all_pick_waits_for_every_pick(self, game_repository):
        _create(game_repository, selection=MapSelectionMode.ALL_PICK)
        _fill(game_repository)
        resolved_with = []

        def resolve(picks):
            resolved_with.append(list(picks))
            return picks[0]

        for index, player_id in enumerate(["host", "p1", "p2"]):
            outcome = game_repository.submit_map_selection(
                "g1", player_id, "de_inferno", 0, resolve
            )
            assert outcome.resolved is False
            assert outcome.selections == index + 1

        outcome = game_repository.submit_map_selection("g1", "p3", "de_vertigo", 99, resolve)
        assert outcome.resolved is True
        assert outcome.game.selected_map == "de_inferno"
        assert sorted(resolved_with[0]) == ["de_inferno", "de_inferno", "de_inferno", "de_vertigo"]

    def test_non_member_pick(self, game_repository):
        _create(game_repository)
        _fill(game_repository)
        with pytest.raises(PlayerNotInGameError):
            game_repository.submit_map_selection("g1", "stranger", "x", 0, lambda picks: "x")
