"""
Game lifecycle orchestration: queue -> lobby -> in_progress -> completed.

All mutations go through GameRepository's atomic transitions; this service
validates input, plans lobbies, maps repository exceptions to Result error
codes and records history once a transition has committed.
"""

import logging
import time
import uuid
from collections.abc import Callable
from typing import Any

from config import MAP_REVEAL_DURATION_MS
from domain.models.game import (
    Game,
    GameMode,
    GameStatus,
    GameView,
    HistoryEventType,
    MapSelectionMode,
)
from domain.models.team import LobbyPlan, TeamCandidate
from domain.services.team_balancing_service import TeamBalancingService
from rating_system import EloRatingSystem
from repositories.errors import GameStateError, StorageUnavailableError
from repositories.interfaces import IGameRepository, IPlayerRepository
from services import error_codes
from services.history_service import HistoryService
from services.interfaces import IGameLifecycleService
from services.map_selection_service import MapSelectionService
from services.result import Result

logger = logging.getLogger("matchmaker.services.lifecycle")


class GameLifecycleService(IGameLifecycleService):
    """
    Owns every state transition of a game.

    Transitions:
    - queue -> lobby (the join that fills the queue)
    - queue/lobby -> cancelled (host leaves, or the cleanup sweep)
    - lobby -> in_progress (server allocated, map settled)
    - in_progress -> completed (result reported, ratings applied once)
    """

    def __init__(
        self,
        game_repo: IGameRepository,
        player_repo: IPlayerRepository,
        history: HistoryService,
        map_selection: MapSelectionService,
        rating_system: EloRatingSystem | None = None,
        team_balancer: TeamBalancingService | None = None,
        reveal_duration_ms: int = MAP_REVEAL_DURATION_MS,
        clock: Callable[[], float] = time.time,
    ):
        self.game_repo = game_repo
        self.player_repo = player_repo
        self.history = history
        self.map_selection = map_selection
        self.rating_system = rating_system or EloRatingSystem()
        self.team_balancer = team_balancer or TeamBalancingService()
        self.reveal_duration_ms = reveal_duration_ms
        self.clock = clock

    def _now(self, now: int | None = None) -> int:
        return int(self.clock()) if now is None else now

    def _attempt(self, operation: str, action: Callable[[], Any]) -> Result:
        """Run a repository transition, turning its exceptions into failed Results."""
        try:
            return Result.ok(action())
        except GameStateError as e:
            logger.info(f"{operation} rejected: {e}")
            return Result.fail(str(e), code=error_codes.code_for_exception(e))
        except StorageUnavailableError as e:
            logger.error(f"{operation} failed, storage unavailable: {e}")
            return Result.fail("Storage unavailable", code=error_codes.STORAGE_UNAVAILABLE)

    def _member_ids(self, game_id: str) -> list[str]:
        try:
            return [p.player_id for p in self.game_repo.get_game_players(game_id)]
        except StorageUnavailableError:
            logger.warning(f"Could not list players of {game_id} for history", exc_info=True)
            return []

    # --- Queue creation and joining ---

    def create_queue(
        self,
        host_id: str,
        game_mode: str,
        map_selection_mode: str,
        server_id: str | None = None,
        password: str | None = None,
        ranked: bool = False,
        max_players: int | None = None,
        host_username: str | None = None,
        now: int | None = None,
    ) -> Result[Game]:
        """
        Open a new queue with the host as its first player.

        Args:
            host_id: Player opening the queue
            game_mode: One of 5v5, wingman, 3v3, 1v1
            map_selection_mode: One of all-pick, host-pick, random-map
            server_id: Preferred game server, if already known
            password: Required from joiners when set
            ranked: Whether the match counts for ratings reporting
            max_players: Smaller even capacity than the mode's default
            host_username: Display name, stored on the player record
            now: Override for the current epoch seconds

        Returns:
            Result with the new Game
        """
        if not host_id:
            return Result.fail("Host id is required", code=error_codes.VALIDATION_ERROR)
        try:
            mode = GameMode(game_mode)
        except ValueError:
            return Result.fail(f"Unknown game mode: {game_mode}", code=error_codes.VALIDATION_ERROR)
        try:
            selection_mode = MapSelectionMode(map_selection_mode)
        except ValueError:
            return Result.fail(
                f"Unknown map selection mode: {map_selection_mode}",
                code=error_codes.VALIDATION_ERROR,
            )

        capacity = mode.capacity if max_players is None else max_players
        if capacity < 2 or capacity % 2 != 0 or capacity > mode.capacity:
            return Result.fail(
                f"max_players must be an even number between 2 and {mode.capacity}",
                code=error_codes.VALIDATION_ERROR,
            )

        now = self._now(now)
        game_id = str(uuid.uuid4())
        result = self._attempt(
            "create_queue",
            lambda: self.game_repo.create_game(
                game_id=game_id,
                host_player_id=host_id,
                game_mode=mode,
                map_selection_mode=selection_mode,
                max_players=capacity,
                now=now,
                server_id=server_id,
                password=password or None,
                ranked=ranked,
                host_username=host_username,
            ),
        )
        if not result:
            return result

        game = result.value
        logger.info(
            f"Queue {game.game_id} (#{game.match_number}) opened by {host_id}: "
            f"{mode.value}, {selection_mode.value}, {capacity} players"
        )
        self.history.record(
            game.game_id,
            [host_id],
            HistoryEventType.JOIN,
            {
                "game_mode": mode.value,
                "map_selection_mode": selection_mode.value,
                "is_host": True,
            },
            now=now,
        )
        return result

    def join_queue(
        self,
        game_id: str,
        player_id: str,
        password: str | None = None,
        username: str | None = None,
        now: int | None = None,
    ) -> Result:
        """
        Join a queue. The join that fills it also forms the lobby.

        Returns:
            Result with a JoinOutcome (game view after the join, lobby_formed)
        """
        if not player_id:
            return Result.fail("Player id is required", code=error_codes.VALIDATION_ERROR)

        now = self._now(now)
        result = self._attempt(
            "join_queue",
            lambda: self.game_repo.join_queue(
                game_id,
                player_id,
                now,
                plan_lobby=self._plan_lobby,
                password=password,
                username=username,
            ),
        )
        if not result:
            return result

        outcome = result.value
        game = outcome.view.game
        logger.info(
            f"Player {player_id} joined {game_id} ({game.current_players}/{game.max_players})"
        )
        self.history.record(
            game_id,
            [player_id],
            HistoryEventType.JOIN,
            {
                "game_mode": game.game_mode.value,
                "map_selection_mode": game.map_selection_mode.value,
                "is_host": False,
                "host_player_id": game.host_player_id,
            },
            now=now,
        )
        if outcome.lobby_formed:
            self._record_lobby_formed(outcome.view, now)
        return result

    def _plan_lobby(self, view: GameView) -> LobbyPlan:
        """Teams, rating projections and (random-map) map for a queue that just filled."""
        game = view.game
        candidates = [
            TeamCandidate(
                player_id=p.player_id,
                rating=p.current_elo if p.current_elo is not None else self.rating_system.base_rating,
                joined_at=p.joined_at,
                username=p.username,
                is_host=p.player_id == game.host_player_id,
            )
            for p in view.players
        ]
        team1, team2 = self.team_balancer.split_teams(candidates, game.max_players)
        averages = {
            1: self.rating_system.team_average(list(team1.ratings().values())),
            2: self.rating_system.team_average(list(team2.ratings().values())),
        }
        projections = self.rating_system.projected_changes(team1.ratings(), averages[2])
        projections.update(self.rating_system.projected_changes(team2.ratings(), averages[1]))

        plan = LobbyPlan(teams=(team1, team2), team_averages=averages, projections=projections)
        if game.map_selection_mode == MapSelectionMode.RANDOM_MAP:
            # Selection completes even when the catalog has nothing to offer
            plan.selected_map = self.map_selection.draw_catalog_map(game.game_mode)
            plan.map_selection_complete = True
        return plan

    def _record_lobby_formed(self, view: GameView, now: int) -> None:
        game = view.game
        team_numbers = {t.team_id: t.team_number for t in view.teams}
        logger.info(
            f"Game {game.game_id} formed a lobby: "
            + ", ".join(f"{t.team_name} ({t.average_elo})" for t in view.teams)
        )
        self.history.record(
            game.game_id,
            view.player_ids(),
            HistoryEventType.LOBBY,
            {"game_mode": game.game_mode.value, "selected_map": game.selected_map},
            per_player={
                p.player_id: {
                    "team_number": team_numbers.get(p.team_id),
                    "is_host": p.player_id == game.host_player_id,
                }
                for p in view.players
            },
            now=now,
        )

    # --- Leaving ---

    def leave_or_disband(self, player_id: str, now: int | None = None) -> Result:
        """
        Leave the caller's queue or lobby. A host leaving disbands the game.

        A lobby whose team is emptied by the leave is cancelled for everyone.

        Returns:
            Result with a LeaveOutcome
        """
        now = self._now(now)
        result = self._attempt(
            "leave_or_disband",
            lambda: self.game_repo.leave_game(
                player_id, now, resolve=self.map_selection.resolve_final_map
            ),
        )
        if not result:
            return result

        outcome = result.value
        game = outcome.game
        if outcome.was_host:
            others = [m for m in outcome.members if m != player_id]
            self.history.record(
                game.game_id,
                outcome.members,
                HistoryEventType.DISBAND,
                {"game_mode": game.game_mode.value, "disbanded_by_host": player_id},
                per_player={player_id: {"is_host": True, "joiner_count": len(others)}},
                now=now,
            )
            return result

        self.history.record(
            game.game_id,
            [player_id],
            HistoryEventType.LEAVE,
            {"game_mode": game.game_mode.value, "status": game.status.value},
            now=now,
        )
        remaining = [m for m in outcome.members if m != player_id]
        if outcome.lobby_cancelled:
            self.history.record(
                game.game_id,
                remaining,
                HistoryEventType.DISBAND,
                {"game_mode": game.game_mode.value, "reason": "team_empty", "left": player_id},
                now=now,
            )
        elif outcome.map_resolved:
            self.history.record(
                game.game_id,
                remaining,
                HistoryEventType.MAP_SELECTED,
                {
                    "selected_map": game.selected_map,
                    "map_selection_mode": game.map_selection_mode.value,
                },
                now=now,
            )
        return result

    # --- Match start and completion ---

    def start_match(
        self, game_id: str, server_id: str | None = None, now: int | None = None
    ) -> Result[Game]:
        now = self._now(now)
        result = self._attempt(
            "start_match", lambda: self.game_repo.start_match(game_id, server_id, now)
        )
        if result:
            game = result.value
            self.history.record(
                game_id,
                self._member_ids(game_id),
                HistoryEventType.START,
                {"server_id": game.server_id, "selected_map": game.selected_map},
                now=now,
            )
        return result

    def complete_game(
        self, game_id: str, team1_score: int, team2_score: int, now: int | None = None
    ) -> Result:
        """
        Record a final score. Ratings change only on a decisive score and only once.

        Returns:
            Result with a CompletionOutcome; applied is False when the game was
            already completed
        """
        if team1_score is None or team2_score is None or team1_score < 0 or team2_score < 0:
            return Result.fail("Scores must be non-negative", code=error_codes.VALIDATION_ERROR)

        now = self._now(now)
        result = self._attempt(
            "complete_game",
            lambda: self.game_repo.complete_game(
                game_id, team1_score, team2_score, now, rate_match=self.rating_system.process_match
            ),
        )
        if not result:
            return result

        outcome = result.value
        if not outcome.applied:
            logger.info(f"Game {game_id} already completed, ignoring duplicate result")
            return result

        self.history.record(
            game_id,
            self._member_ids(game_id),
            HistoryEventType.COMPLETE,
            {"team1_score": team1_score, "team2_score": team2_score, "tie": outcome.is_tie},
            per_player={pid: {"elo_change": delta} for pid, delta in outcome.rating_changes.items()},
            now=now,
        )
        return result

    def complete_game_by_match_number(
        self, match_number: int, team1_score: int, team2_score: int, now: int | None = None
    ) -> Result:
        """complete_game for callers that only know the match number."""
        try:
            game = self.game_repo.get_game_by_match_number(match_number)
        except StorageUnavailableError as e:
            logger.error(f"complete_game_by_match_number failed: {e}")
            return Result.fail("Storage unavailable", code=error_codes.STORAGE_UNAVAILABLE)
        if game is None:
            return Result.fail(f"Match {match_number} not found", code=error_codes.NOT_FOUND)
        return self.complete_game(game.game_id, team1_score, team2_score, now=now)

    def accept_match_result(self, game_id: str, player_id: str) -> Result:
        result = self._attempt(
            "accept_match_result",
            lambda: self.game_repo.accept_match_result(game_id, player_id),
        )
        if result:
            outcome = result.value
            self.history.record(
                game_id,
                [player_id],
                HistoryEventType.ACCEPT,
                {"all_accepted": outcome.all_accepted},
            )
        return result

    # --- Reads ---

    def get_game(self, game_id: str) -> Result[GameView]:
        result = self._attempt("get_game", lambda: self.game_repo.get_game_view(game_id))
        if result and result.value is None:
            return Result.fail("Game not found", code=error_codes.NOT_FOUND)
        return result

    def get_user_game(self, player_id: str) -> Result:
        """The caller's current game with players and teams, or None."""
        return self._attempt(
            "get_user_game", lambda: self.game_repo.get_active_game_view(player_id)
        )

    def list_active_queues(self) -> Result:
        """Open queues, oldest first, without passwords."""
        result = self._attempt(
            "list_active_queues", lambda: self.game_repo.list_games_by_status(GameStatus.QUEUE)
        )
        if not result:
            return result
        return Result.ok([g.to_public_dict() for g in result.value])

    def describe(self, view: GameView) -> dict[str, Any]:
        """Serializable view of a game with players and teams."""
        data = view.game.to_public_dict(reveal_duration_ms=self.reveal_duration_ms)
        data["players"] = [
            {
                "player_id": p.player_id,
                "username": p.username,
                "team_id": p.team_id,
                "current_elo": p.current_elo,
                "map_selection": p.map_selection,
                "accepted_match_result": p.accepted_match_result,
                "elo_change_win": p.elo_change_win,
                "elo_change_loss": p.elo_change_loss,
                "elo_change": p.elo_change,
                "is_host": p.player_id == view.game.host_player_id,
            }
            for p in view.players
        ]
        data["teams"] = [
            {
                "team_id": t.team_id,
                "team_number": t.team_number,
                "team_name": t.team_name,
                "average_elo": t.average_elo,
            }
            for t in view.teams
        ]
        return data

    def get_player(self, player_id: str, username: str | None = None) -> Result:
        """The player's record and current rating, created at the base rating if unknown."""
        return self._attempt(
            "get_player", lambda: self.player_repo.ensure_player(player_id, username)
        )
