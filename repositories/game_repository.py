"""
Repository for games, their players and teams.

Every state-changing method runs inside atomic_transaction() and guards the
status change with a conditional UPDATE whose affected-row count is checked,
so two writers racing on the same game cannot both apply a transition.
"""

import logging
import sqlite3
import time
from collections.abc import Callable

from domain.models.game import (
    OPEN_STATUSES,
    AcceptOutcome,
    CompletionOutcome,
    Game,
    GameMode,
    GamePlayer,
    GameStatus,
    GameTeam,
    GameView,
    JoinOutcome,
    LeaveOutcome,
    MapSelectionMode,
    SelectionOutcome,
)
from domain.models.team import LobbyPlan
from rating_system import EloRatingSystem, MatchRatingResult
from repositories.base_repository import BaseRepository, retry_transient
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
from repositories.interfaces import IGameRepository

logger = logging.getLogger("matchmaker.repositories.games")

LobbyPlanner = Callable[[GameView], LobbyPlan]
MatchRater = Callable[[dict[str, int], dict[str, int]], MatchRatingResult]
MapResolver = Callable[[list[str]], "str | None"]
LeaveMapResolver = Callable[[GameMode, list[str]], "str | None"]


class GameRepository(BaseRepository, IGameRepository):
    """Persistence and atomic transitions for the game lifecycle."""

    def __init__(self, db_path: str, rating_system: EloRatingSystem | None = None, **kwargs):
        super().__init__(db_path, **kwargs)
        self.rating_system = rating_system or EloRatingSystem()

    # --- Row mapping ---

    @staticmethod
    def _row_to_game(row) -> Game:
        return Game(
            game_id=row["id"],
            match_number=row["match_number"],
            game_mode=GameMode(row["game_mode"]),
            map_selection_mode=MapSelectionMode(row["map_selection_mode"]),
            host_player_id=row["host_player_id"],
            max_players=row["max_players"],
            current_players=row["current_players"],
            status=GameStatus(row["status"]),
            start_time=row["start_time"],
            server_id=row["server_id"],
            password=row["password"],
            ranked=bool(row["ranked"]),
            selected_map=row["selected_map"],
            map_selection_complete=bool(row["map_selection_complete"]),
            map_anim_select_start_time=row["map_anim_select_start_time"],
            team1_score=row["team1_score"],
            team2_score=row["team2_score"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            completed_at=row["completed_at"],
        )

    @staticmethod
    def _row_to_player(row) -> GamePlayer:
        return GamePlayer(
            game_id=row["game_id"],
            player_id=row["player_id"],
            joined_at=row["joined_at"],
            team_id=row["team_id"],
            map_selection=row["map_selection"],
            accepted_match_result=bool(row["accepted_match_result"]),
            username=row["username"],
            current_elo=row["current_elo"],
            elo_change_win=row["elo_change_win"],
            elo_change_loss=row["elo_change_loss"],
            elo_change=row["elo_change"],
        )

    @staticmethod
    def _row_to_team(row) -> GameTeam:
        return GameTeam(
            team_id=row["id"],
            game_id=row["game_id"],
            team_number=row["team_number"],
            team_name=row["team_name"],
            average_elo=row["average_elo"],
        )

    # --- Shared helpers (run on an open cursor) ---

    def _fetch_game(self, cursor, game_id: str) -> Game | None:
        cursor.execute("SELECT * FROM games WHERE id = ?", (game_id,))
        row = cursor.fetchone()
        return self._row_to_game(row) if row else None

    def _require_game(self, cursor, game_id: str) -> Game:
        game = self._fetch_game(cursor, game_id)
        if game is None:
            raise GameNotFoundError(f"Game {game_id} not found")
        return game

    def _fetch_players(self, cursor, game_id: str) -> list[GamePlayer]:
        cursor.execute(
            """
            SELECT gp.*, p.username, p.current_elo
            FROM game_players gp
            LEFT JOIN players p ON p.player_id = gp.player_id
            WHERE gp.game_id = ?
            ORDER BY gp.joined_at ASC, gp.rowid ASC
            """,
            (game_id,),
        )
        return [self._row_to_player(row) for row in cursor.fetchall()]

    def _fetch_teams(self, cursor, game_id: str) -> list[GameTeam]:
        cursor.execute(
            "SELECT * FROM game_teams WHERE game_id = ? ORDER BY team_number ASC",
            (game_id,),
        )
        return [self._row_to_team(row) for row in cursor.fetchall()]

    def _fetch_view(self, cursor, game_id: str) -> GameView | None:
        game = self._fetch_game(cursor, game_id)
        if game is None:
            return None
        return GameView(
            game=game,
            players=self._fetch_players(cursor, game_id),
            teams=self._fetch_teams(cursor, game_id),
        )

    @staticmethod
    def _ensure_player_row(cursor, player_id: str, username: str | None, now: int) -> None:
        cursor.execute(
            """
            INSERT INTO players (player_id, username, created_at, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(player_id) DO UPDATE SET
                username = COALESCE(excluded.username, players.username)
            """,
            (player_id, username, now, now),
        )

    @staticmethod
    def _claim_active_slot(cursor, player_id: str, game_id: str, now: int) -> None:
        try:
            cursor.execute(
                "INSERT INTO player_active_games (player_id, game_id, created_at) VALUES (?, ?, ?)",
                (player_id, game_id, now),
            )
        except sqlite3.IntegrityError as e:
            raise AlreadyInGameError(f"Player {player_id} is already in a game") from e

    def _refresh_team_averages(self, cursor, game_id: str) -> None:
        for team in self._fetch_teams(cursor, game_id):
            cursor.execute(
                """
                SELECT p.current_elo
                FROM game_players gp
                JOIN players p ON p.player_id = gp.player_id
                WHERE gp.game_id = ? AND gp.team_id = ?
                """,
                (game_id, team.team_id),
            )
            ratings = [row["current_elo"] for row in cursor.fetchall()]
            cursor.execute(
                "UPDATE game_teams SET average_elo = ? WHERE id = ?",
                (self.rating_system.team_average(ratings), team.team_id),
            )

    @staticmethod
    def _team_ratings(cursor, game_id: str, team_number: int) -> dict[str, int]:
        cursor.execute(
            """
            SELECT gp.player_id, p.current_elo
            FROM game_players gp
            JOIN game_teams gt ON gt.id = gp.team_id
            JOIN players p ON p.player_id = gp.player_id
            WHERE gp.game_id = ? AND gt.team_number = ?
            ORDER BY gp.joined_at ASC, gp.rowid ASC
            """,
            (game_id, team_number),
        )
        return {row["player_id"]: row["current_elo"] for row in cursor.fetchall()}

    def _apply_rating_result(self, cursor, game_id: str, result: MatchRatingResult, now: int):
        changes = {}
        for change in result.all_changes():
            cursor.execute(
                "UPDATE players SET current_elo = ?, updated_at = ? WHERE player_id = ?",
                (change.new_rating, now, change.player_id),
            )
            cursor.execute(
                "UPDATE game_players SET elo_change = ? WHERE game_id = ? AND player_id = ?",
                (change.change, game_id, change.player_id),
            )
            changes[change.player_id] = change.change
        return changes

    # --- Reads ---

    @retry_transient
    def get_game(self, game_id: str) -> Game | None:
        with self.connection() as conn:
            return self._fetch_game(conn.cursor(), game_id)

    @retry_transient
    def get_game_by_match_number(self, match_number: int) -> Game | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM games WHERE match_number = ?", (match_number,))
            row = cursor.fetchone()
            return self._row_to_game(row) if row else None

    @retry_transient
    def get_game_view(self, game_id: str) -> GameView | None:
        with self.connection() as conn:
            return self._fetch_view(conn.cursor(), game_id)

    @retry_transient
    def get_game_players(self, game_id: str) -> list[GamePlayer]:
        with self.connection() as conn:
            return self._fetch_players(conn.cursor(), game_id)

    @retry_transient
    def get_game_teams(self, game_id: str) -> list[GameTeam]:
        with self.connection() as conn:
            return self._fetch_teams(conn.cursor(), game_id)

    @retry_transient
    def get_active_game_id(self, player_id: str) -> str | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT game_id FROM player_active_games WHERE player_id = ?", (player_id,)
            )
            row = cursor.fetchone()
            return row["game_id"] if row else None

    @retry_transient
    def get_active_game_view(self, player_id: str) -> GameView | None:
        """The player's non-terminal (or unaccepted completed) game, read in one snapshot."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT game_id FROM player_active_games WHERE player_id = ?", (player_id,)
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return self._fetch_view(cursor, row["game_id"])

    @retry_transient
    def list_games_by_status(self, status: GameStatus) -> list[Game]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM games WHERE status = ? ORDER BY start_time ASC, match_number ASC",
                (GameStatus(status).value,),
            )
            return [self._row_to_game(row) for row in cursor.fetchall()]

    @retry_transient
    def find_stale_queues(self, cutoff: int) -> list[Game]:
        """Queue games whose last activity is older than cutoff."""
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT * FROM games
                WHERE status = 'queue' AND updated_at < ?
                ORDER BY updated_at ASC
                """,
                (cutoff,),
            )
            return [self._row_to_game(row) for row in cursor.fetchall()]

    # --- Transitions ---

    @retry_transient
    def create_game(
        self,
        game_id: str,
        host_player_id: str,
        game_mode: GameMode,
        map_selection_mode: MapSelectionMode,
        max_players: int,
        now: int,
        server_id: str | None = None,
        password: str | None = None,
        ranked: bool = False,
        host_username: str | None = None,
    ) -> Game:
        """
        Create a queue with the host as its first player.

        Raises:
            AlreadyInGameError: If the host already holds an active game
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            self._ensure_player_row(cursor, host_player_id, host_username, now)
            cursor.execute("SELECT COALESCE(MAX(match_number), 0) + 1 AS next FROM games")
            match_number = cursor.fetchone()["next"]
            cursor.execute(
                """
                INSERT INTO games (
                    id, match_number, game_mode, map_selection_mode, host_player_id,
                    server_id, password, ranked, start_time, max_players,
                    current_players, status, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, 'queue', ?, ?)
                """,
                (
                    game_id,
                    match_number,
                    GameMode(game_mode).value,
                    MapSelectionMode(map_selection_mode).value,
                    host_player_id,
                    server_id,
                    password,
                    1 if ranked else 0,
                    now,
                    max_players,
                    now,
                    now,
                ),
            )
            self._claim_active_slot(cursor, host_player_id, game_id, now)
            cursor.execute(
                "INSERT INTO game_players (game_id, player_id, joined_at) VALUES (?, ?, ?)",
                (game_id, host_player_id, now),
            )
            return self._fetch_game(cursor, game_id)

    @retry_transient
    def join_queue(
        self,
        game_id: str,
        player_id: str,
        now: int,
        plan_lobby: LobbyPlanner,
        password: str | None = None,
        username: str | None = None,
    ) -> JoinOutcome:
        """
        Add a player to a queue; form the lobby in the same transaction when it fills.

        plan_lobby is called with the full game's view and returns the teams,
        projections and (for random-map games) the drawn map to persist.
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            game = self._require_game(cursor, game_id)

            if player_id != game.host_player_id and not game.check_password(password):
                raise BadPasswordError("Incorrect password")

            cursor.execute(
                "SELECT game_id FROM player_active_games WHERE player_id = ?", (player_id,)
            )
            if cursor.fetchone() is not None:
                raise AlreadyInGameError(f"Player {player_id} is already in a game")

            if game.status == GameStatus.LOBBY:
                raise QueueFullError("Game is full")
            if game.status != GameStatus.QUEUE:
                raise InvalidTransitionError(f"Game is {game.status.value}, not accepting players")
            if game.is_full:
                raise QueueFullError("Game is full")

            self._ensure_player_row(cursor, player_id, username, now)
            self._claim_active_slot(cursor, player_id, game_id, now)
            cursor.execute(
                "INSERT INTO game_players (game_id, player_id, joined_at) VALUES (?, ?, ?)",
                (game_id, player_id, now),
            )
            cursor.execute(
                """
                UPDATE games
                SET current_players = current_players + 1, updated_at = ?
                WHERE id = ? AND status = 'queue'
                  AND current_players = ? AND current_players < max_players
                """,
                (now, game_id, game.current_players),
            )
            if cursor.rowcount != 1:
                raise QueueFullError("Game is full")

            lobby_formed = False
            if game.current_players + 1 >= game.max_players:
                self._form_lobby(cursor, game_id, now, plan_lobby)
                lobby_formed = True

            return JoinOutcome(view=self._fetch_view(cursor, game_id), lobby_formed=lobby_formed)

    def _form_lobby(self, cursor, game_id: str, now: int, plan_lobby: LobbyPlanner) -> None:
        view = self._fetch_view(cursor, game_id)
        plan = plan_lobby(view)

        cursor.execute(
            """
            UPDATE games
            SET status = 'lobby', updated_at = ?, selected_map = ?,
                map_selection_complete = ?, map_anim_select_start_time = ?
            WHERE id = ? AND status = 'queue' AND current_players = max_players
            """,
            (
                now,
                plan.selected_map,
                1 if plan.map_selection_complete else 0,
                now * 1000 if plan.map_selection_complete else None,
                game_id,
            ),
        )
        if cursor.rowcount != 1:
            raise InvalidTransitionError("Game already left the queue")

        for team in plan.teams:
            cursor.execute(
                """
                INSERT INTO game_teams (game_id, team_number, team_name, average_elo, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    game_id,
                    team.team_number,
                    team.name,
                    plan.team_averages.get(team.team_number, 0),
                    now,
                ),
            )
            team_row_id = cursor.lastrowid
            for player_id in team.player_ids():
                win_delta, loss_delta = plan.projections.get(player_id, (None, None))
                cursor.execute(
                    """
                    UPDATE game_players
                    SET team_id = ?, elo_change_win = ?, elo_change_loss = ?
                    WHERE game_id = ? AND player_id = ?
                    """,
                    (team_row_id, win_delta, loss_delta, game_id, player_id),
                )

        logger.info(f"Game {game_id} moved to lobby")

    @staticmethod
    def _check_transition(game: Game, target: GameStatus, action: str) -> None:
        if not GameStatus.can_transition(game.status, target):
            raise InvalidTransitionError(f"Cannot {action} a game that is {game.status.value}")

    @retry_transient
    def leave_game(
        self, player_id: str, now: int, resolve: LeaveMapResolver | None = None
    ) -> LeaveOutcome:
        """
        Remove the player from their active game, or disband it if they host it.

        A non-host leaving a lobby keeps the lobby unless their team is left
        empty, in which case the lobby is cancelled. When the remaining
        players of an all-pick lobby have all picked, resolve is called with
        the game mode and the picks and the map is settled in the same
        transaction.

        Raises:
            NotInQueueError: The player has no open game, or it closed first
            InvalidTransitionError: The game is in progress or completed
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT game_id FROM player_active_games WHERE player_id = ?", (player_id,)
            )
            row = cursor.fetchone()
            if row is None:
                raise NotInQueueError(f"Player {player_id} is not in a queue or lobby")
            game_id = row["game_id"]
            game = self._require_game(cursor, game_id)

            if game.status not in OPEN_STATUSES:
                raise InvalidTransitionError(f"Cannot leave a game that is {game.status.value}")

            members = [p.player_id for p in self._fetch_players(cursor, game_id)]
            was_host = player_id == game.host_player_id
            outcome = LeaveOutcome(
                game=game, player_id=player_id, was_host=was_host, members=members
            )

            if was_host:
                self._check_transition(game, GameStatus.CANCELLED, "disband")
                self._cancel_open_game(cursor, game_id, now)
                logger.info(f"Game {game_id} disbanded by host {player_id}")
            else:
                cursor.execute(
                    """
                    UPDATE games
                    SET current_players = current_players - 1, updated_at = ?
                    WHERE id = ? AND status IN ('queue', 'lobby') AND current_players > 0
                    """,
                    (now, game_id),
                )
                if cursor.rowcount != 1:
                    raise NotInQueueError("Game already closed")
                cursor.execute(
                    "DELETE FROM game_players WHERE game_id = ? AND player_id = ?",
                    (game_id, player_id),
                )
                cursor.execute(
                    "DELETE FROM player_active_games WHERE player_id = ? AND game_id = ?",
                    (player_id, game_id),
                )
                logger.info(f"Player {player_id} left game {game_id}")
                if game.status == GameStatus.LOBBY:
                    self._settle_lobby_after_leave(cursor, game, now, resolve, outcome)

            outcome.game = self._fetch_game(cursor, game_id)
            return outcome

    def _cancel_open_game(self, cursor, game_id: str, now: int) -> None:
        cursor.execute(
            """
            UPDATE games SET status = 'cancelled', updated_at = ?
            WHERE id = ? AND status IN ('queue', 'lobby')
            """,
            (now, game_id),
        )
        if cursor.rowcount != 1:
            raise NotInQueueError("Game already closed")
        cursor.execute("DELETE FROM player_active_games WHERE game_id = ?", (game_id,))

    def _settle_lobby_after_leave(
        self,
        cursor,
        game: Game,
        now: int,
        resolve: LeaveMapResolver | None,
        outcome: LeaveOutcome,
    ) -> None:
        game_id = game.game_id
        teams = self._fetch_teams(cursor, game_id)
        players = self._fetch_players(cursor, game_id)
        staffed = {p.team_id for p in players}
        if any(team.team_id not in staffed for team in teams):
            self._check_transition(game, GameStatus.CANCELLED, "cancel")
            self._cancel_open_game(cursor, game_id, now)
            outcome.lobby_cancelled = True
            logger.info(f"Game {game_id} cancelled, a team has no players left")
            return

        self._refresh_team_averages(cursor, game_id)

        if (
            resolve is None
            or game.map_selection_complete
            or game.map_selection_mode != MapSelectionMode.ALL_PICK
        ):
            return
        picks = [p.map_selection for p in players]
        if picks and all(pick is not None for pick in picks):
            self._write_selected_map(cursor, game_id, resolve(game.game_mode, picks), now * 1000)
            outcome.map_resolved = True

    @retry_transient
    def cancel_stale_queue(self, game_id: str, cutoff: int, now: int) -> list[str] | None:
        """
        Cancel a queue that has been idle since before cutoff.

        Returns the member ids when this call performed the cancellation, or
        None when the game was touched, filled or closed in the meantime.
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                UPDATE games SET status = 'cancelled', updated_at = ?
                WHERE id = ? AND status = 'queue' AND updated_at < ?
                """,
                (now, game_id, cutoff),
            )
            if cursor.rowcount != 1:
                return None
            members = [p.player_id for p in self._fetch_players(cursor, game_id)]
            cursor.execute("DELETE FROM player_active_games WHERE game_id = ?", (game_id,))
            return members

    @retry_transient
    def release_completed_games(self, cutoff: int) -> int:
        """Drop active-game rows for games completed before cutoff. Returns rows removed."""
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                DELETE FROM player_active_games
                WHERE game_id IN (
                    SELECT id FROM games
                    WHERE (status = 'completed' AND COALESCE(completed_at, updated_at) < ?)
                       OR status = 'cancelled'
                )
                """,
                (cutoff,),
            )
            return cursor.rowcount

    @retry_transient
    def start_match(self, game_id: str, server_id: str | None, now: int) -> Game:
        """lobby -> in_progress once a map is settled."""
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            game = self._require_game(cursor, game_id)
            self._check_transition(game, GameStatus.IN_PROGRESS, "start")
            cursor.execute(
                """
                UPDATE games
                SET status = 'in_progress', server_id = COALESCE(?, server_id), updated_at = ?
                WHERE id = ? AND status = 'lobby' AND map_selection_complete = 1
                """,
                (server_id, now, game_id),
            )
            if cursor.rowcount != 1:
                raise InvalidTransitionError("Map selection is not complete")
            logger.info(f"Game {game_id} started on server {server_id}")
            return self._fetch_game(cursor, game_id)

    @retry_transient
    def complete_game(
        self,
        game_id: str,
        team1_score: int,
        team2_score: int,
        now: int,
        rate_match: MatchRater,
    ) -> CompletionOutcome:
        """
        in_progress -> completed, applying rating changes exactly once.

        A game that is already completed is returned untouched with applied=False.
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            game = self._require_game(cursor, game_id)
            if game.status == GameStatus.COMPLETED:
                return CompletionOutcome(game=game, applied=False)
            self._check_transition(game, GameStatus.COMPLETED, "complete")

            cursor.execute(
                """
                UPDATE games
                SET status = 'completed', team1_score = ?, team2_score = ?,
                    completed_at = ?, updated_at = ?
                WHERE id = ? AND status = 'in_progress'
                """,
                (team1_score, team2_score, now, now, game_id),
            )
            if cursor.rowcount != 1:
                return CompletionOutcome(game=self._fetch_game(cursor, game_id), applied=False)

            changes = {}
            if team1_score != team2_score:
                team1 = self._team_ratings(cursor, game_id, 1)
                team2 = self._team_ratings(cursor, game_id, 2)
                winners, losers = (team1, team2) if team1_score > team2_score else (team2, team1)
                result = rate_match(winners, losers)
                changes = self._apply_rating_result(cursor, game_id, result, now)
                self._refresh_team_averages(cursor, game_id)

            logger.info(
                f"Game {game_id} completed {team1_score}-{team2_score}, "
                f"{len(changes)} ratings updated"
            )
            return CompletionOutcome(
                game=self._fetch_game(cursor, game_id), applied=True, rating_changes=changes
            )

    @retry_transient
    def accept_match_result(self, game_id: str, player_id: str) -> AcceptOutcome:
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            game = self._require_game(cursor, game_id)
            if game.status != GameStatus.COMPLETED:
                raise InvalidTransitionError(f"Game is {game.status.value}, not completed")
            cursor.execute(
                """
                UPDATE game_players SET accepted_match_result = 1
                WHERE game_id = ? AND player_id = ?
                """,
                (game_id, player_id),
            )
            if cursor.rowcount != 1:
                raise PlayerNotInGameError(f"Player {player_id} is not in game {game_id}")
            cursor.execute(
                "DELETE FROM player_active_games WHERE player_id = ? AND game_id = ?",
                (player_id, game_id),
            )
            cursor.execute(
                """
                SELECT COUNT(*) AS pending FROM game_players
                WHERE game_id = ? AND accepted_match_result = 0
                """,
                (game_id,),
            )
            pending = cursor.fetchone()["pending"]
            return AcceptOutcome(
                game_id=game_id,
                player_id=player_id,
                all_accepted=pending == 0,
                pending_players=pending,
            )

    @retry_transient
    def submit_map_selection(
        self,
        game_id: str,
        player_id: str,
        map_id: str,
        now_ms: int,
        resolve: MapResolver,
    ) -> SelectionOutcome:
        """
        Store a player's pick and resolve the map once the game's rule is met.

        host-pick resolves on the host's pick; all-pick resolves when every
        player has a pick. The pick count is read after the write, inside the
        same transaction.
        """
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            game = self._require_game(cursor, game_id)
            if game.status != GameStatus.LOBBY:
                raise InvalidTransitionError(f"Game is {game.status.value}, not in lobby")
            if game.map_selection_complete:
                raise SelectionCompleteError("Map selection is already complete")

            cursor.execute(
                "UPDATE game_players SET map_selection = ? WHERE game_id = ? AND player_id = ?",
                (map_id, game_id, player_id),
            )
            if cursor.rowcount != 1:
                raise PlayerNotInGameError(f"Player {player_id} is not in game {game_id}")

            cursor.execute(
                "SELECT map_selection FROM game_players WHERE game_id = ? ORDER BY joined_at, rowid",
                (game_id,),
            )
            picks = [row["map_selection"] for row in cursor.fetchall()]
            made = [p for p in picks if p is not None]

            if game.map_selection_mode == MapSelectionMode.HOST_PICK:
                ready, pool = True, [map_id]
            else:
                ready, pool = len(made) == len(picks), made

            if not ready:
                return SelectionOutcome(
                    game=game, selections=len(made), total_players=len(picks), resolved=False
                )

            self._write_selected_map(cursor, game_id, resolve(pool), now_ms)
            return SelectionOutcome(
                game=self._fetch_game(cursor, game_id),
                selections=len(made),
                total_players=len(picks),
                resolved=True,
            )

    @retry_transient
    def set_selected_map(self, game_id: str, map_id: str | None, now_ms: int) -> Game:
        """Resolve selection directly (random-map games)."""
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            game = self._require_game(cursor, game_id)
            if game.status != GameStatus.LOBBY:
                raise InvalidTransitionError(f"Game is {game.status.value}, not in lobby")
            self._write_selected_map(cursor, game_id, map_id, now_ms)
            return self._fetch_game(cursor, game_id)

    @staticmethod
    def _write_selected_map(cursor, game_id: str, map_id: str | None, now_ms: int) -> None:
        cursor.execute(
            """
            UPDATE games
            SET selected_map = ?, map_selection_complete = 1, map_anim_select_start_time = ?
            WHERE id = ? AND status = 'lobby' AND map_selection_complete = 0
            """,
            (map_id, now_ms, game_id),
        )
        if cursor.rowcount != 1:
            raise SelectionCompleteError("Map selection is already complete")
        logger.info(f"Game {game_id} map resolved to {map_id}")

    @retry_transient
    def replay_completed_games(self, base_rating: int, rate_match: MatchRater) -> tuple[int, int]:
        """
        Reset every rating to base_rating and replay decisive completed games in order.

        Returns:
            (games replayed, players reset)
        """
        now = int(time.time())
        with self.atomic_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute("UPDATE players SET current_elo = ?, updated_at = ?", (base_rating, now))
            players_reset = cursor.rowcount
            cursor.execute("UPDATE game_players SET elo_change = NULL")

            cursor.execute(
                """
                SELECT id FROM games
                WHERE status = 'completed'
                  AND team1_score IS NOT NULL AND team2_score IS NOT NULL
                ORDER BY match_number ASC
                """
            )
            game_ids = [row["id"] for row in cursor.fetchall()]

            replayed = 0
            for game_id in game_ids:
                game = self._fetch_game(cursor, game_id)
                if game.team1_score == game.team2_score:
                    continue
                team1 = self._team_ratings(cursor, game_id, 1)
                team2 = self._team_ratings(cursor, game_id, 2)
                if not team1 or not team2:
                    continue
                winners, losers = (
                    (team1, team2) if game.team1_score > game.team2_score else (team2, team1)
                )
                self._apply_rating_result(cursor, game_id, rate_match(winners, losers), now)
                self._refresh_team_averages(cursor, game_id)
                replayed += 1

            return replayed, players_reset
