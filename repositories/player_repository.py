"""
Repository for player records and persistent ratings.
"""

import logging
import time

from domain.models.player import Player
from repositories.base_repository import BaseRepository, retry_transient
from repositories.interfaces import IPlayerRepository

logger = logging.getLogger("matchmaker.repositories.players")


class PlayerRepository(BaseRepository, IPlayerRepository):
    """Reads and writes rows in the players table."""

    @staticmethod
    def _row_to_player(row) -> Player:
        return Player(
            player_id=row["player_id"],
            username=row["username"],
            current_elo=row["current_elo"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @retry_transient
    def ensure_player(self, player_id: str, username: str | None = None) -> Player:
        """Create the player at the base rating if unknown; refresh a provided username."""
        now = int(time.time())
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO players (player_id, username, created_at, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(player_id) DO UPDATE SET
                    username = COALESCE(excluded.username, players.username)
                """,
                (player_id, username, now, now),
            )
            cursor.execute("SELECT * FROM players WHERE player_id = ?", (player_id,))
            return self._row_to_player(cursor.fetchone())

    @retry_transient
    def get_player(self, player_id: str) -> Player | None:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM players WHERE player_id = ?", (player_id,))
            row = cursor.fetchone()
            return self._row_to_player(row) if row else None

    @retry_transient
    def get_ratings(self, player_ids: list[str]) -> dict[str, int]:
        """Current ratings for the given players; unknown players are omitted."""
        if not player_ids:
            return {}
        placeholders = ",".join("?" for _ in player_ids)
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT player_id, current_elo FROM players WHERE player_id IN ({placeholders})",
                tuple(player_ids),
            )
            return {row["player_id"]: row["current_elo"] for row in cursor.fetchall()}
