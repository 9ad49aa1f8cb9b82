"""
Repository for the append-only game history log.
"""

import json
import logging
import time

from domain.models.game import HistoryEvent, HistoryEventType
from repositories.base_repository import BaseRepository, retry_transient
from repositories.interfaces import IHistoryRepository

logger = logging.getLogger("matchmaker.repositories.history")


class HistoryRepository(BaseRepository, IHistoryRepository):
    """Appends and reads game_history rows. History never drives logic."""

    @retry_transient
    def record_events(self, events: list[HistoryEvent]) -> int:
        """Append events in one write. Returns the number of rows written."""
        if not events:
            return 0
        now = int(time.time())
        rows = [
            (
                e.game_id,
                e.player_id,
                HistoryEventType(e.event_type).value,
                json.dumps(e.event_data or {}, sort_keys=True),
                e.created_at if e.created_at is not None else now,
            )
            for e in events
        ]
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.executemany(
                """
                INSERT INTO game_history (game_id, player_id, event_type, event_data, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                rows,
            )
            return len(rows)

    @staticmethod
    def _row_to_event(row) -> HistoryEvent:
        return HistoryEvent(
            event_id=row["id"],
            game_id=row["game_id"],
            player_id=row["player_id"],
            event_type=HistoryEventType(row["event_type"]),
            event_data=json.loads(row["event_data"]) if row["event_data"] else {},
            created_at=row["created_at"],
        )

    @retry_transient
    def get_game_events(self, game_id: str) -> list[HistoryEvent]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM game_history WHERE game_id = ? ORDER BY id ASC",
                (game_id,),
            )
            return [self._row_to_event(row) for row in cursor.fetchall()]

    @retry_transient
    def get_player_events(self, player_id: str, limit: int = 50) -> list[HistoryEvent]:
        with self.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM game_history WHERE player_id = ? ORDER BY id DESC LIMIT ?",
                (player_id, limit),
            )
            return [self._row_to_event(row) for row in cursor.fetchall()]
