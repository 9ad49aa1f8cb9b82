"""
Best-effort writer for the game history log.
"""

import logging
import sqlite3

from domain.models.game import HistoryEvent, HistoryEventType
from repositories.errors import StorageUnavailableError
from repositories.interfaces import IHistoryRepository

logger = logging.getLogger("matchmaker.services.history")


class HistoryService:
    """
    Records lifecycle events after the transition they describe has committed.

    A failed write is logged and dropped; it never undoes or fails the
    transition itself.
    """

    def __init__(self, history_repo: IHistoryRepository):
        self.history_repo = history_repo

    def record(
        self,
        game_id: str,
        player_ids: list[str],
        event_type: HistoryEventType,
        event_data: dict | None = None,
        per_player: dict[str, dict] | None = None,
        now: int | None = None,
    ) -> int:
        """
        Append one event per player.

        Args:
            game_id: Game the events belong to
            player_ids: Players to record the event for
            event_type: Kind of event
            event_data: Payload shared by every event
            per_player: Extra payload merged in for specific players
            now: Event timestamp (defaults to the write time)

        Returns:
            Number of events written (0 if the write failed)
        """
        events = []
        for player_id in player_ids:
            data = dict(event_data or {})
            if per_player and player_id in per_player:
                data.update(per_player[player_id])
            events.append(
                HistoryEvent(
                    game_id=game_id,
                    player_id=player_id,
                    event_type=event_type,
                    event_data=data,
                    created_at=now,
                )
            )
        try:
            return self.history_repo.record_events(events)
        except (sqlite3.Error, StorageUnavailableError):
            logger.warning(
                f"Failed to record {event_type.value} history for game {game_id}",
                exc_info=True,
            )
            return 0

    def get_game_events(self, game_id: str) -> list[HistoryEvent]:
        return self.history_repo.get_game_events(game_id)
