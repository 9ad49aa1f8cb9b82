"""
Periodic sweep that cancels abandoned queues.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from config import COMPLETED_GAME_GRACE_MINUTES, QUEUE_TIMEOUT_MINUTES
from domain.models.game import HistoryEventType
from repositories.errors import StorageUnavailableError
from repositories.interfaces import IGameRepository
from services.history_service import HistoryService
from services.interfaces import IQueueCleanupService

logger = logging.getLogger("matchmaker.services.cleanup")


@dataclass
class CleanupReport:
    """Summary of one sweep."""

    scanned: int = 0
    expired_game_ids: list[str] = field(default_factory=list)
    skipped: int = 0
    failed: int = 0
    released_slots: int = 0

    @property
    def expired(self) -> int:
        return len(self.expired_game_ids)

    def to_dict(self) -> dict:
        return {
            "scanned": self.scanned,
            "expired": self.expired,
            "expired_game_ids": list(self.expired_game_ids),
            "skipped": self.skipped,
            "failed": self.failed,
            "released_slots": self.released_slots,
        }


class QueueCleanupService(IQueueCleanupService):
    """
    Cancels queues with no activity for timeout_minutes.

    A queue's last activity is its updated_at, which creation, joins and
    leaves all advance. Each cancellation is conditional on the queue still
    being idle, so a queue touched after the scan is left alone. Lobbies and
    later states are never touched.
    """

    def __init__(
        self,
        game_repo: IGameRepository,
        history: HistoryService,
        timeout_minutes: int = QUEUE_TIMEOUT_MINUTES,
        completed_grace_minutes: int = COMPLETED_GAME_GRACE_MINUTES,
        clock: Callable[[], float] = time.time,
    ):
        self.game_repo = game_repo
        self.history = history
        self.timeout_minutes = timeout_minutes
        self.completed_grace_minutes = completed_grace_minutes
        self.clock = clock

    def run(self, now: int | None = None) -> CleanupReport:
        """
        Perform one sweep.

        Raises:
            StorageUnavailableError: If the stale-queue scan itself cannot run
        """
        now = int(self.clock()) if now is None else now
        cutoff = now - self.timeout_minutes * 60
        report = CleanupReport()

        stale = self.game_repo.find_stale_queues(cutoff)
        report.scanned = len(stale)

        for game in stale:
            try:
                members = self.game_repo.cancel_stale_queue(game.game_id, cutoff, now)
            except StorageUnavailableError as e:
                logger.error(f"Could not cancel stale queue {game.game_id}: {e}")
                report.failed += 1
                continue

            if members is None:
                logger.debug(f"Queue {game.game_id} changed since scan, skipping")
                report.skipped += 1
                continue

            report.expired_game_ids.append(game.game_id)
            joiners = [m for m in members if m != game.host_player_id]
            logger.info(
                f"Cancelled stale queue {game.game_id} (#{game.match_number}), "
                f"idle since {game.updated_at}, {len(members)} players"
            )
            self.history.record(
                game.game_id,
                members,
                HistoryEventType.TIMEOUT,
                {
                    "game_mode": game.game_mode.value,
                    "map_selection_mode": game.map_selection_mode.value,
                    "queue_duration_minutes": round((now - game.start_time) / 60),
                    "reason": "inactivity_timeout",
                },
                per_player={
                    m: (
                        {"is_host": True, "joiner_count": len(joiners)}
                        if m == game.host_player_id
                        else {"is_host": False, "host_player_id": game.host_player_id}
                    )
                    for m in members
                },
                now=now,
            )

        try:
            report.released_slots = self.game_repo.release_completed_games(
                now - self.completed_grace_minutes * 60
            )
        except StorageUnavailableError as e:
            logger.error(f"Could not release completed games: {e}")
            report.failed += 1

        if report.expired or report.released_slots or report.failed:
            logger.info(f"Queue cleanup finished: {report.to_dict()}")
        else:
            logger.debug(f"Queue cleanup finished, {report.scanned} stale queues")
        return report
