"""
Rebuild players.current_elo from the completed game log.

Every rating is reset to the base rating and each decisive completed game is
replayed in match-number order through the live ELO engine.

Usage:
  python recalculate_ratings.py --dry-run
  python recalculate_ratings.py
  python recalculate_ratings.py --db-path path/to/matchmaker.db
"""

from __future__ import annotations

import argparse
import os
import shutil
import sqlite3
import sys
from datetime import datetime

from config import DB_PATH
from infrastructure.service_container import ServiceConfig, ServiceContainer


def _make_backup(db_path: str) -> str:
    """
    Create a timestamped backup next to the db file.
    Returns the backup path.
    """
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    backup_path = f"{db_path}.backup.{ts}"
    shutil.copy2(db_path, backup_path)
    return backup_path


def _fetch_stats(db_path: str) -> dict[str, int]:
    conn = sqlite3.connect(db_path)
    try:
        cursor = conn.cursor()
        cursor.execute("SELECT COUNT(*) FROM players")
        players = cursor.fetchone()[0]
        cursor.execute(
            """
            SELECT COUNT(*) FROM games
            WHERE status = 'completed'
              AND team1_score IS NOT NULL AND team2_score IS NOT NULL
              AND team1_score != team2_score
            """
        )
        decisive = cursor.fetchone()[0]
        return {"players": players, "decisive_games": decisive}
    finally:
        conn.close()


def main(argv: list[str]) -> int:
    parser = argparse.ArgumentParser(description="Recalculate all ELO ratings from completed games.")
    parser.add_argument("--db-path", default=DB_PATH, help="Path to SQLite DB (default: DB_PATH)")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be replayed")
    parser.add_argument("--no-backup", action="store_true", help="Skip the backup copy")
    args = parser.parse_args(argv)

    db_path = args.db_path
    if not os.path.exists(db_path):
        print(f"ERROR: Database file not found: {db_path}", file=sys.stderr)
        return 2

    container = ServiceContainer(ServiceConfig.from_env())
    container.config.db_path = db_path
    container.initialize_sync()

    stats = _fetch_stats(db_path)
    print(f"Players: {stats['players']}")
    print(f"Decisive completed games to replay: {stats['decisive_games']}")

    if args.dry_run:
        print("Dry-run: no changes written.")
        return 0

    if not args.no_backup:
        backup_path = _make_backup(db_path)
        print(f"Backup created: {backup_path}")

    result = container.recalculation_service.recalculate_all()
    if not result:
        print(f"ERROR: {result.error} ({result.error_code})", file=sys.stderr)
        return 1

    print(
        f"Replayed {result.value['games_replayed']} games, "
        f"reset {result.value['players_reset']} players."
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
