"""
Schema and migration management for SQLite database.
"""

import logging
import sqlite3

logger = logging.getLogger("matchmaker.schema")


class SchemaManager:
    """
    Owns schema creation and migrations.

    Call initialize() to ensure schema is present and migrations are applied.
    """

    def __init__(self, db_path: str, use_uri: bool = False):
        self.db_path = db_path
        self.use_uri = use_uri

    def initialize(self) -> None:
        """Create base schema and apply migrations."""
        logger.info(f"Initializing database schema: {self.db_path}")
        conn = self._connect()
        try:
            cursor = conn.cursor()
            self._create_base_schema(cursor)
            self._create_schema_migrations_table(cursor)
            self._run_migrations(cursor)
            conn.commit()
        finally:
            conn.close()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, uri=self.use_uri)
        conn.row_factory = sqlite3.Row
        if not self.use_uri:  # Skip WAL for in-memory databases
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA busy_timeout=5000")
        return conn

    def _create_base_schema(self, cursor) -> None:
        # Players and their persistent rating
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS players (
                player_id TEXT PRIMARY KEY,
                username TEXT,
                current_elo INTEGER NOT NULL DEFAULT 1000,
                created_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now')),
                updated_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now'))
            )
            """
        )

        # Games: one row per queue -> lobby -> match lifecycle
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS games (
                id TEXT PRIMARY KEY,
                match_number INTEGER NOT NULL UNIQUE,
                game_mode TEXT NOT NULL,
                map_selection_mode TEXT NOT NULL,
                host_player_id TEXT NOT NULL,
                server_id TEXT,
                password TEXT,
                ranked INTEGER NOT NULL DEFAULT 0,
                start_time INTEGER NOT NULL,
                max_players INTEGER NOT NULL,
                current_players INTEGER NOT NULL DEFAULT 0,
                status TEXT NOT NULL DEFAULT 'queue',
                selected_map TEXT,
                map_selection_complete INTEGER NOT NULL DEFAULT 0,
                map_anim_select_start_time INTEGER,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL,
                CHECK (current_players >= 0 AND current_players <= max_players)
            )
            """
        )

        # Game membership
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS game_players (
                game_id TEXT NOT NULL,
                player_id TEXT NOT NULL,
                team_id INTEGER,
                joined_at INTEGER NOT NULL,
                map_selection TEXT,
                accepted_match_result INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (game_id, player_id),
                FOREIGN KEY (game_id) REFERENCES games(id) ON DELETE CASCADE
            )
            """
        )

    # --- Migration helpers ---

    def _add_column_if_not_exists(self, cursor, table: str, column: str, column_type: str) -> None:
        try:
            cursor.execute(f"ALTER TABLE {table} ADD COLUMN {column} {column_type}")
        except sqlite3.OperationalError:
            pass

    def _create_schema_migrations_table(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                name TEXT PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    def _run_migrations(self, cursor) -> None:
        applied = {row["name"] for row in cursor.execute("SELECT name FROM schema_migrations")}
        for name, action in self._get_migrations():
            if name in applied:
                continue
            logger.info(f"Applying migration: {name}")
            action(cursor)
            cursor.execute(
                "INSERT INTO schema_migrations (name) VALUES (?)",
                (name,),
            )

    def _get_migrations(self):
        return [
            ("create_game_teams_table", self._migration_create_game_teams_table),
            ("create_player_active_games_table", self._migration_create_player_active_games_table),
            ("create_game_history_table", self._migration_create_game_history_table),
            ("add_elo_projection_columns", self._migration_add_elo_projection_columns),
            ("add_game_result_columns", self._migration_add_game_result_columns),
            ("add_game_indexes_v1", self._migration_add_game_indexes_v1),
        ]

    # --- Migrations ---

    def _migration_create_game_teams_table(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS game_teams (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                game_id TEXT NOT NULL,
                team_number INTEGER NOT NULL,
                team_name TEXT NOT NULL,
                average_elo INTEGER NOT NULL DEFAULT 0,
                created_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now')),
                UNIQUE (game_id, team_number),
                FOREIGN KEY (game_id) REFERENCES games(id) ON DELETE CASCADE
            )
            """
        )

    def _migration_create_player_active_games_table(self, cursor) -> None:
        # One row per player: enforces a single non-terminal game per player
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS player_active_games (
                player_id TEXT PRIMARY KEY,
                game_id TEXT NOT NULL,
                created_at INTEGER NOT NULL DEFAULT (strftime('%s', 'now')),
                FOREIGN KEY (game_id) REFERENCES games(id) ON DELETE CASCADE
            )
            """
        )

    def _migration_create_game_history_table(self, cursor) -> None:
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS game_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                game_id TEXT NOT NULL,
                player_id TEXT NOT NULL,
                event_type TEXT NOT NULL,
                event_data TEXT,
                created_at INTEGER NOT NULL
            )
            """
        )

    def _migration_add_elo_projection_columns(self, cursor) -> None:
        self._add_column_if_not_exists(cursor, "game_players", "elo_change_win", "INTEGER")
        self._add_column_if_not_exists(cursor, "game_players", "elo_change_loss", "INTEGER")
        self._add_column_if_not_exists(cursor, "game_players", "elo_change", "INTEGER")

    def _migration_add_game_result_columns(self, cursor) -> None:
        self._add_column_if_not_exists(cursor, "games", "team1_score", "INTEGER")
        self._add_column_if_not_exists(cursor, "games", "team2_score", "INTEGER")
        self._add_column_if_not_exists(cursor, "games", "completed_at", "INTEGER")

    def _migration_add_game_indexes_v1(self, cursor) -> None:
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_games_status ON games(status)")
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_games_status_updated ON games(status, updated_at)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_game_players_player ON game_players(player_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_game_history_game ON game_history(game_id)"
        )
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_player_active_games_game "
            "ON player_active_games(game_id)"
        )
