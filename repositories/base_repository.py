"""
Base repository with common database operations.
"""

import functools
import logging
import sqlite3
import time
from abc import ABC
from contextlib import contextmanager

from config import STORE_RETRY_DELAYS, STORE_TIMEOUT_SECONDS
from infrastructure.schema_manager import SchemaManager
from repositories.errors import StorageUnavailableError

logger = logging.getLogger("matchmaker.repositories")

_TRANSIENT_MESSAGES = (
    "database is locked",
    "database is busy",
    "database table is locked",
    "unable to open database",
    "disk i/o error",
)


def is_transient_error(exc: Exception) -> bool:
    """Whether a sqlite error is worth retrying."""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return any(fragment in message for fragment in _TRANSIENT_MESSAGES)


def retry_transient(func):
    """
    Retry a repository method on transient storage failures.

    Waits the delays in the repository's retry_delays between attempts and
    raises StorageUnavailableError once they are exhausted. Any other error
    propagates immediately.
    """

    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        delays = list(getattr(self, "retry_delays", STORE_RETRY_DELAYS))
        attempt = 0
        while True:
            try:
                return func(self, *args, **kwargs)
            except sqlite3.OperationalError as e:
                if not is_transient_error(e):
                    raise
                if attempt >= len(delays):
                    logger.error(
                        f"{func.__name__} failed after {attempt + 1} attempts: {e}"
                    )
                    raise StorageUnavailableError(str(e)) from e
                delay = delays[attempt]
                attempt += 1
                logger.warning(
                    f"Transient storage error in {func.__name__} "
                    f"(attempt {attempt}, retrying in {delay}s): {e}"
                )
                time.sleep(delay)

    return wrapper


class BaseRepository(ABC):
    """
    Base class for all repositories.

    Provides common database connection management and utilities.
    """

    # Track DB paths that have already had schema initialization performed
    _schema_initialized_paths = set()

    def __init__(
        self,
        db_path: str,
        timeout_seconds: float = STORE_TIMEOUT_SECONDS,
        retry_delays: list[float] | None = None,
    ):
        """
        Initialize repository with database path.

        Args:
            db_path: Path to SQLite database file
            timeout_seconds: Deadline for acquiring the database lock
            retry_delays: Backoff between retries of transient failures
        """
        self.db_path = db_path
        self.timeout_seconds = timeout_seconds
        self.retry_delays = STORE_RETRY_DELAYS if retry_delays is None else retry_delays
        # Ensure schema is initialized for this database path (idempotent)
        if db_path not in BaseRepository._schema_initialized_paths:
            SchemaManager(db_path).initialize()
            BaseRepository._schema_initialized_paths.add(db_path)

    def get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory enabled."""
        conn = sqlite3.connect(self.db_path, timeout=self.timeout_seconds)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute(f"PRAGMA busy_timeout={int(self.timeout_seconds * 1000)}")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def connection(self):
        """
        Context manager for database connections.

        Automatically commits on success, rolls back on exception,
        and always closes the connection.
        """
        conn = self.get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def atomic_transaction(self):
        """
        Context manager for atomic transactions with immediate write lock.

        Uses BEGIN IMMEDIATE to acquire a write lock immediately, so a
        read-check-write sequence cannot interleave with another writer.

        Usage:
            with self.atomic_transaction() as conn:
                cursor = conn.cursor()
                cursor.execute(...)

        The transaction commits on success and rolls back on exception.
        """
        conn = self.get_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def cursor(self):
        """
        Context manager that yields a cursor with automatic connection management.
        """
        with self.connection() as conn:
            yield conn.cursor()
