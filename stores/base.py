import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

from core.errors import StorageFault
from db_init import init_database

logger = logging.getLogger(__name__)


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class SQLiteStore:
    """
    Base for the SQLite-backed stores.
    Thread-safe (one connection per call behind a shared lock) and
    creates/migrates the schema on first use.
    """

    _lock = threading.RLock()

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = init_database(db_path)

    def _get_conn(self):
        """Return a new SQLite connection with foreign keys enabled."""
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    @contextmanager
    def _session(self):
        """One transaction: commits on success, rolls back on any error.

        sqlite3 errors are re-raised as StorageFault; domain errors such as
        NotFound pass through untouched.
        """
        with self._lock:
            try:
                conn = self._get_conn()
            except sqlite3.Error as e:
                raise StorageFault(f"cannot open {self.db_path}: {e}") from e
            try:
                with conn:
                    yield conn
            except sqlite3.Error as e:
                logger.error(f"{type(self).__name__}: sqlite error: {e}")
                raise StorageFault(str(e)) from e
            finally:
                conn.close()
