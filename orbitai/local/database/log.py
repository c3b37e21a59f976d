import time
import sqlite3
import logging
import threading
from pathlib import Path
from contextlib import contextmanager
from collections import namedtuple
from typing import Any, Dict, Generator, List, Sequence

LogEntry = namedtuple('LogEntry', ['timestamp', 'level', 'module', 'message'])
log = logging.getLogger(__name__)

_COLUMNS = ("timestamp", "level", "module", "funcName", "lineno", "message")


class LogDBManager:
    """
    Application log store kept on board in a single SQLite file.

    Storage on the spacecraft is bounded, so the table is capped to a number
    of rows with `prune()` instead of growing until the disk is full.
    """

    def __init__(self, db_path: Path):
        """
        :param db_path: The path to the logging SQLite database file.
        """
        self.db_path = Path(db_path)
        self._lock = threading.Lock()

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        # One short-lived connection per call, serialized across threads.
        with self._lock:
            conn = sqlite3.connect(self.db_path, timeout=10)
            conn.row_factory = sqlite3.Row
            try:
                with conn:
                    yield conn
            finally:
                conn.close()

    def initialize_database(self) -> None:
        """Creates the parent directory and the logs table if needed."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with self._connect() as conn:
                conn.execute('''
                    CREATE TABLE IF NOT EXISTS logs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        timestamp REAL,
                        level TEXT,
                        module TEXT,
                        funcName TEXT,
                        lineno INTEGER,
                        message TEXT
                    )
                ''')
        except sqlite3.Error as e:
            log.critical(f"Could not create log database tables: {e}", exc_info=True)
            raise

    def insert_log_batch(self, log_entries: Sequence[Dict[str, Any]]) -> None:
        """
        Inserts log entries in one transaction.

        :param log_entries: Dictionaries keyed by timestamp, level, module, funcName, lineno and message.
        """
        if not log_entries:
            return
        rows = [tuple(entry[column] for column in _COLUMNS) for entry in log_entries]
        with self._connect() as conn:
            conn.executemany(
                f"INSERT INTO logs ({', '.join(_COLUMNS)}) VALUES ({', '.join('?' * len(_COLUMNS))})",
                rows,
            )

    def count(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM logs").fetchone()[0]

    def prune(self, max_entries: int) -> int:
        """
        Deletes the oldest entries so that at most `max_entries` remain.

        :return: The number of deleted entries.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM logs WHERE id NOT IN (SELECT id FROM logs ORDER BY id DESC LIMIT ?)",
                (max_entries,),
            )
            return cursor.rowcount

    def fetch_last_entries(self, limit: int, include_debug: bool = False) -> List[LogEntry]:
        """
        Fetches the most recent log entries, oldest first.

        :param limit: The maximum number of log entries to retrieve.
        :param include_debug: Whether DEBUG entries are part of the result.
        """
        query = "SELECT timestamp, level, module, message FROM logs"
        if not include_debug:
            query += " WHERE level != 'DEBUG'"
        query += " ORDER BY id DESC LIMIT ?"

        try:
            with self._connect() as conn:
                rows = conn.execute(query, (limit,)).fetchall()
        except sqlite3.Error as e:
            log.error(f"Failed to fetch log entries from database: {e}")
            return []

        entries = []
        for row in reversed(rows):
            moment = time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(row['timestamp']))
            entries.append(LogEntry(
                timestamp=row['timestamp'], level=row['level'], module=row['module'],
                message=f"{moment} - {row['level']:<8} - [{row['module']}] - {row['message']}",
            ))
        return entries
