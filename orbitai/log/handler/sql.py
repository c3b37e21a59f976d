import sys
import time
import sqlite3
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional
from orbitai.local.database import LogDBManager


class SQLiteHandler(logging.Handler):
    """
    Buffers log records and writes them to the log database in batches.

    A single maintenance thread flushes the buffer every `flush_interval`
    seconds and caps the table to `max_entries` rows every `prune_interval`
    seconds. Records from child processes (`proc.<name>` loggers) are stored
    with the child name as module and the stream as function name.
    """
    def __init__(
        self,
        db_path: Path,
        buffer_size: int = 100,
        flush_interval: float = 10,
        max_entries: int = 200_000,
        prune_interval: float = 3600,
    ):
        """
        :param db_path: The path to the SQLite database file.
        :param buffer_size: Number of buffered records that triggers an immediate flush.
        :param flush_interval: Seconds between two periodic flushes.
        :param max_entries: Number of most recent entries kept by pruning.
        :param prune_interval: Seconds between two pruning passes.
        """
        super().__init__()
        self.db_path = Path(db_path)
        self.buffer_size = buffer_size
        self.flush_interval = flush_interval
        self.max_entries = max_entries
        self.prune_interval = prune_interval
        self._buffer: List[Dict[str, Any]] = []
        self._buffer_lock = threading.Lock()
        self._stop_event = threading.Event()
        self.log_db = LogDBManager(self.db_path)
        self.log_db.initialize_database()
        self._thread: Optional[threading.Thread] = threading.Thread(
            target=self._maintenance, name="SQLiteLogThread", daemon=True,
        )
        self._thread.start()

    def _maintenance(self) -> None:
        next_prune = time.monotonic() + self.prune_interval
        while not self._stop_event.wait(self.flush_interval):
            self.flush()
            if time.monotonic() >= next_prune:
                self.prune()
                next_prune = time.monotonic() + self.prune_interval

    @staticmethod
    def _to_entry(record: logging.LogRecord) -> Dict[str, Any]:
        if record.name.startswith('proc.'):
            module = record.name.split('.', 1)[1]
            func_name = 'stdout' if record.levelno <= logging.INFO else 'stderr'
            lineno = 0
        else:
            module, func_name, lineno = record.module, record.funcName, record.lineno
        return {
            "timestamp": record.created,
            "level": record.levelname,
            "module": module,
            "funcName": func_name,
            "lineno": lineno,
            "message": record.getMessage(),
        }

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = self._to_entry(record)
        except Exception:
            self.handleError(record)
            return
        with self._buffer_lock:
            self._buffer.append(entry)
            full = len(self._buffer) >= self.buffer_size
        if full:
            self.flush()

    def flush(self) -> None:
        """Writes every buffered entry to the database."""
        with self._buffer_lock:
            pending, self._buffer = self._buffer, []
        if not pending:
            return
        try:
            self.log_db.insert_log_batch(pending)
        except sqlite3.Error as e:
            # Not routed through logging, this handler would receive it.
            print(f"Error writing {len(pending)} log entries to '{self.db_path}': {e}", file=sys.stderr)

    def prune(self) -> int:
        """Caps the log table to `max_entries` rows. Returns the number of deleted rows."""
        try:
            return self.log_db.prune(self.max_entries)
        except sqlite3.Error as e:
            print(f"Error pruning log database '{self.db_path}': {e}", file=sys.stderr)
            return 0

    def close(self) -> None:
        """Stops the maintenance thread and writes what is left in the buffer."""
        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self.flush()
        super().close()
