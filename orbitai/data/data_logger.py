import time
import logging
import threading
from pathlib import Path
from datetime import datetime
from typing import Callable, IO, Optional

from orbitai.data.store import ParameterStore

log = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def format_timestamp(moment: Optional[datetime] = None) -> str:
    """Returns a 'YYYY-MM-DD_HH-MM-SS' time stamp, for now if no moment is given."""
    return (moment or datetime.now()).strftime(TIMESTAMP_FORMAT)


class DataLogger:
    """
    Appends snapshots of the parameter store to a CSV file, at most once per
    `min_interval` seconds.

    Logging is best effort: every I/O error is logged and swallowed so that
    the ingestion path never fails because of the data file.
    """

    def __init__(
        self,
        store: ParameterStore,
        directory: Path,
        min_interval: float = 4.5,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        :param store: The parameter store to snapshot.
        :param directory: Directory receiving the CSV files.
        :param min_interval: Minimum number of seconds between two lines.
        :param monotonic: Clock used for rate limiting.
        """
        self.store = store
        self.directory = Path(directory)
        self.min_interval = min_interval
        self._monotonic = monotonic
        self._file: Optional[IO[str]] = None
        self._path: Optional[Path] = None
        self._last_write: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def path(self) -> Optional[Path]:
        """Path of the currently open data file."""
        return self._path

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self) -> bool:
        """
        Opens a new data file, creating the containing directory if needed.
        Does nothing if a file is already open.

        :return: True if a file is open after the call, False if an OSError occurred.
        """
        with self._lock:
            if self._file is not None:
                return True

            file_name = "_".join(self.store.names) + f"_{format_timestamp()}.csv"
            path = self.directory / file_name
            try:
                self.directory.mkdir(parents=True, exist_ok=True)
                self._file = path.open("a", encoding="utf-8")
            except OSError as e:
                log.error(f"Couldn't create data file '{path}': {e}")
                return False

            self._path = path
            self._last_write = None
            log.info(f"Logging parameters to '{path}'")
            return True

    def close(self) -> bool:
        """
        Closes the data file. Does nothing if no file is open.

        :return: True if everything went fine, False if an OSError occurred.
        """
        with self._lock:
            if self._file is None:
                return True
            try:
                self._file.close()
            except OSError as e:
                log.warning(f"Error while closing data file '{self._path}': {e}")
                return False
            finally:
                self._file = None
            log.info(f"Closed data file '{self._path}'")
            return True

    def format_line(self) -> str:
        """Formats the current parameter values as one CSV line."""
        snapshot = self.store.snapshot()
        moment = datetime.fromtimestamp(snapshot.timestamp / 1000)
        values = ",".join(str(snapshot[name]) for name in self.store.names)
        return f"{format_timestamp(moment)},{values}\n"

    def on_update(self) -> bool:
        """
        Called after every parameter update. Writes one line if the minimum
        interval elapsed since the previous write.

        :return: True if a line was written.
        """
        with self._lock:
            now = self._monotonic()
            if self._last_write is not None and now - self._last_write < self.min_interval:
                return False

            if self._file is None:
                log.warning("Data file is not open, can't log data")
                return False

            try:
                self._file.write(self.format_line())
                self._file.flush()
            except (OSError, ValueError) as e:
                log.warning(f"Could not write to data file '{self._path}': {e}")
                return False

            self._last_write = now
            return True
