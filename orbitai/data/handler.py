import logging
import threading
from pathlib import Path
from typing import Any, Callable, List, Optional, Protocol

from orbitai.data.store import ParameterStore
from orbitai.data.data_logger import DataLogger
from orbitai.errors import ErrorCode, ParameterFileError

log = logging.getLogger(__name__)

DataReceivedListener = Callable[[str, Any], None]


class ParameterSource(Protocol):
    """The host middleware pushing supervisor parameter values."""

    def toggle_generation(self, names: List[str], enabled: bool) -> None:
        """Enables or disables the generation of the given parameters. Raises on failure."""
        ...

    def add_listener(self, listener: DataReceivedListener) -> None:
        """Registers a callback invoked as listener(name, value) on every push."""
        ...


def load_parameters_to_enable(path: Path) -> List[str]:
    """
    Parses the parameters-to-enable file: one line of comma separated names.

    :param path: Path of the file.
    :return: The parameter names, blank entries removed.
    :raises ParameterFileError: If the file can't be read.
    """
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        log.error(f"Error while loading parameters to enable from '{path}': {e}")
        raise ParameterFileError(f"Could not read '{path}': {e}") from e

    names = [name.strip() for name in content.replace("\n", "").split(",")]
    names = [name for name in names if name]
    if not names:
        log.warning(f"Parameters names list read from {path} is empty")
    return names


class DataHandler:
    """
    Receives parameter values pushed by the host, keeps the parameter store
    current and feeds the data logger.
    """

    def __init__(self, store: ParameterStore, data_logger: DataLogger, source: ParameterSource, params_file: Path) -> None:
        self.store = store
        self.data_logger = data_logger
        self.source = source
        self.params_file = Path(params_file)
        self._listener_registered = False
        self._lock = threading.Lock()

    def on_receive(self, name: str, value: Any) -> None:
        """
        Listener for the values pushed by the host.

        :param name: The parameter name.
        :param value: The pushed value, any primitive convertible to float.
        """
        if value is None:
            log.warning(f"Received null value for parameter {name}")
            return

        try:
            number = float(value)
        except (TypeError, ValueError):
            log.warning(f"Received non-numeric value {value!r} for parameter {name}")
            return

        log.debug(f"Received value {number} from supervisor for parameter {name}")
        self.store.set(name, number)
        self.data_logger.on_update()

    def toggle_subscription(self, subscribe: bool) -> Optional[ErrorCode]:
        """
        Enables or disables the generation of our parameters in the host and
        opens or closes the data file accordingly.

        :param subscribe: True to start receiving values, False to stop.
        :return: None if it was successful, otherwise the error code.
        """
        try:
            names = load_parameters_to_enable(self.params_file)
        except ParameterFileError:
            return ErrorCode.PARAMS_FILE_UNREADABLE
        if not names:
            return ErrorCode.PARAMS_FILE_EMPTY

        try:
            self.source.toggle_generation(names, subscribe)
        except Exception as e:
            log.error(f"Error toggling supervisor parameters generation: {e}", exc_info=True)
            return ErrorCode.PARAMETER_SOURCE_ERROR

        if not subscribe:
            if not self.data_logger.close():
                return ErrorCode.DATA_LOG_CLOSE_FAILED
            log.info("Stopped fetching parameters from supervisor")
            return None

        if not self.data_logger.open():
            return ErrorCode.DATA_LOG_OPEN_FAILED

        with self._lock:
            if not self._listener_registered:
                self.source.add_listener(self.on_receive)
                self._listener_registered = True
        log.info("Started fetching parameters from supervisor")
        return None
