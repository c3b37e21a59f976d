"""
Monitoring and control surface of the OrbitAI application.

The host middleware (or the console) only talks to OrbitAIApp: it forwards
pushed parameter values to the data handler and maps the start/stop actions
onto the learning session, turning exceptions into error codes.
"""
import logging
import threading
from typing import Any, Callable, Optional

from orbitai.data import DataHandler, DataLogger, ParameterSource, ParameterStore
from orbitai.errors import ErrorCode, OrbitAIError
from orbitai.learning import Exporter, LearningSession, SessionConfig, SessionState
from orbitai.learning.channel import CommandChannel
from orbitai.learning.process_utils import ChildProcessSupervisor

log = logging.getLogger(__name__)

SessionFactory = Callable[[ParameterStore, SessionConfig, Callable[[], None]], LearningSession]


class OrbitAIApp:
    """
    Owns the parameter store for the whole application lifetime and one
    learning session at a time. Every public method is safe to call from any
    thread except the learning loop itself.
    """

    def __init__(
        self,
        config: Any,
        source: ParameterSource,
        session_factory: Optional[SessionFactory] = None,
        close_callback: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        :param config: The merged application settings.
        :param source: The host pushing parameter values.
        :param session_factory: Builds learning sessions, mainly for tests.
        :param close_callback: Called once the application closed itself.
        """
        self.config = config
        self.store = ParameterStore(config.PARAMETER_NAMES, config.PARAMS_DEFAULT_VALUE)
        self.data_logger = DataLogger(self.store, config.DATA_DIR, float(config.DATA_LOG_MIN_INTERVAL))
        self.data_handler = DataHandler(self.store, self.data_logger, source, config.PARAMS_TO_ENABLE_FILE)
        self.session_factory = session_factory or self._default_session_factory
        self.close_callback = close_callback
        self.session: Optional[LearningSession] = None
        self.closed = threading.Event()
        self._closing = False
        self._lock = threading.Lock()

    def _default_session_factory(self, store, session_config, on_finished) -> LearningSession:
        return LearningSession(
            store,
            session_config,
            on_experiment_finished=on_finished,
            supervisor=ChildProcessSupervisor(terminate_timeout=self.config.GRACEFUL_SHUTDOWN_TIMEOUT),
            channel=CommandChannel(connect_timeout=self.config.CONNECT_TIMEOUT),
            exporter=Exporter(self.config.EXPORT_LEARNING_DIR, self.config.EXPORT_PREFIX),
        )

    #* --- Data ---
    def start_fetching_data(self) -> Optional[ErrorCode]:
        """Starts fetching data from the supervisor."""
        return self.data_handler.toggle_subscription(True)

    def stop_fetching_data(self) -> Optional[ErrorCode]:
        """Stops fetching data from the supervisor."""
        return self.data_handler.toggle_subscription(False)

    #* --- Learning ---
    def _current_or_new_session(self) -> LearningSession:
        with self._lock:
            session = self.session
            # A session whose learning process survived a failed start is kept
            # so that the next stop can still reach that process.
            if session is None or (session.state is SessionState.IDLE and not session.supervisor.is_alive()):
                session = self.session_factory(self.store, SessionConfig.from_settings(self.config), self._on_experiment_finished)
                self.session = session
            return session

    def start_learning(self) -> Optional[ErrorCode]:
        """
        Starts learning depending on the experiment's mode.

        :return: None if it was successful, otherwise the error code.
        """
        try:
            session = self._current_or_new_session()
            session.start()
        except OrbitAIError as e:
            log.error(f"Couldn't start learning: {e}")
            return e.code
        except ValueError as e:
            log.error(f"Invalid learning configuration: {e}")
            return ErrorCode.PROCESS_START_FAILED
        return None

    def stop_learning(self, requested_by_user: bool = True) -> Optional[ErrorCode]:
        """
        Stops learning and exports the trained models.

        :param requested_by_user: Whether the request comes from an operator.
        :return: None if it was successful, otherwise the error code.
        """
        with self._lock:
            session = self.session
        if session is None:
            log.warning("Didn't stop learning, learning was never started")
            return None

        try:
            session.stop(requested_by_user)
        except OrbitAIError as e:
            log.error(f"Learning stopped with an error: {e}")
            return e.code
        return None

    def _on_experiment_finished(self) -> None:
        log.info("Experiment is over, closing the application")
        self.on_close()

    #* --- Application ---
    def on_close(self) -> bool:
        """
        Stops fetching data and learning. Called when the application closes.
        Only the first call does the work, later or concurrent calls return at once.

        :return: True if everything stopped without error.
        """
        with self._lock:
            if self._closing:
                log.debug("Application is already closing")
                return True
            self._closing = True
            session = self.session

        success = True
        if self.data_logger.is_open and self.stop_fetching_data() is not None:
            success = False

        needs_stop = session is not None and (
            session.state is not SessionState.IDLE or session.supervisor.is_alive()
        )
        if needs_stop and self.stop_learning(requested_by_user=False) is not None:
            success = False

        log.info(f"Closed application successfully: {success}")
        self.closed.set()
        if self.close_callback is not None:
            self.close_callback()
        return success
