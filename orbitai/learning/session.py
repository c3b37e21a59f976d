import enum
import time
import logging
import threading
from pathlib import Path
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

from orbitai.data.store import ParameterStore, current_millis, get_hd_camera_label
from orbitai.errors import AlreadyRunningError
from orbitai.learning.channel import CommandChannel
from orbitai.learning.exporter import Exporter, format_export_timestamp
from orbitai.learning.process_utils import ChildProcessSupervisor

log = logging.getLogger(__name__)

RESET_CMD = "reset"
LOAD_CMD = "load"
SAVE_CMD = "save"
EXIT_CMD = "exit"
TRAIN_CMD = "train"
INFER_CMD = "infer"


class Mode(enum.Enum):
    TRAIN = "train"
    INFER = "inference"

    @classmethod
    def parse(cls, value: str) -> "Mode":
        """Parses the configured experiment mode ('train', 'inference' or 'infer')."""
        normalized = str(value).strip().lower()
        if normalized in ("infer", "inference"):
            return cls.INFER
        if normalized == "train":
            return cls.TRAIN
        raise ValueError(f"Unknown experiment mode '{value}'")


class SessionState(enum.Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class SessionConfig:
    """Everything a learning session needs to know, fixed for its lifetime."""
    executable: Path
    working_dir: Path
    models_dir: Path
    logs_dir: Path
    export_root: Path
    photodiode_names: Tuple[str, ...]
    mode: Mode = Mode.TRAIN
    interval: float = 5
    iterations: int = 1000
    address: str = "127.0.0.1"
    port: int = 9999
    connect_delay: float = 3.0
    settle_delay: float = 0.5
    grace_period: float = 1.0
    label_threshold: float = 1.0472

    @classmethod
    def from_settings(cls, config: Any) -> "SessionConfig":
        """Builds a session configuration from the merged application settings."""
        return cls(
            executable=config.MOCHI_EXECUTABLE,
            working_dir=config.MOCHI_DIR,
            models_dir=config.MOCHI_MODELS_DIR,
            logs_dir=config.MOCHI_LOGS_DIR,
            export_root=config.TO_GROUND_DIR,
            photodiode_names=tuple(config.PHOTODIODE_NAMES),
            mode=Mode.parse(config.EXPERIMENT_MODE),
            interval=float(config.LEARNING_INTERVAL),
            iterations=int(config.LEARNING_ITERATIONS),
            address=config.MOCHI_ADDRESS,
            port=int(config.MOCHI_PORT),
            connect_delay=float(config.MOCHI_CONNECT_DELAY),
            settle_delay=float(config.MOCHI_SETTLE_DELAY),
            label_threshold=float(config.PD6_ELEVATION_THRESHOLD),
        )


def format_learn_command(verb: str, label: int, values, timestamp: int) -> str:
    """Formats a train/infer command: '<verb> <label> <v1> ... <vN> <timestamp>'."""
    formatted_values = " ".join(f"{value:.2f}" for value in values)
    return f"{verb} {label} {formatted_values} {timestamp}"


class LearningSession:
    """
    Drives the learning process: launches it, feeds it one command per
    interval from a background thread and shuts it down.

    The loop ends either when the iterations are exhausted or when stop() is
    requested. In the first case the loop thread tears the session down itself
    and then calls `on_experiment_finished`; in the second case the caller of
    stop() does the teardown once the loop thread has finished.
    """

    def __init__(
        self,
        store: ParameterStore,
        config: SessionConfig,
        on_experiment_finished: Optional[Callable[[], None]] = None,
        supervisor: Optional[ChildProcessSupervisor] = None,
        channel: Optional[CommandChannel] = None,
        exporter: Optional[Exporter] = None,
    ) -> None:
        self.store = store
        self.config = config
        self.on_experiment_finished = on_experiment_finished
        self.supervisor = supervisor or ChildProcessSupervisor()
        self.channel = channel or CommandChannel()
        self.exporter = exporter or Exporter()

        self._lock = threading.Lock()
        self._state_changed = threading.Condition(self._lock)
        self._state = SessionState.IDLE
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._remaining = 0
        self._last_timestamp: Optional[int] = None

    def _set_state(self, state: SessionState) -> None:
        # Callers hold self._lock.
        self._state = state
        self._state_changed.notify_all()

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def remaining_iterations(self) -> int:
        with self._lock:
            return self._remaining

    @property
    def last_timestamp(self) -> Optional[int]:
        """Time stamp of the last data set sent to the learning process."""
        with self._lock:
            return self._last_timestamp

    #* --- Start ---
    def start(self) -> None:
        """
        Launches the learning process, connects to it and starts the learning loop.
        A stop() received meanwhile shuts the process down instead, and start()
        returns with the session back to IDLE.

        :raises AlreadyRunningError: If a session or a learning process is active.
        :raises ProcessStartError: If the learning process could not be launched.
        :raises ConnectError: If the connection failed. The learning process is
            left running until the next stop().
        """
        with self._lock:
            if self._state is not SessionState.IDLE:
                log.error(f"Couldn't start learning, session is {self._state.value}")
                raise AlreadyRunningError(f"Learning session is {self._state.value}")
            self._stop_event = threading.Event()
            self._set_state(SessionState.STARTING)

        config = self.config
        try:
            self.supervisor.start(config.executable, config.working_dir, [str(config.port)])
            self.channel.connect(config.address, config.port, config.connect_delay)
        except Exception:
            with self._lock:
                self._set_state(SessionState.IDLE)
            raise

        with self._lock:
            cancelled = self._stop_event.is_set()
            if not cancelled:
                self._remaining = config.iterations
                self._last_timestamp = None
                self._thread = threading.Thread(target=self._run, name="LearningLoopThread", daemon=True)
                self._set_state(SessionState.RUNNING)
                self._thread.start()

        if cancelled:
            log.info("Learning stopped while starting, shutting the learning process down")
            try:
                self.channel.close()
                self.supervisor.stop()
            finally:
                with self._lock:
                    self._set_state(SessionState.IDLE)
            return
        log.info(f"Learning started in {config.mode.value} mode: {config.iterations} iterations every {config.interval}s")

    #* --- Learning loop ---
    def _keep_running(self, stop_event: threading.Event) -> bool:
        with self._lock:
            return not stop_event.is_set() and self._remaining > 0

    def _run(self) -> None:
        log.info("Learning thread started")
        stop_event = self._stop_event

        self.channel.send(RESET_CMD if self.config.mode is Mode.TRAIN else LOAD_CMD)

        while self._keep_running(stop_event):
            if stop_event.wait(self.config.interval):
                log.info("Learning thread interrupted between two iterations")
                break
            try:
                self._send_learn_command()
            except Exception as e:
                log.error(f"Learning iteration failed: {e}", exc_info=True)

        self._send_finishing_commands()

        with self._lock:
            completed = not stop_event.is_set()
            if completed:
                self._set_state(SessionState.STOPPING)

        if completed:
            log.info("All learning iterations done, experiment is over")
            try:
                self._teardown()
            except Exception as e:
                log.error(f"Error while finishing the learning session: {e}")
            if self.on_experiment_finished is not None:
                try:
                    self.on_experiment_finished()
                except Exception as e:
                    log.error(f"Experiment finished callback failed: {e}", exc_info=True)

        log.info("Learning thread stopped")

    def _send_learn_command(self) -> None:
        """Sends one train/infer command built from the current photodiode values."""
        names = self.config.photodiode_names
        snapshot = self.store.snapshot(names)
        values = [snapshot[name] for name in names]
        label = get_hd_camera_label(values[-1], self.config.label_threshold)
        verb = INFER_CMD if self.config.mode is Mode.INFER else TRAIN_CMD

        with self._lock:
            self._remaining -= 1
            self._last_timestamp = snapshot.timestamp

        self.channel.send(format_learn_command(verb, label, values, snapshot.timestamp))

    def _send_finishing_commands(self) -> None:
        # Gives the learning process time to save before it is asked to exit.
        self.channel.send(SAVE_CMD)
        time.sleep(self.config.settle_delay)
        self.channel.send(EXIT_CMD)
        time.sleep(self.config.settle_delay)

    #* --- Stop ---
    def stop(self, requested_by_user: bool = True) -> None:
        """
        Stops the learning loop, the learning process and exports the
        learning data. Blocks until the loop has sent its last commands.

        :param requested_by_user: False when the stop comes from the application
            itself (e.g. on close) rather than from an operator.
        :raises ExportError: If the export failed. The session is stopped anyway.
        """
        interrupted_start = False
        with self._lock:
            state = self._state
            thread = self._thread
            if state is SessionState.RUNNING:
                self._set_state(SessionState.STOPPING)
                self._stop_event.set()
            elif state is SessionState.STARTING:
                # start() sees the request once connected and shuts the process down itself.
                self._stop_event.set()
                self._state_changed.wait_for(lambda: self._state is not SessionState.STARTING)
                state = self._state
                interrupted_start = True

        if state is SessionState.IDLE:
            if interrupted_start:
                log.info("Learning stopped before it started")
            else:
                log.warning("Didn't stop learning, no learning session is running")
            if self.supervisor.is_alive():
                log.warning("Stopping learning process left running by a failed start")
                self.channel.close()
                self.supervisor.stop()
            return

        if state is not SessionState.RUNNING:
            log.warning(f"Didn't stop learning, session is already {state.value}")
            if state is SessionState.STOPPING and thread is not None and thread is not threading.current_thread():
                thread.join()
            return

        origin = "user" if requested_by_user else "application"
        log.info(f"Stopping learning (requested by {origin})")
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._teardown()

    def _teardown(self) -> None:
        try:
            self.channel.close()
            self.supervisor.stop(self.config.grace_period)
            self._export()
        finally:
            with self._lock:
                self._set_state(SessionState.IDLE)
            log.info("Learning session stopped")

    def _export(self) -> None:
        timestamp = self.last_timestamp
        if timestamp is None:
            timestamp = current_millis()
        self.exporter.export(
            self.config.models_dir,
            self.config.logs_dir,
            self.config.export_root,
            format_export_timestamp(timestamp),
        )

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Waits for the learning thread to finish.

        :return: True if no learning thread is alive anymore.
        """
        with self._lock:
            thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()
