# tests/conftest.py
import time
import socket
import threading
from pathlib import Path
from typing import List, Optional

import pytest

from orbitai.data import ParameterStore
from orbitai.errors import AlreadyRunningError, ConnectError, ProcessStartError
from orbitai.learning import SessionConfig
from orbitai.settings import PARAMETER_NAMES, PHOTODIODE_NAMES


class FakeSupervisor:
    """Records start/stop calls instead of launching a process."""

    def __init__(self, fail_start: bool = False, stays_alive_after_start: bool = True) -> None:
        self.fail_start = fail_start
        self.stays_alive_after_start = stays_alive_after_start
        self.started: List[list] = []
        self.stopped: List[float] = []
        self.alive = False

    def is_alive(self) -> bool:
        return self.alive

    def start(self, executable, working_dir, args=()) -> int:
        if self.alive:
            raise AlreadyRunningError("learning process is already running")
        if self.fail_start:
            raise ProcessStartError("no such executable")
        self.started.append([str(executable), str(working_dir), *args])
        self.alive = self.stays_alive_after_start
        return 4242

    def stop(self, grace_period: float = 0) -> bool:
        self.stopped.append(grace_period)
        was_alive, self.alive = self.alive, False
        return was_alive

    def process_info(self):
        return None


class RecordingChannel:
    """Keeps every command sent, in order."""

    def __init__(self, fail_connect: bool = False) -> None:
        self.fail_connect = fail_connect
        self.connect_latency = 0.0
        self.sent: List[str] = []
        self.connected_to: Optional[tuple] = None
        self.closed = 0
        self._lock = threading.Lock()

    @property
    def is_connected(self) -> bool:
        return self.connected_to is not None

    def connect(self, address, port, readiness_delay=0) -> None:
        if self.connect_latency:
            time.sleep(self.connect_latency)
        if self.fail_connect:
            raise ConnectError(f"Could not connect to {address}:{port}")
        self.connected_to = (address, port)

    def send(self, command: str) -> bool:
        with self._lock:
            self.sent.append(command)
        return self.is_connected

    def close(self) -> None:
        self.closed += 1
        self.connected_to = None

    def commands(self) -> List[str]:
        with self._lock:
            return list(self.sent)


class RecordingExporter:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.error = error
        self.calls: List[tuple] = []

    def export(self, models_dir, logs_dir, dest_root, timestamp):
        self.calls.append((models_dir, logs_dir, dest_root, timestamp))
        if self.error is not None:
            raise self.error
        return Path(dest_root) / timestamp


@pytest.fixture
def supervisor() -> FakeSupervisor:
    return FakeSupervisor()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def exporter() -> RecordingExporter:
    return RecordingExporter()


@pytest.fixture
def store() -> ParameterStore:
    return ParameterStore(PARAMETER_NAMES, default_value=42.0)


@pytest.fixture
def mochi_dirs(tmp_path: Path) -> dict:
    """A fake MochiMochi install with a trained model and a log file."""
    mochi_dir = tmp_path / "Mochi"
    models = mochi_dir / "models"
    logs = mochi_dir / "logs"
    models.mkdir(parents=True)
    logs.mkdir(parents=True)
    (models / "arow.model").write_text("weights")
    (logs / "training.log").write_text("iteration 1")
    return {"mochi": mochi_dir, "models": models, "logs": logs, "to_ground": tmp_path / "toGround"}


@pytest.fixture
def session_config(mochi_dirs) -> SessionConfig:
    return SessionConfig(
        executable=mochi_dirs["mochi"] / "OrbitAI_Mochi",
        working_dir=mochi_dirs["mochi"],
        models_dir=mochi_dirs["models"],
        logs_dir=mochi_dirs["logs"],
        export_root=mochi_dirs["to_ground"],
        photodiode_names=PHOTODIODE_NAMES,
        interval=0.01,
        iterations=3,
        connect_delay=0,
        settle_delay=0,
        grace_period=0,
    )


@pytest.fixture
def tcp_listener():
    """
    A local TCP server collecting every byte it receives.
    Yields (port, received_chunks).
    """
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    server.settimeout(5)
    received: List[bytes] = []

    def serve():
        try:
            conn, _ = server.accept()
        except OSError:
            return
        with conn:
            while True:
                data = conn.recv(4096)
                if not data:
                    break
                received.append(data)

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    yield server.getsockname()[1], received
    server.close()
    thread.join(timeout=5)


@pytest.fixture
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
