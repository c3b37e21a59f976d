import sys
import psutil
import logging
import threading
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from orbitai.errors import AlreadyRunningError, ErrorCode, ProcessStartError

log = logging.getLogger(__name__)


#* --- Process Creation ---
def get_executable_path(base_path: Path) -> Path:
    """Returns the platform-specific full path for an executable."""
    return base_path.with_suffix(".exe") if sys.platform == "win32" else base_path

def _get_popen_creation_flags() -> Dict[str, Any]:
    """Returns platform-specific creation flags for subprocess.Popen."""
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NO_WINDOW}
    return {"start_new_session": True}

def _read_pipe(pipe, process_name: str, level: int):
    """Target function for reader threads. Reads and logs lines from a subprocess pipe."""
    proc_logger = logging.getLogger(f"proc.{process_name}")
    try:
        for line_bytes in iter(pipe.readline, b""):
            line = line_bytes.decode("utf-8", errors="replace").strip()
            if not line:
                continue
            proc_logger.log(level, line)
    except (OSError, ValueError) as e:
        proc_logger.debug(f"Pipe reader for {process_name} stream exited: {e}")
    finally:
        pipe.close()

def log_process_output(process: subprocess.Popen, name: str):
    """Starts background threads to consume and log a process's stdout/stderr."""
    if process.stdout:
        threading.Thread(target=_read_pipe, args=(process.stdout, name, logging.INFO), daemon=True, name=f"{name}-stdout").start()
    if process.stderr:
        threading.Thread(target=_read_pipe, args=(process.stderr, name, logging.WARNING), daemon=True, name=f"{name}-stderr").start()


#* --- Process Status & Shutdown ---
def _is_running(proc: psutil.Process) -> bool:
    try:
        return proc.is_running() and proc.status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        return True

def _terminate_processes(processes: List[psutil.Process]) -> None:
    """Sends SIGTERM to all processes."""
    for proc in processes:
        try:
            log.debug(f"Sending SIGTERM to PID {proc.pid}")
            proc.terminate()
        except psutil.NoSuchProcess:
            log.debug(f"Process {proc.pid} no longer exists, skipping termination.")

def _forceful_kill(processes: List[psutil.Process]) -> None:
    """Forcefully kills processes that didn't terminate gracefully."""
    for proc in processes:
        try:
            log.warning(f"Killing stubborn process PID {proc.pid}.")
            proc.kill()
        except psutil.NoSuchProcess:
            continue


class ChildProcessSupervisor:
    """
    Starts, watches and stops the external learning executable.

    Only one process is tracked at a time.
    """

    def __init__(self, name: str = "mochi", terminate_timeout: float = 10) -> None:
        """
        :param name: Logical name of the process, used for its output logger.
        :param terminate_timeout: Seconds to wait after SIGTERM before killing.
        """
        self.name = name
        self.terminate_timeout = terminate_timeout
        self._process: Optional[psutil.Popen] = None

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process is not None else None

    def is_alive(self) -> bool:
        """Non-blocking liveness probe. Zombies count as dead."""
        if self._process is None:
            return False
        if self._process.poll() is not None:
            return False
        return _is_running(self._process)

    def start(self, executable: Path, working_dir: Path, args: Sequence[str] = ()) -> int:
        """
        Launches the learning executable. Returns once launched, not once ready.

        :param executable: Path of the executable, without platform suffix.
        :param working_dir: Working directory of the child.
        :param args: Extra command-line arguments.
        :return: The PID of the child.
        :raises AlreadyRunningError: If the tracked process is still alive.
        :raises ProcessStartError: If the process could not be launched.
        """
        if self.is_alive():
            log.error(f"Couldn't start {self.name}, process is already running (PID {self.pid})")
            raise AlreadyRunningError(f"{self.name} is already running with PID {self.pid}")

        command = [str(get_executable_path(Path(executable))), *[str(arg) for arg in args]]
        log.info(f"Starting process: {self.name}...")
        try:
            process = psutil.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                cwd=str(Path(working_dir)),
                **_get_popen_creation_flags(),
            )
        except (OSError, ValueError, psutil.Error) as e:
            log.critical(f"Failed to start process '{self.name}': {e}", exc_info=True)
            raise ProcessStartError(f"Error while starting {self.name}: {e}") from e

        self._process = process
        log_process_output(process, self.name)
        log.info(f"{self.name.capitalize()} started successfully with PID: {process.pid}")
        return process.pid

    def stop(self, grace_period: float = 0) -> bool:
        """
        Waits for the process to exit on its own, then terminates it and its
        children if still alive.

        :param grace_period: Seconds to wait for a voluntary exit.
        :return: True if the process had to be stopped forcibly.
        """
        process, self._process = self._process, None
        if process is None:
            return False

        try:
            process.wait(timeout=grace_period)
        except psutil.TimeoutExpired:
            pass

        if not _is_running(process) or process.poll() is not None:
            log.info(f"{self.name.capitalize()} process exited with code {process.returncode}")
            return False

        log.warning(
            f"[{ErrorCode.FORCED_KILL.name}] {self.name.capitalize()} process had to be stopped, "
            "\"exit\" command was probably not received"
        )
        try:
            procs = [process] + process.children(recursive=True)
        except psutil.NoSuchProcess:
            procs = [process]

        _terminate_processes(procs)
        _, alive = psutil.wait_procs(procs, timeout=self.terminate_timeout)
        _forceful_kill(alive)
        if alive:
            psutil.wait_procs(alive, timeout=self.terminate_timeout)
        return True

    def process_info(self) -> Optional[Dict[str, Any]]:
        """
        Returns status, CPU and memory usage of the tracked process.

        :return: A dictionary, or None if no process is alive.
        """
        if not self.is_alive():
            return None
        try:
            with self._process.oneshot():
                return {
                    "pid": self._process.pid,
                    "status": self._process.status(),
                    "cpu_percent": self._process.cpu_percent(interval=0.1),
                    "memory_mb": self._process.memory_info().rss / 1024 / 1024,
                }
        except psutil.Error as e:
            log.debug(f"Could not read process information for {self.name}: {e}")
            return None
