import logging
import threading
from typing import Any, Callable, List
from orbitai.local.config import effective_settings as config
from orbitai.local.database import LogDBManager

log = logging.getLogger(__name__)


class ConsoleParameterSource:
    """
    Parameter source used when the application runs from the console without
    a host middleware: values are pushed by hand with the 'push' command.
    """

    def __init__(self) -> None:
        self.enabled: List[str] = []
        self._listeners: List[Callable[[str, Any], None]] = []
        self._lock = threading.Lock()

    def toggle_generation(self, names: List[str], enabled: bool) -> None:
        with self._lock:
            self.enabled = list(names) if enabled else []
        log.info(f"Parameters generation {'enabled' if enabled else 'disabled'} for {', '.join(names)}")

    def add_listener(self, listener: Callable[[str, Any], None]) -> None:
        with self._lock:
            self._listeners.append(listener)

    def push(self, name: str, value: Any) -> bool:
        """Dispatches a value to every listener if its generation is enabled."""
        with self._lock:
            if name not in self.enabled:
                return False
            listeners = list(self._listeners)
        for listener in listeners:
            listener(name, value)
        return True


def display_status(app) -> None:
    """Displays the learning session state, the learning process usage and the data logging state."""
    print("\n--- Application Status ---")
    session = app.session
    if session is None:
        print("  Learning      : never started")
    else:
        print(f"  Learning      : {session.state.value.upper()} ({session.config.mode.value} mode)")
        print(f"  Iterations    : {session.remaining_iterations} remaining")
        info = session.supervisor.process_info()
        if info:
            print(f"  Process       : PID {info['pid']:<8} | Status: {info['status'].upper()} | CPU: {info['cpu_percent']:.1f}% | MEM: {info['memory_mb']:.1f} MB")
        else:
            print("  Process       : STOPPED")

    if app.data_logger.is_open:
        print(f"  Data logging  : ON ({app.data_logger.path})")
    else:
        print("  Data logging  : OFF")

    snapshot = app.store.snapshot()
    print("  Parameters    :")
    for name, value in snapshot.values.items():
        print(f"    {name:<10} = {value:.4f}")
    print("-" * 26 + "\n")


def handle_push_command(source: ConsoleParameterSource, args: List[str]) -> None:
    """Handles 'push NAME VALUE', injecting a value as if pushed by the host."""
    if len(args) != 2:
        print("Usage: push <PARAMETER_NAME> <VALUE>")
        return
    name, value = args[0].upper(), args[1]
    if not source.push(name, value):
        print(f"Parameter '{name}' is not being fetched. Run 'fetch-start' first.")


def _config_show() -> None:
    """Displays the current modifiable configuration settings."""
    print("\n--- Current Application Configuration ---")
    for key, value in config.modifiable_settings().items():
        print(f"  {key} = {value}")
    print("---")
    print("Use 'config set <KEY> <VALUE>' to change a setting.")
    print("Changes apply to the next learning session.")
    print("---------------------------------------\n")

def _config_set(args: List[str]) -> None:
    if len(args) < 2:
        print("Usage: config set <SETTING_NAME> <VALUE>")
        return

    key, value_str = args[0].upper(), " ".join(args[1:])
    success, message = config.update_setting(key, value_str)
    print(message if success else f"Error: {message}")

def _config_help() -> None:
    print("\nConfig Command Help:")
    print("  config show                - Display all modifiable settings.")
    print("  config set KEY VALUE       - Change a setting for the next learning session.")
    print("  config help                - Show this help message.")

def handle_config_command(args: List[str]) -> None:
    """
    Handles all sub-commands for the 'config' command-line interface.

    :param args: A list of string arguments following the 'config' command.
    """
    sub_command = args[0].lower() if args else "show"

    if sub_command == "show":
        _config_show()
    elif sub_command == "set":
        _config_set(args[1:])
    elif sub_command == "help":
        _config_help()
    else:
        print(f"Unknown config sub-command: '{sub_command}'. Type 'config help' for available commands.")


def handle_logs_command(args: List[str]) -> None:
    """Prints the last N entries of the log database (default LOG_HISTORY_COUNT)."""
    try:
        count = int(args[0]) if args else config.LOG_HISTORY_COUNT
    except ValueError:
        print("Usage: logs [COUNT]")
        return

    log_db = LogDBManager(config.LOG_DB_PATH)
    if not config.LOG_DB_PATH.exists():
        print("No log database found.")
        return

    print(f"\n--- Displaying last {count} log entries ---")
    for log_entry in log_db.fetch_last_entries(count, config.VERBOSE_LOGGING):
        print(log_entry.message)
    print()


def toggle_verbose_logging() -> None:
    """Toggles verbose (DEBUG level) logging for the console handler."""
    config.VERBOSE_LOGGING = not config.VERBOSE_LOGGING
    new_level = logging.DEBUG if config.VERBOSE_LOGGING else logging.INFO

    root_logger = logging.getLogger()
    found_handler = False
    for handler in root_logger.handlers:
        if type(handler) is logging.StreamHandler:
            handler.setLevel(new_level)
            found_handler = True
            break

    status = "ON" if config.VERBOSE_LOGGING else "OFF"
    if found_handler:
        print(f"Verbose console logging is now {status}.")
    else:
        print("Could not find console handler to modify level.")


def print_help() -> None:
    """Prints the main help text for the console."""
    print("\nAvailable commands:")
    print("  fetch-start            - Start fetching parameters and logging them to CSV.")
    print("  fetch-stop             - Stop fetching parameters.")
    print("  start                  - Start the learning process and the learning loop.")
    print("  stop                   - Stop learning and export models and logs.")
    print("  status                 - Show the learning session and parameters state.")
    print("  push NAME VALUE        - Inject a parameter value as if pushed by the supervisor.")
    print("  config <cmd>           - Manage configuration. Use 'config help' for more details.")
    print("  logs [N]               - Show the last N application log entries.")
    print("  verbose                - Toggle detailed DEBUG log output in the console.")
    print("  exit                   - Stop everything and exit the console.")
    print()
