import logging
from typing import List

from orbitai.app import OrbitAIApp
from orbitai.local.console.handler import (
    ConsoleParameterSource, display_status, handle_config_command, handle_logs_command,
    handle_push_command, toggle_verbose_logging, print_help,
)

log = logging.getLogger(__name__)


def _report(action: str, error_code) -> None:
    if error_code is None:
        print(f"{action}: OK")
    else:
        print(f"{action}: failed with error {error_code.name} ({int(error_code)})")


def execute_command(app: OrbitAIApp, source: ConsoleParameterSource, command: str, args: List[str]) -> bool:
    """
    Executes a single command from the user.

    :param app: The application control surface.
    :param source: The console parameter source feeding the application.
    :param command: The main command string (e.g., 'start', 'config').
    :param args: A list of arguments for the command.
    :return bool: True if the console should exit, False otherwise.
    """
    log.debug(f"Executing command: {command}, args: {args}")
    command_map = {
        "fetch-start": lambda: _report("Start fetching data", app.start_fetching_data()),
        "fetch-stop": lambda: _report("Stop fetching data", app.stop_fetching_data()),
        "start": lambda: _report("Start learning", app.start_learning()),
        "stop": lambda: _report("Stop learning", app.stop_learning(requested_by_user=True)),
        "status": lambda: display_status(app),
        "push": lambda: handle_push_command(source, args),
        "config": lambda: handle_config_command(args),
        "logs": lambda: handle_logs_command(args),
        "verbose": toggle_verbose_logging,
        "help": print_help,
    }

    if command == "exit":
        if not app.closed.is_set():
            app.on_close()
        return True

    if command in command_map:
        command_map[command]()
    else:
        log.info(f"Unknown command: '{command}'. Type 'help' for a list of commands.")

    return app.closed.is_set()
