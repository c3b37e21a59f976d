import sys
import logging
import threading
from typing import List

import setproctitle

import orbitai.local.console as console
from orbitai.app import OrbitAIApp
from orbitai.learning import SessionState
from orbitai.local.config import effective_settings as config
from orbitai.log.setup import setup_logging

log = logging.getLogger("console")

# Held while a command executes.
CONSOLE_LOCK = threading.Lock()


def run_once(app: OrbitAIApp, source: console.ConsoleParameterSource, argv: List[str]) -> None:
    """Runs a single command given on the command line, then closes the application."""
    command, args = argv[0].lower(), argv[1:]
    if "--verbose" in args:
        args.remove("--verbose")
        console.toggle_verbose_logging()
    console.execute_command(app, source, command, args)
    if command == "start" and app.session is not None and app.session.state is SessionState.RUNNING:
        # Without a prompt to stop it, a one-shot session runs until its last iteration.
        try:
            app.closed.wait()
        except KeyboardInterrupt:
            log.warning("Interrupted, stopping learning")
    if not app.closed.is_set():
        app.on_close()


def run_interactive(app: OrbitAIApp, source: console.ConsoleParameterSource) -> None:
    """Reads commands until 'exit', end of input or the end of the experiment."""
    print("--- OrbitAI Management Console ---")
    print("Type 'help' for a list of commands.")
    print(f"Experiment mode: {config.EXPERIMENT_MODE}, {config.LEARNING_ITERATIONS} iterations every {config.LEARNING_INTERVAL}s")

    while not app.closed.is_set():
        try:
            line = input("> ").strip()
        except (KeyboardInterrupt, EOFError):
            log.warning("Exiting console, stopping everything")
            break
        if not line:
            continue

        command, *args = line.split()
        with CONSOLE_LOCK:
            try:
                if console.execute_command(app, source, command.lower(), args):
                    break
            except Exception as e:
                log.error(f"Command '{command}' failed unexpectedly: {e}", exc_info=True)

    if not app.closed.is_set():
        app.on_close()


def main() -> None:
    """The main entry point for the console application."""
    setproctitle.setproctitle("OrbitAI - Console")
    setup_logging(logging.DEBUG if config.VERBOSE_LOGGING else logging.INFO)

    source = console.ConsoleParameterSource()
    app = OrbitAIApp(config, source)
    if len(sys.argv) > 1:
        run_once(app, source, sys.argv[1:])
    else:
        run_interactive(app, source)


if __name__ == "__main__":
    main()
    print("Exiting console application. See you next time!")
