import sys
import logging
from typing import List

from orbitai.local.config import effective_settings as config
from orbitai.log.handler import SQLiteHandler, LokiHandler

CONSOLE_FORMAT = '%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s'


class MainFormatter(logging.Formatter):
    """Formats application records, and prints learning process output as it came."""

    def __init__(self) -> None:
        super().__init__(CONSOLE_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        if record.name.startswith('proc.'):
            return record.getMessage()
        return super().format(record)


def _build_handlers(console_level: int, db_logging: bool) -> List[logging.Handler]:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(MainFormatter())
    handlers: List[logging.Handler] = [console_handler]

    if db_logging:
        try:
            sqlite_handler = SQLiteHandler(
                db_path=config.LOG_DB_PATH,
                buffer_size=config.LOG_BUFFER_SIZE,
                flush_interval=config.LOG_BUFFER_FLUSH_INTERVAL,
                max_entries=config.MAX_LOG_ENTRIES,
                prune_interval=config.LOG_DB_PRUNE_INTERVAL,
            )
            sqlite_handler.setLevel(logging.DEBUG)
            handlers.append(sqlite_handler)
        except Exception as e:
            print(f"Failed to initialize SQLite logging handler, logging to DB is disabled: {e}", file=sys.stderr)

    if config.LOKI_ENABLED:
        loki_handler = LokiHandler(
            url=config.LOKI_URL,
            org_id=config.LOKI_ORG_ID,
            flush_interval=config.LOG_BUFFER_FLUSH_INTERVAL,
        )
        # DEBUG records stay on board.
        loki_handler.setLevel(logging.INFO)
        handlers.append(loki_handler)

    return handlers


def setup_logging(console_level: int = logging.INFO, db_logging: bool = True) -> None:
    """
    Configures the root logger: console output, the on-board SQLite log store
    and, when LOKI_ENABLED, Grafana Loki. Previously installed handlers are
    closed first so that calling it twice does not duplicate output.

    :param console_level: The logging level for the console output.
    :param db_logging: Whether log records are also stored in the log database.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    for handler in _build_handlers(console_level, db_logging):
        root_logger.addHandler(handler)

    if config.LOKI_ENABLED:
        root_logger.info(f"Grafana Loki logging enabled for {config.LOKI_URL}")
    logging.getLogger(__name__).debug(f"Logging configured, console level {logging.getLevelName(console_level)}")
