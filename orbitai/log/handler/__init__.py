"""
Log handlers used by setup_logging: a buffered SQLite store and an
optional Grafana Loki pusher.
"""

from .sql import SQLiteHandler
from .loki import LokiHandler

__all__ = ["SQLiteHandler", "LokiHandler"]
