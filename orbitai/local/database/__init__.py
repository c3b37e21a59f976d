"""
This module initializes the local database management system.
It exposes the database manager for the application log store.
"""

from .log import LogDBManager

__all__ = ["LogDBManager"]
