"""
Local package for the OrbitAI application.

This package provides the application-level configuration through the
effective_settings singleton, the log database access layer and the
operator console.
"""

from .config import effective_settings

__all__ = ["effective_settings"]
