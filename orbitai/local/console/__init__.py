"""
This module initializes the console package, exposing command execution,
the manual parameter source, verbose logging toggling and help.
"""

from .process import execute_command
from .handler import ConsoleParameterSource, toggle_verbose_logging, print_help

__all__ = ["execute_command", "ConsoleParameterSource", "toggle_verbose_logging", "print_help"]
