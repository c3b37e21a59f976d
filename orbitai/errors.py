"""
Error taxonomy of the OrbitAI application.

Errors that block a state transition are raised as exceptions and turned into
an ErrorCode at the control surface (see orbitai.app). Codes that never abort
an operation (send failures, forced kills) are only logged.
"""

import enum


class ErrorCode(enum.IntEnum):
    """Numeric codes returned to the host by the control surface."""
    # Learning
    ALREADY_RUNNING = 10
    PROCESS_START_FAILED = 11
    CONNECT_FAILED = 13
    SEND_FAILURE = 14
    FORCED_KILL = 15
    EXPORT_FAILED = 20
    # Data
    PARAMS_FILE_UNREADABLE = 1
    PARAMS_FILE_EMPTY = 2
    PARAMETER_SOURCE_ERROR = 3
    DATA_LOG_OPEN_FAILED = 4
    DATA_LOG_CLOSE_FAILED = 5
    PARAMETER_LOOKUP = 6


class OrbitAIError(Exception):
    """Base class for every error raised by the application."""
    code = None

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class AlreadyRunningError(OrbitAIError):
    """A learning session or learning process is already active."""
    code = ErrorCode.ALREADY_RUNNING


class ProcessStartError(OrbitAIError):
    """The learning executable could not be launched."""
    code = ErrorCode.PROCESS_START_FAILED


class ConnectError(OrbitAIError):
    """The TCP connection to the learning process failed."""
    code = ErrorCode.CONNECT_FAILED


class ExportError(OrbitAIError):
    """Models or logs could not be copied to the export directory."""
    code = ErrorCode.EXPORT_FAILED


class ParameterFileError(OrbitAIError):
    """The parameters-to-enable file could not be read."""
    code = ErrorCode.PARAMS_FILE_UNREADABLE


class ParameterLookupError(OrbitAIError, KeyError):
    """Unknown parameter name. Internal to the parameter store."""
    code = ErrorCode.PARAMETER_LOOKUP

    def __str__(self) -> str:
        return self.message
