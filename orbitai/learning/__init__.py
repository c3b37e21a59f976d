"""
The learning package.
Supervises the external learning process (MochiMochi) and drives it over TCP.

It contains the LearningSession state machine and its collaborators: the
child process supervisor, the command channel and the exporter of trained
models and logs.
"""
from .session import LearningSession, SessionConfig, SessionState, Mode
from .process_utils import ChildProcessSupervisor
from .channel import CommandChannel
from .exporter import Exporter

__all__ = [
    'LearningSession', 'SessionConfig', 'SessionState', 'Mode',
    'ChildProcessSupervisor', 'CommandChannel', 'Exporter',
]
