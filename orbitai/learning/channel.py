import time
import socket
import logging
from typing import Optional

from orbitai.errors import ConnectError, ErrorCode

log = logging.getLogger(__name__)


class CommandChannel:
    """
    TCP client sending plain text commands to the learning process.

    The protocol is one-directional: commands are written as raw bytes with
    no delimiter and nothing is ever read back. A command counts as delivered
    when the write raised no error.
    """

    def __init__(self, connect_timeout: float = 5.0) -> None:
        self.connect_timeout = connect_timeout
        self._sock: Optional[socket.socket] = None

    @property
    def is_connected(self) -> bool:
        return self._sock is not None

    def connect(self, address: str, port: int, readiness_delay: float = 0) -> None:
        """
        Waits for the learning process to bind its socket, then connects to it.
        The delay is a fixed wait, readiness is not polled.

        :param address: Host of the learning process.
        :param port: TCP port of the learning process.
        :param readiness_delay: Seconds to wait before connecting.
        :raises ConnectError: If already connected, or on refusal or timeout.
        """
        if self._sock is not None:
            log.error("Couldn't connect to learning process, connection is already opened")
            raise ConnectError("Connection to the learning process is already opened")

        if readiness_delay > 0:
            time.sleep(readiness_delay)

        try:
            self._sock = socket.create_connection((address, port), timeout=self.connect_timeout)
        except OSError as e:
            log.error(f"Error while connecting to learning process at {address}:{port}: {e}")
            raise ConnectError(f"Could not connect to {address}:{port}: {e}") from e

        log.info(f"Connected to learning process at {address}:{port}")

    def send(self, command: str) -> bool:
        """
        Sends a command. Failures are logged and do not close the channel.

        :param command: The command text.
        :return: True if the bytes were written without error.
        """
        if self._sock is None:
            log.warning(f"Not connected to learning process, dropping command: {command}")
            return False

        try:
            self._sock.sendall(command.encode("utf-8"))
        except OSError as e:
            log.error(f"[{ErrorCode.SEND_FAILURE.name}] Error sending '{command}' command to learning process: {e}")
            return False

        log.info(f"Sent command to learning process: {command}")
        return True

    def close(self) -> None:
        """Closes the connection. Does nothing if already closed."""
        sock, self._sock = self._sock, None
        if sock is None:
            log.debug("Connection to learning process was already closed")
            return
        try:
            sock.close()
            log.info("Disconnected from learning process")
        except OSError as e:
            log.error(f"Error while disconnecting from learning process: {e}")
