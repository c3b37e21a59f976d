import time

import pytest

from orbitai.errors import ConnectError
from orbitai.learning import CommandChannel


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_commands_are_sent_as_raw_bytes(tcp_listener):
    port, received = tcp_listener
    channel = CommandChannel(connect_timeout=2)
    channel.connect("127.0.0.1", port)
    assert channel.is_connected

    assert channel.send("reset")
    assert channel.send("train 1 0.10 0.20 0.30 0.40 0.50 0.60 1700000000000")
    channel.close()

    expected = b"resettrain 1 0.10 0.20 0.30 0.40 0.50 0.60 1700000000000"
    assert _wait_for(lambda: b"".join(received) == expected)


def test_connection_refused_raises(free_port):
    channel = CommandChannel(connect_timeout=1)
    with pytest.raises(ConnectError):
        channel.connect("127.0.0.1", free_port)
    assert not channel.is_connected


def test_connect_twice_raises(tcp_listener):
    port, _ = tcp_listener
    channel = CommandChannel()
    channel.connect("127.0.0.1", port)
    with pytest.raises(ConnectError):
        channel.connect("127.0.0.1", port)
    channel.close()


def test_send_without_connection_fails_quietly():
    channel = CommandChannel()
    assert channel.send("save") is False


def test_close_is_idempotent(tcp_listener):
    port, _ = tcp_listener
    channel = CommandChannel()
    channel.close()
    channel.connect("127.0.0.1", port)
    channel.close()
    channel.close()
    assert not channel.is_connected


def test_send_failure_keeps_channel_open(tcp_listener, caplog):
    port, _ = tcp_listener
    channel = CommandChannel()
    channel.connect("127.0.0.1", port)
    # Writing to a socket closed underneath the channel fails with OSError.
    channel._sock.close()

    assert channel.send("save") is False
    assert channel.is_connected
    assert "SEND_FAILURE" in caplog.text
    channel.close()
    assert not channel.is_connected
