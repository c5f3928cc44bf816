import socket
import threading
import time

import pytest

from radios.rigctl import (
    ConnectionLost,
    ConnectionRefused,
    ConnectionTimeout,
    RigctlConnection,
)


def serve_once(handler):
    """Accept one connection on an ephemeral port and run handler(conn) in a thread."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)

    def run():
        conn, _ = listener.accept()
        with conn:
            handler(conn)
        listener.close()

    threading.Thread(target=run, daemon=True).start()
    return listener.getsockname()[1]


def test_exchange_returns_one_line_response(fake_server) -> None:
    with RigctlConnection(fake_server.host, fake_server.port) as conn:
        assert conn.exchange(b";\\get_freq\n") == "get_freq:;Frequency: 145000000;RPRT 0"
        assert conn.exchange(b";\\set_freq 7123400\n") == "set_freq: 7123400;RPRT 0"
        assert conn.exchange(b";\\get_freq\n") == "get_freq:;Frequency: 7123400;RPRT 0"


def test_exchange_reads_until_rprt_line(fake_server) -> None:
    fake_server.overrides["get_freq"] = "get_freq:\nFrequency: 145000000\nRPRT 0"

    with RigctlConnection(fake_server.host, fake_server.port) as conn:
        assert conn.exchange(b";\\get_freq\n") == "get_freq:\nFrequency: 145000000\nRPRT 0"
        # Nothing left over for the next exchange
        fake_server.overrides.clear()
        assert conn.exchange(b";\\get_mode\n") == "get_mode:;Mode: FM;Passband: 15000;RPRT 0"


def test_exchange_reassembles_split_response() -> None:
    def trickle(conn):
        conn.recv(1024)
        for piece in (b"get_freq:;Freq", b"uency: 145000000;RP", b"RT 0\n"):
            conn.sendall(piece)
            time.sleep(0.02)
        time.sleep(0.2)

    port = serve_once(trickle)
    with RigctlConnection("127.0.0.1", port, timeout=2.0) as conn:
        assert conn.exchange(b";\\get_freq\n") == "get_freq:;Frequency: 145000000;RPRT 0"


def test_timeout_closes_connection(fake_server) -> None:
    fake_server.silent = True
    conn = RigctlConnection.open(fake_server.host, fake_server.port, timeout=0.2)

    t0 = time.monotonic()
    with pytest.raises(ConnectionTimeout):
        conn.exchange(b";\\get_freq\n")

    assert time.monotonic() - t0 < 2.0
    assert not conn.connected
    with pytest.raises(ConnectionLost):
        conn.exchange(b";\\get_freq\n")


def test_partial_response_then_silence_times_out(fake_server) -> None:
    # The RPRT record never arrives
    fake_server.overrides["get_freq"] = "get_freq:;Frequency: 1"

    with RigctlConnection(fake_server.host, fake_server.port, timeout=0.2) as conn:
        with pytest.raises(ConnectionTimeout):
            conn.exchange(b";\\get_freq\n")


def test_peer_close_raises_connection_lost() -> None:
    port = serve_once(lambda conn: conn.recv(1024))

    conn = RigctlConnection.open("127.0.0.1", port, timeout=2.0)
    with pytest.raises(ConnectionLost):
        conn.exchange(b";\\get_freq\n")
    assert not conn.connected


def test_connect_refused(free_port) -> None:
    with pytest.raises(ConnectionRefused):
        RigctlConnection.open("127.0.0.1", free_port, timeout=0.5)


def test_close_is_idempotent(fake_server) -> None:
    conn = RigctlConnection.open(fake_server.host, fake_server.port)
    assert conn.connected
    assert conn.endpoint == f"127.0.0.1:{fake_server.port}"

    conn.close()
    conn.close()
    assert not conn.connected
