import socket
import threading
import time

import pytest

from rwdbnet.protocol import (
    MessageType,
    ReadReply,
    Request,
    WriteReply,
    decode_reply,
)
from rwdbnet.server import Database, RWServer, main, parse_args

NO_DELAY = {"read_delay": (0.0, 0.0), "write_delay": (0.0, 0.0)}


@pytest.fixture
def server():
    srv = RWServer(Database(10, **NO_DELAY), port=0, host="127.0.0.1")
    yield srv
    srv.close()


def _udp_socket():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(2.0)
    return sock


@pytest.fixture
def client():
    sock = _udp_socket()
    yield sock
    sock.close()


def test_database_starts_with_one_to_n():
    assert Database(4, **NO_DELAY).snapshot() == [1, 2, 3, 4]


@pytest.mark.parametrize("size", [0, -3])
def test_database_rejects_bad_size(size):
    with pytest.raises(ValueError):
        Database(size)


def test_read_wraps_index():
    db = Database(5, **NO_DELAY)
    assert db.read(12) == db.read(2)


def test_read_computes_value_times_row():
    db = Database(8, **NO_DELAY)
    row, value, computed = db.read(6)
    assert value == db.snapshot()[row]
    assert computed == value * row


def test_write_returns_old_value_and_sorts():
    db = Database(5, **NO_DELAY)
    before = db.snapshot()
    row, old_value, new_value = db.write(7, 100)
    assert old_value == before[row]
    assert new_value == 100
    after = db.snapshot()
    assert after == sorted(after)
    assert 100 in after
    assert len(after) == len(before)


def test_write_waits_for_running_reader():
    db = Database(3, read_delay=(0.3, 0.3), write_delay=(0.0, 0.0))
    order = []
    read_results = []

    def reader():
        read_results.append(tuple(db.read(0)))
        order.append("read")

    thread = threading.Thread(target=reader)
    thread.start()
    time.sleep(0.05)
    row, old_value, new_value = db.write(0, 50)
    order.append("write")
    thread.join()
    assert order == ["read", "write"]
    # The reader saw the table before the write changed it.
    assert read_results == [(0, 1, 0)]
    assert (row, old_value, new_value) == (0, 1, 50)
    assert db.snapshot() == [2, 3, 50]


def test_handle_read_replies_to_client(server, client):
    reply = server.handle(
        Request(MessageType.READ, 42, 3).pack(), client.getsockname()
    )
    assert isinstance(reply, ReadReply)
    assert reply.pid == 42
    received = decode_reply(client.recv(1024))
    assert received == reply
    assert received.value == server.database.snapshot()[received.index]


def test_handle_write_replies_to_client(server, client):
    reply = server.handle(
        Request(MessageType.WRITE, 9, 4, 777).pack(), client.getsockname()
    )
    assert isinstance(reply, WriteReply)
    assert reply.new_value == 777
    assert decode_reply(client.recv(1024)) == reply
    assert 777 in server.database.snapshot()


def test_subscribed_monitor_gets_copies(server, client):
    monitor = _udp_socket()
    try:
        result = server.handle(
            Request(MessageType.SUBSCRIBE, 7).pack(), monitor.getsockname()
        )
        assert result is None
        assert server.monitors == (monitor.getsockname(),)
        server.handle(Request(MessageType.READ, 1, 2).pack(), client.getsockname())
        assert monitor.recv(1024) == client.recv(1024)
    finally:
        monitor.close()


def test_handle_ignores_malformed_datagram(server, client):
    before = server.database.snapshot()
    assert server.handle(b"\x00\x01", client.getsockname()) is None
    assert server.database.snapshot() == before


def test_serve_forever_answers_and_stops(server, client):
    thread = threading.Thread(target=server.serve_forever)
    thread.start()
    try:
        client.sendto(
            Request(MessageType.READ, 5, 1).pack(), ("127.0.0.1", server.address[1])
        )
        reply = decode_reply(client.recv(1024))
        assert reply.pid == 5
        assert reply.computed == reply.value * reply.index
    finally:
        server.close()
        thread.join(3)
    assert not thread.is_alive()


def test_parse_args_accepts_either_order():
    assert parse_args(["-p", "9000", "-s", "10"]) == (9000, 10)
    assert parse_args(["-s", "10", "-p", "9000"]) == (9000, 10)


def test_parse_args_reads_leading_digits():
    args = parse_args(["-p", "8080abc", "-s", "5"])
    assert args.port == 8080
    assert args.db_size == 5


@pytest.mark.parametrize(
    "argv",
    [
        [],
        ["-p", "9000"],
        ["-p", "0", "-s", "10"],
        ["-p", "9000", "-s", "0"],
        ["-p", "x", "-s", "10"],
        ["-x", "9000", "-y", "10"],
    ],
)
def test_parse_args_rejects(argv):
    with pytest.raises(ValueError):
        parse_args(argv)


def test_main_prints_usage(capsys):
    assert main([]) == 1
    assert "Usage" in capsys.readouterr().err


def test_main_rejects_invalid_values(capsys):
    assert main(["-p", "0", "-s", "5"]) == 1
    assert "Invalid port or DB size" in capsys.readouterr().err