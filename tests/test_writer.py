import random
import socket
import threading

import pytest

from rwdbnet.protocol import MessageType, WriteReply
from rwdbnet.server import Database, RWServer
from rwdbnet.writer import (
    DB_DUMMY,
    MAX_VALUE,
    format_write_reply,
    main,
    make_write_request,
    parse_args,
    write_once,
    writer_loop,
)


@pytest.fixture
def server():
    database = Database(10, read_delay=(0, 0), write_delay=(0, 0))
    srv = RWServer(database, 0, "127.0.0.1", poll_interval=0.05)
    thread = threading.Thread(target=srv.serve_forever, daemon=True)
    thread.start()
    yield srv
    srv.close()
    thread.join(timeout=5)


@pytest.fixture
def client():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.settimeout(5)
    yield sock
    sock.close()


def test_parse_args_accepts_flags():
    args = parse_args(["-h", "10.0.0.1", "-p", "8000", "-k", "2"])
    assert args == ("10.0.0.1", 8000, 2)


@pytest.mark.parametrize(
    "argv",
    [
        [],
        ["-h", "10.0.0.1", "-p", "8000", "-n", "2"],
        ["-h", "10.0.0.1", "-x", "8000", "-k", "2"],
    ],
)
def test_parse_args_rejects_bad_usage(argv):
    with pytest.raises(ValueError, match="Usage"):
        parse_args(argv)


@pytest.mark.parametrize("seed", range(20))
def test_make_write_request_ranges(seed):
    request = make_write_request(3, random.Random(seed))
    assert request.type is MessageType.WRITE
    assert request.pid == 3
    assert 0 <= request.index < DB_DUMMY
    assert 1 <= request.value <= MAX_VALUE


def test_make_write_request_is_deterministic_for_seed():
    first = make_write_request(8, random.Random(11))
    second = make_write_request(8, random.Random(11))
    assert first.type is MessageType.WRITE
    assert first.pid == 8
    assert (first.index, first.value) == (second.index, second.value)
    assert first.pack() == second.pack()


def test_format_write_reply():
    text = format_write_reply(WriteReply(9, 4, 5, 600))
    assert text == "Writer 9: idx=4, old=5, new=600"


def test_write_once_against_server(server, client):
    reply = write_once(client, server.address, 55, random.Random(4))
    assert reply.pid == 55
    assert 0 <= reply.index < 10
    # The table starts as 1..size, so the first write replaces row + 1.
    assert reply.old_value == reply.index + 1
    assert 1 <= reply.new_value <= MAX_VALUE
    snapshot = server.database.snapshot()
    assert reply.new_value in snapshot
    assert snapshot == sorted(snapshot)


def test_writer_loop_single_iteration(server):
    host, port = server.address
    replies = list(writer_loop(host, port, 21, random.Random(2), 1))
    assert len(replies) == 1
    assert replies[0].pid == 21
    assert replies[0].new_value in server.database.snapshot()


def test_main_rejects_bad_arguments(capsys):
    assert main(["-h"]) == 1
    assert "Usage" in capsys.readouterr().err


def test_main_with_no_writers_returns_success():
    assert main(["-h", "127.0.0.1", "-p", "9", "-k", "0"]) == 0