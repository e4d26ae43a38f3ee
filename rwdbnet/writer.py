"""Writer client: repeatedly stores random values in random rows."""

from __future__ import annotations

import itertools
import random
import socket
import sys
import threading
import time
from typing import Iterator, NamedTuple, Optional, Sequence, Tuple

from .protocol import MessageType, ProtocolError, Request, WriteReply, decode_reply
from .server import _atoi

USAGE = "Usage: rwdbnet-writer -h SERVER_IP -p PORT -k N_WRITERS"

DB_DUMMY = 1000
MAX_VALUE = 10000
_UINT32 = 0xFFFFFFFF
_BUFFER = 64


class _WriterArgs(NamedTuple):
    host: str
    port: int
    n_writers: int


def parse_args(argv: Sequence[str]) -> _WriterArgs:
    """Parse "-h SERVER_IP -p PORT -k N_WRITERS"; raise ValueError otherwise."""
    argv = list(argv)
    if len(argv) != 6 or argv[0] != "-h" or argv[2] != "-p" or argv[4] != "-k":
        raise ValueError(USAGE)
    return _WriterArgs(argv[1], _atoi(argv[3]), _atoi(argv[5]))


def make_write_request(pid: int, rng: random.Random) -> Request:
    """Build a write of a value in 1..MAX_VALUE to a random row below DB_DUMMY."""
    index = rng.randrange(DB_DUMMY)
    value = 1 + rng.randrange(MAX_VALUE)
    return Request(MessageType.WRITE, pid & _UINT32, index, value)


def format_write_reply(reply: WriteReply) -> str:
    """Render a write reply as the writer prints it."""
    return (
        f"Writer {reply.pid}: idx={reply.index}, "
        f"old={reply.old_value}, new={reply.new_value}"
    )


def write_once(
    sock: socket.socket, address: Tuple[str, int], pid: int, rng: random.Random
) -> WriteReply:
    """Send one write request and wait for its reply."""
    request = make_write_request(pid, rng)
    sock.sendto(request.pack(), address)
    data, _ = sock.recvfrom(_BUFFER)
    reply = decode_reply(data)
    if not isinstance(reply, WriteReply):
        raise ProtocolError("expected a write reply")
    return reply


def writer_loop(
    host: str,
    port: int,
    pid: int,
    rng: random.Random,
    iterations: Optional[int] = None,
) -> Iterator[WriteReply]:
    """Yield replies to successive writes, pausing 1 to 5 seconds between them.

    Runs forever when iterations is None.
    """
    address = (host, port)
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        counter = itertools.count() if iterations is None else range(iterations)
        for number in counter:
            if number:
                time.sleep(1 + rng.randrange(5))
            yield write_once(sock, address, pid, rng)


def _run_writer(host: str, port: int) -> None:
    pid = threading.get_native_id() & _UINT32
    rng = random.Random(time.time_ns() ^ pid)
    try:
        for reply in writer_loop(host, port, pid, rng):
            print(format_write_reply(reply), flush=True)
    except (OSError, OverflowError, ProtocolError) as exc:
        print(f"recvfrom: {exc}", file=sys.stderr)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        host, port, n_writers = parse_args(args)
    except ValueError as exc:
        print(exc, file=sys.stderr)
        return 1

    workers = [
        threading.Thread(target=_run_writer, args=(host, port), daemon=True)
        for _ in range(max(n_writers, 0))
    ]
    for worker in workers:
        worker.start()
    try:
        for worker in workers:
            worker.join()
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())