"""Reader client: repeatedly asks the server for random rows."""

from __future__ import annotations

import itertools
import random
import socket
import sys
import threading
import time
from typing import Iterator, NamedTuple, Optional, Sequence, Tuple

from .protocol import MessageType, ProtocolError, ReadReply, Request, decode_reply
from .server import _atoi

USAGE = "Usage: rwdbnet-reader -h SERVER_IP -p PORT -n N_READERS"

DB_DUMMY = 1000
_UINT32 = 0xFFFFFFFF
_BUFFER = 64


class _ReaderArgs(NamedTuple):
    host: str
    port: int
    n_readers: int


def parse_args(argv: Sequence[str]) -> _ReaderArgs:
    """Parse "-h SERVER_IP -p PORT -n N_READERS"; raise ValueError otherwise."""
    argv = list(argv)
    if len(argv) != 6 or argv[0] != "-h" or argv[2] != "-p" or argv[4] != "-n":
        raise ValueError(USAGE)
    return _ReaderArgs(argv[1], _atoi(argv[3]), _atoi(argv[5]))


def make_read_request(pid: int, rng: random.Random) -> Request:
    """Build a read request for a random row below DB_DUMMY."""
    return Request(MessageType.READ, pid & _UINT32, rng.randrange(DB_DUMMY), 0)


def format_read_reply(reply: ReadReply) -> str:
    """Render a read reply as the reader prints it."""
    return (
        f"Reader {reply.pid}: idx={reply.index}, "
        f"val={reply.value}, comp={reply.computed}"
    )


def read_once(
    sock: socket.socket, address: Tuple[str, int], pid: int, rng: random.Random
) -> ReadReply:
    """Send one read request and wait for its reply."""
    request = make_read_request(pid, rng)
    sock.sendto(request.pack(), address)
    data, _ = sock.recvfrom(_BUFFER)
    reply = decode_reply(data)
    if not isinstance(reply, ReadReply):
        raise ProtocolError("expected a read reply")
    return reply


def reader_loop(
    host: str,
    port: int,
    pid: int,
    rng: random.Random,
    iterations: Optional[int] = None,
) -> Iterator[ReadReply]:
    """Yield replies to successive reads, pausing 1 to 5 seconds between them.

    Runs forever when iterations is None.
    """
    address = (host, port)
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        counter = itertools.count() if iterations is None else range(iterations)
        for number in counter:
            if number:
                time.sleep(1 + rng.randrange(5))
            yield read_once(sock, address, pid, rng)


def _run_reader(host: str, port: int) -> None:
    pid = threading.get_native_id() & _UINT32
    rng = random.Random(time.time_ns() ^ pid)
    try:
        for reply in reader_loop(host, port, pid, rng):
            print(format_read_reply(reply), flush=True)
    except (OSError, OverflowError, ProtocolError) as exc:
        print(f"recvfrom: {exc}", file=sys.stderr)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        host, port, n_readers = parse_args(args)
    except ValueError as exc:
        print(exc, file=sys.stderr)
        return 1

    workers = [
        threading.Thread(target=_run_reader, args=(host, port), daemon=True)
        for _ in range(max(n_readers, 0))
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