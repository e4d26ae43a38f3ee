"""Monitor client: subscribes to the server and prints every reply it sends."""

from __future__ import annotations

import os
import socket
import sys
from typing import Iterator, NamedTuple, Optional, Sequence, Tuple

from .protocol import (
    MessageType,
    ProtocolError,
    ReadReply,
    Request,
    decode_reply,
)
from .server import _atoi

USAGE = "Usage: rwdbnet-monitor -h SERVER_IP -p PORT"

_UINT32 = 0xFFFFFFFF
_BUFFER = 64


class _MonitorArgs(NamedTuple):
    host: str
    port: int


def parse_args(argv: Sequence[str]) -> _MonitorArgs:
    """Parse "-h SERVER_IP -p PORT"; raise ValueError otherwise."""
    argv = list(argv)
    if len(argv) != 4 or argv[0] != "-h" or argv[2] != "-p":
        raise ValueError(USAGE)
    return _MonitorArgs(argv[1], _atoi(argv[3]))


def format_event(data: bytes) -> Optional[str]:
    """Render a broadcast reply, or return None for anything unrecognised."""
    try:
        reply = decode_reply(data)
    except ProtocolError:
        return None
    if isinstance(reply, ReadReply):
        return (
            f"[READ]  pid={reply.pid} idx={reply.index} "
            f"val={reply.value} comp={reply.computed}"
        )
    return (
        f"[WRITE] pid={reply.pid} idx={reply.index} "
        f"old={reply.old_value} new={reply.new_value}"
    )


def subscribe(sock: socket.socket, address: Tuple[str, int], pid: int) -> None:
    """Register the socket with the server as a monitor."""
    request = Request(MessageType.SUBSCRIBE, pid & _UINT32, 0, 0)
    sock.sendto(request.pack(), address)


def monitor_events(sock: socket.socket, limit: Optional[int] = None) -> Iterator[str]:
    """Yield a line for each recognised datagram; forever when limit is None."""
    produced = 0
    while limit is None or produced < limit:
        data, _ = sock.recvfrom(_BUFFER)
        line = format_event(data)
        if line is None:
            continue
        produced += 1
        yield line


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        host, port = parse_args(args)
    except ValueError as exc:
        print(exc, file=sys.stderr)
        return 1

    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        try:
            subscribe(sock, (host, port), os.getpid())
        except (OSError, OverflowError) as exc:
            print(f"sendto: {exc}", file=sys.stderr)
            return 1
        print(f"Monitor subscribed to {host}:{port}", flush=True)
        try:
            for line in monitor_events(sock):
                print(line, flush=True)
        except KeyboardInterrupt:
            pass
        except OSError as exc:
            print(f"recvfrom: {exc}", file=sys.stderr)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())