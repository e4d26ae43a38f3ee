"""UDP database server with concurrent readers, exclusive writers and monitors."""

from __future__ import annotations

import random
import re
import selectors
import socket
import sys
import threading
import time
from typing import NamedTuple, Optional, Sequence, Tuple

from .protocol import (
    MessageType,
    ProtocolError,
    ReadReply,
    Reply,
    WriteReply,
    decode_request,
)

USAGE = "Usage: rwdbnet-server -p PORT -s DB_SIZE"

_UINT32 = 0xFFFFFFFF
_MAX_DATAGRAM = 65535


def _to_int32(value: int) -> int:
    value &= _UINT32
    return value - (1 << 32) if value & 0x80000000 else value


class Database:
    """A sorted table of integers guarded by a readers/writer scheme.

    Any number of reads may run at once; a write waits for every running
    read to finish and for any other write, then stores the value and
    sorts the table.
    """

    def __init__(
        self,
        size: int,
        *,
        read_delay: Tuple[float, float] = (0.1, 0.3),
        write_delay: Tuple[float, float] = (0.2, 0.4),
        rng: Optional[random.Random] = None,
    ) -> None:
        if size <= 0:
            raise ValueError("database size must be positive")
        self._rows = list(range(1, size + 1))
        self._read_delay = read_delay
        self._write_delay = write_delay
        self._rng = rng or random.Random()
        self._readers = 0
        self._readers_done = threading.Condition()
        self._writer = threading.Lock()

    def __len__(self) -> int:
        return len(self._rows)

    def _pause(self, delay: Tuple[float, float]) -> None:
        low, high = delay
        if high > 0:
            time.sleep(self._rng.uniform(low, high))

    def read(self, index: int) -> Tuple[int, int, int]:
        """Return (row, value, value * row) for the row that index wraps to."""
        with self._readers_done:
            self._readers += 1
        try:
            row = index % len(self._rows)
            value = self._rows[row] & _UINT32
            computed = value * row
            self._pause(self._read_delay)
        finally:
            with self._readers_done:
                self._readers -= 1
                if self._readers == 0:
                    self._readers_done.notify()
        return row, value, computed

    def write(self, index: int, value: int) -> Tuple[int, int, int]:
        """Store value at the wrapped row, re-sort, return (row, old, new)."""
        with self._writer:
            with self._readers_done:
                self._readers_done.wait_for(lambda: self._readers == 0)
            row = index % len(self._rows)
            old_value = self._rows[row] & _UINT32
            new_value = value & _UINT32
            self._rows[row] = _to_int32(new_value)
            self._rows.sort()
            self._pause(self._write_delay)
        return row, old_value, new_value

    def snapshot(self) -> list:
        """Return a copy of the table."""
        return list(self._rows)


class RWServer:
    """Serves read, write and subscribe requests over UDP."""

    def __init__(
        self,
        database: Database,
        port: int = 0,
        host: str = "0.0.0.0",
        *,
        poll_interval: float = 0.2,
    ) -> None:
        self.database = database
        self._poll_interval = poll_interval
        self._monitors: list = []
        self._monitors_lock = threading.Lock()
        self._stop = threading.Event()
        self._serving = False
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            self._sock.bind((host, port))
        except BaseException:
            self._sock.close()
            raise

    def __enter__(self) -> "RWServer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def address(self) -> Tuple[str, int]:
        return self._sock.getsockname()

    @property
    def monitors(self) -> tuple:
        with self._monitors_lock:
            return tuple(self._monitors)

    def _send(self, payload: bytes, address) -> None:
        try:
            self._sock.sendto(payload, address)
        except OSError:
            pass

    def _broadcast(self, payload: bytes) -> None:
        with self._monitors_lock:
            for monitor in self._monitors:
                self._send(payload, monitor)

    def handle(self, data: bytes, address) -> Optional[Reply]:
        """Serve one datagram; return the reply sent, or None if there was none."""
        try:
            request = decode_request(data)
        except ProtocolError:
            return None

        if request.type is MessageType.SUBSCRIBE:
            with self._monitors_lock:
                self._monitors.append(address)
            return None

        reply: Reply
        if request.type is MessageType.READ:
            row, value, computed = self.database.read(request.index)
            reply = ReadReply(request.pid, row, value, computed)
        else:
            row, old_value, new_value = self.database.write(request.index, request.value)
            reply = WriteReply(request.pid, row, old_value, new_value)

        payload = reply.pack()
        self._send(payload, address)
        self._broadcast(payload)
        return reply

    def serve_forever(self) -> None:
        """Receive datagrams and serve each in its own thread until closed."""
        self._serving = True
        try:
            with selectors.DefaultSelector() as selector:
                selector.register(self._sock, selectors.EVENT_READ)
                while not self._stop.is_set():
                    if not selector.select(self._poll_interval):
                        continue
                    try:
                        data, address = self._sock.recvfrom(_MAX_DATAGRAM)
                    except OSError as exc:
                        if self._stop.is_set():
                            break
                        print(f"recvfrom: {exc}", file=sys.stderr)
                        continue
                    threading.Thread(
                        target=self.handle, args=(data, address), daemon=True
                    ).start()
        finally:
            self._serving = False
            self._sock.close()

    def close(self) -> None:
        """Stop serving and release the socket."""
        self._stop.set()
        if not self._serving:
            self._sock.close()


class _ServerArgs(NamedTuple):
    port: int
    db_size: int


def _atoi(text: str) -> int:
    match = re.match(r"\s*([+-]?\d+)", text)
    return int(match.group(1)) if match else 0


def parse_args(argv: Sequence[str]) -> _ServerArgs:
    """Parse "-p PORT -s DB_SIZE"; raise ValueError when they are unusable."""
    argv = list(argv)
    if len(argv) != 4:
        raise ValueError(USAGE)
    port = 0
    db_size = 0
    for flag, value in zip(argv[::2], argv[1::2]):
        if flag == "-p":
            port = _atoi(value)
        elif flag == "-s":
            db_size = _atoi(value)
    if port <= 0 or db_size <= 0:
        raise ValueError("Invalid port or DB size")
    return _ServerArgs(port, db_size)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        port, db_size = parse_args(args)
    except ValueError as exc:
        print(exc, file=sys.stderr)
        return 1

    try:
        server = RWServer(Database(db_size), port)
    except (OSError, OverflowError) as exc:
        print(f"bind: {exc}", file=sys.stderr)
        return 1

    print(f"Server listening on UDP port {port}, DB size {db_size}", flush=True)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())