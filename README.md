# rwdbnet

A small UDP server that keeps a table of integers in memory and serves it to
concurrent readers and writers under the readers-writers discipline. Any number
of reads may run together. A write waits until every running read has finished,
and only one write runs at a time. Monitors can subscribe to get a copy of every
reply the server sends.

## Installation

```
pip install .
```

## Commands

Each command checks its arguments strictly: the flags must appear in exactly
the order shown. On a wrong argument list it prints its usage line to standard
error and exits with status 1. Numbers are read leniently: leading digits are
used, and text that does not start with a number counts as 0. Stop any command
with Ctrl-C.

### Server

```
rwdbnet-server -p PORT -s DB_SIZE
```

The two flags may come in either order. The port and size must both be
positive, otherwise the server prints `Invalid port or DB size` and exits with
status 1. The table is filled with `1..DB_SIZE` and bound on all interfaces.
Each incoming datagram is served in its own thread:

* A read takes the row `index % DB_SIZE` and replies with that row, its value
  and the product `value * row`. It pauses 0.1–0.3 seconds while counted as an
  active reader.
* A write waits for the readers and other writers, stores the value at row
  `index % DB_SIZE`, sorts the whole table and replies with the row, the old
  value and the new value. It pauses 0.2–0.4 seconds while holding the
  write lock.
* A subscribe request adds the sender to the list of monitors. It gets no reply.

Every read or write reply is sent to the client and to every monitor.
Datagrams that are too short or carry an unknown type are ignored.

### Readers

```
rwdbnet-reader -h SERVER_IP -p PORT -n N_READERS
```

Starts `N_READERS` threads. Each one repeatedly asks for a random index from 0
to 999, prints a line such as

```
Reader 4242: idx=7, val=8, comp=56
```

and sleeps 1–5 seconds before the next request. The pid a reader reports is its
thread's native id. A reader stops and prints the error if a send or receive
fails or the reply is not a read reply.

### Writers

```
rwdbnet-writer -h SERVER_IP -p PORT -k N_WRITERS
```

Starts `N_WRITERS` threads. Each one repeatedly stores a random value from 1 to
10000 at a random index from 0 to 999, prints a line such as

```
Writer 4243: idx=3, old=4, new=9000
```

and sleeps 1–5 seconds before the next request.

### Monitor

```
rwdbnet-monitor -h SERVER_IP -p PORT
```

Sends a subscribe request carrying its process id, prints
`Monitor subscribed to SERVER_IP:PORT`, and then prints every reply the server
broadcasts:

```
[READ]  pid=4242 idx=7 val=8 comp=56
[WRITE] pid=4243 idx=3 old=4 new=9000
```

Datagrams it does not recognise are skipped.

## Wire format

All messages are packed little-endian records with no padding. The first byte
is the message type.

* `Request`: type (u8), pid (u32), index (u32), value (u32). Type 0 is a read,
  1 is a write, 2 subscribes a monitor.
* `ReadReply`: type 0 (u8), pid, index, value (u32), computed (u64).
* `WriteReply`: type 1 (u8), pid, index, old value, new value (u32).

In a reply, `index` is the row the request's index wrapped to.

`rwdbnet.protocol` has `MessageType`, the frozen dataclasses `Request`,
`ReadReply` and `WriteReply` (each with `pack()`), and `decode_request(data)`
and `decode_reply(data)`. Short or unknown datagrams, and fields that do not fit
their width when packing, raise `ProtocolError`, a subclass of `ValueError`.
Bytes past the end of a record are ignored when decoding.

```python
from rwdbnet.protocol import MessageType, Request, decode_request

data = Request(MessageType.WRITE, pid=1, index=3, value=42).pack()
decode_request(data)  # Request(type=<MessageType.WRITE: 1>, pid=1, index=3, value=42)
```

## Using the library

`rwdbnet.server.Database` is the table on its own. Its pauses can be turned off
by giving a delay range whose upper end is 0:

```python
from rwdbnet.server import Database

db = Database(5, read_delay=(0, 0), write_delay=(0, 0))
db.read(7)          # (2, 3, 6): row 7 % 5, its value, value * row
db.write(2, 100)    # (2, 3, 100): row, old value, new value
db.snapshot()       # [1, 2, 4, 5, 100]
```

A `Database` size must be positive, or `ValueError` is raised. It also takes an
optional `rng` (a `random.Random`) used for the pauses.

`rwdbnet.server.RWServer(database, port=0, host="0.0.0.0", poll_interval=0.2)`
binds a UDP socket. `address` gives the bound address and `monitors` the
subscribed addresses. `handle(data, address)` serves one datagram and returns
the reply it sent, or `None`. `serve_forever()` runs until `close()` is called.
The server is also a context manager that closes itself on exit.

The clients' pieces can be used directly:

* `rwdbnet.reader`: `make_read_request`, `format_read_reply`, `read_once` and
  `reader_loop(host, port, pid, rng, iterations=None)`. `reader_loop` is a
  generator of `ReadReply` objects.
* `rwdbnet.writer`: `make_write_request`, `format_write_reply`, `write_once` and
  `writer_loop(host, port, pid, rng, iterations=None)`.
* `rwdbnet.monitor`: `subscribe(sock, address, pid)`, `format_event(data)` and
  `monitor_events(sock, limit=None)`, a generator of printed lines.

Each module also has `parse_args(argv)`, which raises `ValueError` for a bad
argument list, and `main(argv=None)`, which returns the exit status.

## What it does not do

The table lives only in memory and is lost when the server stops. The server
does not persist it and has no command to reload it. A monitor cannot
unsubscribe. The server keeps sending to a monitor's address until it stops,
and a monitor that subscribes twice is listed twice. Datagrams are not
retransmitted, so a client waits indefinitely for a reply that was lost.

## Tests

```
pip install .[test]
pytest
```