"""Wire format of the datagrams exchanged with the database server.

Every message is a packed little-endian record whose first byte is the
message type.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import ClassVar, Union

_REQUEST = struct.Struct("<BIII")
_READ_REPLY = struct.Struct("<BIIIQ")
_WRITE_REPLY = struct.Struct("<BIIII")


class MessageType(IntEnum):
    """Kind of a request or reply."""

    READ = 0
    WRITE = 1
    SUBSCRIBE = 2


class ProtocolError(ValueError):
    """Raised for datagrams or fields that do not fit the wire format."""


def _pack(layout: struct.Struct, *fields: int) -> bytes:
    try:
        return layout.pack(*fields)
    except struct.error as exc:
        raise ProtocolError(f"field out of range: {exc}") from exc


@dataclass(frozen=True)
class Request:
    """A client request: read a row, write a row, or subscribe as a monitor."""

    type: MessageType
    pid: int
    index: int = 0
    value: int = 0

    SIZE: ClassVar[int] = _REQUEST.size

    def pack(self) -> bytes:
        """Encode the request as a datagram."""
        return _pack(_REQUEST, self.type, self.pid, self.index, self.value)


@dataclass(frozen=True)
class ReadReply:
    """The server's answer to a read request."""

    pid: int
    index: int
    value: int
    computed: int

    SIZE: ClassVar[int] = _READ_REPLY.size

    @property
    def type(self) -> MessageType:
        return MessageType.READ

    def pack(self) -> bytes:
        """Encode the reply as a datagram."""
        return _pack(
            _READ_REPLY, MessageType.READ, self.pid, self.index, self.value, self.computed
        )


@dataclass(frozen=True)
class WriteReply:
    """The server's answer to a write request."""

    pid: int
    index: int
    old_value: int
    new_value: int

    SIZE: ClassVar[int] = _WRITE_REPLY.size

    @property
    def type(self) -> MessageType:
        return MessageType.WRITE

    def pack(self) -> bytes:
        """Encode the reply as a datagram."""
        return _pack(
            _WRITE_REPLY,
            MessageType.WRITE,
            self.pid,
            self.index,
            self.old_value,
            self.new_value,
        )


Reply = Union[ReadReply, WriteReply]


def decode_request(data: bytes) -> Request:
    """Decode a request datagram; bytes past the record are ignored."""
    if len(data) < Request.SIZE:
        raise ProtocolError(
            f"request needs {Request.SIZE} bytes, got {len(data)}"
        )
    raw_type, pid, index, value = _REQUEST.unpack_from(data)
    try:
        kind = MessageType(raw_type)
    except ValueError:
        raise ProtocolError(f"unknown request type {raw_type}") from None
    return Request(kind, pid, index, value)


def decode_reply(data: bytes) -> Reply:
    """Decode a read or write reply datagram."""
    if not data:
        raise ProtocolError("empty reply")
    kind = data[0]
    if kind == MessageType.READ and len(data) >= ReadReply.SIZE:
        _, pid, index, value, computed = _READ_REPLY.unpack_from(data)
        return ReadReply(pid, index, value, computed)
    if kind == MessageType.WRITE and len(data) >= WriteReply.SIZE:
        _, pid, index, old_value, new_value = _WRITE_REPLY.unpack_from(data)
        return WriteReply(pid, index, old_value, new_value)
    raise ProtocolError(f"unrecognised reply of type {kind} and length {len(data)}")