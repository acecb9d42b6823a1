"""Binary frame codec.

Every unit on the wire is a frame:

    <int32 LE opcode> <int32 LE payload length> <payload bytes>

The header is always exactly 8 bytes. There is no checksum or compression;
the local stream socket delivers bytes exactly and in order.
"""

from __future__ import annotations

import json
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

from ..errors import MalformedHeader, ProtocolError

HEADER = struct.Struct("<ii")
HEADER_SIZE = HEADER.size  # 8


class OpCode(IntEnum):
    """Frame operation codes."""

    HANDSHAKE = 0
    MESSAGE = 1
    CLOSE = 2
    PING = 3
    PONG = 4


class CloseCode(IntEnum):
    """Status codes carried by CLOSE frames."""

    NORMAL = 1000
    UNSUPPORTED = 1003
    ABNORMAL = 1006
    INVALID_CLIENT_ID = 4000
    INVALID_ORIGIN = 4001
    RATELIMITED = 4002
    TOKEN_REVOKED = 4003
    INVALID_VERSION = 4004
    INVALID_ENCODING = 4005


def op_name(op: OpCode | int) -> str:
    """Readable name for known and unknown opcodes."""
    return op.name if isinstance(op, OpCode) else f"OP_{int(op)}"


def parse_opcode(op: int) -> OpCode | int:
    """Map a raw opcode onto OpCode, keeping unknown values as plain ints."""
    try:
        return OpCode(op)
    except ValueError:
        return op


@dataclass(frozen=True)
class Frame:
    """One decoded frame."""

    op: OpCode | int
    payload: bytes = b""

    def encode(self) -> bytes:
        return encode(self.op, self.payload)

    def json(self) -> Any:
        """Decode the payload as UTF-8 JSON.

        Raises:
            ProtocolError: If the payload is not valid UTF-8 JSON
        """
        try:
            return json.loads(self.payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ProtocolError(f"Invalid {op_name(self.op)} payload: {e}") from e


def encode(op: OpCode | int, payload: bytes) -> bytes:
    """Encode an opcode and payload into a complete frame."""
    return HEADER.pack(int(op), len(payload)) + payload


def encode_json(op: OpCode | int, payload: Any) -> bytes:
    """Encode a JSON-serializable payload into a complete frame."""
    return encode(op, json.dumps(payload).encode("utf-8"))


def decode_header(header: bytes) -> tuple[OpCode | int, int]:
    """Parse an 8-byte header into (opcode, payload length).

    Opcodes outside OpCode are returned as plain ints.

    Raises:
        MalformedHeader: If fewer than 8 bytes are supplied
        ProtocolError: If the length is negative
    """
    if len(header) < HEADER_SIZE:
        raise MalformedHeader(f"Expected {HEADER_SIZE} header bytes, got {len(header)}")

    op, length = HEADER.unpack_from(header)
    if length < 0:
        raise ProtocolError(f"Negative payload length: {length}")
    return parse_opcode(op), length


def decode_frame(data: bytes) -> Frame:
    """Decode a complete frame (header plus body) from a buffer."""
    op, length = decode_header(data[:HEADER_SIZE])
    body = data[HEADER_SIZE : HEADER_SIZE + length]
    if len(body) != length:
        raise MalformedHeader(f"Declared length {length}, only {len(body)} bytes available")
    return Frame(op=op, payload=body)
