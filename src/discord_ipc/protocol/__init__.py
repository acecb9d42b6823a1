"""Wire protocol for Discord IPC.

Defines the binary framing and the JSON envelopes carried inside frames.

Key concepts:
- Frames: 8-byte little-endian header (opcode, length) plus payload
- Commands: client requests carrying a nonce for correlation
- Payloads: decoded replies and DISPATCH events from the remote side
"""

from .commands import Command, CommandType, HandshakePayload, new_nonce, parse_command
from .events import (
    CloseEvent,
    DispatchEvent,
    EventType,
    IPCEvent,
    PacketEvent,
    Payload,
    parse_event,
)
from .frames import (
    HEADER_SIZE,
    CloseCode,
    Frame,
    OpCode,
    decode_frame,
    decode_header,
    encode,
    encode_json,
    op_name,
    parse_opcode,
)

__all__ = [
    "HEADER_SIZE",
    "CloseCode",
    "CloseEvent",
    "Command",
    "CommandType",
    "DispatchEvent",
    "EventType",
    "Frame",
    "HandshakePayload",
    "IPCEvent",
    "OpCode",
    "PacketEvent",
    "Payload",
    "decode_frame",
    "decode_header",
    "encode",
    "encode_json",
    "new_nonce",
    "op_name",
    "parse_command",
    "parse_event",
    "parse_opcode",
]
