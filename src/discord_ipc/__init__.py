"""discord-ipc - asyncio client for the Discord local IPC protocol.

Two layers:
- IPCConnection: framing, reader loop, nonce correlation, ready gate, event fan-out
- IPCClient: convenience wrappers for common RPC commands
"""

from .bus import EventHub, Subscription
from .client import IPCClient, create_client
from .config import IPCConfig
from .connection import ConnectionState, IPCConnection
from .errors import (
    ConnectionClosed,
    HandshakeRejected,
    IPCError,
    MalformedHeader,
    NoEndpointFound,
    ProtocolError,
    RemoteError,
)
from .locator import candidate_paths, ipc_path, locate, runtime_dir
from .protocol import (
    CloseCode,
    CloseEvent,
    Command,
    CommandType,
    DispatchEvent,
    EventType,
    Frame,
    OpCode,
    PacketEvent,
    Payload,
)

__version__ = "0.1.0"

__all__ = [
    # Connection
    "IPCConnection",
    "ConnectionState",
    "IPCConfig",
    # Client
    "IPCClient",
    "create_client",
    # Events
    "EventHub",
    "Subscription",
    "PacketEvent",
    "CloseEvent",
    "DispatchEvent",
    "Payload",
    # Protocol
    "Command",
    "CommandType",
    "EventType",
    "Frame",
    "OpCode",
    "CloseCode",
    # Discovery
    "locate",
    "candidate_paths",
    "ipc_path",
    "runtime_dir",
    # Errors
    "IPCError",
    "NoEndpointFound",
    "ConnectionClosed",
    "ProtocolError",
    "MalformedHeader",
    "RemoteError",
    "HandshakeRejected",
]
