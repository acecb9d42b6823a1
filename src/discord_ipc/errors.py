"""Exception hierarchy for the IPC client.

Every failure surfaced by the client derives from IPCError so callers can
catch the whole family at once:

- NoEndpointFound: socket discovery exhausted every candidate
- ConnectionClosed: the transport ended or the connection was closed
- ProtocolError / MalformedHeader: a frame or its JSON could not be decoded
- RemoteError: the remote side answered a command with an ERROR dispatch
- HandshakeRejected: the remote side closed the connection during login
"""

from __future__ import annotations

from typing import Any


class IPCError(Exception):
    """Base class for all IPC client errors."""


class NoEndpointFound(IPCError):
    """No IPC socket or pipe could be found (or none accepted a connection)."""


class ConnectionClosed(IPCError, ConnectionError):
    """The connection is closed, or closed while an operation was pending."""

    def __init__(self, message: str = "Connection closed", code: int | None = None):
        super().__init__(message)
        self.code = code


class ProtocolError(IPCError):
    """A frame or payload could not be decoded."""


class MalformedHeader(ProtocolError):
    """A frame header was shorter than the fixed header size."""


class RemoteError(IPCError):
    """An error dispatch correlated to a specific command."""

    def __init__(
        self,
        code: int | None,
        message: str,
        data: dict[str, Any] | None = None,
    ):
        super().__init__(f"[{code}] {message}" if code is not None else message)
        self.code = code
        self.message = message
        self.data = data or {}


class HandshakeRejected(IPCError):
    """The remote side refused the handshake (e.g. invalid client id)."""

    def __init__(self, code: int | None, message: str):
        super().__init__(f"Handshake rejected [{code}]: {message}")
        self.code = code
        self.message = message
