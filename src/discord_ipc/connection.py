"""IPC connection: reader loop, request correlation and the ready gate.

One IPCConnection owns one duplex stream to the Discord client:

- A single background task reads frames and dispatches them
- send_command() correlates replies to requests by nonce
- login() waits for the first READY dispatch after the handshake
- Every frame is also broadcast to subscribers through the EventHub

Usage:
    async with await IPCConnection.open() as conn:
        user = (await conn.login("1234"))["user"]
        channels = await conn.send_command("GET_CHANNELS", {"guild_id": None})

        async for event in conn.subscribe():
            ...

There are no built-in timeouts; wrap calls in asyncio.wait_for if needed.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, ValidationError

from .bus import EventHub, Subscription
from .config import IPCConfig
from .errors import (
    ConnectionClosed,
    HandshakeRejected,
    IPCError,
    NoEndpointFound,
    ProtocolError,
    RemoteError,
)
from .locator import candidate_paths, open_endpoint
from .protocol.commands import Command, CommandType, HandshakePayload, new_nonce
from .protocol.events import CloseEvent, PacketEvent, Payload
from .protocol.frames import (
    HEADER_SIZE,
    CloseCode,
    Frame,
    OpCode,
    decode_header,
    encode,
    op_name,
)

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    """Connection state machine."""

    OPEN = "open"  # Socket connected, handshake not completed
    READY = "ready"  # READY dispatch received
    CLOSED = "closed"


class IPCConnection:
    """A live connection to the Discord IPC endpoint.

    Create with `IPCConnection.open()`; the reader task starts immediately
    and stops on `close()` or on the first read failure.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        path: str | None = None,
    ):
        self._reader = reader
        self._writer = writer
        self._path = path
        self._state = ConnectionState.OPEN
        self._hub = EventHub()
        self._pending: dict[str, asyncio.Future[Any]] = {}
        self._ready_waiter: asyncio.Future[dict[str, Any]] | None = None
        self._write_lock = asyncio.Lock()
        self._reader_task: asyncio.Task[None] | None = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @classmethod
    async def open(cls, config: IPCConfig | None = None) -> IPCConnection:
        """Discover the endpoint, connect, and start the reader loop.

        Candidates are tried in id order; a socket file that refuses the
        connection (e.g. left behind by a crashed client) is skipped.

        Raises:
            NoEndpointFound: If no candidate exists or none accepts
        """
        for path in candidate_paths(config):
            try:
                reader, writer = await open_endpoint(path)
            except OSError as e:
                logger.debug(f"Skipping IPC endpoint {path}: {e}")
                continue

            conn = cls(reader, writer, path=path)
            conn.start()
            logger.info(f"Connected to Discord IPC at {path}")
            return conn

        raise NoEndpointFound("No Discord IPC endpoint accepted a connection")

    def start(self) -> None:
        """Start the background reader task (done by open())."""
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(self._read_loop())

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def path(self) -> str | None:
        """Endpoint path this connection was opened on."""
        return self._path

    @property
    def is_closed(self) -> bool:
        return self._state == ConnectionState.CLOSED

    @property
    def is_ready(self) -> bool:
        return self._state == ConnectionState.READY

    @property
    def pending_count(self) -> int:
        """Number of commands awaiting a reply."""
        return len(self._pending)

    async def close(self) -> None:
        """Close the connection. Safe to call more than once.

        Pending commands and an armed login are rejected with
        ConnectionClosed; every subscription receives a CloseEvent.
        """
        if self.is_closed:
            return

        self._teardown(ConnectionClosed("Connection closed by client"))

        task, self._reader_task = self._reader_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        await self._close_writer()
        logger.info("Discord IPC connection closed")

    async def __aenter__(self) -> IPCConnection:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # =========================================================================
    # Sending
    # =========================================================================

    async def send(self, op: OpCode, payload: dict[str, Any] | BaseModel) -> str | None:
        """Write one frame. Returns the nonce for MESSAGE frames.

        MESSAGE payloads without a `nonce` get a fresh one; a caller-supplied
        nonce is reused verbatim. The caller's dict is never mutated.

        Raises:
            ConnectionClosed: If the connection is closed
        """
        if self.is_closed:
            raise ConnectionClosed("Cannot send on a closed connection")

        if isinstance(payload, Command):
            body = payload.to_wire()
        elif isinstance(payload, BaseModel):
            body = payload.model_dump()
        else:
            body = dict(payload)

        nonce: str | None = None
        if op == OpCode.MESSAGE:
            nonce = body.get("nonce")
            if nonce is None:
                nonce = new_nonce()
                body["nonce"] = nonce

        data = encode(op, json.dumps(body).encode("utf-8"))
        await self._write(data)
        logger.debug(f"Sent {op.name} frame ({len(data)} bytes, nonce={nonce})")
        return nonce

    async def send_command(
        self,
        cmd: str | CommandType,
        args: dict[str, Any] | None = None,
        evt: str | None = None,
        nonce: str | None = None,
    ) -> Any:
        """Send a command and wait for its correlated reply.

        Returns:
            The `data` field of the reply

        Raises:
            RemoteError: If the reply is an ERROR dispatch
            ConnectionClosed: If the connection closes before a reply
        """
        if self.is_closed:
            raise ConnectionClosed("Cannot send on a closed connection")

        command = Command.create(cmd, args, evt=evt, nonce=nonce)
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[command.nonce] = future

        try:
            await self.send(OpCode.MESSAGE, command.to_wire())
            return await future
        finally:
            # Covers send failures and caller cancellation too
            if self._pending.get(command.nonce) is future:
                del self._pending[command.nonce]

    async def login(self, client_id: str) -> dict[str, Any]:
        """Perform the handshake and wait for READY.

        Returns:
            The READY dispatch data (`v`, `config`, `user`)

        Raises:
            HandshakeRejected: If the remote side closes with an invalid client id
            RemoteError: If an uncorrelated ERROR dispatch arrives first
            ConnectionClosed: If the connection closes before READY
            IPCError: If a login is already in progress
        """
        if self.is_closed:
            raise ConnectionClosed("Cannot login on a closed connection")
        if self._ready_waiter is not None:
            raise IPCError("Login already in progress")

        waiter: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._ready_waiter = waiter

        try:
            await self.send(OpCode.HANDSHAKE, HandshakePayload(client_id=client_id))
            return await waiter
        finally:
            if self._ready_waiter is waiter:
                self._ready_waiter = None

    async def _write(self, data: bytes) -> None:
        """Write one complete frame; concurrent writes never interleave."""
        async with self._write_lock:
            if self.is_closed:
                raise ConnectionClosed("Cannot send on a closed connection")
            try:
                self._writer.write(data)
                await self._writer.drain()
            except (ConnectionError, OSError) as e:
                raise ConnectionClosed(f"Write failed: {e}") from e

    # =========================================================================
    # Events
    # =========================================================================

    def subscribe(self) -> Subscription:
        """Subscribe to every frame read from now on.

        Each call returns an independent subscription. It ends with a
        CloseEvent when the connection closes.
        """
        return self._hub.subscribe()

    def __aiter__(self) -> Subscription:
        return self.subscribe()

    # =========================================================================
    # Reader loop
    # =========================================================================

    async def _read_frame(self) -> Frame:
        """Read exactly one frame off the stream."""
        try:
            header = await self._reader.readexactly(HEADER_SIZE)
            op, length = decode_header(header)
            body = await self._reader.readexactly(length)
        except asyncio.IncompleteReadError as e:
            raise ConnectionClosed("Connection closed by remote") from e
        return Frame(op=op, payload=body)

    async def _read_loop(self) -> None:
        """Background task reading frames until close or failure."""
        try:
            while True:
                frame = await self._read_frame()
                event = self._decode(frame)
                payload = event.payload
                logger.debug(
                    f"Received {op_name(frame.op)} frame "
                    f"(cmd={payload.cmd}, evt={payload.evt}, nonce={payload.nonce})"
                )

                if isinstance(frame.op, OpCode):
                    self._dispatch(event)
                self._hub.publish(event)

                if frame.op == OpCode.PING:
                    await self._write(encode(OpCode.PONG, frame.payload))
                elif frame.op == OpCode.CLOSE:
                    code = event.payload.close_code
                    message = event.payload.close_message
                    raise ConnectionClosed(
                        f"Remote closed the connection: [{code}] {message}", code=code
                    )
        except asyncio.CancelledError:
            pass
        except ConnectionClosed as e:
            logger.info(f"Reader loop stopped: {e}")
            await self._fail(e)
        except (ProtocolError, OSError) as e:
            logger.error(f"Reader loop error: {e}")
            closed = ConnectionClosed(f"Connection lost: {e}")
            closed.__cause__ = e
            await self._fail(closed)

    def _decode(self, frame: Frame) -> PacketEvent:
        if not isinstance(frame.op, OpCode):
            # Unknown opcodes are passed through undecoded
            return PacketEvent(op=frame.op, raw=frame.payload)

        if frame.op in (OpCode.PING, OpCode.PONG):
            # Keepalive bodies are echoed back as-is; JSON is optional
            try:
                payload = Payload.model_validate(frame.json())
            except (ProtocolError, ValidationError):
                return PacketEvent(op=frame.op, raw=frame.payload)
            return PacketEvent(op=frame.op, payload=payload)

        data = frame.json()
        try:
            payload = Payload.model_validate(data)
        except ValidationError as e:
            raise ProtocolError(f"Invalid {op_name(frame.op)} payload: {e}") from e
        return PacketEvent(op=frame.op, payload=payload)

    def _dispatch(self, event: PacketEvent) -> None:
        """Route a frame to its pending command or the ready gate."""
        payload = event.payload

        if event.op == OpCode.CLOSE:
            code = payload.close_code
            if code == CloseCode.INVALID_CLIENT_ID:
                message = payload.close_message or "Invalid client id"
                self._settle_ready(error=HandshakeRejected(code, message))
            return

        # Nonce match takes precedence over the ready gate
        if payload.nonce is not None:
            future = self._pending.pop(payload.nonce, None)
            if future is not None:
                if future.done():
                    return
                if payload.is_error():
                    future.set_exception(
                        RemoteError(payload.error_code, payload.error_message, payload.data)
                    )
                else:
                    future.set_result(payload.data)
                return

        if self._ready_waiter is None:
            return

        if payload.is_ready():
            self._state = ConnectionState.READY
            self._settle_ready(result=payload.data if isinstance(payload.data, dict) else {})
        elif payload.is_error() and payload.nonce is None:
            # A nonce-bearing error with no pending match is only published
            self._settle_ready(
                error=RemoteError(payload.error_code, payload.error_message, payload.data)
            )

    def _settle_ready(
        self,
        result: dict[str, Any] | None = None,
        error: BaseException | None = None,
    ) -> None:
        """Resolve or reject the ready waiter once, then disarm it."""
        waiter, self._ready_waiter = self._ready_waiter, None
        if waiter is None or waiter.done():
            return
        if error is not None:
            waiter.set_exception(error)
        else:
            waiter.set_result(result or {})

    # =========================================================================
    # Teardown
    # =========================================================================

    async def _fail(self, error: ConnectionClosed) -> None:
        """Reader-side shutdown after a read failure or CLOSE frame."""
        self._teardown(error)
        self._reader_task = None
        await self._close_writer()

    def _teardown(self, error: ConnectionClosed) -> None:
        """Reject everything outstanding and close the hub. Runs once."""
        if self.is_closed:
            return
        self._state = ConnectionState.CLOSED

        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(_copy_error(error))
        if pending:
            logger.debug(f"Rejected {len(pending)} pending commands")

        self._settle_ready(error=_copy_error(error))
        self._hub.close_all(CloseEvent(code=error.code, message=str(error)))

    async def _close_writer(self) -> None:
        writer = self._writer
        if writer.is_closing():
            return
        writer.close()
        with contextlib.suppress(ConnectionError, OSError):
            await writer.wait_closed()


def _copy_error(error: ConnectionClosed) -> ConnectionClosed:
    # Each waiter gets its own instance so tracebacks don't accumulate
    copy = ConnectionClosed(str(error), code=error.code)
    copy.__cause__ = error.__cause__
    return copy
