"""Pytest configuration and shared fixtures.

FakeDiscord plays the remote side of the IPC protocol over a real Unix
socket, so connection tests exercise the actual framing and reader loop.
"""

from __future__ import annotations

import asyncio
import json
import os
import shutil
import struct
import sys
import tempfile
from typing import Any

import pytest
import pytest_asyncio

from discord_ipc import IPCConfig, IPCConnection

HEADER = struct.Struct("<ii")

READY_DATA = {
    "v": 1,
    "config": {"cdn_host": "cdn.discordapp.com", "api_endpoint": "//discord.com/api"},
    "user": {"id": "53908232506183680", "username": "Mason", "discriminator": "1337"},
}


class FakeDiscord:
    """Minimal stand-in for the Discord client's IPC endpoint."""

    ready_data = READY_DATA

    def __init__(self, path: str):
        self.path = path
        self.received: asyncio.Queue[tuple[int, Any]] = asyncio.Queue()
        self._server: asyncio.AbstractServer | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._connected = asyncio.Event()

    async def start(self) -> None:
        self._server = await asyncio.start_unix_server(self._on_client, self.path)

    async def stop(self) -> None:
        await self.drop()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    async def _on_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._writer = writer
        self._connected.set()
        try:
            while True:
                header = await reader.readexactly(HEADER.size)
                op, length = HEADER.unpack(header)
                body = await reader.readexactly(length)
                try:
                    payload: Any = json.loads(body.decode("utf-8"))
                except ValueError:
                    payload = body
                await self.received.put((op, payload))
        except (asyncio.IncompleteReadError, ConnectionError):
            pass

    async def wait_connected(self, timeout: float = 2.0) -> None:
        await asyncio.wait_for(self._connected.wait(), timeout)

    async def next_frame(self, timeout: float = 2.0) -> tuple[int, Any]:
        """Next frame the client sent, as (opcode, decoded JSON)."""
        return await asyncio.wait_for(self.received.get(), timeout)

    async def push_raw(self, data: bytes) -> None:
        assert self._writer is not None, "no client connected"
        self._writer.write(data)
        await self._writer.drain()

    async def push(self, op: int, payload: Any) -> None:
        """Send one JSON frame to the client."""
        body = json.dumps(payload).encode("utf-8")
        await self.push_raw(HEADER.pack(op, len(body)) + body)

    async def reply(self, request: dict[str, Any], data: Any) -> None:
        """Answer a command frame with its nonce."""
        await self.push(
            1, {"cmd": request["cmd"], "data": data, "evt": None, "nonce": request["nonce"]}
        )

    async def reply_error(self, request: dict[str, Any], code: int, message: str) -> None:
        await self.push(
            1,
            {
                "cmd": request["cmd"],
                "evt": "ERROR",
                "data": {"code": code, "message": message},
                "nonce": request["nonce"],
            },
        )

    async def dispatch(self, evt: str, data: Any, nonce: str | None = None) -> None:
        await self.push(1, {"cmd": "DISPATCH", "evt": evt, "data": data, "nonce": nonce})

    async def accept_handshake(self, data: dict[str, Any] | None = None) -> dict[str, Any]:
        """Wait for the HANDSHAKE frame and answer with READY."""
        op, payload = await self.next_frame()
        assert op == 0, f"expected HANDSHAKE, got opcode {op}"
        await self.dispatch("READY", data or READY_DATA)
        return payload

    async def drop(self) -> None:
        """Close the client's socket from the server side."""
        if self._writer is not None and not self._writer.is_closing():
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except ConnectionError:
                pass


@pytest.fixture
def ipc_dir():
    """Short temporary directory (Unix socket paths are length-limited)."""
    path = tempfile.mkdtemp(prefix="dipc-")
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest_asyncio.fixture
async def fake_discord_factory(ipc_dir):
    """Start FakeDiscord servers on chosen ids inside ipc_dir."""
    if sys.platform == "win32":
        pytest.skip("Unix sockets required")

    servers: list[FakeDiscord] = []

    async def start(ipc_id: int = 0) -> FakeDiscord:
        server = FakeDiscord(os.path.join(ipc_dir, f"discord-ipc-{ipc_id}"))
        await server.start()
        servers.append(server)
        return server

    try:
        yield start
    finally:
        for server in servers:
            await server.stop()


@pytest_asyncio.fixture
async def fake_discord(fake_discord_factory):
    return await fake_discord_factory(0)


@pytest_asyncio.fixture
async def connection(fake_discord):
    conn = await IPCConnection.open(IPCConfig(ipc_path=fake_discord.path))
    await fake_discord.wait_connected()
    try:
        yield conn
    finally:
        await conn.close()
