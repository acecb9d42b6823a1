"""IPC endpoint discovery.

Discord listens on the first free of `discord-ipc-0` .. `discord-ipc-9`:
- POSIX: a Unix socket in the runtime directory (XDG_RUNTIME_DIR, TMPDIR,
  TMP, TEMP, falling back to /tmp)
- Windows: a named pipe under \\\\.\\pipe\\

Discovery is a linear probe over the ids in order; nothing is connected
until a caller picks a path.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from collections.abc import Iterator, Mapping

from .config import IPC_ID_RANGE, IPCConfig
from .errors import NoEndpointFound

logger = logging.getLogger(__name__)

RUNTIME_DIR_VARS = ("XDG_RUNTIME_DIR", "TMPDIR", "TMP", "TEMP")
DEFAULT_RUNTIME_DIR = "/tmp"
WINDOWS_PIPE_PREFIX = "\\\\.\\pipe\\"
SOCKET_NAME = "discord-ipc-{id}"


def is_windows(platform: str | None = None) -> bool:
    return (platform or sys.platform) == "win32"


def runtime_dir(env: Mapping[str, str] | None = None) -> str:
    """Directory holding the IPC sockets on POSIX systems."""
    source = os.environ if env is None else env
    for name in RUNTIME_DIR_VARS:
        value = source.get(name)
        if value:
            return value.rstrip("/") or "/"
    return DEFAULT_RUNTIME_DIR


def ipc_path(
    ipc_id: int,
    platform: str | None = None,
    env: Mapping[str, str] | None = None,
) -> str:
    """Build the endpoint path for one IPC id.

    Raises:
        ValueError: If ipc_id is outside 0-9
    """
    if ipc_id not in IPC_ID_RANGE:
        raise ValueError(f"IPC id must be between 0-9, got {ipc_id}")

    name = SOCKET_NAME.format(id=ipc_id)
    if is_windows(platform):
        return f"{WINDOWS_PIPE_PREFIX}{name}"
    return f"{runtime_dir(env).rstrip('/')}/{name}"


def candidate_paths(config: IPCConfig | None = None) -> Iterator[str]:
    """Yield existing endpoint paths in probe order.

    An explicit `ipc_path` in the config replaces probing entirely.
    """
    config = config or IPCConfig()

    if config.ipc_path:
        if os.path.exists(config.ipc_path):
            yield config.ipc_path
        else:
            logger.debug(f"Configured IPC path does not exist: {config.ipc_path}")
        return

    for ipc_id in config.ipc_ids:
        path = ipc_path(ipc_id, env=config.env)
        if os.path.exists(path):
            yield path
        else:
            logger.debug(f"No IPC endpoint at {path}")


def locate(config: IPCConfig | None = None) -> str:
    """Return the first existing endpoint path.

    Raises:
        NoEndpointFound: If no candidate path exists
    """
    for path in candidate_paths(config):
        logger.debug(f"Found IPC endpoint at {path}")
        return path
    raise NoEndpointFound("No Discord IPC endpoint found (tried discord-ipc-0..9)")


async def open_endpoint(path: str) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Open a stream connection to a socket or named pipe."""
    if not is_windows():
        return await asyncio.open_unix_connection(path)

    loop = asyncio.get_running_loop()
    connected: asyncio.Future[tuple[asyncio.StreamReader, asyncio.StreamWriter]] = (
        loop.create_future()
    )

    def on_connected(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        connected.set_result((reader, writer))

    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader, on_connected)
    # Only the proactor event loop (the Windows default) supports named pipes
    await loop.create_pipe_connection(lambda: protocol, path)  # type: ignore[attr-defined]
    return await connected
