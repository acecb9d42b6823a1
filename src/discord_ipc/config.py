"""Client configuration.

Values can be passed explicitly or loaded from the environment:

    DISCORD_CLIENT_ID   Application ID used by login()
    DISCORD_IPC_PATH    Explicit socket/pipe path (skips probing)
"""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

# Discord only ever listens on discord-ipc-0 through discord-ipc-9
IPC_ID_RANGE = range(10)

ENV_CLIENT_ID = "DISCORD_CLIENT_ID"
ENV_IPC_PATH = "DISCORD_IPC_PATH"


@dataclass
class IPCConfig:
    """Configuration for locating and talking to the IPC endpoint."""

    # Application ID sent in the handshake
    client_id: str | None = None

    # Endpoint discovery
    ipc_path: str | None = None  # Explicit override, no probing when set
    ipc_ids: Sequence[int] = field(default_factory=lambda: IPC_ID_RANGE)

    # Environment used to derive the runtime directory (None = os.environ)
    env: Mapping[str, str] | None = None

    def __post_init__(self) -> None:
        for ipc_id in self.ipc_ids:
            if ipc_id not in IPC_ID_RANGE:
                raise ValueError(f"IPC id must be between 0-9, got {ipc_id}")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> IPCConfig:
        """Build a config from DISCORD_* environment variables."""
        source = os.environ if env is None else env
        return cls(
            client_id=source.get(ENV_CLIENT_ID) or None,
            ipc_path=source.get(ENV_IPC_PATH) or None,
            env=env,
        )
