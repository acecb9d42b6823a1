"""High-level client over an IPCConnection.

Thin wrappers around send_command() for the common RPC commands. Every
reply payload is returned as the raw `data` the remote side sent; no
schemas are imposed on users, channels, guilds or activities.

Usage:
    async with IPCClient(IPCConfig(client_id="1234")) as client:
        print(client.user)
        await client.set_activity({"details": "Testing"})

        async for event in client.events():
            ...

The OAuth2 token exchange is out of scope: use `authorize()` to obtain a
code, exchange it over HTTP yourself, then call `authenticate(token)`.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from .bus import Subscription
from .config import IPCConfig
from .connection import IPCConnection
from .errors import ConnectionClosed, IPCError
from .protocol.commands import CommandType
from .protocol.events import DispatchEvent


@dataclass
class IPCClient:
    """Convenience client owning one IPCConnection."""

    config: IPCConfig = field(default_factory=IPCConfig.from_env)

    # Populated by connect() / authenticate()
    user: dict[str, Any] | None = None
    server_config: dict[str, Any] | None = None
    application: dict[str, Any] | None = None
    access_token: str | None = None

    _connection: IPCConnection | None = field(default=None, repr=False)

    @property
    def connection(self) -> IPCConnection:
        """The underlying connection.

        Raises:
            ConnectionClosed: If connect() has not been called
        """
        if self._connection is None:
            raise ConnectionClosed("Client is not connected")
        return self._connection

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and not self._connection.is_closed

    @property
    def authenticated(self) -> bool:
        return self.access_token is not None

    async def connect(self) -> IPCClient:
        """Open the connection and log in with the configured client id."""
        if not self.config.client_id:
            raise IPCError("client_id is required (set DISCORD_CLIENT_ID)")

        self._connection = await IPCConnection.open(self.config)
        try:
            ready = await self._connection.login(self.config.client_id)
        except BaseException:
            await self._connection.close()
            raise

        self.user = ready.get("user")
        self.server_config = ready.get("config")
        return self

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()

    async def __aenter__(self) -> IPCClient:
        return await self.connect()

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def events(self) -> Subscription:
        """Subscribe to every frame received from now on."""
        return self.connection.subscribe()

    async def dispatches(self) -> AsyncIterator[DispatchEvent]:
        """Yield every DISPATCH received from now on until the connection closes.

        A READY dispatch also refreshes `user` and `server_config`.
        """
        async with self.events() as events:
            async for event in events:
                if event.type == "close":
                    return
                payload = event.payload
                if not payload.is_dispatch() or payload.evt is None:
                    continue

                if payload.is_ready() and isinstance(payload.data, dict):
                    self.user = payload.data.get("user", self.user)
                    self.server_config = payload.data.get("config", self.server_config)

                yield DispatchEvent(event=payload.evt, data=payload.data)

    async def command(
        self,
        cmd: str | CommandType,
        args: dict[str, Any] | None = None,
        evt: str | None = None,
    ) -> Any:
        """Send an arbitrary command and return its reply data."""
        return await self.connection.send_command(cmd, args, evt=evt)

    # =========================================================================
    # Auth
    # =========================================================================

    async def authorize(self, scopes: list[str], **extra: Any) -> str:
        """Ask the user to authorize the app; returns the OAuth2 code."""
        data = await self.command(
            CommandType.AUTHORIZE,
            {"client_id": self.config.client_id, "scopes": scopes, **extra},
        )
        code = data.get("code") if isinstance(data, dict) else None
        if not code:
            raise IPCError("AUTHORIZE reply did not contain a code")
        return code

    async def authenticate(self, access_token: str) -> dict[str, Any]:
        """Authenticate the connection with an OAuth2 access token."""
        data = await self.command(CommandType.AUTHENTICATE, {"access_token": access_token})
        self.access_token = data.get("access_token", access_token)
        self.user = data.get("user", self.user)
        self.application = data.get("application")
        return data

    # =========================================================================
    # Event subscriptions
    # =========================================================================

    async def subscribe(self, evt: str, args: dict[str, Any] | None = None) -> Any:
        """Subscribe to a DISPATCH event on the remote side."""
        return await self.command(CommandType.SUBSCRIBE, args, evt=evt)

    async def unsubscribe(self, evt: str, args: dict[str, Any] | None = None) -> Any:
        """Unsubscribe from a DISPATCH event on the remote side."""
        return await self.command(CommandType.UNSUBSCRIBE, args, evt=evt)

    # =========================================================================
    # Activity
    # =========================================================================

    async def set_activity(
        self, activity: dict[str, Any] | None, pid: int | None = None
    ) -> Any:
        """Set (or clear, with None) the rich presence activity."""
        return await self.command(
            CommandType.SET_ACTIVITY,
            {"pid": pid or os.getpid(), "activity": activity},
        )

    async def clear_activity(self, pid: int | None = None) -> Any:
        return await self.set_activity(None, pid=pid)

    async def send_activity_join_invite(self, user_id: str) -> Any:
        return await self.command(CommandType.SEND_ACTIVITY_JOIN_INVITE, {"user_id": user_id})

    async def close_activity_request(self, user_id: str) -> Any:
        return await self.command(CommandType.CLOSE_ACTIVITY_REQUEST, {"user_id": user_id})

    async def close_activity_join_request(self, user_id: str) -> Any:
        """Dismiss a pending ACTIVITY_JOIN_REQUEST from user_id."""
        return await self.command(
            CommandType.CLOSE_ACTIVITY_JOIN_REQUEST, {"user_id": user_id}
        )

    # =========================================================================
    # Guilds, channels, relationships
    # =========================================================================

    async def get_guild(self, guild_id: str, timeout: int | None = None) -> dict[str, Any]:
        args: dict[str, Any] = {"guild_id": guild_id}
        if timeout is not None:
            args["timeout"] = timeout
        return await self.command(CommandType.GET_GUILD, args)

    async def get_guilds(self) -> list[dict[str, Any]]:
        data = await self.command(CommandType.GET_GUILDS)
        return data.get("guilds", [])

    async def get_channel(self, channel_id: str) -> dict[str, Any]:
        return await self.command(CommandType.GET_CHANNEL, {"channel_id": channel_id})

    async def get_channels(self, guild_id: str | None = None) -> list[dict[str, Any]]:
        data = await self.command(CommandType.GET_CHANNELS, {"guild_id": guild_id})
        return data.get("channels", [])

    async def get_relationships(self) -> list[dict[str, Any]]:
        data = await self.command(CommandType.GET_RELATIONSHIPS)
        return data.get("relationships", [])

    async def get_image(
        self, user_id: str, size: int = 1024, image_type: str = "user", image_format: str = "png"
    ) -> str:
        """Fetch an avatar as a data URI."""
        data = await self.command(
            CommandType.GET_IMAGE,
            {"type": image_type, "id": user_id, "format": image_format, "size": size},
        )
        return data.get("data_url", "") if isinstance(data, dict) else data

    # =========================================================================
    # Voice
    # =========================================================================

    async def get_voice_settings(self) -> dict[str, Any]:
        return await self.command(CommandType.GET_VOICE_SETTINGS)

    async def set_voice_settings(self, **settings: Any) -> dict[str, Any]:
        return await self.command(CommandType.SET_VOICE_SETTINGS, settings)

    async def set_user_voice_settings(self, user_id: str, **settings: Any) -> dict[str, Any]:
        return await self.command(
            CommandType.SET_USER_VOICE_SETTINGS, {"user_id": user_id, **settings}
        )

    async def get_selected_voice_channel(self) -> dict[str, Any] | None:
        return await self.command(CommandType.GET_SELECTED_VOICE_CHANNEL)

    async def select_voice_channel(
        self, channel_id: str | None, force: bool = False, timeout: int = 1
    ) -> dict[str, Any] | None:
        """Join a voice channel, or leave with channel_id=None."""
        return await self.command(
            CommandType.SELECT_VOICE_CHANNEL,
            {"channel_id": channel_id, "force": force, "timeout": timeout},
        )

    async def select_text_channel(
        self, channel_id: str | None, timeout: int = 1
    ) -> dict[str, Any] | None:
        return await self.command(
            CommandType.SELECT_TEXT_CHANNEL,
            {"channel_id": channel_id, "timeout": timeout},
        )


# Factory functions


async def create_client(client_id: str | None = None, **config: Any) -> IPCClient:
    """Create and connect a client.

    Args:
        client_id: Application ID (defaults to DISCORD_CLIENT_ID)
        **config: Extra IPCConfig fields (ipc_path, ipc_ids, env)

    Returns:
        A connected IPCClient
    """
    base = IPCConfig.from_env()
    settings = {"client_id": client_id or base.client_id, "ipc_path": base.ipc_path, **config}
    client = IPCClient(config=IPCConfig(**settings))
    return await client.connect()
