"""Command definitions for the protocol layer.

Commands are requests from the client that expect a reply. Each command
carries a unique nonce; the reply echoes it back for correlation.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

PROTOCOL_VERSION = "1"


class CommandType(str, Enum):
    """Known RPC command names."""

    DISPATCH = "DISPATCH"

    # Auth
    AUTHORIZE = "AUTHORIZE"
    AUTHENTICATE = "AUTHENTICATE"

    # Guilds and channels
    GET_GUILD = "GET_GUILD"
    GET_GUILDS = "GET_GUILDS"
    GET_CHANNEL = "GET_CHANNEL"
    GET_CHANNELS = "GET_CHANNELS"
    CREATE_CHANNEL_INVITE = "CREATE_CHANNEL_INVITE"
    GET_RELATIONSHIPS = "GET_RELATIONSHIPS"

    # Event subscriptions
    SUBSCRIBE = "SUBSCRIBE"
    UNSUBSCRIBE = "UNSUBSCRIBE"

    # Voice
    SET_USER_VOICE_SETTINGS = "SET_USER_VOICE_SETTINGS"
    SET_USER_VOICE_SETTINGS_2 = "SET_USER_VOICE_SETTINGS_2"
    SELECT_VOICE_CHANNEL = "SELECT_VOICE_CHANNEL"
    GET_SELECTED_VOICE_CHANNEL = "GET_SELECTED_VOICE_CHANNEL"
    SELECT_TEXT_CHANNEL = "SELECT_TEXT_CHANNEL"
    GET_VOICE_SETTINGS = "GET_VOICE_SETTINGS"
    SET_VOICE_SETTINGS = "SET_VOICE_SETTINGS"
    SET_VOICE_SETTINGS_2 = "SET_VOICE_SETTINGS_2"
    CAPTURE_SHORTCUT = "CAPTURE_SHORTCUT"
    SET_CERTIFIED_DEVICES = "SET_CERTIFIED_DEVICES"

    # Activities
    SET_ACTIVITY = "SET_ACTIVITY"
    SEND_ACTIVITY_JOIN_INVITE = "SEND_ACTIVITY_JOIN_INVITE"
    CLOSE_ACTIVITY_REQUEST = "CLOSE_ACTIVITY_REQUEST"
    CLOSE_ACTIVITY_JOIN_REQUEST = "CLOSE_ACTIVITY_JOIN_REQUEST"
    ACCEPT_ACTIVITY_INVITE = "ACCEPT_ACTIVITY_INVITE"
    ACTIVITY_INVITE_USER = "ACTIVITY_INVITE_USER"
    GET_ACTIVITY_JOIN_TICKET = "GET_ACTIVITY_JOIN_TICKET"

    # Misc
    GET_IMAGE = "GET_IMAGE"
    SEND_GENERIC_EVENT = "SEND_GENERIC_EVENT"
    SET_USER_ACHIEVEMENT = "SET_USER_ACHIEVEMENT"
    GET_USER_ACHIEVEMENTS = "GET_USER_ACHIEVEMENTS"
    GET_SKUS = "GET_SKUS"
    GET_ENTITLEMENTS = "GET_ENTITLEMENTS"
    START_PURCHASE = "START_PURCHASE"
    VALIDATE_APPLICATION = "VALIDATE_APPLICATION"
    SET_OVERLAY_LOCKED = "SET_OVERLAY_LOCKED"
    OPEN_OVERLAY_VOICE_SETTINGS = "OPEN_OVERLAY_VOICE_SETTINGS"
    OPEN_OVERLAY_GUILD_INVITE = "OPEN_OVERLAY_GUILD_INVITE"
    OPEN_INVITE_DIALOG = "OPEN_INVITE_DIALOG"
    BROWSER_HANDOFF = "BROWSER_HANDOFF"
    DEEP_LINK = "DEEP_LINK"


def parse_command(raw: str | None) -> CommandType | str | None:
    """Map a raw cmd string onto CommandType, keeping unknown names as-is."""
    if raw is None:
        return None
    try:
        return CommandType(raw)
    except ValueError:
        return raw


def new_nonce() -> str:
    """Generate a fresh correlation nonce."""
    return str(uuid.uuid4())


class Command(BaseModel):
    """A command from client to the remote application.

    Example:
        {
            "cmd": "GET_CHANNELS",
            "args": {"guild_id": null},
            "nonce": "0d6d8a4e-..."
        }

    The reply carries the same `nonce`. Subscriptions also set `evt`.
    """

    cmd: str
    args: dict[str, Any] = Field(default_factory=dict)
    nonce: str = Field(default_factory=new_nonce)
    evt: str | None = None

    def to_wire(self) -> dict[str, Any]:
        """Dump for the wire, omitting `evt` when unset.

        Built by hand because exclude_none would also strip null args.
        """
        wire: dict[str, Any] = {"cmd": self.cmd, "args": self.args, "nonce": self.nonce}
        if self.evt is not None:
            wire["evt"] = self.evt
        return wire

    @classmethod
    def create(
        cls,
        cmd: str | CommandType,
        args: dict[str, Any] | None = None,
        evt: str | None = None,
        nonce: str | None = None,
    ) -> Command:
        """Factory method for creating commands."""
        return cls(
            cmd=cmd.value if isinstance(cmd, CommandType) else cmd,
            args=args or {},
            nonce=nonce or new_nonce(),
            evt=evt.value if isinstance(evt, Enum) else evt,
        )

    @classmethod
    def subscribe(cls, evt: str, args: dict[str, Any] | None = None) -> Command:
        """Create a SUBSCRIBE command for a dispatch event."""
        return cls.create(CommandType.SUBSCRIBE, args, evt=evt)

    @classmethod
    def unsubscribe(cls, evt: str, args: dict[str, Any] | None = None) -> Command:
        """Create an UNSUBSCRIBE command for a dispatch event."""
        return cls.create(CommandType.UNSUBSCRIBE, args, evt=evt)


class HandshakePayload(BaseModel):
    """Payload of the HANDSHAKE frame. Carries no nonce."""

    v: str = PROTOCOL_VERSION
    client_id: str
