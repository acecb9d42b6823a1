"""Event definitions for the protocol layer.

Incoming JSON payloads come in three shapes:
- Replies: `{"cmd": "GET_CHANNELS", "data": {...}, "nonce": "<uuid>"}`
- Error replies: same, with `"evt": "ERROR"` and `data: {code, message}`
- Dispatches: `{"cmd": "DISPATCH", "evt": "READY", "data": {...}, "nonce": null}`

Every frame read off the socket is published to subscribers as a
PacketEvent; a CloseEvent terminates every subscription.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .commands import CommandType, parse_command
from .frames import OpCode


class EventType(str, Enum):
    """Known dispatch event names."""

    READY = "READY"
    ERROR = "ERROR"

    # Guilds and channels
    GUILD_STATUS = "GUILD_STATUS"
    GUILD_CREATE = "GUILD_CREATE"
    CHANNEL_CREATE = "CHANNEL_CREATE"

    # Voice
    VOICE_CHANNEL_SELECT = "VOICE_CHANNEL_SELECT"
    VOICE_STATE_CREATE = "VOICE_STATE_CREATE"
    VOICE_STATE_UPDATE = "VOICE_STATE_UPDATE"
    VOICE_STATE_DELETE = "VOICE_STATE_DELETE"
    VOICE_SETTINGS_UPDATE = "VOICE_SETTINGS_UPDATE"
    VOICE_SETTINGS_UPDATE_2 = "VOICE_SETTINGS_UPDATE_2"
    VOICE_CONNECTION_STATUS = "VOICE_CONNECTION_STATUS"
    SPEAKING_START = "SPEAKING_START"
    SPEAKING_STOP = "SPEAKING_STOP"

    # Messages and notifications
    MESSAGE_CREATE = "MESSAGE_CREATE"
    MESSAGE_UPDATE = "MESSAGE_UPDATE"
    MESSAGE_DELETE = "MESSAGE_DELETE"
    NOTIFICATION_CREATE = "NOTIFICATION_CREATE"
    CAPTURE_SHORTCUT_CHANGE = "CAPTURE_SHORTCUT_CHANGE"

    # Activities
    ACTIVITY_JOIN = "ACTIVITY_JOIN"
    ACTIVITY_JOIN_REQUEST = "ACTIVITY_JOIN_REQUEST"
    ACTIVITY_SPECTATE = "ACTIVITY_SPECTATE"
    GAME_JOIN = "GAME_JOIN"
    GAME_SPECTATE = "GAME_SPECTATE"

    # User
    CURRENT_USER_UPDATE = "CURRENT_USER_UPDATE"
    RELATIONSHIP_UPDATE = "RELATIONSHIP_UPDATE"
    USER_ACHIEVEMENT_UPDATE = "USER_ACHIEVEMENT_UPDATE"
    ENTITLEMENT_CREATE = "ENTITLEMENT_CREATE"
    ENTITLEMENT_DELETE = "ENTITLEMENT_DELETE"

    # Overlay
    OVERLAY = "OVERLAY"
    OVERLAY_UPDATE = "OVERLAY_UPDATE"


def parse_event(raw: str | None) -> EventType | str | None:
    """Map a raw evt string onto EventType, keeping unknown names as-is."""
    if raw is None:
        return None
    try:
        return EventType(raw)
    except ValueError:
        return raw


class Payload(BaseModel):
    """Decoded JSON body of an incoming frame.

    Unknown keys are preserved (extra="allow") so additions on the remote
    side never break decoding.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    cmd: str | None = None
    evt: str | None = None
    data: Any = None
    nonce: str | None = None

    @property
    def command(self) -> CommandType | str | None:
        """The cmd as CommandType, or the raw string if unknown."""
        return parse_command(self.cmd)

    @property
    def event(self) -> EventType | str | None:
        """The evt as EventType, or the raw string if unknown."""
        return parse_event(self.evt)

    def is_dispatch(self) -> bool:
        """Check if this is an unsolicited DISPATCH."""
        return self.cmd == CommandType.DISPATCH.value

    def is_error(self) -> bool:
        """Check if this payload carries an error."""
        return self.evt == EventType.ERROR.value

    def is_ready(self) -> bool:
        """Check if this is the READY dispatch that completes login."""
        return self.is_dispatch() and self.evt == EventType.READY.value

    def get_data(self, key: str, default: Any = None) -> Any:
        """Get a key from `data` when it is an object."""
        if isinstance(self.data, dict):
            return self.data.get(key, default)
        return default

    @property
    def error_code(self) -> int | None:
        return self.get_data("code")

    @property
    def error_message(self) -> str:
        return self.get_data("message") or "Unknown error"

    def _field(self, key: str) -> Any:
        # CLOSE bodies carry code/message at the top level, not under data
        extra = self.model_extra or {}
        if key in extra:
            return extra[key]
        return self.get_data(key)

    @property
    def close_code(self) -> int | None:
        """Close code of a CLOSE frame body."""
        return self._field("code")

    @property
    def close_message(self) -> str | None:
        return self._field("message")


class PacketEvent(BaseModel):
    """A frame read off the socket, as seen by subscribers."""

    model_config = ConfigDict(frozen=True)

    type: Literal["packet"] = "packet"
    op: OpCode | int
    payload: Payload = Field(default_factory=Payload)
    raw: bytes | None = None  # Non-JSON PING/PONG bodies and unknown opcodes

    @property
    def data(self) -> Any:
        """Shortcut to the payload's data field."""
        return self.payload.data


class CloseEvent(BaseModel):
    """Terminal event delivered to every subscriber when the connection closes."""

    model_config = ConfigDict(frozen=True)

    type: Literal["close"] = "close"
    code: int | None = None
    message: str | None = None


class DispatchEvent(BaseModel):
    """An unsolicited DISPATCH, as yielded by IPCClient.dispatches()."""

    model_config = ConfigDict(frozen=True)

    type: Literal["dispatch"] = "dispatch"
    event: str
    data: Any = None

    @property
    def event_type(self) -> EventType | str | None:
        return parse_event(self.event)


IPCEvent = PacketEvent | CloseEvent
