"""Unit tests for Command protocol type."""

import json
import uuid

from discord_ipc.protocol.commands import (
    Command,
    CommandType,
    HandshakePayload,
    parse_command,
)
from discord_ipc.protocol.events import EventType


class TestCommandCreation:
    """Test Command creation and basic properties."""

    def test_create_with_defaults(self):
        """Command should generate a UUID nonce automatically."""
        cmd = Command(cmd="GET_GUILDS")

        assert cmd.cmd == "GET_GUILDS"
        assert uuid.UUID(cmd.nonce)
        assert cmd.args == {}
        assert cmd.evt is None

    def test_nonces_are_unique(self):
        assert Command(cmd="X").nonce != Command(cmd="X").nonce

    def test_create_factory_method(self):
        """Command.create() should accept CommandType."""
        cmd = Command.create(CommandType.GET_CHANNELS, {"guild_id": "123"})

        assert cmd.cmd == "GET_CHANNELS"
        assert cmd.args["guild_id"] == "123"

    def test_create_with_string_cmd(self):
        """Unknown command names are passed through untouched."""
        cmd = Command.create("FUTURE_COMMAND", {"key": "value"})

        assert cmd.cmd == "FUTURE_COMMAND"

    def test_create_reuses_given_nonce(self):
        cmd = Command.create(CommandType.GET_GUILD, nonce="my-nonce")

        assert cmd.nonce == "my-nonce"

    def test_subscribe_factory(self):
        """subscribe() sets the event name."""
        cmd = Command.subscribe(EventType.MESSAGE_CREATE, {"channel_id": "42"})

        assert cmd.cmd == "SUBSCRIBE"
        assert cmd.evt == "MESSAGE_CREATE"
        assert cmd.args == {"channel_id": "42"}

    def test_unsubscribe_factory(self):
        cmd = Command.unsubscribe("VOICE_SETTINGS_UPDATE")

        assert cmd.cmd == "UNSUBSCRIBE"
        assert cmd.evt == "VOICE_SETTINGS_UPDATE"


class TestCommandWireFormat:
    """Test the JSON envelope sent on the wire."""

    def test_to_wire_omits_unset_evt(self):
        cmd = Command.create(CommandType.GET_GUILDS, nonce="n1")

        assert cmd.to_wire() == {"cmd": "GET_GUILDS", "args": {}, "nonce": "n1"}

    def test_to_wire_keeps_null_args(self):
        """Null argument values must survive serialization."""
        cmd = Command.create(CommandType.GET_CHANNELS, {"guild_id": None}, nonce="n2")

        wire = json.loads(json.dumps(cmd.to_wire()))

        assert wire["args"] == {"guild_id": None}

    def test_to_wire_includes_evt(self):
        cmd = Command.subscribe("READY")

        assert cmd.to_wire()["evt"] == "READY"


class TestParseCommand:
    """Test mapping raw cmd strings onto CommandType."""

    def test_known_command(self):
        assert parse_command("DISPATCH") is CommandType.DISPATCH

    def test_unknown_command_preserved(self):
        assert parse_command("SOMETHING_NEW") == "SOMETHING_NEW"

    def test_none(self):
        assert parse_command(None) is None


class TestHandshakePayload:
    """Test the handshake payload."""

    def test_dump(self):
        payload = HandshakePayload(client_id="869104832227733514")

        assert payload.model_dump() == {"v": "1", "client_id": "869104832227733514"}

    def test_has_no_nonce(self):
        assert "nonce" not in HandshakePayload(client_id="X").model_dump()
