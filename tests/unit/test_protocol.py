"""Unit tests for agent protocol messages"""

import pytest
from rdprov.protocol.message import Message, MessageBuilder, MessageType


class TestMessageSerialization:
    """Test Message JSON serialization"""

    def test_serialize_deserialize_round_trip(self):
        """Test message can be serialized and deserialized"""
        msg = MessageBuilder.triggerMessage_create("SET_PASSWORD", {"password": "x"})

        restored = Message.json_deserialize(msg.json_serialize())

        assert restored.msg_type is MessageType.TRIGGER
        assert restored.payload == {"action": "SET_PASSWORD", "extras": {"password": "x"}}

    def test_serialize_contains_msg_type(self):
        json_str = MessageBuilder.queryMessage_create("status").json_serialize()
        assert '"msg_type": "query"' in json_str

    def test_deserialize_unknown_type_raises(self):
        with pytest.raises(ValueError):
            Message.json_deserialize('{"msg_type": "keepalive", "payload": {}}')

    def test_deserialize_non_object_raises(self):
        with pytest.raises(ValueError, match="JSON object"):
            Message.json_deserialize("[1, 2]")

    def test_deserialize_missing_payload_is_empty(self):
        assert Message.json_deserialize('{"msg_type": "hello"}').payload == {}


class TestMessageBuilder:
    """Test MessageBuilder creates correct messages"""

    def test_hello_defaults_to_protocol_version(self):
        msg = MessageBuilder.helloMessage_create()
        assert msg.msg_type is MessageType.HELLO
        assert msg.payload["version"] == "1.0"

    def test_trigger_without_extras(self):
        assert MessageBuilder.triggerMessage_create("START_SERVICE").payload["extras"] == {}

    def test_results(self):
        trigger = MessageBuilder.triggerResultMessage_create("GET_RUSTDESK_ID", "123456789")
        query = MessageBuilder.queryResultMessage_create("id", [{"id": "123456789"}])

        assert trigger.msg_type is MessageType.RESULT
        assert trigger.payload["result"] == "123456789"
        assert query.payload["rows"] == [{"id": "123456789"}]

    def test_error(self):
        msg = MessageBuilder.errorMessage_create("boom")
        assert msg.msg_type is MessageType.ERROR
        assert msg.payload == {"error": "boom"}
