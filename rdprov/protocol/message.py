"""Agent control protocol messages"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from rdprov.common.settings import settings


class MessageType(Enum):
    """Types of protocol messages"""

    HELLO = "hello"
    TRIGGER = "trigger"
    QUERY = "query"
    RESULT = "result"
    ERROR = "error"


@dataclass
class Message:
    """Base protocol message"""

    msg_type: MessageType
    payload: Dict[str, Any]

    def json_serialize(self) -> str:
        """Serialize message to JSON string"""
        data = {"msg_type": self.msg_type.value, "payload": self.payload}
        return json.dumps(data)

    @staticmethod
    def json_deserialize(data: str) -> "Message":
        """
        Deserialize message from JSON string

        Args:
            data: JSON string

        Returns:
            Deserialized Message object

        Raises:
            ValueError: If the message is malformed or of unknown type
        """
        parsed = json.loads(data)
        if not isinstance(parsed, dict):
            raise ValueError("Message must be a JSON object")
        msg_type = MessageType(parsed["msg_type"])
        payload = parsed.get("payload") or {}
        if not isinstance(payload, dict):
            raise ValueError("Message payload must be a JSON object")
        return Message(msg_type=msg_type, payload=payload)


class MessageBuilder:
    """Builds protocol messages"""

    @staticmethod
    def helloMessage_create(version: Optional[str] = None) -> Message:
        return Message(
            msg_type=MessageType.HELLO,
            payload={"version": version or settings.PROTOCOL_VERSION},
        )

    @staticmethod
    def triggerMessage_create(action: str, extras: Optional[Dict[str, str]] = None) -> Message:
        """
        Create trigger request message

        Args:
            action: Trigger action (bare or namespaced)
            extras: String parameters such as `password` or `device_name`
        """
        return Message(
            msg_type=MessageType.TRIGGER,
            payload={"action": action, "extras": dict(extras or {})},
        )

    @staticmethod
    def queryMessage_create(target: str) -> Message:
        return Message(msg_type=MessageType.QUERY, payload={"target": target})

    @staticmethod
    def triggerResultMessage_create(action: str, result: Optional[str]) -> Message:
        return Message(
            msg_type=MessageType.RESULT,
            payload={"action": action, "result": result},
        )

    @staticmethod
    def queryResultMessage_create(target: str, rows: list) -> Message:
        return Message(
            msg_type=MessageType.RESULT,
            payload={"target": target, "rows": rows},
        )

    @staticmethod
    def errorMessage_create(error: str) -> Message:
        return Message(msg_type=MessageType.ERROR, payload={"error": error})
