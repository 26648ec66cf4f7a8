"""
TCP control client for a running trigger agent.

Sends one trigger or status query and waits for the matching result. The
wait is bounded; a caller that times out simply gets no result, and the
agent keeps running the trigger to completion.
"""

from __future__ import annotations

import logging
import select
import socket
import time

from rdprov.common.settings import settings
from rdprov.protocol.message import Message, MessageBuilder, MessageType

logger = logging.getLogger(__name__)


class AgentRequestError(RuntimeError):
    """Raised when the agent reports an error or does not answer in time."""


def agentAddress_parse(address: str) -> tuple[str, int]:
    """
    Parse `HOST:PORT` into its parts.

    Raises:
        ValueError: If the port is missing or not a number
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"Agent address must be HOST:PORT, got '{address}'")
    return host or "127.0.0.1", int(port)


class AgentControlClient:
    """One-request-at-a-time client for the trigger agent."""

    def __init__(self, host: str, port: int, timeout_s: float = 60.0) -> None:
        """
        Initialize control client.

        Args:
            host: Agent host
            port: Agent port
            timeout_s: Bound on waiting for each response
        """
        self.host: str = host
        self.port: int = port
        self.timeout_s: float = timeout_s
        self.socket: socket.socket | None = None
        self.buffer: bytes = b""

    def connection_establish(self) -> None:
        """Connect and consume the agent HELLO"""
        self.socket = socket.create_connection((self.host, self.port), timeout=self.timeout_s)
        hello = self.message_receive()
        if hello.msg_type is not MessageType.HELLO:
            raise AgentRequestError(f"Unexpected greeting: {hello.msg_type.value}")
        logger.debug("Connected to agent v%s", hello.payload.get("version"))

    def connection_close(self) -> None:
        if self.socket is not None:
            try:
                self.socket.close()
            finally:
                self.socket = None

    def message_receive(self) -> Message:
        """
        Read the next newline-delimited message.

        Raises:
            AgentRequestError: On timeout, a closed connection, or a line
                that is not valid UTF-8
        """
        if self.socket is None:
            raise AgentRequestError("Not connected")

        deadline = time.monotonic() + self.timeout_s
        while b"\n" not in self.buffer:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise AgentRequestError(f"No answer from agent within {self.timeout_s}s")
            readable, _, _ = select.select([self.socket], [], [], remaining)
            if not readable:
                continue
            data = self.socket.recv(4096)
            if not data:
                raise AgentRequestError("Agent closed the connection")
            self.buffer += data
            if len(self.buffer) > settings.MAX_MESSAGE_BUFFER:
                raise AgentRequestError("Agent response too large")

        raw_line, self.buffer = self.buffer.split(b"\n", 1)
        try:
            line = raw_line.decode("utf-8")
        except UnicodeDecodeError as e:
            raise AgentRequestError(f"Malformed response from agent: {e}") from e
        return Message.json_deserialize(line)

    def _request(self, message: Message) -> Message:
        if self.socket is None:
            self.connection_establish()
        assert self.socket is not None
        self.socket.sendall((message.json_serialize() + "\n").encode("utf-8"))
        response = self.message_receive()
        if response.msg_type is MessageType.ERROR:
            raise AgentRequestError(str(response.payload.get("error", "agent error")))
        return response

    def trigger_send(self, action: str, extras: dict[str, str] | None = None) -> str | None:
        """Send a trigger and return its result string"""
        response = self._request(MessageBuilder.triggerMessage_create(action, extras))
        return response.payload.get("result")

    def query_send(self, target: str) -> list[dict]:
        """Send a status query and return its rows"""
        response = self._request(MessageBuilder.queryMessage_create(target))
        return list(response.payload.get("rows") or [])
