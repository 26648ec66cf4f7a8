"""TCP listener for trigger and status requests"""

import logging
import select
import socket
import threading
from typing import Callable, List, Optional

from rdprov.common.settings import settings
from rdprov.protocol.message import Message, MessageBuilder

logger = logging.getLogger(__name__)


class ControlConnection:
    """Represents a connected control client"""

    def __init__(self, client_socket: socket.socket, address: tuple[str, int]) -> None:
        """
        Initialize control connection

        Args:
            client_socket: Client socket
            address: Client address (host, port)
        """
        self.socket: socket.socket = client_socket
        self.address: tuple[str, int] = address
        self.buffer: bytes = b""
        self._send_lock: threading.Lock = threading.Lock()

    def message_send(self, message: Message) -> None:
        """
        Send message to client; safe to call from worker threads

        Args:
            message: Message to send
        """
        data = (message.json_serialize() + "\n").encode("utf-8")
        with self._send_lock:
            self.socket.setblocking(True)
            try:
                self.socket.sendall(data)
            finally:
                self.socket.setblocking(False)

    def data_receive(self) -> List[Message]:
        """
        Receive data from client and parse into messages

        Returns:
            List of complete messages received

        Raises:
            ConnectionError: If connection is closed or error occurs
        """
        try:
            data = self.socket.recv(4096)
            if not data:
                raise ConnectionError("Connection closed by client")

            if len(self.buffer) + len(data) > settings.MAX_MESSAGE_BUFFER:
                logger.error(f"Buffer overflow from {self.address}")
                raise ConnectionError("Buffer size limit exceeded")

            self.buffer += data

            # decode per complete line; a chunk may end inside a multi-byte character
            messages: List[Message] = []
            while b"\n" in self.buffer:
                raw_line, self.buffer = self.buffer.split(b"\n", 1)
                if raw_line.strip():
                    try:
                        messages.append(Message.json_deserialize(raw_line.decode("utf-8")))
                    except (ValueError, KeyError) as e:
                        logger.error(f"Failed to parse message from {self.address}: {e}")
                        self.message_send(MessageBuilder.errorMessage_create(f"bad message: {e}"))

            return messages

        except socket.error as e:
            raise ConnectionError(f"Socket error: {e}")

    def connection_close(self) -> None:
        """Close connection to client"""
        try:
            self.socket.close()
        except OSError as e:
            logger.error(f"Error closing connection to {self.address}: {e}")


class AgentNetwork:
    """TCP server for accepting and managing control connections"""

    def __init__(self, host: str, port: int, max_clients: int = 4) -> None:
        """
        Initialize agent network

        Args:
            host: Host address to bind to
            port: Port to listen on (0 picks a free port)
            max_clients: Maximum number of concurrent control connections
        """
        self.host: str = host
        self.port: int = port
        self.max_clients: int = max_clients
        self.server_socket: Optional[socket.socket] = None
        self.clients: List[ControlConnection] = []
        self.is_running: bool = False

    def server_start(self) -> None:
        """
        Start TCP server and begin listening for connections

        Raises:
            OSError: If unable to bind to address
        """
        self.server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.server_socket.bind((self.host, self.port))
        self.server_socket.listen(self.max_clients)
        self.server_socket.setblocking(False)
        self.port = self.server_socket.getsockname()[1]
        self.is_running = True

        logger.info(f"Agent listening on {self.host}:{self.port}")

    def server_stop(self) -> None:
        """Stop server and close all connections"""
        self.is_running = False

        for client in self.clients[:]:
            self.client_disconnect(client)

        if self.server_socket:
            try:
                self.server_socket.close()
            except OSError as e:
                logger.error(f"Error closing server socket: {e}")
            finally:
                self.server_socket = None

        logger.info("Agent stopped")

    def connections_accept(self, timeout_s: float = 0.0) -> None:
        """
        Accept pending control connections

        Args:
            timeout_s: How long to wait for a pending connection
        """
        if not self.server_socket:
            return

        readable, _, _ = select.select([self.server_socket], [], [], timeout_s)
        if not readable:
            return

        try:
            client_socket, address = self.server_socket.accept()
            client_socket.setblocking(False)

            if len(self.clients) >= self.max_clients:
                logger.warning(f"Max clients reached, rejecting {address}")
                client_socket.close()
                return

            client = ControlConnection(client_socket, address)
            self.clients.append(client)
            client.message_send(MessageBuilder.helloMessage_create())

            logger.info(f"Control client connected: {address}")

        except OSError as e:
            logger.error(f"Error accepting connection: {e}")

    def client_disconnect(self, client: ControlConnection) -> None:
        """
        Disconnect a client

        Args:
            client: Client to disconnect
        """
        if client in self.clients:
            self.clients.remove(client)
            client.connection_close()
            logger.info(f"Control client disconnected: {client.address}")

    def clientData_receive(
        self,
        message_handler: Callable[[ControlConnection, Message], None]
    ) -> None:
        """
        Receive data from all connected clients (non-blocking)

        Args:
            message_handler: Callback for each received message
        """
        for client in self.clients[:]:
            try:
                readable, _, _ = select.select([client.socket], [], [], 0)
                if not readable:
                    continue

                for message in client.data_receive():
                    message_handler(client, message)

            except ConnectionError as e:
                logger.debug(f"Client {client.address} connection closed: {e}")
                self.client_disconnect(client)
            except OSError as e:
                logger.error(f"Error receiving from {client.address}: {e}")
                self.client_disconnect(client)

    def clients_count(self) -> int:
        """
        Get number of connected clients

        Returns:
            Number of connected clients
        """
        return len(self.clients)
