"""Engine bridge client for remote-access engine configuration calls."""

from __future__ import annotations

import json
import logging
import select
import shlex
import subprocess
import threading
from typing import Any, Optional, TextIO

logger = logging.getLogger(__name__)


class EngineCallError(RuntimeError):
    """Raised when a call into the remote-access engine fails."""


class EngineHelperClient:
    """JSON line protocol client for the engine bridge process."""

    def __init__(self, command: str, timeout_s: float = 5.0) -> None:
        """
        Initialize helper client.

        Args:
            command: Bridge command line, started on first use
            timeout_s: Bound on each response read
        """
        self._command: str = command
        self._timeout_s: float = timeout_s
        self._process: Optional[subprocess.Popen[str]] = None
        self._stdin: Optional[TextIO] = None
        self._stdout: Optional[TextIO] = None
        self._lock: threading.Lock = threading.Lock()

    def connection_establish(self) -> None:
        """Start bridge process and validate handshake."""
        if self._process is not None:
            return
        if not self._command:
            raise EngineCallError("No engine helper command configured")

        try:
            self._process = subprocess.Popen(
                shlex.split(self._command),
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                bufsize=1,
            )
        except OSError as e:
            self._process = None
            raise EngineCallError(f"Failed to start engine helper: {e}") from e

        self._stdin = self._process.stdin
        self._stdout = self._process.stdout

        if self._stdin is None or self._stdout is None:
            self.connection_close()
            raise EngineCallError("Failed to open helper stdin/stdout")

        try:
            self._exchange("hello", {})
        except EngineCallError:
            self.connection_close()
            raise

    def connection_close(self) -> None:
        """Request shutdown and terminate bridge process."""
        if self._stdin:
            try:
                self._stdin.write(json.dumps({"cmd": "shutdown"}) + "\n")
                self._stdin.flush()
            except (OSError, ValueError):
                pass

        if self._process:
            try:
                self._process.terminate()
            except OSError:
                pass
            self._process = None
            self._stdin = None
            self._stdout = None

    def _line_read(self) -> str:
        """Read one response line, bounded by the call timeout"""
        assert self._stdout is not None
        readable, _, _ = select.select([self._stdout], [], [], self._timeout_s)
        if not readable:
            raise EngineCallError(f"Engine helper did not answer within {self._timeout_s}s")
        return self._stdout.readline()

    def _exchange(self, cmd: str, payload: dict[str, Any]) -> Any:
        """
        Send one request and parse the JSON response.

        Args:
            cmd: Command name
            payload: Command payload

        Returns:
            Helper result payload
        """
        if self._stdin is None or self._stdout is None:
            raise EngineCallError("Helper connection not established")

        try:
            self._stdin.write(json.dumps({"cmd": cmd, "payload": payload}) + "\n")
            self._stdin.flush()
        except (OSError, ValueError) as e:
            self.connection_close()
            raise EngineCallError(f"Engine helper write failed: {e}") from e

        try:
            response_line = self._line_read()
        except EngineCallError:
            # a late answer would be read as the reply to the next request
            self.connection_close()
            raise
        if not response_line:
            self.connection_close()
            raise EngineCallError("Engine helper terminated unexpectedly")

        try:
            response = json.loads(response_line)
        except json.JSONDecodeError as e:
            raise EngineCallError(f"Malformed engine helper response: {e}") from e
        if not response.get("ok", False):
            raise EngineCallError(response.get("error", "Engine helper error"))
        return response.get("result")

    def request(self, cmd: str, payload: dict[str, Any]) -> Any:
        """
        Send request to the bridge, starting it on first use.

        Calls are serialized so trigger workers and status queries can share
        one bridge process.

        Args:
            cmd: Command name
            payload: Command payload

        Returns:
            Helper result payload

        Raises:
            EngineCallError: On any transport or engine failure
        """
        with self._lock:
            self.connection_establish()
            logger.debug("Engine call: %s %s", cmd, sorted(payload))
            return self._exchange(cmd, payload)
