"""
Remote configuration facade over the remote-access engine.

This is the only way rdprov touches the engine. Options are split into
local (device-scoped, effective immediately) and synced (re-read by the
engine's synchronization path only on reconnect, so callers must follow a
synced write with `connection_restart()`).
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from rdprov.common.types import IDENTITY_PENDING, OptionScope
from rdprov.engine.helper import EngineCallError

logger = logging.getLogger(__name__)

__all__ = [
    "EngineCallError",
    "EngineTransport",
    "OptionKey",
    "RemoteConfigFacade",
    "optionScope_get",
]


class OptionKey:
    """Engine option keys used by rdprov."""

    RENDEZVOUS_SERVER = "custom-rendezvous-server"
    RELAY_SERVER = "relay-server"
    API_SERVER = "api-server"
    KEY = "key"
    APPROVE_MODE = "approve-mode"
    ENABLE_KEYBOARD = "enable-keyboard"
    ENABLE_CLIPBOARD = "enable-clipboard"
    ENABLE_FILE_TRANSFER = "enable-file-transfer"
    ENABLE_AUDIO = "enable-audio"
    ENABLE_TUNNEL = "enable-tunnel"
    ENABLE_REMOTE_RESTART = "enable-remote-restart"
    DIRECT_SERVER = "direct-server"
    DIRECT_ACCESS_PORT = "direct-access-port"
    PERMANENT_PASSWORD = "permanent-password"
    ID = "id"
    PRESET_DEVICE_NAME = "preset-device-name"


_SCOPES: dict[str, OptionScope] = {
    OptionKey.RENDEZVOUS_SERVER: OptionScope.LOCAL,
    OptionKey.RELAY_SERVER: OptionScope.LOCAL,
    OptionKey.API_SERVER: OptionScope.LOCAL,
    OptionKey.KEY: OptionScope.LOCAL,
    OptionKey.APPROVE_MODE: OptionScope.LOCAL,
    OptionKey.ENABLE_KEYBOARD: OptionScope.LOCAL,
    OptionKey.ENABLE_CLIPBOARD: OptionScope.LOCAL,
    OptionKey.ENABLE_FILE_TRANSFER: OptionScope.LOCAL,
    OptionKey.ENABLE_AUDIO: OptionScope.LOCAL,
    OptionKey.ENABLE_TUNNEL: OptionScope.LOCAL,
    OptionKey.ENABLE_REMOTE_RESTART: OptionScope.LOCAL,
    OptionKey.DIRECT_SERVER: OptionScope.LOCAL,
    OptionKey.DIRECT_ACCESS_PORT: OptionScope.LOCAL,
    OptionKey.PERMANENT_PASSWORD: OptionScope.LOCAL,
    OptionKey.ID: OptionScope.LOCAL,
    OptionKey.PRESET_DEVICE_NAME: OptionScope.SYNCED,
}


def optionScope_get(key: str) -> OptionScope:
    """
    Look up the scope of an option key.

    Raises:
        EngineCallError: If the key is not a known option
    """
    scope = _SCOPES.get(key)
    if scope is None:
        raise EngineCallError(f"Unknown engine option '{key}'")
    return scope


class EngineTransport(Protocol):
    """Request/response channel into the engine."""

    def request(self, cmd: str, payload: dict[str, Any]) -> Any:
        """Send one command; raise EngineCallError on failure."""


class RemoteConfigFacade:
    """Synchronous configuration adapter for the remote-access engine."""

    def __init__(self, transport: EngineTransport) -> None:
        self._transport: EngineTransport = transport

    def _scope_require(self, key: str, scope: OptionScope) -> None:
        actual = optionScope_get(key)
        if actual is not scope:
            raise EngineCallError(f"Option '{key}' is {actual.value}, not {scope.value}")

    def _string_call(self, cmd: str, payload: dict[str, Any]) -> str:
        result = self._transport.request(cmd, payload)
        return "" if result is None else str(result)

    def option_set(self, key: str, value: str) -> None:
        """Set a synced option; takes effect after `connection_restart()`"""
        self._scope_require(key, OptionScope.SYNCED)
        self._transport.request("set_option", {"key": key, "value": value})

    def option_get(self, key: str) -> str:
        self._scope_require(key, OptionScope.SYNCED)
        return self._string_call("get_option", {"key": key})

    def localOption_set(self, key: str, value: str) -> None:
        """Set a device-scoped option, effective immediately"""
        self._scope_require(key, OptionScope.LOCAL)
        self._transport.request("set_local_option", {"key": key, "value": value})

    def localOption_get(self, key: str) -> str:
        self._scope_require(key, OptionScope.LOCAL)
        return self._string_call("get_local_option", {"key": key})

    def credential_set(self, value: str) -> None:
        """Store the permanent password used for unattended acceptance"""
        self.localOption_set(OptionKey.PERMANENT_PASSWORD, value)

    def identity_get(self) -> str:
        """
        Read the identity assigned by the backend.

        Returns:
            Identity, or `pending` when none is assigned yet

        Raises:
            EngineCallError: If the read fails
        """
        identity = self.localOption_get(OptionKey.ID).strip()
        return identity if identity else IDENTITY_PENDING

    def networkService_start(self) -> None:
        self._transport.request("start_service", {})

    def connection_restart(self) -> None:
        """Reconnect to the rendezvous server so synced options are re-read"""
        self._transport.request("restart_rendezvous", {})
