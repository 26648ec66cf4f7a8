"""
Read-only status queries for external observers.

Every value is computed on demand from the live service, input-control and
engine state. Nothing here writes to the device or the engine, and every
device read uses the short status timeout.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence

from rdprov.common.types import (
    IDENTITY_ERROR,
    VALUE_ERROR,
    CapabilityPermission,
    QueryTarget,
)
from rdprov.device.input_control import InputControlRegistrar
from rdprov.device.service import BackgroundServiceController
from rdprov.engine.facade import EngineCallError, OptionKey, RemoteConfigFacade
from rdprov.privileged.grants import CapabilityGrantExecutor

logger = logging.getLogger(__name__)

__all__ = ["StatusQueryFacade", "CONFIG_WHITELIST"]

Row = dict[str, object]

CONFIG_WHITELIST: tuple[tuple[str, str], ...] = (
    ("rendezvous_server", OptionKey.RENDEZVOUS_SERVER),
    ("relay_server", OptionKey.RELAY_SERVER),
    ("api_server", OptionKey.API_SERVER),
)
"""Row key and engine option for each reported config value; never credentials"""


class StatusQueryFacade:
    """Answers `id`, `status`, `config` and `permissions` queries."""

    def __init__(
        self,
        facade: RemoteConfigFacade,
        service: BackgroundServiceController,
        registrar: InputControlRegistrar,
        grants: CapabilityGrantExecutor,
        permissions: Sequence[CapabilityPermission],
        timeout_s: float = 3.0,
        clock_ms: Callable[[], int] = lambda: int(time.time() * 1000),
    ) -> None:
        self._facade: RemoteConfigFacade = facade
        self._service: BackgroundServiceController = service
        self._registrar: InputControlRegistrar = registrar
        self._grants: CapabilityGrantExecutor = grants
        self._permissions: list[CapabilityPermission] = list(permissions)
        self._timeout_s: float = timeout_s
        self._clock_ms: Callable[[], int] = clock_ms

    def query(self, target: str) -> list[Row]:
        """
        Answer one status query.

        Args:
            target: Query target name (`id`, `status`, `config`, `permissions`)

        Returns:
            Rows of key/value pairs; empty for unrecognised targets or when
            the query itself failed
        """
        try:
            query_target = QueryTarget(target.strip().lower())
        except ValueError:
            logger.debug("Unsupported status query target '%s'", target)
            return []

        try:
            if query_target is QueryTarget.ID:
                return self._idRows_build()
            if query_target is QueryTarget.STATUS:
                return self._statusRows_build()
            if query_target is QueryTarget.CONFIG:
                return self._configRows_build()
            if query_target is QueryTarget.PERMISSIONS:
                return self._permissionRows_build()
        except Exception as e:
            logger.error("Status query '%s' failed: %s", target, e, exc_info=True)
        return []

    def identity_read(self) -> str:
        try:
            return self._facade.identity_get()
        except EngineCallError as e:
            logger.warning("Identity read failed: %s", e)
            return IDENTITY_ERROR

    def _flag_read(self, check: Callable[[Optional[float]], bool], label: str) -> int:
        try:
            return 1 if check(self._timeout_s) else 0
        except Exception as e:
            logger.warning("%s check failed: %s", label, e)
            return 0

    def _idRows_build(self) -> list[Row]:
        return [{"id": self.identity_read(), "timestamp": self._clock_ms()}]

    def _statusRows_build(self) -> list[Row]:
        capture_ready = self._flag_read(self._service.capture_isReady, "capture")
        running = self._flag_read(self._service.service_isRunning, "service") or capture_ready
        return [
            {
                "service_running": 1 if running else 0,
                "media_ready": capture_ready,
                "input_ready": self._flag_read(self._registrar.registration_isBound, "input"),
                "id": self.identity_read(),
            }
        ]

    def _configRows_build(self) -> list[Row]:
        rows: list[Row] = []
        for row_key, option in CONFIG_WHITELIST:
            try:
                value: str = self._facade.localOption_get(option)
            except EngineCallError as e:
                logger.warning("Option %s read failed: %s", option, e)
                value = VALUE_ERROR
            rows.append({"key": row_key, "value": value})
        rows.append({"key": "id", "value": self.identity_read()})
        return rows

    def _permissionRows_build(self) -> list[Row]:
        granted = self._grants.permissionsGranted_check(self._permissions, timeout_s=self._timeout_s)
        rows: list[Row] = []
        for permission in self._permissions:
            state = granted.get(permission.name)
            rows.append(
                {
                    "permission": permission.name,
                    "granted": VALUE_ERROR if state is None else (1 if state else 0),
                }
            )
        return rows
