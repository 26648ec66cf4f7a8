"""Input-control (accessibility service) registration through secure settings."""

from __future__ import annotations

import logging
import shlex
from typing import Optional

from rdprov.common.types import CommandResult
from rdprov.device.dumpsys import boundServices_parse, componentNames_expand, secureSetting_parse
from rdprov.device.readiness import ReadinessPoller
from rdprov.privileged.executor import PrivilegedExecutor

logger = logging.getLogger(__name__)

ENABLED_SERVICES = "enabled_accessibility_services"
ACCESSIBILITY_ENABLED = "accessibility_enabled"


class InputControlRegistrar:
    """Registers the input service as the only enabled accessibility service.

    Registration always clears the setting first and then writes exactly our
    component, so repeated calls leave one registration and never a
    duplicated `a:a` entry. Requires WRITE_SECURE_SETTINGS or root.
    """

    def __init__(
        self,
        executor: PrivilegedExecutor,
        component: str,
        poller: ReadinessPoller,
        settle_s: float = 0.1,
    ) -> None:
        self._executor: PrivilegedExecutor = executor
        self._component: str = component
        self._poller: ReadinessPoller = poller
        self._settle_s: float = settle_s

    @property
    def component(self) -> str:
        return self._component

    def _secure_put(self, key: str, value: str) -> CommandResult:
        quoted = shlex.quote(value) if value else "''"
        return self._executor.command_run(f"settings put secure {key} {quoted}")

    def registration_clear(self) -> bool:
        """Remove every enabled accessibility service and turn the switch off"""
        logger.debug("Clearing accessibility services")
        cleared = self._secure_put(ENABLED_SERVICES, "")
        switched = self._secure_put(ACCESSIBILITY_ENABLED, "0")
        return cleared.ok() and switched.ok()

    def registration_apply(self) -> bool:
        """
        Clear, settle, then enable only our input service.

        Returns:
            True when every settings write succeeded
        """
        if not self.registration_clear():
            logger.error(
                "Failed to clear accessibility services; "
                "make sure WRITE_SECURE_SETTINGS is granted"
            )
            return False

        self._poller.pause(self._settle_s)

        enabled = self._secure_put(ENABLED_SERVICES, self._component)
        switched = self._secure_put(ACCESSIBILITY_ENABLED, "1")
        if not (enabled.ok() and switched.ok()):
            logger.error(
                "Failed to enable accessibility service %s: %s",
                self._component,
                (enabled if not enabled.ok() else switched).failure_describe(),
            )
            return False

        logger.info("Accessibility service enabled: %s", self._component)
        return True

    def enabledServices_get(self, timeout_s: Optional[float] = None) -> list[str]:
        """Read the colon-separated enabled services setting"""
        result = self._executor.command_run(
            f"settings get secure {ENABLED_SERVICES}", timeout_s=timeout_s
        )
        if not result.ok():
            return []
        value = secureSetting_parse(result.stdout)
        return [entry for entry in value.split(":") if entry]

    def registration_isBound(self, timeout_s: Optional[float] = None) -> bool:
        """Check that the accessibility manager has bound our service"""
        result = self._executor.command_run("dumpsys accessibility", timeout_s=timeout_s)
        if not result.ok():
            return False
        names = componentNames_expand(self._component)
        return any(bound in names for bound in boundServices_parse(result.stdout))
