"""Background capture service lifecycle on the device."""

from __future__ import annotations

import logging
from typing import Optional

from rdprov.common.config import DeploymentConfig
from rdprov.common.types import CommandResult
from rdprov.device.dumpsys import pidof_parse, serviceForeground_parse, serviceRecord_find
from rdprov.privileged.executor import PrivilegedExecutor

logger = logging.getLogger(__name__)


class BackgroundServiceController:
    """Launches the app's background service and observes whether it runs."""

    def __init__(
        self,
        executor: PrivilegedExecutor,
        deployment: DeploymentConfig,
        foreground: bool = True,
    ) -> None:
        """
        Initialize service controller.

        Args:
            executor: Privileged executor port
            deployment: Package and component names
            foreground: Start as a foreground service (Android 8+)
        """
        self._executor: PrivilegedExecutor = executor
        self._deployment: DeploymentConfig = deployment
        self._foreground: bool = foreground

    def launchCommand_build(self) -> str:
        verb = "start-foreground-service" if self._foreground else "startservice"
        return (
            f"am {verb} -n {self._deployment.service_component} "
            f"-a {self._deployment.service_action}"
        )

    def service_launch(self) -> CommandResult:
        """
        Ask the activity manager to start the service; does not wait.

        Returns:
            Result of the `am` command. `am` prints `Error:` lines with exit
            code 0 on some releases, so those are turned into failures.
        """
        result = self._executor.command_run(self.launchCommand_build())
        if result.ok() and "Error:" in result.stdout:
            return CommandResult(
                command=result.command,
                returncode=1,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return result

    def process_isAlive(self, timeout_s: Optional[float] = None) -> bool:
        """Check whether the app process exists"""
        result = self._executor.command_run(
            f"pidof {self._deployment.package}", timeout_s=timeout_s
        )
        return result.ok() and bool(pidof_parse(result.stdout))

    def _serviceRecord_get(self, timeout_s: Optional[float]) -> Optional[str]:
        result = self._executor.command_run(
            f"dumpsys activity services {self._deployment.service_component}",
            timeout_s=timeout_s,
        )
        if not result.ok():
            return None
        return serviceRecord_find(result.stdout, self._deployment.service_component)

    def service_isRunning(self, timeout_s: Optional[float] = None) -> bool:
        """Check that the process is alive and the service record exists"""
        if not self.process_isAlive(timeout_s):
            return False
        return self._serviceRecord_get(timeout_s) is not None

    def capture_isReady(self, timeout_s: Optional[float] = None) -> bool:
        """Check that the service has reached foreground (capturing) state"""
        record = self._serviceRecord_get(timeout_s)
        return record is not None and serviceForeground_parse(record)
