"""Capability grant execution over a privileged executor."""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional, Sequence

from rdprov.common.config import GrantsConfig
from rdprov.common.settings import settings
from rdprov.common.types import (
    CapabilityPermission,
    CommandResult,
    GrantBatchResult,
    GrantResult,
)
from rdprov.privileged.executor import PrivilegedExecutor

logger = logging.getLogger(__name__)

__all__ = [
    "CapabilityGrantExecutor",
    "permissionSet_resolve",
    "permissionGranted_parse",
]


def permissionSet_resolve(config: GrantsConfig) -> list[CapabilityPermission]:
    """
    Resolve the permission list to grant from configuration.

    An explicit `permissions` list wins over the versioned set.

    Args:
        config: Grants configuration

    Returns:
        Ordered permission list

    Raises:
        ValueError: If the requested permission set version is unknown
    """
    if config.permissions:
        return [CapabilityPermission(name=str(p)) for p in config.permissions]
    names = settings.PERMISSION_SETS.get(config.permission_set)
    if names is None:
        raise ValueError(
            f"Unknown permission set {config.permission_set}; "
            f"known: {sorted(settings.PERMISSION_SETS)}"
        )
    return [CapabilityPermission(name=n) for n in names]


def permissionGranted_parse(dumpsys_package: str, permission: str) -> bool:
    """
    Check `dumpsys package` output for a granted permission line.

    Matches both runtime (`granted=true, flags=...`) and install-time
    permission entries.
    """
    pattern = rf"^\s*{re.escape(permission)}:\s*granted=(true|false)"
    for match in re.finditer(pattern, dumpsys_package, flags=re.MULTILINE):
        if match.group(1) == "true":
            return True
    return False


class CapabilityGrantExecutor:
    """Grants OS capabilities to the provisioned package, one command each."""

    def __init__(
        self,
        executor: PrivilegedExecutor,
        package: str,
        timeout_s: Optional[float] = None,
    ) -> None:
        """
        Initialize grant executor.

        Args:
            executor: Privileged executor port
            package: Package receiving the grants
            timeout_s: Per-command timeout override
        """
        self._executor: PrivilegedExecutor = executor
        self._package: str = package
        self._timeout_s: Optional[float] = timeout_s

    @property
    def package(self) -> str:
        return self._package

    def _command_run(self, command: str, timeout_s: Optional[float] = None) -> CommandResult:
        """Run through the executor, turning an unexpected raise into a failed result"""
        try:
            return self._executor.command_run(
                command, timeout_s=self._timeout_s if timeout_s is None else timeout_s
            )
        except Exception as e:
            logger.error("Executor raised for '%s': %s", command, e)
            return CommandResult(command=command, returncode=None, error=str(e))

    def permission_grant(self, permission: CapabilityPermission) -> GrantResult:
        """
        Grant one permission with `pm grant`.

        Args:
            permission: Permission to grant

        Returns:
            Grant outcome for that permission
        """
        result = self._command_run(f"pm grant {self._package} {permission.name}")
        if result.ok():
            return GrantResult(permission=permission, succeeded=True, exit_code=result.returncode)
        return GrantResult(
            permission=permission,
            succeeded=False,
            exit_code=result.returncode,
            error=result.failure_describe(),
        )

    def permissions_grant(self, permissions: Iterable[CapabilityPermission]) -> GrantBatchResult:
        """
        Grant every permission, never stopping at a failure.

        Args:
            permissions: Ordered permissions to grant

        Returns:
            One result per permission, in input order
        """
        permission_list: Sequence[CapabilityPermission] = list(permissions)
        logger.info(
            "Granting %d permissions via root for %s", len(permission_list), self._package
        )
        results = tuple(self.permission_grant(p) for p in permission_list)
        batch = GrantBatchResult(results=results)
        for failed in batch.failed:
            logger.warning("Grant failed: %s (%s)", failed.permission.name, failed.error)
        logger.info("Granted %d/%d permissions", batch.succeeded_count, len(batch))
        return batch

    def batteryOptimization_disable(self) -> CommandResult:
        """Whitelist the package from doze battery optimization"""
        return self._command_run(f"dumpsys deviceidle whitelist +{self._package}")

    def overlay_allow(self) -> CommandResult:
        """Allow drawing over other apps via appops"""
        return self._command_run(f"appops set {self._package} SYSTEM_ALERT_WINDOW allow")

    def backgroundCapture_allow(self) -> CommandResult:
        """Auto-approve screen capture so no consent dialog is shown"""
        return self._command_run(f"appops set {self._package} PROJECT_MEDIA allow")

    def permissionsGranted_check(
        self,
        permissions: Iterable[CapabilityPermission],
        timeout_s: Optional[float] = None,
    ) -> dict[str, Optional[bool]]:
        """
        Check which permissions are currently granted, from one package dump.

        Args:
            permissions: Permissions to look up
            timeout_s: Read bound

        Returns:
            Map of permission name to True/False, or None for every entry
            when the package dump could not be read
        """
        names = [p.name for p in permissions]
        result = self._command_run(f"dumpsys package {self._package}", timeout_s=timeout_s)
        if not result.ok():
            logger.warning("Could not read package state: %s", result.failure_describe())
            return {name: None for name in names}
        return {name: permissionGranted_parse(result.stdout, name) for name in names}
