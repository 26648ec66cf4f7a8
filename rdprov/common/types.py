"""Common types and data structures for rdprov"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

IDENTITY_PENDING = "pending"
"""Identity sentinel: the engine has not assigned an identifier yet"""

IDENTITY_ERROR = "error"
"""Identity sentinel: the identity read itself failed"""

VALUE_ERROR = "error"
"""Option value sentinel reported when an engine read failed"""

PARAM_CREDENTIAL = "password"
PARAM_DEVICE_NAME = "device_name"
RESULT_IDENTITY = "remote_id"


class TriggerCommand(Enum):
    """External trigger commands; values are the broadcast action suffixes"""
    FULL_SETUP = "ENTERPRISE_SETUP"
    ENABLE_INPUT_CONTROL = "ENABLE_ACCESSIBILITY"
    ENABLE_START_ON_BOOT = "ENABLE_START_ON_BOOT"
    START_SERVICE = "START_SERVICE"
    GET_IDENTITY = "GET_RUSTDESK_ID"
    GRANT_CAPABILITIES = "GRANT_PERMISSIONS"
    SET_CREDENTIAL = "SET_PASSWORD"
    SET_DEVICE_NAME = "SET_DEVICE_NAME"

    def isReadOnly(self) -> bool:
        """Check if the command only reads state"""
        return self is TriggerCommand.GET_IDENTITY


class ApproveMode(Enum):
    """How incoming connections are accepted"""
    PASSWORD = "password"  # auto-accept when the password matches
    CLICK = "click"        # someone on the device must approve
    BOTH = ""              # either is accepted


class ExecutorMode(Enum):
    """How privileged commands reach the device"""
    SU = "su"
    ADB = "adb"
    SHELL = "shell"
    DRY_RUN = "dry-run"


class OptionScope(Enum):
    """Scope of a remote engine option"""
    LOCAL = "local"    # device-scoped, effective immediately
    SYNCED = "synced"  # re-read by the engine only on reconnect


class QueryTarget(Enum):
    """Status query targets"""
    ID = "id"
    STATUS = "status"
    CONFIG = "config"
    PERMISSIONS = "permissions"


@dataclass(frozen=True)
class TriggerRequest:
    """One received trigger command with its string parameters"""
    command: TriggerCommand
    params: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def param_get(self, name: str) -> Optional[str]:
        """Return a parameter value, or None when absent"""
        return self.params.get(name)

    @staticmethod
    def fromAction_parse(
        action: str,
        extras: Optional[Mapping[str, str]] = None,
        namespace: Optional[str] = None,
    ) -> "TriggerRequest":
        """
        Parse a broadcast-style action string into a request.

        Accepts a bare suffix (`ENTERPRISE_SETUP`), the enum member name
        (`FULL_SETUP`), or a namespaced action
        (`href.cleverty.remote.ENTERPRISE_SETUP`).

        Args:
            action: Action string
            extras: Optional string parameters
            namespace: Expected action namespace, if any

        Returns:
            Parsed trigger request

        Raises:
            ValueError: If the action is unknown or in a foreign namespace
        """
        action = action.strip()
        suffix = action
        if "." in action:
            prefix, suffix = action.rsplit(".", 1)
            if namespace is not None and prefix != namespace:
                raise ValueError(f"Action '{action}' is not in namespace '{namespace}'")

        command: Optional[TriggerCommand] = None
        for candidate in TriggerCommand:
            if suffix.upper() in (candidate.value, candidate.name):
                command = candidate
                break
        if command is None:
            raise ValueError(f"Unknown trigger action '{action}'")

        params = {str(k): str(v) for k, v in (extras or {}).items() if v is not None}
        return TriggerRequest(command=command, params=params)


@dataclass(frozen=True)
class CapabilityPermission:
    """One OS-level permission to grant"""
    name: str


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one elevated command execution"""
    command: str
    returncode: Optional[int]
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    error: Optional[str] = None

    def ok(self) -> bool:
        """Check if the command completed with exit code 0"""
        return self.returncode == 0 and not self.timed_out and self.error is None

    def failure_describe(self) -> str:
        """Short human-readable reason for a failed command"""
        if self.timed_out:
            return "timed out"
        if self.error:
            return self.error
        detail = self.stderr.strip() or self.stdout.strip()
        if detail:
            return f"exit code {self.returncode}: {detail}"
        return f"exit code {self.returncode}"


@dataclass(frozen=True)
class GrantResult:
    """Outcome of one capability grant attempt"""
    permission: CapabilityPermission
    succeeded: bool
    exit_code: Optional[int] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class GrantBatchResult:
    """Ordered grant outcomes, one per requested permission"""
    results: tuple[GrantResult, ...] = ()

    @property
    def succeeded_count(self) -> int:
        return sum(1 for r in self.results if r.succeeded)

    @property
    def failed(self) -> list[GrantResult]:
        return [r for r in self.results if not r.succeeded]

    def __len__(self) -> int:
        return len(self.results)
