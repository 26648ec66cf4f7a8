"""Privileged command executors.

Every OS capability call made while provisioning goes through a
`PrivilegedExecutor`. Executors never raise for a failing command: spawn
errors, non-zero exit codes and timeouts all come back as a `CommandResult`.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from typing import Optional, Protocol

from rdprov.common.config import ExecutorConfig
from rdprov.common.settings import settings
from rdprov.common.types import CommandResult, ExecutorMode

logger = logging.getLogger(__name__)

__all__ = [
    "PrivilegedExecutor",
    "SuShellExecutor",
    "AdbShellExecutor",
    "LocalShellExecutor",
    "DryRunExecutor",
    "executor_create",
]


class PrivilegedExecutor(Protocol):
    """Runs one shell command with elevated privileges."""

    def command_run(self, command: str, timeout_s: Optional[float] = None) -> CommandResult:
        """
        Run a command and wait for it, bounded by a timeout.

        Args:
            command: Shell command line
            timeout_s: Per-command timeout; executor default when None

        Returns:
            Command outcome
        """


def _process_finish(
    process: subprocess.Popen[str],
    command: str,
    stdin_data: Optional[str],
    timeout_s: float,
) -> CommandResult:
    """
    Feed a spawned child and collect its result, killing it on timeout.

    Args:
        process: Spawned child process
        command: Command line being executed (for the record)
        stdin_data: Optional data written to the child's stdin
        timeout_s: Wait bound

    Returns:
        Command outcome
    """
    try:
        stdout, stderr = process.communicate(input=stdin_data, timeout=timeout_s)
    except subprocess.TimeoutExpired:
        process.kill()
        try:
            stdout, stderr = process.communicate(timeout=settings.KILL_GRACE_SEC)
        except subprocess.TimeoutExpired:
            stdout, stderr = "", ""
        logger.warning("Command timed out after %.1fs: %s", timeout_s, command)
        return CommandResult(
            command=command,
            returncode=None,
            stdout=stdout or "",
            stderr=stderr or "",
            timed_out=True,
        )

    result = CommandResult(
        command=command,
        returncode=process.returncode,
        stdout=stdout or "",
        stderr=stderr or "",
    )
    if result.ok():
        logger.debug("Command succeeded: %s", command)
    else:
        logger.warning("Command failed with exit code %s: %s", process.returncode, command)
    return result


class SuShellExecutor:
    """Runs commands inside an `su` shell fed through stdin."""

    def __init__(self, su_path: str = "su", timeout_s: Optional[float] = None) -> None:
        self._su_path: str = su_path
        self._timeout_s: float = timeout_s or settings.DEFAULT_COMMAND_TIMEOUT_SEC

    def command_run(self, command: str, timeout_s: Optional[float] = None) -> CommandResult:
        logger.debug("Executing: %s", command)
        try:
            process = subprocess.Popen(
                [self._su_path],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            logger.error("Failed to execute command: %s - %s", command, e)
            return CommandResult(command=command, returncode=None, error=str(e))

        return _process_finish(
            process,
            command,
            f"{command}\nexit\n",
            self._timeout_s if timeout_s is None else timeout_s,
        )


class AdbShellExecutor:
    """Runs commands on a device through `adb shell`, elevating with `su -c`."""

    def __init__(
        self,
        adb_path: str = "adb",
        serial: Optional[str] = None,
        adb_root: bool = False,
        timeout_s: Optional[float] = None,
    ) -> None:
        self._adb_path: str = adb_path
        self._serial: Optional[str] = serial
        self._adb_root: bool = adb_root
        self._timeout_s: float = timeout_s or settings.DEFAULT_COMMAND_TIMEOUT_SEC

    @property
    def serial(self) -> Optional[str]:
        return self._serial

    def argv_build(self, command: str) -> list[str]:
        """
        Build the adb argument vector for a device command.

        Args:
            command: Shell command to run on the device

        Returns:
            Argument list for subprocess
        """
        argv = [self._adb_path]
        if self._serial:
            argv += ["-s", self._serial]
        argv.append("shell")
        if self._adb_root:
            argv.append(command)
        else:
            argv += ["su", "-c", shlex.quote(command)]
        return argv

    def command_run(self, command: str, timeout_s: Optional[float] = None) -> CommandResult:
        argv = self.argv_build(command)
        logger.debug("Executing via adb: %s", " ".join(argv))
        try:
            process = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            logger.error("Failed to run adb for: %s - %s", command, e)
            return CommandResult(command=command, returncode=None, error=str(e))

        return _process_finish(
            process, command, None, self._timeout_s if timeout_s is None else timeout_s
        )


class LocalShellExecutor:
    """Runs commands through `sh -c` for agents already running as root."""

    def __init__(self, timeout_s: Optional[float] = None) -> None:
        self._timeout_s: float = timeout_s or settings.DEFAULT_COMMAND_TIMEOUT_SEC

    def command_run(self, command: str, timeout_s: Optional[float] = None) -> CommandResult:
        logger.debug("Executing: %s", command)
        try:
            process = subprocess.Popen(
                ["sh", "-c", command],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            logger.error("Failed to execute command: %s - %s", command, e)
            return CommandResult(command=command, returncode=None, error=str(e))

        return _process_finish(
            process, command, None, self._timeout_s if timeout_s is None else timeout_s
        )


class DryRunExecutor:
    """Logs commands for an operator to run as root or device owner."""

    def __init__(self) -> None:
        self.commands: list[str] = []

    def command_run(self, command: str, timeout_s: Optional[float] = None) -> CommandResult:
        self.commands.append(command)
        logger.info("  [dry-run] %s", command)
        return CommandResult(command=command, returncode=0)


def executor_create(config: ExecutorConfig) -> PrivilegedExecutor:
    """
    Create the privileged executor selected by configuration.

    Args:
        config: Executor configuration

    Returns:
        Executor instance
    """
    if config.mode is ExecutorMode.SU:
        return SuShellExecutor(su_path=config.su_path, timeout_s=config.command_timeout_s)
    if config.mode is ExecutorMode.ADB:
        return AdbShellExecutor(
            adb_path=config.adb_path,
            serial=config.serial,
            adb_root=config.adb_root,
            timeout_s=config.command_timeout_s,
        )
    if config.mode is ExecutorMode.SHELL:
        return LocalShellExecutor(timeout_s=config.command_timeout_s)
    if config.mode is ExecutorMode.DRY_RUN:
        return DryRunExecutor()

    raise ValueError(f"Unsupported executor mode '{config.mode}'. Supported: su, adb, shell, dry-run.")
