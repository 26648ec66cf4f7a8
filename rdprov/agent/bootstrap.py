"""Agent bootstrap helpers for config, logging, and component wiring."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from rdprov.common.config import Config, ConfigLoader
from rdprov.device.input_control import InputControlRegistrar
from rdprov.device.readiness import ReadinessPoller
from rdprov.device.service import BackgroundServiceController
from rdprov.engine.facade import EngineTransport, RemoteConfigFacade
from rdprov.engine.helper import EngineHelperClient
from rdprov.orchestrator.orchestrator import ProvisioningOrchestrator
from rdprov.orchestrator.state import OrchestrationState
from rdprov.orchestrator.static_config import StaticConfigApplier
from rdprov.privileged.executor import PrivilegedExecutor, executor_create
from rdprov.privileged.grants import CapabilityGrantExecutor, permissionSet_resolve
from rdprov.status.query import StatusQueryFacade
from rdprov.storage.prefs_store import (
    ExecutorFileChannel,
    FileChannel,
    LocalFileChannel,
    PreferencesStore,
    prefsPath_resolve,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentComponents:
    """Wired provisioning components sharing one executor and engine bridge."""

    orchestrator: ProvisioningOrchestrator
    status: StatusQueryFacade
    facade: RemoteConfigFacade
    executor: PrivilegedExecutor


def configFromArgs_load(args: argparse.Namespace) -> Config:
    """
    Load configuration with CLI overrides, exiting on failure.

    Args:
        args: Parsed CLI args.

    Returns:
        Loaded config.
    """
    config_path: Path | None = Path(args.config) if getattr(args, "config", None) else None
    try:
        config: Config = ConfigLoader.configWithOverrides_load(
            file_path=config_path,
            executor=getattr(args, "executor", None),
            serial=getattr(args, "serial", None),
            engine_helper=getattr(args, "engine_helper", None),
            host=getattr(args, "host", None),
            port=getattr(args, "port", None),
        )
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Create a config.yml file or specify path with --config", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)
    return config


def loggingWithConfig_setup(
    args: argparse.Namespace, config: Config, logging_setup_func
) -> None:
    """
    Setup logging from config and CLI override.

    Args:
        args: Parsed CLI args.
        config: Loaded config.
        logging_setup_func: Logging setup callback.
    """
    log_level: str = getattr(args, "log_level", None) or config.logging.level
    logging_setup_func(log_level, config.logging.format, config.logging.file)


def fileChannel_create(config: Config, executor: PrivilegedExecutor) -> FileChannel:
    """Pick direct or executor-mediated access to the preferences file"""
    path = prefsPath_resolve(config.deployment, config.store)
    if config.store.direct:
        return LocalFileChannel(path)
    return ExecutorFileChannel(executor, path)


def agentComponents_create(
    config: Config,
    executor: Optional[PrivilegedExecutor] = None,
    transport: Optional[EngineTransport] = None,
    channel: Optional[FileChannel] = None,
    poller_factory: Optional[Callable[[], ReadinessPoller]] = None,
) -> AgentComponents:
    """
    Build every provisioning component from configuration.

    Collaborators can be injected (tests pass fakes); anything left as None is
    built from config.

    Args:
        config: Loaded config.
        executor: Optional privileged executor.
        transport: Optional engine transport.
        channel: Optional preferences file channel.
        poller_factory: Optional readiness poller factory.

    Returns:
        Wired components.
    """
    executor = executor or executor_create(config.executor)
    transport = transport or EngineHelperClient(
        config.engine.helper_command, timeout_s=config.engine.call_timeout_s
    )
    channel = channel or fileChannel_create(config, executor)
    poller = (poller_factory or (lambda: ReadinessPoller.fromTiming_create(config.timing)))()

    permissions = permissionSet_resolve(config.grants)
    facade = RemoteConfigFacade(transport)
    grants = CapabilityGrantExecutor(
        executor, config.deployment.package, timeout_s=config.executor.command_timeout_s
    )
    service = BackgroundServiceController(executor, config.deployment)
    registrar = InputControlRegistrar(
        executor,
        config.deployment.input_service_component,
        poller,
        settle_s=config.timing.settings_settle_s,
    )
    state = OrchestrationState.instance_get()
    orchestrator = ProvisioningOrchestrator(
        grants=grants,
        permissions=permissions,
        store=PreferencesStore(channel),
        facade=facade,
        service=service,
        registrar=registrar,
        poller=poller,
        static_config=StaticConfigApplier(facade, config, state),
        deployment=config.deployment,
        timing=config.timing,
        state=state,
    )
    status = StatusQueryFacade(
        facade=facade,
        service=service,
        registrar=registrar,
        grants=grants,
        permissions=permissions,
        timeout_s=config.timing.status_timeout_s,
    )
    logger.debug(
        "Components wired: executor=%s, package=%s",
        config.executor.mode.value,
        config.deployment.package,
    )
    return AgentComponents(
        orchestrator=orchestrator, status=status, facade=facade, executor=executor
    )
