"""
Trigger dispatch.

Maps each `TriggerCommand` to its orchestrator operation through a handler
table. The table is checked against the enum at import time, so adding a
command without a handler fails as soon as the module loads.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from rdprov.common.types import (
    PARAM_CREDENTIAL,
    PARAM_DEVICE_NAME,
    TriggerCommand,
    TriggerRequest,
)
from rdprov.orchestrator.orchestrator import ProvisioningOrchestrator

logger = logging.getLogger(__name__)

__all__ = [
    "triggerRequest_dispatch",
    "TRIGGER_HANDLERS",
]

TriggerHandler = Callable[[ProvisioningOrchestrator, TriggerRequest], Optional[str]]


def _fullSetup_handle(orchestrator: ProvisioningOrchestrator, request: TriggerRequest) -> str:
    return orchestrator.fullSetup_run()


def _inputControl_handle(
    orchestrator: ProvisioningOrchestrator, request: TriggerRequest
) -> None:
    orchestrator.inputControl_enable()


def _startOnBoot_handle(orchestrator: ProvisioningOrchestrator, request: TriggerRequest) -> None:
    orchestrator.startOnBoot_enable()


def _serviceStart_handle(orchestrator: ProvisioningOrchestrator, request: TriggerRequest) -> None:
    orchestrator.service_start()


def _identity_handle(orchestrator: ProvisioningOrchestrator, request: TriggerRequest) -> str:
    identity = orchestrator.identity_get()
    logger.info("Remote ID: %s", identity)
    return identity


def _capabilities_handle(
    orchestrator: ProvisioningOrchestrator, request: TriggerRequest
) -> None:
    orchestrator.capabilities_grant()


def _credential_handle(orchestrator: ProvisioningOrchestrator, request: TriggerRequest) -> None:
    orchestrator.credential_set(request.param_get(PARAM_CREDENTIAL))


def _deviceName_handle(orchestrator: ProvisioningOrchestrator, request: TriggerRequest) -> None:
    orchestrator.deviceName_set(request.param_get(PARAM_DEVICE_NAME))


TRIGGER_HANDLERS: dict[TriggerCommand, TriggerHandler] = {
    TriggerCommand.FULL_SETUP: _fullSetup_handle,
    TriggerCommand.ENABLE_INPUT_CONTROL: _inputControl_handle,
    TriggerCommand.ENABLE_START_ON_BOOT: _startOnBoot_handle,
    TriggerCommand.START_SERVICE: _serviceStart_handle,
    TriggerCommand.GET_IDENTITY: _identity_handle,
    TriggerCommand.GRANT_CAPABILITIES: _capabilities_handle,
    TriggerCommand.SET_CREDENTIAL: _credential_handle,
    TriggerCommand.SET_DEVICE_NAME: _deviceName_handle,
}


def handlerTable_verify() -> None:
    """Fail loudly if any trigger command lacks a handler"""
    missing = [c.name for c in TriggerCommand if c not in TRIGGER_HANDLERS]
    if missing:
        raise RuntimeError(f"Trigger commands without handler: {', '.join(missing)}")


handlerTable_verify()


def triggerRequest_dispatch(
    orchestrator: ProvisioningOrchestrator, request: TriggerRequest
) -> Optional[str]:
    """
    Run the orchestrator operation for one trigger.

    Args:
        orchestrator: Provisioning orchestrator
        request: Parsed trigger request

    Returns:
        Result string for FULL_SETUP and GET_IDENTITY, None otherwise
    """
    logger.debug("Received action: %s", request.command.value)
    handler = TRIGGER_HANDLERS[request.command]
    return handler(orchestrator, request)
