"""rdprov agent entry points: one-shot triggers, status queries, and the trigger agent"""

import argparse
import json
import logging
import sys
import threading
from typing import Optional

from rdprov import __version__
from rdprov.agent.agent_logging import logging_setup
from rdprov.agent.bootstrap import (
    AgentComponents,
    agentComponents_create,
    configFromArgs_load,
    loggingWithConfig_setup,
)
from rdprov.agent.control_client import AgentControlClient, agentAddress_parse
from rdprov.agent.network import AgentNetwork, ControlConnection
from rdprov.common.types import PARAM_CREDENTIAL, PARAM_DEVICE_NAME, TriggerRequest
from rdprov.orchestrator.dispatch import triggerRequest_dispatch
from rdprov.protocol.message import Message, MessageBuilder, MessageType

logger = logging.getLogger(__name__)


def triggerExtras_build(args: argparse.Namespace) -> dict[str, str]:
    """
    Collect trigger parameters given on the command line.

    Args:
        args: Parsed CLI args.

    Returns:
        Extras keyed by parameter name.
    """
    extras: dict[str, str] = {}
    if getattr(args, "password", None) is not None:
        extras[PARAM_CREDENTIAL] = args.password
    if getattr(args, "device_name", None) is not None:
        extras[PARAM_DEVICE_NAME] = args.device_name
    return extras


def agentRequest_handle(
    components: AgentComponents,
    message: Message,
    namespace: Optional[str],
    trigger_lock: threading.Lock,
) -> Message:
    """
    Answer one control request.

    Mutating triggers run one at a time under `trigger_lock`; identity reads
    and status queries bypass it so they are answered while a full setup is
    still running.

    Args:
        components: Wired provisioning components.
        message: Received request.
        namespace: Accepted action namespace.
        trigger_lock: Lock serializing mutating triggers.

    Returns:
        Result or error message for the caller.
    """
    if message.msg_type is MessageType.QUERY:
        target = str(message.payload.get("target", ""))
        return MessageBuilder.queryResultMessage_create(target, components.status.query(target))

    if message.msg_type is MessageType.TRIGGER:
        action = str(message.payload.get("action", ""))
        extras = message.payload.get("extras") or {}
        try:
            request = TriggerRequest.fromAction_parse(action, extras, namespace)
        except ValueError as e:
            logger.warning("Rejected trigger: %s", e)
            return MessageBuilder.errorMessage_create(str(e))

        if request.command.isReadOnly():
            result = triggerRequest_dispatch(components.orchestrator, request)
        else:
            with trigger_lock:
                result = triggerRequest_dispatch(components.orchestrator, request)
        return MessageBuilder.triggerResultMessage_create(request.command.value, result)

    return MessageBuilder.errorMessage_create(f"unsupported message type {message.msg_type.value}")


def agent_run(args: argparse.Namespace) -> None:
    """
    Run the trigger agent until interrupted.

    Args:
        args: Parsed CLI args.
    """
    config = configFromArgs_load(args)
    loggingWithConfig_setup(args, config, logging_setup)

    logger.info(f"rdprov agent v{__version__}")
    logger.info(f"Package: {config.deployment.package}")
    logger.info(f"Action namespace: {config.deployment.action_namespace}")
    logger.info(f"Executor: {config.executor.mode.value}")

    components = agentComponents_create(config)
    components.orchestrator.staticConfig_ensure()

    network = AgentNetwork(
        host=config.agent.host,
        port=config.agent.port,
        max_clients=config.agent.max_clients,
    )
    trigger_lock = threading.Lock()

    def message_handler(client: ControlConnection, message: Message) -> None:
        """Run each request on its own worker thread and reply when done"""

        def worker() -> None:
            try:
                reply = agentRequest_handle(
                    components, message, config.deployment.action_namespace, trigger_lock
                )
            except Exception as e:
                logger.error(f"Request failed: {e}", exc_info=True)
                reply = MessageBuilder.errorMessage_create(str(e))
            try:
                client.message_send(reply)
            except OSError as e:
                logger.warning(f"Could not answer {client.address}: {e}")

        threading.Thread(target=worker, name="rdprov-trigger", daemon=True).start()

    try:
        network.server_start()
        logger.info("Agent running. Press Ctrl+C to stop.")
        while network.is_running:
            network.connections_accept(timeout_s=0.05)
            network.clientData_receive(message_handler)
    finally:
        network.server_stop()


def trigger_run(args: argparse.Namespace) -> None:
    """
    Run one trigger in process, or send it to a running agent.

    Args:
        args: Parsed CLI args.
    """
    extras = triggerExtras_build(args)
    if getattr(args, "agent", None):
        host, port = agentAddress_parse(args.agent)
        client = AgentControlClient(host, port, timeout_s=args.timeout)
        try:
            result = client.trigger_send(args.action, extras)
        finally:
            client.connection_close()
        if result is not None:
            print(result)
        return

    config = configFromArgs_load(args)
    loggingWithConfig_setup(args, config, logging_setup)
    try:
        request = TriggerRequest.fromAction_parse(
            args.action, extras, config.deployment.action_namespace
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    components = agentComponents_create(config)
    result = triggerRequest_dispatch(components.orchestrator, request)
    if result is not None:
        print(result)


def query_run(args: argparse.Namespace) -> None:
    """
    Print status rows as JSON lines.

    Args:
        args: Parsed CLI args.
    """
    if getattr(args, "agent", None):
        host, port = agentAddress_parse(args.agent)
        client = AgentControlClient(host, port, timeout_s=args.timeout)
        try:
            rows = client.query_send(args.target)
        finally:
            client.connection_close()
    else:
        config = configFromArgs_load(args)
        loggingWithConfig_setup(args, config, logging_setup)
        rows = agentComponents_create(config).status.query(args.target)

    for row in rows:
        print(json.dumps(row, sort_keys=True))
