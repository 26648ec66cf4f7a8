"""rdprov unified command-line interface"""

import argparse
import sys
from typing import NoReturn, Optional, Sequence

from rdprov import __version__
from rdprov.common.types import QueryTarget, TriggerCommand


def commonOptions_add(parser: argparse.ArgumentParser) -> None:
    """
    Add options shared by every subcommand.

    Args:
        parser: Subcommand parser.
    """
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config file (default: search standard locations)",
    )

    parser.add_argument(
        "--executor",
        type=str,
        choices=["su", "adb", "shell", "dry-run"],
        default=None,
        help="Privileged executor to use (overrides config)",
    )

    parser.add_argument(
        "--serial", type=str, default=None, help="[adb] Device serial (overrides config)"
    )

    parser.add_argument(
        "--engine-helper",
        type=str,
        default=None,
        help="Engine bridge command speaking JSON lines (overrides config)",
    )

    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging (overrides config)"
    )

    parser.add_argument(
        "--info", action="store_true", help="Enable info logging (overrides config)"
    )

    parser.add_argument(
        "--warning", action="store_true", help="Enable warning logging (overrides config)"
    )

    parser.add_argument(
        "--error", action="store_true", help="Enable error logging (overrides config)"
    )

    parser.add_argument(
        "--critical", action="store_true", help="Enable critical logging (overrides config)"
    )


def agentOptions_add(parser: argparse.ArgumentParser) -> None:
    """Add options for talking to a running agent"""
    parser.add_argument(
        "--agent",
        type=str,
        metavar="HOST:PORT",
        default=None,
        help="Send the request to a running agent instead of running it in process",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=60.0,
        help="[--agent] Seconds to wait for the agent's answer",
    )


def parser_build() -> argparse.ArgumentParser:
    """
    Build the argument parser

    Returns:
        Configured parser.
    """
    parser = argparse.ArgumentParser(
        prog="rdprov",
        description="Provision unattended remote access on a managed Android device",
    )

    parser.add_argument("--version", action="version", version=f"rdprov {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    trigger = subparsers.add_parser(
        "trigger",
        help="Run one provisioning action",
        description="Run one provisioning action. ACTION is the action suffix, "
        "optionally prefixed with the configured namespace.",
    )
    trigger.add_argument(
        "action",
        metavar="ACTION",
        help="One of: " + ", ".join(command.value for command in TriggerCommand),
    )
    trigger.add_argument(
        "--password", type=str, default=None, help="[SET_PASSWORD] Permanent password"
    )
    trigger.add_argument(
        "--device-name", type=str, default=None, help="[SET_DEVICE_NAME] Device name"
    )
    commonOptions_add(trigger)
    agentOptions_add(trigger)

    query = subparsers.add_parser("query", help="Print read-only status rows as JSON lines")
    query.add_argument(
        "target",
        metavar="TARGET",
        help="One of: " + ", ".join(target.value for target in QueryTarget),
    )
    commonOptions_add(query)
    agentOptions_add(query)

    serve = subparsers.add_parser("serve", help="Run the trigger agent")
    serve.add_argument(
        "--host", type=str, default=None, help="Host address to bind to (overrides config)"
    )
    serve.add_argument(
        "--port", type=int, default=None, help="Port to listen on (overrides config)"
    )
    commonOptions_add(serve)

    return parser


def arguments_parse(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments

    Args:
        argv: Argument list, defaults to sys.argv.

    Returns:
        Parsed CLI arguments.
    """
    return parser_build().parse_args(argv)


def main() -> NoReturn:
    """Main entry point for unified rdprov command"""
    args = arguments_parse()

    log_level_override: str | None = logLevelOverride_get(args)

    try:
        argsWithLogLevel_apply(args, log_level_override)
        command_run(args)
        sys.exit(0)

    except KeyboardInterrupt:
        print("\nShutting down...")
        sys.exit(0)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def logLevelOverride_get(args: argparse.Namespace) -> str | None:
    """
    Resolve explicit log level override flags.

    Args:
        args: Parsed CLI args.

    Returns:
        Selected log level or None.
    """
    if args.critical:
        return "CRITICAL"
    if args.error:
        return "ERROR"
    if args.warning:
        return "WARNING"
    if args.info:
        return "INFO"
    if args.debug:
        return "DEBUG"
    return None


def argsWithLogLevel_apply(args: argparse.Namespace, log_level: str | None) -> None:
    """
    Apply optional log level override to args.

    Args:
        args: Parsed CLI args.
        log_level: Optional log level string.
    """
    if log_level is not None:
        setattr(args, "log_level", log_level)


def command_run(args: argparse.Namespace) -> None:
    """
    Run the selected subcommand.

    Args:
        args: Parsed CLI args.
    """
    from rdprov.agent.main import agent_run, query_run, trigger_run

    if args.command == "trigger":
        trigger_run(args)
    elif args.command == "query":
        query_run(args)
    else:
        agent_run(args)


if __name__ == "__main__":
    main()
