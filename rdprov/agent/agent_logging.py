"""
Logging setup for the provisioning CLI and its trigger agent.

The agent answers identity reads on the listener thread while mutating
triggers run on ``rdprov-trigger`` worker threads, so every record is
tagged with the package version and the emitting thread name.
"""

from __future__ import annotations

import logging

from rdprov import __version__

__all__ = [
    "logging_setup",
    "logFormat_decorate",
]


def logFormat_decorate(log_format: str) -> str:
    """
    Add the version and thread tags to a configured format string.

    The tags follow the timestamp when the format has one; otherwise they
    lead the line. A format that already names the thread is left with a
    single thread tag.

    Args:
        log_format: Format string from the ``logging`` config section

    Returns:
        Format string carrying ``[v<version>]`` and ``[%(threadName)s]``
    """
    tags = f"[v{__version__}]"
    if "%(threadName)s" not in log_format:
        tags += " [%(threadName)s]"
    if "%(asctime)s" in log_format:
        return log_format.replace("%(asctime)s", f"%(asctime)s {tags}", 1)
    return f"{tags} {log_format}"


def logging_setup(level: str, log_format: str, log_file: str | None) -> None:
    """
    Route root logging to stderr and, optionally, a file.

    Args:
        level: Level name such as ``INFO``; case-insensitive
        log_format: Format string before tagging
        log_file: Extra file destination, or None for stderr only

    Raises:
        ValueError: If ``level`` is not a logging level name
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=numeric_level,
        format=logFormat_decorate(log_format),
        handlers=handlers,
        force=True,
    )
