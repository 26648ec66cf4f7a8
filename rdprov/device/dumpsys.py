"""Parsers for `dumpsys` and `settings` output."""

from __future__ import annotations

import re
from typing import Optional


def componentNames_expand(component: str) -> set[str]:
    """Return both the long and the `pkg/.Class` short form of a component"""
    names = {component}
    if "/" in component:
        pkg, cls = component.split("/", 1)
        if cls.startswith("."):
            names.add(f"{pkg}/{pkg}{cls}")
        elif cls.startswith(pkg + "."):
            names.add(f"{pkg}/{cls[len(pkg):]}")
    return names


def serviceRecord_find(dumpsys_services: str, component: str) -> Optional[str]:
    """
    Find the ServiceRecord block for a component in `dumpsys activity services`.

    Args:
        dumpsys_services: Command output
        component: Service component (long or short form)

    Returns:
        Text of the record block, or None when the service is not running
    """
    names = componentNames_expand(component)
    lines = dumpsys_services.splitlines()
    for index, line in enumerate(lines):
        if "ServiceRecord{" not in line:
            continue
        if not any(name in line for name in names):
            continue
        block = [line]
        indent = len(line) - len(line.lstrip())
        for follow in lines[index + 1:]:
            if follow.strip() and len(follow) - len(follow.lstrip()) <= indent:
                break
            block.append(follow)
        return "\n".join(block)
    return None


def serviceForeground_parse(record: str) -> bool:
    """Check a ServiceRecord block for a foreground service flag"""
    return re.search(r"\bisForeground=true\b", record) is not None


def boundServices_parse(dumpsys_accessibility: str) -> list[str]:
    """
    Extract bound accessibility services from `dumpsys accessibility`.

    Handles both `Bound services:{...}` and the older
    `bound services: {...}` spelling.
    """
    services: list[str] = []
    for match in re.finditer(r"[Bb]ound services:\s*\{(.*?)\}", dumpsys_accessibility):
        body = match.group(1)
        for component in re.findall(r"([\w.]+/[\w.$]+)", body):
            services.append(component)
    return services


def secureSetting_parse(output: str) -> str:
    """Normalize `settings get` output; the literal `null` means unset"""
    value = output.strip()
    return "" if value == "null" else value


def pidof_parse(output: str) -> list[int]:
    """Parse the pid list printed by `pidof`"""
    return [int(token) for token in output.split() if token.isdigit()]
