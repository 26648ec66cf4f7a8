"""
Durable key/value store in the app's SharedPreferences format.

The background service reads its boot-start flag from a preferences file in
device-protected storage, which is available before the user unlocks the
device. This module reads and rewrites that file, keeping every entry it
does not touch.
"""

from __future__ import annotations

import base64
import logging
import os
import shlex
import tempfile
import threading
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Optional, Protocol, Union

from rdprov.common.config import DeploymentConfig, StoreConfig
from rdprov.privileged.executor import PrivilegedExecutor

logger = logging.getLogger(__name__)

__all__ = [
    "PreferencesStore",
    "FileChannel",
    "LocalFileChannel",
    "ExecutorFileChannel",
    "preferences_parse",
    "preferenceEntry_replace",
    "prefsPath_resolve",
]

PrefValue = Union[bool, int, float, str]

_XML_HEADER = "<?xml version='1.0' encoding='utf-8' standalone='yes' ?>\n"


class StoreError(RuntimeError):
    """Raised when the preferences file cannot be read or written."""


def prefsPath_resolve(deployment: DeploymentConfig, store: StoreConfig) -> str:
    """
    Resolve the preferences file path.

    Args:
        deployment: Deployment identity
        store: Store configuration

    Returns:
        Configured path, or the device-protected default for the package
    """
    if store.path:
        return store.path
    return f"/data/user_de/0/{deployment.package}/shared_prefs/{deployment.prefs_name}.xml"


def preferencesRoot_parse(text: str) -> ET.Element:
    """
    Parse SharedPreferences XML into its ``<map>`` element.

    Args:
        text: XML document; empty text yields an empty map

    Returns:
        Root element

    Raises:
        StoreError: If the document is not a preferences map
    """
    if not text.strip():
        return ET.Element("map")
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise StoreError(f"Malformed preferences file: {e}") from e
    if root.tag != "map":
        raise StoreError(f"Unexpected preferences root <{root.tag}>")
    return root


def preferences_parse(text: str) -> dict[str, PrefValue]:
    """
    Parse SharedPreferences XML into a typed dict.

    Args:
        text: XML document; empty text means no entries

    Returns:
        Entries keyed by name

    Raises:
        StoreError: If the document is not a preferences map
    """
    entries: dict[str, PrefValue] = {}
    for element in preferencesRoot_parse(text):
        name = element.get("name")
        if name is None:
            continue
        if element.tag == "boolean":
            entries[name] = element.get("value") == "true"
        elif element.tag in ("int", "long"):
            entries[name] = int(element.get("value", "0"))
        elif element.tag == "float":
            entries[name] = float(element.get("value", "0"))
        elif element.tag == "string":
            entries[name] = element.text or ""
        else:
            logger.debug("Not reading preference <%s name=%s>", element.tag, name)
    return entries


def preferenceElement_build(name: str, value: PrefValue) -> ET.Element:
    """Build the typed element for one entry."""
    if isinstance(value, bool):
        return ET.Element("boolean", name=name, value="true" if value else "false")
    if isinstance(value, int):
        tag = "int" if -(2**31) <= value < 2**31 else "long"
        return ET.Element(tag, name=name, value=str(value))
    if isinstance(value, float):
        return ET.Element("float", name=name, value=repr(value))
    element = ET.Element("string", name=name)
    element.text = str(value)
    return element


def preferencesRoot_serialize(root: ET.Element) -> str:
    """Render a ``<map>`` element as a preferences document."""
    ET.indent(root, space="    ")
    return _XML_HEADER + ET.tostring(root, encoding="unicode") + "\n"


def preferenceEntry_replace(text: str, name: str, value: PrefValue) -> str:
    """
    Set one entry in a preferences document.

    Only the element named ``name`` is replaced (or appended); every other
    element, including string sets and tags this module does not read, is
    kept with its original tag and content.

    Args:
        text: Current XML document; empty text starts a new map
        name: Entry name
        value: New value

    Returns:
        Updated XML document text
    """
    root = preferencesRoot_parse(text)
    replacement = preferenceElement_build(name, value)
    for index, element in enumerate(root):
        if element.get("name") == name:
            root[index] = replacement
            break
    else:
        root.append(replacement)
    return preferencesRoot_serialize(root)


class FileChannel(Protocol):
    """Whole-file read/replace access to the preferences file."""

    def text_read(self) -> Optional[str]:
        """Return file contents, or None when the file does not exist."""

    def text_replace(self, text: str) -> None:
        """Atomically replace the file contents."""


class LocalFileChannel:
    """Direct filesystem access to the preferences file."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path: Path = Path(path)

    def text_read(self) -> Optional[str]:
        try:
            return self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreError(f"Cannot read {self._path}: {e}") from e

    def text_replace(self, text: str) -> None:
        directory = self._path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=".", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(text)
                    f.flush()
                    os.fsync(f.fileno())
                self._ownership_copy(Path(tmp_name), directory)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StoreError(f"Cannot write {self._path}: {e}") from e

    @staticmethod
    def _ownership_copy(target: Path, directory: Path) -> None:
        """Give the new file its directory's owner so the app can still read it"""
        stat = directory.stat()
        target.chmod(0o660)
        if hasattr(os, "geteuid") and os.geteuid() == 0:
            os.chown(target, stat.st_uid, stat.st_gid)


class ExecutorFileChannel:
    """Preferences file access on the device through the privileged executor."""

    def __init__(
        self,
        executor: PrivilegedExecutor,
        path: str,
        timeout_s: Optional[float] = None,
    ) -> None:
        self._executor: PrivilegedExecutor = executor
        self._path: str = path
        self._timeout_s: Optional[float] = timeout_s

    def text_read(self) -> Optional[str]:
        quoted = shlex.quote(self._path)
        result = self._executor.command_run(
            f"if [ -f {quoted} ]; then cat {quoted}; else echo __MISSING__; fi",
            timeout_s=self._timeout_s,
        )
        if not result.ok():
            raise StoreError(f"Cannot read {self._path}: {result.failure_describe()}")
        if result.stdout.strip() == "__MISSING__":
            return None
        return result.stdout

    def text_replace(self, text: str) -> None:
        path = shlex.quote(self._path)
        directory = shlex.quote(os.path.dirname(self._path))
        tmp = shlex.quote(f"{self._path}.tmp")
        payload = base64.b64encode(text.encode("utf-8")).decode("ascii")
        command = (
            f"mkdir -p {directory} && "
            f"owner=$(stat -c %u:%g {directory}) && "
            f"echo {payload} | base64 -d > {tmp} && "
            f"chmod 660 {tmp} && chown $owner {tmp} && "
            f"mv -f {tmp} {path}"
        )
        result = self._executor.command_run(command, timeout_s=self._timeout_s)
        if not result.ok():
            raise StoreError(f"Cannot write {self._path}: {result.failure_describe()}")


class PreferencesStore:
    """Typed, lock-guarded access to one preferences file."""

    def __init__(self, channel: FileChannel) -> None:
        self._channel: FileChannel = channel
        self._lock: threading.Lock = threading.Lock()

    def entries_load(self) -> dict[str, PrefValue]:
        """Read every entry currently stored"""
        return preferences_parse(self._channel.text_read() or "")

    def value_get(self, key: str, default: Optional[PrefValue] = None) -> Optional[PrefValue]:
        return self.entries_load().get(key, default)

    def value_set(self, key: str, value: PrefValue) -> None:
        """
        Store one entry, read-modify-write under the store lock.

        Args:
            key: Preference name
            value: New value; its Python type selects the XML element
        """
        with self._lock:
            text = self._channel.text_read() or ""
            self._channel.text_replace(preferenceEntry_replace(text, key, value))
        logger.debug("Preference %s=%r stored", key, value)

    def boolean_get(self, key: str, default: bool = False) -> bool:
        value = self.value_get(key)
        return value if isinstance(value, bool) else default

    def boolean_set(self, key: str, value: bool) -> None:
        self.value_set(key, bool(value))
