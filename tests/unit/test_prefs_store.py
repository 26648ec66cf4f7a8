"""Unit tests for the SharedPreferences-format store."""

from __future__ import annotations

import base64

import pytest

from rdprov.common.config import DeploymentConfig, StoreConfig
from rdprov.common.types import CommandResult
from rdprov.storage.prefs_store import (
    ExecutorFileChannel,
    LocalFileChannel,
    PreferencesStore,
    StoreError,
    preferences_parse,
    preferenceEntry_replace,
    prefsPath_resolve,
)

APP_PREFS = """<?xml version='1.0' encoding='utf-8' standalone='yes' ?>
<map>
    <string name="KEY_LANG">en</string>
    <boolean name="KEY_START_ON_BOOT_OPT" value="false" />
    <int name="KEY_RETRIES" value="3" />
    <long name="KEY_LAST_SEEN" value="1700000000000" />
</map>
"""


class _ScriptedExecutor:
    """Executor answering with canned results and recording commands."""

    def __init__(self, *results: CommandResult) -> None:
        self.results = list(results)
        self.commands: list[str] = []

    def command_run(self, command: str, timeout_s=None) -> CommandResult:
        self.commands.append(command)
        return self.results.pop(0)


class TestPreferencesFormat:
    """Tests for XML parsing and serialization."""

    def test_parse_typed_entries(self) -> None:
        entries = preferences_parse(APP_PREFS)
        assert entries == {
            "KEY_LANG": "en",
            "KEY_START_ON_BOOT_OPT": False,
            "KEY_RETRIES": 3,
            "KEY_LAST_SEEN": 1700000000000,
        }

    def test_parse_empty_text(self) -> None:
        assert preferences_parse("") == {}

    def test_parse_rejects_other_documents(self) -> None:
        with pytest.raises(StoreError):
            preferences_parse("<settings/>")
        with pytest.raises(StoreError):
            preferences_parse("<map><boolean")

    def test_replace_uses_element_types(self) -> None:
        text = ""
        for name, value in {"b": True, "n": 7, "big": 2**40, "s": "x<y"}.items():
            text = preferenceEntry_replace(text, name, value)

        assert text.startswith("<?xml version='1.0' encoding='utf-8' standalone='yes' ?>")
        assert '<boolean name="b" value="true" />' in text
        assert '<int name="n" value="7" />' in text
        assert '<long name="big" value="1099511627776" />' in text
        assert '<string name="s">x&lt;y</string>' in text


class TestPreferencesStore:
    """Tests for read-modify-write behavior."""

    def test_boolean_set_keeps_other_entries(self, memory_channel) -> None:
        memory_channel.text = APP_PREFS
        store = PreferencesStore(memory_channel)

        store.boolean_set("KEY_START_ON_BOOT_OPT", True)

        entries = preferences_parse(memory_channel.text or "")
        assert entries["KEY_START_ON_BOOT_OPT"] is True
        assert entries["KEY_LANG"] == "en"
        assert entries["KEY_LAST_SEEN"] == 1700000000000

    def test_missing_file_is_created(self, memory_channel) -> None:
        store = PreferencesStore(memory_channel)
        assert store.boolean_get("KEY_START_ON_BOOT_OPT") is False

        store.boolean_set("KEY_START_ON_BOOT_OPT", True)

        assert memory_channel.writes == 1
        assert store.boolean_get("KEY_START_ON_BOOT_OPT") is True

    def test_boolean_get_ignores_other_types(self, memory_channel) -> None:
        memory_channel.text = APP_PREFS
        assert PreferencesStore(memory_channel).boolean_get("KEY_LANG", default=True) is True

    def test_boolean_set_preserves_unread_elements(self, memory_channel) -> None:
        """Small longs keep their tag and string sets survive a write."""
        memory_channel.text = (
            "<?xml version='1.0' encoding='utf-8' standalone='yes' ?>\n"
            "<map>\n"
            '    <long name="last_seen" value="5" />\n'
            '    <set name="trusted">\n'
            "        <string>a</string>\n"
            "        <string>b</string>\n"
            "    </set>\n"
            '    <boolean name="KEY_START_ON_BOOT_OPT" value="false" />\n'
            "</map>\n"
        )
        store = PreferencesStore(memory_channel)

        store.boolean_set("KEY_START_ON_BOOT_OPT", True)

        text = memory_channel.text or ""
        assert '<long name="last_seen" value="5" />' in text
        assert '<int name="last_seen"' not in text
        assert '<set name="trusted">' in text
        assert "<string>a</string>" in text
        assert "<string>b</string>" in text
        assert text.count('name="KEY_START_ON_BOOT_OPT"') == 1
        assert store.boolean_get("KEY_START_ON_BOOT_OPT") is True


class TestLocalFileChannel:
    def test_replace_then_read(self, tmp_path) -> None:
        path = tmp_path / "shared_prefs" / "KEY_SHARED_PREFERENCES.xml"
        channel = LocalFileChannel(path)
        assert channel.text_read() is None

        PreferencesStore(channel).boolean_set("KEY_START_ON_BOOT_OPT", True)

        assert preferences_parse(path.read_text())["KEY_START_ON_BOOT_OPT"] is True
        assert [p.name for p in path.parent.iterdir()] == [path.name]


class TestExecutorFileChannel:
    """Tests for device-side file access through the executor."""

    def test_missing_file(self) -> None:
        executor = _ScriptedExecutor(CommandResult("cat", 0, stdout="__MISSING__\n"))
        assert ExecutorFileChannel(executor, "/data/x.xml").text_read() is None

    def test_read_failure_raises(self) -> None:
        executor = _ScriptedExecutor(CommandResult("cat", 1, stderr="Permission denied"))
        with pytest.raises(StoreError, match="Permission denied"):
            ExecutorFileChannel(executor, "/data/x.xml").text_read()

    def test_write_sends_base64_payload(self) -> None:
        executor = _ScriptedExecutor(CommandResult("write", 0))
        ExecutorFileChannel(executor, "/data/user_de/0/pkg/shared_prefs/p.xml").text_replace("<map />")

        command = executor.commands[0]
        assert base64.b64encode(b"<map />").decode("ascii") in command
        assert "mv -f /data/user_de/0/pkg/shared_prefs/p.xml.tmp" in command
        assert "chown $owner" in command


class TestPrefsPathResolve:
    def test_default_is_device_protected(self) -> None:
        path = prefsPath_resolve(DeploymentConfig(), StoreConfig())
        assert path == (
            "/data/user_de/0/com.carriez.flutter_hbb/shared_prefs/KEY_SHARED_PREFERENCES.xml"
        )

    def test_configured_path_wins(self) -> None:
        assert prefsPath_resolve(DeploymentConfig(), StoreConfig(path="/tmp/p.xml")) == "/tmp/p.xml"
