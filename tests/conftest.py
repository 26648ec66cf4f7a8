"""Pytest configuration and shared fixtures for rdprov tests

This module provides a scripted fake device behind the privileged executor
port, a fake engine behind the engine transport port, and fully wired
components built from them.
"""

import pytest
import logging
import shlex
from pathlib import Path
from typing import Any, Generator, Optional

from rdprov.agent.bootstrap import AgentComponents, agentComponents_create
from rdprov.common.config import Config, ConfigLoader
from rdprov.common.types import CommandResult
from rdprov.device.readiness import ReadinessPoller
from rdprov.engine.helper import EngineCallError
from rdprov.orchestrator.state import OrchestrationState

PACKAGE = "com.carriez.flutter_hbb"
INPUT_COMPONENT = f"{PACKAGE}/{PACKAGE}.InputService"

NINE_PERMISSIONS = [
    "android.permission.READ_EXTERNAL_STORAGE",
    "android.permission.WRITE_EXTERNAL_STORAGE",
    "android.permission.RECORD_AUDIO",
    "android.permission.SYSTEM_ALERT_WINDOW",
    "android.permission.REQUEST_IGNORE_BATTERY_OPTIMIZATIONS",
    "android.permission.POST_NOTIFICATIONS",
    "android.permission.WRITE_SECURE_SETTINGS",
    "android.permission.CAPTURE_VIDEO_OUTPUT",
    "android.permission.READ_FRAME_BUFFER",
]


class FakeClock:
    """Virtual monotonic clock; sleeping advances time instantly."""

    def __init__(self) -> None:
        self.now: float = 0.0
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeDevice:
    """Scripted Android device answering the shell commands rdprov issues.

    Launching the service makes the process alive. Accessibility binds the
    input service only when it is registered, the switch is on and the
    process is alive, as the real accessibility manager does.
    """

    def __init__(self, package: str = PACKAGE) -> None:
        self.package: str = package
        self.commands: list[str] = []
        self.granted: set[str] = set()
        self.failing_grants: set[str] = set()
        self.timing_out_grants: set[str] = set()
        self.process_alive: bool = False
        self.service_running: bool = False
        self.service_foreground: bool = True
        self.launch_error: bool = False
        self.launch_starts_process: bool = True
        self.bind_enabled: bool = True
        self.package_dump_fails: bool = False
        self.secure: dict[str, str] = {}
        self.secure_puts: list[tuple[str, str]] = []

    def command_run(self, command: str, timeout_s: Optional[float] = None) -> CommandResult:
        self.commands.append(command)
        argv = shlex.split(command)

        if argv[:2] == ["pm", "grant"]:
            permission = argv[3]
            if permission in self.timing_out_grants:
                return CommandResult(command, None, timed_out=True)
            if permission in self.failing_grants:
                return CommandResult(
                    command, 255, stderr=f"java.lang.SecurityException: {permission}"
                )
            self.granted.add(permission)
            return CommandResult(command, 0)

        if argv[:2] == ["am", "start-foreground-service"]:
            if self.launch_error:
                return CommandResult(command, 0, stdout="Error: Not found; no service started.")
            if self.launch_starts_process:
                self.process_alive = True
                self.service_running = True
            return CommandResult(command, 0, stdout="Starting service: Intent { }")

        if argv[0] == "pidof":
            if self.process_alive:
                return CommandResult(command, 0, stdout="4242\n")
            return CommandResult(command, 1)

        if argv[:3] == ["dumpsys", "activity", "services"]:
            return CommandResult(command, 0, stdout=self._services_dump())

        if argv[:2] == ["dumpsys", "accessibility"]:
            return CommandResult(command, 0, stdout=self._accessibility_dump())

        if argv[:2] == ["dumpsys", "package"]:
            if self.package_dump_fails:
                return CommandResult(command, None, timed_out=True)
            lines = [f"      {p}: granted=true" for p in sorted(self.granted)]
            return CommandResult(command, 0, stdout="Packages:\n" + "\n".join(lines) + "\n")

        if argv[:3] == ["settings", "put", "secure"]:
            value = argv[4] if len(argv) > 4 else ""
            self.secure[argv[3]] = value
            self.secure_puts.append((argv[3], value))
            return CommandResult(command, 0)

        if argv[:3] == ["settings", "get", "secure"]:
            return CommandResult(command, 0, stdout=(self.secure.get(argv[3]) or "null") + "\n")

        if argv[0] in ("appops", "dumpsys"):
            return CommandResult(command, 0)

        return CommandResult(command, 127, stderr=f"{argv[0]}: not found")

    def _services_dump(self) -> str:
        if not self.service_running:
            return "ACTIVITY MANAGER SERVICES (dumpsys activity services)\n  (nothing)\n"
        return (
            "ACTIVITY MANAGER SERVICES (dumpsys activity services)\n"
            "  User 0 active services:\n"
            f"  * ServiceRecord{{1f2e3d u0 {self.package}/.MainService}}\n"
            f"    intent={{act=init_media_projection_and_service cmp={self.package}/.MainService}}\n"
            f"    isForeground={'true' if self.service_foreground else 'false'} foregroundId=11\n"
        )

    def _accessibility_dump(self) -> str:
        bound = (
            self.bind_enabled
            and self.process_alive
            and self.secure.get("accessibility_enabled") == "1"
            and INPUT_COMPONENT in self.secure.get("enabled_accessibility_services", "").split(":")
        )
        services = INPUT_COMPONENT if bound else ""
        return f"ACCESSIBILITY MANAGER (dumpsys accessibility)\n  Bound services:{{{services}}}\n"


class FakeEngine:
    """In-memory remote-access engine answering bridge commands."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.local: dict[str, str] = {}
        self.synced: dict[str, str] = {}
        self.restarts: int = 0
        self.failing_commands: set[str] = set()
        self.failing_keys: set[str] = set()

    def request(self, cmd: str, payload: dict[str, Any]) -> Any:
        self.calls.append((cmd, dict(payload)))
        key = payload.get("key")
        if cmd in self.failing_commands or key in self.failing_keys:
            raise EngineCallError(f"simulated failure for {cmd} {key or ''}".strip())

        if cmd == "set_local_option":
            self.local[key] = payload["value"]
        elif cmd == "get_local_option":
            return self.local.get(key, "")
        elif cmd == "set_option":
            self.synced[key] = payload["value"]
        elif cmd == "get_option":
            return self.synced.get(key, "")
        elif cmd == "restart_rendezvous":
            self.restarts += 1
        return None

    def calls_named(self, cmd: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.calls if name == cmd]


class MemoryFileChannel:
    """Preferences file kept in memory."""

    def __init__(self, text: Optional[str] = None) -> None:
        self.text: Optional[str] = text
        self.writes: int = 0

    def text_read(self) -> Optional[str]:
        return self.text

    def text_replace(self, text: str) -> None:
        self.writes += 1
        self.text = text


@pytest.fixture
def config_data() -> dict:
    """Minimal raw configuration with fast timings"""
    return {
        "server": {
            "rendezvous_server": "rd.example.net",
            "api_server": "https://rd.example.net",
            "key": "PUBKEY=",
        },
        "executor": {"mode": "dry-run"},
        "grants": {"permissions": list(NINE_PERMISSIONS)},
        "timing": {
            "service_ready_timeout_s": 2.0,
            "input_bound_timeout_s": 1.0,
            "poll_interval_s": 0.1,
            "poll_backoff": 1.0,
            "poll_max_interval_s": 0.1,
            "settings_settle_s": 0.05,
            "status_timeout_s": 0.5,
        },
    }


@pytest.fixture
def app_config(config_data) -> Config:
    """Parsed configuration built from `config_data`"""
    return ConfigLoader.config_parse(config_data)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_poller(fake_clock) -> ReadinessPoller:
    return ReadinessPoller(
        interval_s=0.1, backoff=1.0, max_interval_s=0.1, clock=fake_clock.time, sleep=fake_clock.sleep
    )


@pytest.fixture
def fake_device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def memory_channel() -> MemoryFileChannel:
    return MemoryFileChannel()


@pytest.fixture
def components(
    app_config, fake_device, fake_engine, memory_channel, fake_poller
) -> AgentComponents:
    """Components wired to the fake device and engine"""
    return agentComponents_create(
        app_config,
        executor=fake_device,
        transport=fake_engine,
        channel=memory_channel,
        poller_factory=lambda: fake_poller,
    )


@pytest.fixture(autouse=True)
def reset_orchestration_state() -> Generator[None, None, None]:
    """Give each test a fresh process-wide orchestration state"""
    OrchestrationState.instance_reset()
    yield
    OrchestrationState.instance_reset()


@pytest.fixture
def example_config_path() -> Path:
    """Path to the example configuration shipped at the repository root"""
    return Path(__file__).parent.parent / "config.yml"


@pytest.fixture(autouse=True)
def setup_logging(caplog):
    """Setup logging for tests"""
    caplog.set_level(logging.DEBUG)


# Markers for test organization
def pytest_configure(config) -> None:
    """Register custom pytest markers used by this test suite."""
    config.addinivalue_line(
        "markers", "requires_device: mark test as requiring a rooted device or emulator"
    )
