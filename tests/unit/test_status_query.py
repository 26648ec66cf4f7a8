"""Unit tests for read-only status queries."""

from __future__ import annotations

from rdprov.status.query import StatusQueryFacade


def _status(components, clock_ms=lambda: 1700000000000) -> StatusQueryFacade:
    """Pin the wired status facade to a fixed clock."""
    status = components.status
    status._clock_ms = clock_ms
    return status


class TestStatusQueries:
    """Tests for each query target."""

    def test_id_row(self, components, fake_engine) -> None:
        fake_engine.local["id"] = "123456789"
        assert _status(components).query("id") == [
            {"id": "123456789", "timestamp": 1700000000000}
        ]

    def test_status_before_and_after_setup(self, components, fake_device) -> None:
        status = _status(components)
        assert status.query("status") == [
            {"service_running": 0, "media_ready": 0, "input_ready": 0, "id": "pending"}
        ]

        components.orchestrator.fullSetup_run()

        assert status.query("status") == [
            {"service_running": 1, "media_ready": 1, "input_ready": 1, "id": "pending"}
        ]

    def test_config_rows_never_include_credentials(self, components, fake_engine) -> None:
        fake_engine.local.update(
            {
                "custom-rendezvous-server": "rd.example.net",
                "relay-server": "relay.example.net",
                "api-server": "https://api",
                "permanent-password": "hunter2",
                "id": "123456789",
            }
        )

        rows = _status(components).query("config")

        assert rows == [
            {"key": "rendezvous_server", "value": "rd.example.net"},
            {"key": "relay_server", "value": "relay.example.net"},
            {"key": "api_server", "value": "https://api"},
            {"key": "id", "value": "123456789"},
        ]
        assert "hunter2" not in repr(rows)

    def test_config_read_failure_reports_error_value(self, components, fake_engine) -> None:
        fake_engine.failing_keys = {"relay-server", "id"}
        rows = {r["key"]: r["value"] for r in _status(components).query("config")}

        assert rows["relay_server"] == "error"
        assert rows["id"] == "error"

    def test_permissions_rows(self, components, fake_device) -> None:
        fake_device.granted = {"android.permission.RECORD_AUDIO"}

        rows = _status(components).query("permissions")

        assert len(rows) == 9
        granted = {r["permission"]: r["granted"] for r in rows}
        assert granted["android.permission.RECORD_AUDIO"] == 1
        assert granted["android.permission.READ_FRAME_BUFFER"] == 0

    def test_permissions_unreadable(self, components, fake_device) -> None:
        fake_device.package_dump_fails = True
        rows = _status(components).query("permissions")
        assert {r["granted"] for r in rows} == {"error"}

    def test_unknown_target_is_empty(self, components) -> None:
        assert _status(components).query("battery") == []

    def test_target_is_case_insensitive(self, components) -> None:
        assert len(_status(components).query(" ID ")) == 1

    def test_queries_do_not_mutate(self, components, fake_device, fake_engine) -> None:
        status = _status(components)
        for target in ("id", "status", "config", "permissions"):
            status.query(target)

        assert fake_device.secure_puts == []
        assert not any(c.startswith(("pm grant", "am ", "appops")) for c in fake_device.commands)
        assert {name for name, _ in fake_engine.calls} == {"get_local_option"}
