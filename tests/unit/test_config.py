"""Unit tests for configuration loading and parsing"""

import pytest
from pathlib import Path
from rdprov.common.config import (
    Config,
    ConfigLoader,
    DeploymentConfig,
    StoreConfig,
)
from rdprov.common.types import ApproveMode, ExecutorMode


class TestConfigLoaderYAMLLoading:
    """Test YAML file loading"""

    def test_yaml_load_valid_file(self, tmp_path):
        """Test loading valid YAML file"""
        config_file = tmp_path / "test.yml"
        config_file.write_text(
            """
server:
  rendezvous_server: "rd.example.net"
  api_server: "https://rd.example.net"
"""
        )

        data = ConfigLoader.yaml_load(config_file)
        assert isinstance(data, dict)
        assert data["server"]["rendezvous_server"] == "rd.example.net"

    def test_yaml_load_missing_file_raises(self):
        """Test loading non-existent file raises FileNotFoundError"""
        with pytest.raises(FileNotFoundError):
            ConfigLoader.yaml_load(Path("/nonexistent/config.yml"))

    def test_yaml_load_invalid_yaml_raises(self, tmp_path):
        """Test loading invalid YAML raises error"""
        config_file = tmp_path / "invalid.yml"
        config_file.write_text("invalid: yaml: content: [unclosed")

        with pytest.raises(Exception):  # yaml.YAMLError or similar
            ConfigLoader.yaml_load(config_file)

    def test_yaml_load_non_dict_raises(self, tmp_path):
        """Test loading YAML that isn't a dict raises ValueError"""
        config_file = tmp_path / "list.yml"
        config_file.write_text("- item1\n- item2")

        with pytest.raises(ValueError, match="must contain a YAML dictionary"):
            ConfigLoader.yaml_load(config_file)


class TestConfigLoaderParsing:
    """Test configuration dictionary parsing"""

    def test_config_parse_minimal_uses_defaults(self):
        """Only the server section is required"""
        config = ConfigLoader.config_parse(
            {"server": {"rendezvous_server": "rd.example.net", "api_server": "https://api"}}
        )

        assert isinstance(config, Config)
        assert config.server.relay_server == "rd.example.net"
        assert config.server.key == ""
        assert config.deployment.package == "com.carriez.flutter_hbb"
        assert config.access.approve_mode is ApproveMode.PASSWORD
        assert config.access.direct_access_port == 21118
        assert config.executor.mode is ExecutorMode.SU
        assert config.grants.permission_set == 2
        assert config.agent.port == 21120

    def test_config_parse_missing_server_raises(self):
        """Test missing server section raises KeyError"""
        with pytest.raises(KeyError):
            ConfigLoader.config_parse({"access": {}})

    def test_config_parse_sections(self, config_data):
        """Test nested sections are parsed into their dataclasses"""
        config_data["access"] = {"approve_mode": "click", "enable_audio": False}
        config_data["preset"] = {"credential": "s3cret", "device_name": None}
        config_data["executor"] = {"mode": "adb", "serial": "emulator-5554"}

        config = ConfigLoader.config_parse(config_data)

        assert config.access.approve_mode is ApproveMode.CLICK
        assert config.access.enable_audio is False
        assert config.preset.credential == "s3cret"
        assert config.preset.device_name == ""
        assert config.executor.mode is ExecutorMode.ADB
        assert config.executor.serial == "emulator-5554"
        assert config.timing.service_ready_timeout_s == 2.0

    def test_config_parse_empty_approve_mode_means_both(self, config_data):
        config_data["access"] = {"approve_mode": ""}
        assert ConfigLoader.config_parse(config_data).access.approve_mode is ApproveMode.BOTH

    def test_config_parse_invalid_executor_raises(self, config_data):
        config_data["executor"] = {"mode": "telnet"}
        with pytest.raises(ValueError):
            ConfigLoader.config_parse(config_data)

    def test_config_parse_null_section_is_empty(self, config_data):
        """A section written without values falls back to defaults"""
        config_data["agent"] = None
        assert ConfigLoader.config_parse(config_data).agent.host == "127.0.0.1"

    def test_config_parse_non_mapping_section_raises(self, config_data):
        config_data["timing"] = ["fast"]
        with pytest.raises(ValueError, match="must be a mapping"):
            ConfigLoader.config_parse(config_data)


class TestDeploymentComponents:
    """Test component names derived from the deployment"""

    def test_service_component(self):
        deployment = DeploymentConfig()
        assert deployment.service_component == (
            "com.carriez.flutter_hbb/com.carriez.flutter_hbb.MainService"
        )
        assert deployment.input_service_component == (
            "com.carriez.flutter_hbb/com.carriez.flutter_hbb.InputService"
        )


class TestConfigWithOverrides:
    """Test command-line overrides"""

    def test_overrides_applied(self, tmp_path):
        config_file = tmp_path / "config.yml"
        config_file.write_text(
            "server:\n  rendezvous_server: rd\n  api_server: api\n"
        )

        config = ConfigLoader.configWithOverrides_load(
            file_path=config_file,
            executor="adb",
            serial="R58M",
            engine_helper="rdbridge --stdio",
            host="0.0.0.0",
            port=0,
        )

        assert config.executor.mode is ExecutorMode.ADB
        assert config.executor.serial == "R58M"
        assert config.engine.helper_command == "rdbridge --stdio"
        assert config.agent.host == "0.0.0.0"
        assert config.agent.port == 0

    def test_none_overrides_keep_file_values(self, tmp_path):
        config_file = tmp_path / "config.yml"
        config_file.write_text(
            "server:\n  rendezvous_server: rd\n  api_server: api\nexecutor:\n  mode: shell\n"
        )

        config = ConfigLoader.configWithOverrides_load(file_path=config_file, executor=None)
        assert config.executor.mode is ExecutorMode.SHELL

    def test_example_config_loads(self, example_config_path):
        """The shipped example configuration stays parseable"""
        config = ConfigLoader.config_load(example_config_path)
        assert config.store == StoreConfig(path=None, direct=False)
        assert config.grants.permissions is None
        assert config.deployment.action_namespace == "href.cleverty.remote"
