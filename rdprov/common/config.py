"""Configuration file loading and management"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from rdprov.common.types import ApproveMode, ExecutorMode


@dataclass
class DeploymentConfig:
    """Identity of the provisioned app on the device"""
    package: str = "com.carriez.flutter_hbb"
    action_namespace: str = "href.cleverty.remote"
    service_class: str = "com.carriez.flutter_hbb.MainService"
    service_action: str = "init_media_projection_and_service"
    input_service_class: str = "com.carriez.flutter_hbb.InputService"
    prefs_name: str = "KEY_SHARED_PREFERENCES"
    boot_flag_key: str = "KEY_START_ON_BOOT_OPT"

    @property
    def service_component(self) -> str:
        """Component name of the background service (pkg/class)"""
        return f"{self.package}/{self.service_class}"

    @property
    def input_service_component(self) -> str:
        """Flattened component name of the input-control service"""
        return f"{self.package}/{self.input_service_class}"


@dataclass
class ServerConfig:
    """Remote-access backend addresses"""
    rendezvous_server: str
    relay_server: str
    api_server: str
    key: str = ""


@dataclass
class AccessConfig:
    """Connection acceptance policy and feature toggles"""
    approve_mode: ApproveMode = ApproveMode.PASSWORD
    enable_keyboard: bool = True
    enable_clipboard: bool = True
    enable_file_transfer: bool = True
    enable_audio: bool = True
    enable_tunnel: bool = True
    enable_remote_restart: bool = True
    direct_server: bool = True
    direct_access_port: int = 21118


@dataclass
class PresetConfig:
    """Optional values applied once if non-empty"""
    credential: str = ""
    device_name: str = ""


@dataclass
class ExecutorConfig:
    """Privileged command execution settings"""
    mode: ExecutorMode = ExecutorMode.SU
    su_path: str = "su"
    adb_path: str = "adb"
    serial: Optional[str] = None
    adb_root: bool = False
    command_timeout_s: float = 15.0


@dataclass
class EngineConfig:
    """Remote-access engine bridge settings"""
    helper_command: str = ""
    call_timeout_s: float = 5.0


@dataclass
class StoreConfig:
    """Preferences store location"""
    path: Optional[str] = None
    direct: bool = False


@dataclass
class TimingConfig:
    """Bounded waits used while provisioning"""
    service_ready_timeout_s: float = 10.0
    input_bound_timeout_s: float = 5.0
    poll_interval_s: float = 0.25
    poll_backoff: float = 1.5
    poll_max_interval_s: float = 2.0
    settings_settle_s: float = 0.1
    status_timeout_s: float = 3.0


@dataclass
class GrantsConfig:
    """Capability permission set selection"""
    permission_set: int = 2
    permissions: Optional[List[str]] = None


@dataclass
class AgentConfig:
    """Trigger agent listener settings"""
    host: str = "127.0.0.1"
    port: int = 21120
    max_clients: int = 4


@dataclass
class LoggingConfig:
    """Logging configuration settings"""
    level: str = "INFO"
    file: Optional[str] = None
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Config:
    """Complete application configuration"""
    server: ServerConfig
    deployment: DeploymentConfig = field(default_factory=DeploymentConfig)
    access: AccessConfig = field(default_factory=AccessConfig)
    preset: PresetConfig = field(default_factory=PresetConfig)
    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    grants: GrantsConfig = field(default_factory=GrantsConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


class ConfigLoader:
    """Loads and parses configuration from YAML files"""

    DEFAULT_CONFIG_PATHS = [
        "config.yml",
        "~/.config/rdprov/config.yml",
        "/etc/rdprov/config.yml",
    ]

    @staticmethod
    def configFile_find() -> Optional[Path]:
        """
        Find configuration file in standard locations

        Returns:
            Path to config file, or None if not found
        """
        for config_path in ConfigLoader.DEFAULT_CONFIG_PATHS:
            path = Path(config_path).expanduser().resolve()
            if path.exists() and path.is_file():
                return path
        return None

    @staticmethod
    def yaml_load(file_path: Path) -> Dict[str, Any]:
        """
        Load YAML configuration file

        Args:
            file_path: Path to YAML file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If file does not exist
            yaml.YAMLError: If file is not valid YAML
        """
        with open(file_path, "r") as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Config file {file_path} must contain a YAML dictionary")

        return data

    @staticmethod
    def section_get(data: Dict[str, Any], name: str) -> Dict[str, Any]:
        """Return an optional config section, treating a missing or null one as empty"""
        section = data.get(name) or {}
        if not isinstance(section, dict):
            raise ValueError(f"Config section '{name}' must be a mapping")
        return section

    @staticmethod
    def config_parse(data: Dict[str, Any]) -> Config:
        """
        Parse configuration dictionary into Config object

        Args:
            data: Raw configuration dictionary

        Returns:
            Parsed Config object

        Raises:
            KeyError: If required configuration keys are missing
            ValueError: If an enumerated value is not recognised
        """
        # Server addresses are deployment specific and have no defaults
        server_data = data["server"]
        server = ServerConfig(
            rendezvous_server=server_data["rendezvous_server"],
            relay_server=server_data.get("relay_server", server_data["rendezvous_server"]),
            api_server=server_data["api_server"],
            key=server_data.get("key", "") or "",
        )

        deployment_data = ConfigLoader.section_get(data, "deployment")
        deployment = DeploymentConfig(**deployment_data)

        access_data = dict(ConfigLoader.section_get(data, "access"))
        approve_raw = access_data.pop("approve_mode", ApproveMode.PASSWORD.value)
        access = AccessConfig(
            approve_mode=ApproveMode(approve_raw or ""),
            **access_data,
        )

        preset_data = ConfigLoader.section_get(data, "preset")
        preset = PresetConfig(
            credential=preset_data.get("credential") or "",
            device_name=preset_data.get("device_name") or "",
        )

        executor_data = dict(ConfigLoader.section_get(data, "executor"))
        mode_raw = executor_data.pop("mode", ExecutorMode.SU.value)
        executor = ExecutorConfig(mode=ExecutorMode(mode_raw), **executor_data)

        engine = EngineConfig(**ConfigLoader.section_get(data, "engine"))
        store = StoreConfig(**ConfigLoader.section_get(data, "store"))
        timing = TimingConfig(**ConfigLoader.section_get(data, "timing"))
        grants = GrantsConfig(**ConfigLoader.section_get(data, "grants"))
        agent = AgentConfig(**ConfigLoader.section_get(data, "agent"))

        logging_data = ConfigLoader.section_get(data, "logging")
        logging = LoggingConfig(**logging_data)

        return Config(
            server=server,
            deployment=deployment,
            access=access,
            preset=preset,
            executor=executor,
            engine=engine,
            store=store,
            timing=timing,
            grants=grants,
            agent=agent,
            logging=logging,
        )

    @staticmethod
    def config_load(file_path: Optional[Path] = None) -> Config:
        """
        Load configuration from file

        Args:
            file_path: Optional path to config file. If None, searches standard locations.

        Returns:
            Parsed Config object

        Raises:
            FileNotFoundError: If config file not found
            ValueError: If config file is invalid
        """
        if file_path is None:
            file_path = ConfigLoader.configFile_find()
            if file_path is None:
                raise FileNotFoundError(
                    f"Config file not found in standard locations: "
                    f"{ConfigLoader.DEFAULT_CONFIG_PATHS}"
                )

        data = ConfigLoader.yaml_load(file_path)
        return ConfigLoader.config_parse(data)

    @staticmethod
    def configWithOverrides_load(
        file_path: Optional[Path] = None,
        **overrides: Any
    ) -> Config:
        """
        Load configuration and apply command-line overrides

        Args:
            file_path: Optional path to config file
            **overrides: Key-value pairs to override config values

        Returns:
            Config object with overrides applied

        Example:
            config = ConfigLoader.configWithOverrides_load(
                serial="emulator-5554",
                executor="adb"
            )
        """
        config = ConfigLoader.config_load(file_path)

        if overrides.get("executor") is not None:
            config.executor.mode = ExecutorMode(overrides["executor"])
        if overrides.get("serial") is not None:
            config.executor.serial = overrides["serial"]
        if overrides.get("engine_helper") is not None:
            config.engine.helper_command = overrides["engine_helper"]

        if overrides.get("host") is not None:
            config.agent.host = overrides["host"]
        if overrides.get("port") is not None:
            config.agent.port = overrides["port"]

        return config
