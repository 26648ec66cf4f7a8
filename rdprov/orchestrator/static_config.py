"""Static deployment configuration applied to the engine once per process."""

from __future__ import annotations

import logging

from rdprov.common.config import Config
from rdprov.engine.facade import EngineCallError, OptionKey, RemoteConfigFacade
from rdprov.orchestrator.state import OrchestrationState

logger = logging.getLogger(__name__)

__all__ = ["StaticConfigApplier", "staticOptions_build"]


def _flag(value: bool) -> str:
    return "Y" if value else "N"


def staticOptions_build(config: Config) -> list[tuple[str, str]]:
    """
    Build the ordered local options for a deployment.

    Args:
        config: Loaded configuration

    Returns:
        (key, value) pairs in application order
    """
    server = config.server
    access = config.access
    return [
        (OptionKey.RENDEZVOUS_SERVER, server.rendezvous_server),
        (OptionKey.RELAY_SERVER, server.relay_server),
        (OptionKey.API_SERVER, server.api_server),
        (OptionKey.KEY, server.key),
        (OptionKey.APPROVE_MODE, access.approve_mode.value),
        (OptionKey.ENABLE_KEYBOARD, _flag(access.enable_keyboard)),
        (OptionKey.ENABLE_CLIPBOARD, _flag(access.enable_clipboard)),
        (OptionKey.ENABLE_FILE_TRANSFER, _flag(access.enable_file_transfer)),
        (OptionKey.ENABLE_AUDIO, _flag(access.enable_audio)),
        (OptionKey.ENABLE_TUNNEL, _flag(access.enable_tunnel)),
        (OptionKey.ENABLE_REMOTE_RESTART, _flag(access.enable_remote_restart)),
        (OptionKey.DIRECT_SERVER, _flag(access.direct_server)),
        (OptionKey.DIRECT_ACCESS_PORT, str(access.direct_access_port)),
    ]


class StaticConfigApplier:
    """Applies server addresses, approval mode, toggles and presets."""

    def __init__(
        self,
        facade: RemoteConfigFacade,
        config: Config,
        state: OrchestrationState | None = None,
    ) -> None:
        self._facade: RemoteConfigFacade = facade
        self._config: Config = config
        self._state: OrchestrationState = state or OrchestrationState.instance_get()

    def _options_apply(self) -> bool:
        try:
            logger.info("Initializing deployment configuration...")
            for key, value in staticOptions_build(self._config):
                self._facade.localOption_set(key, value)

            preset = self._config.preset
            if preset.credential:
                self._facade.credential_set(preset.credential)
                logger.info("Preset permanent password applied")
            if preset.device_name:
                self._facade.option_set(OptionKey.PRESET_DEVICE_NAME, preset.device_name)
                self._facade.connection_restart()
                logger.info("Preset device name applied: %s", preset.device_name)
        except EngineCallError as e:
            logger.error("Failed to initialize deployment configuration: %s", e)
            return False

        logger.info(
            "Deployment config initialized: server=%s, approve-mode=%s",
            self._config.server.rendezvous_server,
            self._config.access.approve_mode.value or "both",
        )
        return True

    def staticConfig_ensure(self) -> bool:
        """
        Apply static configuration unless this process already did.

        Returns:
            True when configuration is in place (now or earlier)
        """
        if self._state.initialization_run(self._options_apply):
            return True
        return self._state.isInitialized()
