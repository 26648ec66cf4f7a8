"""
Provisioning orchestrator.

One public operation per trigger command. The full setup runs a fixed,
ordered sequence:

    grant capabilities -> persist boot flag -> launch service
    -> wait for service -> apply static config -> register input control
    -> wait for binding -> read identity

The OS only binds an accessibility service whose process is already
running, so launch/wait/register is a hard ordering rule. Every step is
best effort: failures are logged and recorded in the `SetupReport`, and the
sequence continues. No operation raises to its caller.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from rdprov.common.config import DeploymentConfig, TimingConfig
from rdprov.common.runtime_models import SetupReport, SetupStep, StepOutcome
from rdprov.common.types import (
    IDENTITY_ERROR,
    CapabilityPermission,
    CommandResult,
    GrantBatchResult,
)
from rdprov.device.input_control import InputControlRegistrar
from rdprov.device.readiness import ReadinessPoller
from rdprov.device.service import BackgroundServiceController
from rdprov.engine.facade import EngineCallError, OptionKey, RemoteConfigFacade
from rdprov.orchestrator.state import OrchestrationState
from rdprov.orchestrator.static_config import StaticConfigApplier
from rdprov.privileged.grants import CapabilityGrantExecutor
from rdprov.storage.prefs_store import PreferencesStore

logger = logging.getLogger(__name__)

__all__ = ["ProvisioningOrchestrator"]


class ProvisioningOrchestrator:
    """Sequences privileged provisioning steps and reports what happened."""

    def __init__(
        self,
        grants: CapabilityGrantExecutor,
        permissions: Sequence[CapabilityPermission],
        store: PreferencesStore,
        facade: RemoteConfigFacade,
        service: BackgroundServiceController,
        registrar: InputControlRegistrar,
        poller: ReadinessPoller,
        static_config: StaticConfigApplier,
        deployment: DeploymentConfig,
        timing: TimingConfig,
        state: OrchestrationState | None = None,
    ) -> None:
        self._grants: CapabilityGrantExecutor = grants
        self._permissions: list[CapabilityPermission] = list(permissions)
        self._store: PreferencesStore = store
        self._facade: RemoteConfigFacade = facade
        self._service: BackgroundServiceController = service
        self._registrar: InputControlRegistrar = registrar
        self._poller: ReadinessPoller = poller
        self._static_config: StaticConfigApplier = static_config
        self._deployment: DeploymentConfig = deployment
        self._timing: TimingConfig = timing
        self._state: OrchestrationState = state or OrchestrationState.instance_get()
        self.report_last: SetupReport | None = None

    # =========================================================================
    # Step helpers
    # =========================================================================

    @staticmethod
    def _step_guard(step: SetupStep, action: Callable[[], StepOutcome]) -> StepOutcome:
        """Run one step, converting any exception into a failed outcome"""
        try:
            outcome = action()
        except Exception as e:
            logger.error("Step %s failed: %s", step.value, e, exc_info=True)
            return StepOutcome(step, False, str(e))
        if not outcome.succeeded:
            logger.warning("Step %s did not complete: %s", step.value, outcome.detail)
        return outcome

    @staticmethod
    def _commandOutcome_log(label: str, result: CommandResult) -> bool:
        if result.ok():
            logger.info("%s: ok", label)
            return True
        logger.warning("%s: %s", label, result.failure_describe())
        return False

    def _grantBatch_run(self) -> tuple[GrantBatchResult, bool]:
        batch = self._grants.permissions_grant(self._permissions)
        extras_ok = all(
            [
                self._commandOutcome_log(
                    "Battery optimization whitelist", self._grants.batteryOptimization_disable()
                ),
                self._commandOutcome_log("Overlay appop", self._grants.overlay_allow()),
                self._commandOutcome_log(
                    "Background capture appop", self._grants.backgroundCapture_allow()
                ),
            ]
        )
        return batch, extras_ok

    def _bootFlag_persist(self) -> StepOutcome:
        self._store.boolean_set(self._deployment.boot_flag_key, True)
        logger.info("Start on boot enabled")
        return StepOutcome(SetupStep.PERSIST_BOOT_FLAG, True)

    def _service_launch(self) -> StepOutcome:
        result = self._service.service_launch()
        if result.ok():
            logger.info("Main service started")
            return StepOutcome(SetupStep.LAUNCH_SERVICE, True)
        return StepOutcome(SetupStep.LAUNCH_SERVICE, False, result.failure_describe())

    def _service_await(self) -> StepOutcome:
        ready = self._poller.condition_wait(
            self._service.service_isRunning,
            self._timing.service_ready_timeout_s,
            "background service",
        )
        detail = "" if ready else f"not running after {self._timing.service_ready_timeout_s}s"
        return StepOutcome(SetupStep.AWAIT_SERVICE, ready, detail)

    def _inputControl_register(self) -> StepOutcome:
        if not self._service.process_isAlive():
            return StepOutcome(
                SetupStep.REGISTER_INPUT_CONTROL,
                False,
                "service process not running; registration skipped",
            )
        applied = self._registrar.registration_apply()
        return StepOutcome(
            SetupStep.REGISTER_INPUT_CONTROL,
            applied,
            "" if applied else "secure settings write failed",
        )

    def _inputControl_await(self) -> StepOutcome:
        bound = self._poller.condition_wait(
            self._registrar.registration_isBound,
            self._timing.input_bound_timeout_s,
            "input control binding",
        )
        detail = "" if bound else f"not bound after {self._timing.input_bound_timeout_s}s"
        return StepOutcome(SetupStep.AWAIT_INPUT_CONTROL, bound, detail)

    # =========================================================================
    # Trigger operations
    # =========================================================================

    def fullSetup_run(self) -> str:
        """
        Run the complete provisioning sequence.

        Returns:
            The identity reported by the engine, or a sentinel (`pending`,
            `error`) when none could be read
        """
        report = SetupReport()
        self.report_last = report
        logger.info("Starting full setup for %s", self._deployment.package)

        # 1. Capability grants; failures are recorded, never fatal
        def grants_step() -> StepOutcome:
            batch, extras_ok = self._grantBatch_run()
            report.grant_batch = batch
            succeeded = not batch.failed and extras_ok
            detail = f"{batch.succeeded_count}/{len(batch)} permissions granted"
            return StepOutcome(SetupStep.GRANT_CAPABILITIES, succeeded, detail)

        report.step_record(self._step_guard(SetupStep.GRANT_CAPABILITIES, grants_step))

        # 2. Boot flag
        report.step_record(self._step_guard(SetupStep.PERSIST_BOOT_FLAG, self._bootFlag_persist))

        # 3-4. The app process must run before accessibility can bind to it
        report.step_record(self._step_guard(SetupStep.LAUNCH_SERVICE, self._service_launch))
        report.step_record(self._step_guard(SetupStep.AWAIT_SERVICE, self._service_await))

        # 5. Static engine configuration, once per process
        report.step_record(
            self._step_guard(
                SetupStep.APPLY_STATIC_CONFIG,
                lambda: StepOutcome(
                    SetupStep.APPLY_STATIC_CONFIG, self._static_config.staticConfig_ensure()
                ),
            )
        )

        # 6. Input control, then wait for the system to bind it
        registered = report.step_record(
            self._step_guard(SetupStep.REGISTER_INPUT_CONTROL, self._inputControl_register)
        )
        if registered.succeeded:
            report.step_record(
                self._step_guard(SetupStep.AWAIT_INPUT_CONTROL, self._inputControl_await)
            )

        # 7. Identity
        identity = self.identity_get()
        report.identity = identity
        report.step_record(
            StepOutcome(SetupStep.READ_IDENTITY, identity != IDENTITY_ERROR, identity)
        )

        failed = report.failed_steps
        if failed:
            logger.warning(
                "Setup finished with failed steps: %s", ", ".join(s.value for s in failed)
            )
        logger.info("Enterprise setup complete. Remote ID: %s", identity)
        return identity

    def inputControl_enable(self) -> StepOutcome:
        """Register input control alone; safe to repeat"""
        return self._step_guard(SetupStep.REGISTER_INPUT_CONTROL, self._inputControl_register)

    def startOnBoot_enable(self) -> StepOutcome:
        return self._step_guard(SetupStep.PERSIST_BOOT_FLAG, self._bootFlag_persist)

    def service_start(self) -> StepOutcome:
        """Allow background capture, then launch the service without waiting"""

        def start() -> StepOutcome:
            if self._commandOutcome_log(
                "Background capture appop", self._grants.backgroundCapture_allow()
            ):
                logger.info("PROJECT_MEDIA granted via root")
            return self._service_launch()

        return self._step_guard(SetupStep.LAUNCH_SERVICE, start)

    def identity_get(self) -> str:
        """
        Read the remote identity; never raises.

        Returns:
            Assigned identity, `pending` before assignment, `error` when the
            read failed
        """
        try:
            identity = self._facade.identity_get()
        except EngineCallError as e:
            logger.error("Failed to get remote ID: %s", e)
            return IDENTITY_ERROR
        except Exception as e:
            logger.error("Unexpected error reading remote ID: %s", e, exc_info=True)
            return IDENTITY_ERROR
        self._state.identity_observe(identity)
        return identity

    def capabilities_grant(self) -> GrantBatchResult:
        """Run the grant batch alone and log its result"""
        try:
            batch, _ = self._grantBatch_run()
        except Exception as e:
            logger.error("Capability grant batch failed: %s", e, exc_info=True)
            return GrantBatchResult()
        logger.info("All permissions processed")
        return batch

    def credential_set(self, value: str | None) -> StepOutcome:
        """Set the permanent password; an empty value is rejected up front"""
        if not value:
            logger.error("SET_PASSWORD called without password extra")
            return StepOutcome(SetupStep.SET_CREDENTIAL, False, "empty credential")

        def apply() -> StepOutcome:
            try:
                self._facade.credential_set(value)
            except EngineCallError as e:
                logger.error("Failed to set password: %s", e)
                return StepOutcome(SetupStep.SET_CREDENTIAL, False, str(e))
            logger.info("Permanent password set successfully")
            return StepOutcome(SetupStep.SET_CREDENTIAL, True)

        return self._step_guard(SetupStep.SET_CREDENTIAL, apply)

    def deviceName_set(self, name: str | None) -> StepOutcome:
        """Set the synced device name and reconnect so the backend sees it"""
        if not name:
            logger.error("SET_DEVICE_NAME called without device_name extra")
            return StepOutcome(SetupStep.SET_DEVICE_NAME, False, "empty device name")

        def apply() -> StepOutcome:
            try:
                self._facade.option_set(OptionKey.PRESET_DEVICE_NAME, name)
                logger.info("Device name set: %s", name)
                self._facade.connection_restart()
            except EngineCallError as e:
                logger.error("Failed to set device name: %s", e)
                return StepOutcome(SetupStep.SET_DEVICE_NAME, False, str(e))
            logger.info("Rendezvous restarted to apply new device name")
            return StepOutcome(SetupStep.SET_DEVICE_NAME, True)

        return self._step_guard(SetupStep.SET_DEVICE_NAME, apply)

    def staticConfig_ensure(self) -> bool:
        """Apply static configuration unless already done; never raises"""
        try:
            return self._static_config.staticConfig_ensure()
        except Exception as e:
            logger.error("Static configuration failed: %s", e, exc_info=True)
            return False
