"""Typed runtime models for provisioning orchestration."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from rdprov.common.types import IDENTITY_PENDING, GrantBatchResult


class SetupStep(Enum):
    """Named steps of the provisioning sequence."""

    GRANT_CAPABILITIES = "grant_capabilities"
    PERSIST_BOOT_FLAG = "persist_boot_flag"
    LAUNCH_SERVICE = "launch_service"
    AWAIT_SERVICE = "await_service"
    APPLY_STATIC_CONFIG = "apply_static_config"
    REGISTER_INPUT_CONTROL = "register_input_control"
    AWAIT_INPUT_CONTROL = "await_input_control"
    READ_IDENTITY = "read_identity"
    SET_CREDENTIAL = "set_credential"
    SET_DEVICE_NAME = "set_device_name"


@dataclass(frozen=True)
class StepOutcome:
    """Recorded result of one orchestration step."""

    step: SetupStep
    succeeded: bool
    detail: str = ""

    def __bool__(self) -> bool:
        return self.succeeded


@dataclass
class SetupReport:
    """Everything that happened during one full setup run."""

    steps: list[StepOutcome] = field(default_factory=list)
    grant_batch: GrantBatchResult = field(default_factory=GrantBatchResult)
    identity: str = IDENTITY_PENDING

    def step_record(self, outcome: StepOutcome) -> StepOutcome:
        self.steps.append(outcome)
        return outcome

    def outcome_get(self, step: SetupStep) -> StepOutcome | None:
        for outcome in self.steps:
            if outcome.step is step:
                return outcome
        return None

    @property
    def failed_steps(self) -> list[SetupStep]:
        return [o.step for o in self.steps if not o.succeeded]
