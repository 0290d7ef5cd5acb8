"""Outcomes reported by the supply-control components.

Every stage of every component ends in exactly one of three states:

  - CONFIRMED: the ledger accepted a mutation
  - EMPTY: there was nothing to do (a recognized empty state, not an error)
  - FAILED: a ledger rejection or an invariant violation; the caller decides
    whether and when to re-run

Outcomes are tagged values, never inferred from message text.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class StageStatus(str, Enum):
    CONFIRMED = "confirmed"
    EMPTY = "empty"
    FAILED = "failed"


class FailureKind(str, Enum):
    CONFIGURATION = "configuration"
    LEDGER_REJECTION = "ledger_rejection"
    INVARIANT_VIOLATION = "invariant_violation"


class StageOutcome(BaseModel):
    """Result of one stage of a component run."""

    stage: str = Field(description="Stage name, e.g. 'harvest', 'withdraw', 'burn'")
    status: StageStatus
    signature: str = Field(default="", description="Confirmed transaction id")
    delta: int = Field(default=0, description="Settlement delta observed by the stage")
    failure: FailureKind | None = None
    reason: str = Field(default="", description="Rejection reason, verbatim from the ledger")

    @classmethod
    def confirmed(cls, stage: str, signature: str = "", delta: int = 0) -> StageOutcome:
        return cls(stage=stage, status=StageStatus.CONFIRMED, signature=signature, delta=delta)

    @classmethod
    def empty(cls, stage: str, reason: str = "") -> StageOutcome:
        return cls(stage=stage, status=StageStatus.EMPTY, reason=reason)

    @classmethod
    def failed(
        cls, stage: str, failure: FailureKind, reason: str, signature: str = "",
    ) -> StageOutcome:
        """A failed stage; ``signature`` is set when the mutation itself confirmed."""
        return cls(
            stage=stage, status=StageStatus.FAILED, failure=failure, reason=reason,
            signature=signature,
        )

    @property
    def ok(self) -> bool:
        return self.status != StageStatus.FAILED


class MintReport(BaseModel):
    """Result of a mint-to-ceiling run."""

    outcome: StageOutcome
    supply_before: int = 0
    supply_after: int = 0
    max_supply_units: int = 0
    minted: int = 0
    account_created: bool = False

    @property
    def ok(self) -> bool:
        return self.outcome.ok


class HarvestCycleReport(BaseModel):
    """Result of one fee harvest cycle.

    ``stages`` holds the outcomes of the stages that actually ran, in
    order. A skipped burn is not listed.
    """

    stages: list[StageOutcome] = Field(default_factory=list)
    fee_amount: int = Field(default=0, description="Fees withdrawn in Stage B")
    burned: int = Field(default=0, description="Amount burned in Stage C")
    pending_burn: int = Field(
        default=0,
        description="Withdrawn into the vault but not burned; clear it with burn-pending",
    )
    supply_before_burn: int | None = None
    supply_after_burn: int | None = None

    @property
    def ok(self) -> bool:
        return all(s.ok for s in self.stages)

    @property
    def failed_stage(self) -> StageOutcome | None:
        for stage in self.stages:
            if not stage.ok:
                return stage
        return None

    def stage(self, name: str) -> StageOutcome | None:
        for stage in self.stages:
            if stage.stage == name:
                return stage
        return None


class FeeCheckReport(BaseModel):
    """Result of a transfer-fee check."""

    outcome: StageOutcome
    passed: bool = False
    amount_units: int = 0
    expected_fee_units: int = 0
    expected_received_units: int = 0
    received_units: int = 0
    measured_fee_units: int = 0
    delta_units: int = Field(default=0, description="received - expected_received")
    tolerance_units: int = 0
    withheld_hint: int | None = None
    recipient_account: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome.ok and self.passed
