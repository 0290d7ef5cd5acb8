"""Fee harvest pipeline — harvest, withdraw and burn withheld transfer fees.

Every transfer parks its fee on the recipient's holding account. One
cycle of this pipeline destroys all fees accumulated so far:

  Stage A  harvest   withheld fees of the given accounts -> mint pool
  Stage B  withdraw  mint pool -> fee vault (the treasury's holding account)
  Stage C  burn      exactly the amount Stage B moved into the vault

The ledger cannot tell us how large the mint pool is, so Stage B measures
it as the vault's balance delta around the withdraw. Stage C burns that
delta and nothing else: the burn amount is never re-derived from the fee
rate or transfer volume.

A stage with nothing to do is not an error: the cycle goes on (or, after
an empty withdraw, stops successfully). Any other failure ends the cycle
and is reported with its stage and the ledger's reason; nothing is
retried and nothing that already confirmed is rolled back. Running the
cycle again after a failure picks up from whatever the ledger holds,
with one exception: fees withdrawn in Stage B whose burn did not land
are no longer in the mint pool. The report carries them as
``pending_burn`` and ``burn_pending`` destroys them.

Two cycles must not overlap on the same mint: a transfer into the vault
between Stage B's two reads would be counted as fees and burned. The CLI
guards against overlapping local runs with ``MintLease``.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from tkoin_core.crypto.authority import SigningAuthority
from tkoin_core.engine.snapshot import SettlementDelta, measure_delta, snapshot_balance
from tkoin_core.errors import LedgerError
from tkoin_core.ledger.base import LedgerAccessor, SubmitResult, SubmitStatus
from tkoin_core.models.deployment import DeploymentRecord
from tkoin_core.models.instruction import Instruction, InstructionType
from tkoin_core.models.outcome import FailureKind, HarvestCycleReport, StageOutcome
from tkoin_core.models.units import format_base_units

logger = logging.getLogger(__name__)

HARVEST = "harvest"
WITHDRAW = "withdraw"
BURN = "burn"


def _rejection(stage: str, result: SubmitResult) -> StageOutcome:
    reason = result.reason or f"unexpected {result.status.value} result"
    logger.error("Stage %s failed: %s", stage, reason)
    return StageOutcome.failed(stage, FailureKind.LEDGER_REJECTION, reason)


def _read_failure(stage: str, exc: LedgerError, signature: str = "") -> StageOutcome:
    logger.error("Stage %s failed reading ledger state: %s", stage, exc)
    return StageOutcome.failed(stage, FailureKind.LEDGER_REJECTION, str(exc), signature=signature)


class FeeHarvestPipeline:
    """Runs harvest → withdraw → burn cycles for one deployed mint."""

    def __init__(self, ledger: LedgerAccessor, deployment: DeploymentRecord) -> None:
        self.ledger = ledger
        self.deployment = deployment

    @property
    def mint_address(self) -> str:
        return self.deployment.mint_address

    def vault_address(self, authority: SigningAuthority) -> str:
        """The fee vault: the treasury authority's own holding account."""
        return self.ledger.holding_address(self.mint_address, authority.address)

    # ── Full cycle ───────────────────────────────────────────────

    def run(
        self,
        authority: SigningAuthority,
        accounts: Sequence[str] | None = None,
    ) -> HarvestCycleReport:
        """Run one complete cycle.

        Args:
            authority: Treasury authority; signs every instruction.
            accounts: Holding accounts to harvest. Defaults to the vault.

        Returns:
            The per-stage outcomes. ``report.ok`` is False iff a stage failed.
        """
        vault = self.vault_address(authority)
        report = HarvestCycleReport()

        harvested = self.harvest(authority, list(accounts) if accounts else [vault])
        report.stages.append(harvested)
        if not harvested.ok:
            return report

        withdrawn, delta = self.withdraw(authority, vault)
        report.stages.append(withdrawn)
        if not withdrawn.ok or delta is None or delta.amount == 0:
            return report
        report.fee_amount = delta.amount

        try:
            mint = self.ledger.read_mint(self.mint_address)
        except LedgerError as exc:
            report.stages.append(_read_failure(BURN, exc))
            self._strand(report, delta)
            return report
        report.supply_before_burn = mint.supply

        burned = self.burn_withdrawn(authority, delta, mint.supply, mint.decimals)
        report.stages.append(burned)
        if burned.ok:
            report.burned = burned.delta
            report.supply_after_burn = mint.supply - burned.delta
        elif not burned.signature:
            self._strand(report, delta)
        return report

    @staticmethod
    def _strand(report: HarvestCycleReport, delta: SettlementDelta) -> None:
        report.pending_burn = delta.amount
        logger.error(
            "%d base units were withdrawn to vault %s but not burned; "
            "run burn-pending %d to destroy them",
            delta.amount, delta.address, delta.amount,
        )

    # ── Recovery ─────────────────────────────────────────────────

    def burn_pending(self, authority: SigningAuthority, amount: int) -> StageOutcome:
        """Burn fees a failed cycle left in the vault.

        ``amount`` is the ``pending_burn`` of the failed cycle's report. A
        re-run of the cycle cannot pick these up: the mint pool is already
        empty, so its withdraw measures nothing. The amount must be covered
        by the vault balance; the burn itself goes through Stage C with the
        same supply check as a normal cycle.
        """
        if amount <= 0:
            return StageOutcome.failed(
                BURN, FailureKind.CONFIGURATION, "pending burn amount must be positive",
            )

        vault = self.vault_address(authority)
        try:
            balance = snapshot_balance(self.ledger, vault)
            mint = self.ledger.read_mint(self.mint_address)
        except LedgerError as exc:
            return _read_failure(BURN, exc)

        if amount > balance:
            reason = f"pending burn of {amount} exceeds vault balance {balance}"
            logger.error("Stage %s refused: %s", BURN, reason)
            return StageOutcome.failed(BURN, FailureKind.CONFIGURATION, reason)

        delta = SettlementDelta(address=vault, before=balance - amount, after=balance)
        return self.burn_withdrawn(authority, delta, mint.supply, mint.decimals)

    # ── Stage A ──────────────────────────────────────────────────

    def harvest(self, authority: SigningAuthority, accounts: Sequence[str]) -> StageOutcome:
        """Move withheld fees of ``accounts`` into the mint's pool."""
        logger.info("Harvesting withheld fees from %d account(s)", len(accounts))
        result = self.ledger.submit(authority.sign_instruction(Instruction(
            tx_type=InstructionType.HARVEST,
            mint=self.mint_address,
            accounts=list(accounts),
        )))
        if result.is_confirmed:
            logger.info("Fees harvested, tx %s", result.signature)
            return StageOutcome.confirmed(HARVEST, signature=result.signature)
        if result.is_no_op:
            logger.info("No withheld fees to harvest")
            return StageOutcome.empty(HARVEST, "nothing to harvest")
        return _rejection(HARVEST, result)

    # ── Stage B ──────────────────────────────────────────────────

    def withdraw(
        self, authority: SigningAuthority, vault: str,
    ) -> tuple[StageOutcome, SettlementDelta | None]:
        """Withdraw the mint's pool into ``vault`` and measure what arrived.

        Returns the stage outcome and the vault's settlement delta (None
        when the stage failed before the delta could be measured).
        """
        instruction = Instruction(
            tx_type=InstructionType.WITHDRAW,
            mint=self.mint_address,
            destination=vault,
        )
        try:
            result, delta = measure_delta(
                self.ledger, vault,
                lambda: self.ledger.submit(authority.sign_instruction(instruction)),
            )
        except LedgerError as exc:
            return _read_failure(WITHDRAW, exc), None

        if result.status == SubmitStatus.REJECTED:
            return _rejection(WITHDRAW, result), delta
        if result.is_no_op:
            logger.info("No withheld fees in mint to withdraw")
            return StageOutcome.empty(WITHDRAW, "nothing to withdraw"), delta

        if delta.amount < 0:
            reason = (
                f"vault balance fell from {delta.before} to {delta.after} "
                "across a withdraw; another writer touched the vault"
            )
            logger.error("Stage %s invariant violated: %s", WITHDRAW, reason)
            return StageOutcome.failed(WITHDRAW, FailureKind.INVARIANT_VIOLATION, reason), delta
        if delta.amount == 0:
            logger.info("Withdraw confirmed but moved nothing, tx %s", result.signature)
            return StageOutcome.empty(WITHDRAW, "nothing to withdraw"), delta

        logger.info("Withdrew %d base units of fees, tx %s", delta.amount, result.signature)
        return StageOutcome.confirmed(WITHDRAW, signature=result.signature, delta=delta.amount), delta

    # ── Stage C ──────────────────────────────────────────────────

    def burn_withdrawn(
        self,
        authority: SigningAuthority,
        delta: SettlementDelta,
        prior_supply: int,
        decimals: int,
    ) -> StageOutcome:
        """Burn exactly ``delta.amount`` from the vault the delta was measured on.

        ``prior_supply`` is the supply observed right after Stage B; after
        the burn the supply must be ``prior_supply - delta.amount``.
        """
        amount = delta.amount
        if amount <= 0:
            return StageOutcome.empty(BURN, "nothing to burn")

        logger.info("Burning %s withdrawn fee tokens", format_base_units(amount, decimals))
        result = self.ledger.submit(authority.sign_instruction(Instruction(
            tx_type=InstructionType.BURN,
            mint=self.mint_address,
            source=delta.address,
            amount=amount,
            decimals=decimals,
        )))
        if result.status != SubmitStatus.CONFIRMED:
            return _rejection(BURN, result)

        try:
            new_supply = self.ledger.read_mint(self.mint_address).supply
        except LedgerError as exc:
            return _read_failure(BURN, exc, signature=result.signature)

        expected = prior_supply - amount
        if new_supply != expected:
            reason = f"supply after burn is {new_supply}, expected {expected}"
            logger.error("Stage %s invariant violated: %s", BURN, reason)
            return StageOutcome.failed(
                BURN, FailureKind.INVARIANT_VIOLATION, reason, signature=result.signature,
            )

        logger.info(
            "Burned %s tokens, supply now %s, tx %s",
            format_base_units(amount, decimals),
            format_base_units(new_supply, decimals),
            result.signature,
        )
        return StageOutcome.confirmed(BURN, signature=result.signature, delta=amount)
