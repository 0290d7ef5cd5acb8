"""Transfer-fee verifier — a live check of the configured fee rule.

Sends a real transfer from the treasury to a freshly generated recipient
and checks that the recipient received ``amount - fee`` where::

    fee = min(ceil(amount * fee_rate_bps / 10_000), max_fee_units)

taken from the deployment record. The test transfer is a genuine fee event: its
fee stays withheld on the recipient account until a harvest cycle sweeps
that account.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from tkoin_core.crypto.authority import SigningAuthority
from tkoin_core.engine.accounts import ensure_holding_account
from tkoin_core.errors import LedgerError
from tkoin_core.ledger.base import LedgerAccessor, SubmitStatus
from tkoin_core.models.deployment import DeploymentRecord
from tkoin_core.models.instruction import Instruction, InstructionType
from tkoin_core.models.outcome import FailureKind, FeeCheckReport, StageOutcome
from tkoin_core.models.units import format_base_units, tokens_to_base_units

logger = logging.getLogger(__name__)

STAGE = "transfer"

DEFAULT_TOLERANCE_TOKENS = Decimal("0.001")


@dataclass(frozen=True)
class VerifierConfig:
    """Tuning knobs for the fee check.

    ``tolerance_tokens`` absorbs display rounding only. It is compared
    strictly, so at zero decimals it admits no slack at all.
    """

    tolerance_tokens: Decimal = DEFAULT_TOLERANCE_TOKENS

    def tolerance_units(self, decimals: int) -> int:
        return tokens_to_base_units(self.tolerance_tokens, decimals)


class TransferFeeVerifier:
    """Checks the externally observed fee against the configured rule."""

    def __init__(
        self,
        ledger: LedgerAccessor,
        deployment: DeploymentRecord,
        config: VerifierConfig | None = None,
    ) -> None:
        self.ledger = ledger
        self.deployment = deployment
        self.config = config or VerifierConfig()

    def expected_fee(self, amount_units: int) -> int:
        return self.deployment.config.fee_config.fee_for(amount_units)

    def verify(
        self,
        authority: SigningAuthority,
        amount_tokens: str | int | Decimal,
        recipient: SigningAuthority | None = None,
    ) -> FeeCheckReport:
        """Transfer ``amount_tokens`` to a fresh recipient and check the fee.

        Args:
            authority: Treasury authority; owns the sending account and pays
                for the recipient's holding account.
            amount_tokens: Test transfer amount in whole tokens.
            recipient: Recipient identity. A throwaway one is generated when
                omitted.
        """
        mint_address = self.deployment.mint_address
        decimals = self.deployment.config.decimals
        amount = tokens_to_base_units(amount_tokens, decimals)
        fee = self.expected_fee(amount)
        report = FeeCheckReport(
            outcome=StageOutcome.empty(STAGE),
            amount_units=amount,
            expected_fee_units=fee,
            expected_received_units=amount - fee,
            tolerance_units=self.config.tolerance_units(decimals),
        )
        if amount <= 0:
            report.outcome = StageOutcome.failed(
                STAGE, FailureKind.CONFIGURATION, "test transfer amount must be positive",
            )
            return report

        recipient = recipient or SigningAuthority.generate()
        sender_account = self.ledger.holding_address(mint_address, authority.address)
        recipient_account, created = ensure_holding_account(
            self.ledger, authority, mint_address, recipient.address,
        )
        report.recipient_account = recipient_account
        if not created.ok:
            report.outcome = created
            return report

        try:
            received_before = self.ledger.read_account(recipient_account).balance
        except LedgerError as exc:
            report.outcome = StageOutcome.failed(STAGE, FailureKind.LEDGER_REJECTION, str(exc))
            return report

        logger.info(
            "Test transfer of %s tokens (expected fee %s) to %s",
            format_base_units(amount, decimals),
            format_base_units(fee, decimals),
            recipient_account,
        )
        result = self.ledger.submit(authority.sign_instruction(Instruction(
            tx_type=InstructionType.TRANSFER,
            mint=mint_address,
            source=sender_account,
            destination=recipient_account,
            amount=amount,
            decimals=decimals,
        )))
        if result.status != SubmitStatus.CONFIRMED:
            reason = result.reason or f"unexpected {result.status.value} result"
            logger.error("Test transfer failed: %s", reason)
            report.outcome = StageOutcome.failed(STAGE, FailureKind.LEDGER_REJECTION, reason)
            return report

        try:
            after = self.ledger.read_account(recipient_account)
        except LedgerError as exc:
            report.outcome = StageOutcome.failed(STAGE, FailureKind.LEDGER_REJECTION, str(exc))
            return report

        received = after.balance - received_before
        report.received_units = received
        report.measured_fee_units = amount - received
        report.delta_units = received - report.expected_received_units
        report.withheld_hint = after.withheld_hint
        report.passed = abs(report.delta_units) < report.tolerance_units or report.delta_units == 0
        report.outcome = StageOutcome.confirmed(STAGE, signature=result.signature, delta=received)

        if report.passed:
            logger.info(
                "Transfer fee check passed: received %s, fee %s",
                format_base_units(received, decimals),
                format_base_units(report.measured_fee_units, decimals),
            )
        else:
            logger.error(
                "Transfer fee check failed: expected to receive %s, received %s",
                format_base_units(report.expected_received_units, decimals),
                format_base_units(received, decimals),
            )
        return report
