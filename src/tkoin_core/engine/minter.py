"""Capped-supply minter — issues the deficit between supply and ceiling.

Run it any number of times: the first run mints ``cap - supply`` into the
treasury's holding account in a single instruction, every later run finds
the ceiling reached and does nothing. A supply that does not land exactly
on the ceiling afterwards (a concurrent mint, a partially applied
submission) is reported as an invariant violation and left for an operator;
the minter never tries to "fix" it with a second mint.
"""

from __future__ import annotations

import logging

from tkoin_core.crypto.authority import SigningAuthority
from tkoin_core.engine.accounts import ensure_holding_account
from tkoin_core.errors import LedgerError
from tkoin_core.ledger.base import LedgerAccessor, SubmitStatus
from tkoin_core.models.deployment import DeploymentRecord
from tkoin_core.models.instruction import Instruction, InstructionType
from tkoin_core.models.outcome import FailureKind, MintReport, StageOutcome, StageStatus
from tkoin_core.models.units import format_base_units

logger = logging.getLogger(__name__)

STAGE = "mint"


class CappedSupplyMinter:
    """Brings circulating supply up to the deployment's ``max_supply``."""

    def __init__(self, ledger: LedgerAccessor, deployment: DeploymentRecord) -> None:
        self.ledger = ledger
        self.deployment = deployment

    def mint_to_ceiling(self, authority: SigningAuthority) -> MintReport:
        mint_address = self.deployment.mint_address

        try:
            mint = self.ledger.read_mint(mint_address)
        except LedgerError as exc:
            logger.error("Reading mint %s failed: %s", mint_address, exc)
            return MintReport(
                outcome=StageOutcome.failed(STAGE, FailureKind.LEDGER_REJECTION, str(exc)),
            )

        config = self.deployment.config
        if mint.decimals != config.decimals:
            logger.warning(
                "Mint reports %d decimals, deployment record says %d; using the mint's",
                mint.decimals, config.decimals,
            )
            config = config.model_copy(update={"decimals": mint.decimals})

        cap = config.max_supply_units
        deficit = cap - mint.supply
        report = MintReport(
            outcome=StageOutcome.empty(STAGE),
            supply_before=mint.supply,
            supply_after=mint.supply,
            max_supply_units=cap,
        )

        if deficit <= 0:
            if deficit < 0:
                logger.warning(
                    "Supply %s is above the ceiling %s",
                    format_base_units(mint.supply, mint.decimals),
                    format_base_units(cap, mint.decimals),
                )
            logger.info("Ceiling already reached, nothing to mint")
            report.outcome = StageOutcome.empty(STAGE, "ceiling already reached")
            return report

        treasury_account, created = ensure_holding_account(
            self.ledger, authority, mint_address, authority.address,
        )
        if not created.ok:
            report.outcome = created
            return report
        report.account_created = created.status == StageStatus.CONFIRMED

        logger.info(
            "Minting %s tokens to %s (supply %s -> %s)",
            format_base_units(deficit, mint.decimals),
            treasury_account,
            format_base_units(mint.supply, mint.decimals),
            format_base_units(cap, mint.decimals),
        )
        result = self.ledger.submit(authority.sign_instruction(Instruction(
            tx_type=InstructionType.MINT_TO,
            mint=mint_address,
            destination=treasury_account,
            amount=deficit,
        )))
        if result.status != SubmitStatus.CONFIRMED:
            reason = result.reason or f"unexpected {result.status.value} result"
            logger.error("Mint instruction failed: %s", reason)
            report.outcome = StageOutcome.failed(STAGE, FailureKind.LEDGER_REJECTION, reason)
            return report
        report.minted = deficit

        try:
            final_supply = self.ledger.read_mint(mint_address).supply
        except LedgerError as exc:
            logger.error("Re-reading supply after mint %s failed: %s", result.signature, exc)
            report.outcome = StageOutcome.failed(STAGE, FailureKind.LEDGER_REJECTION, str(exc))
            return report
        report.supply_after = final_supply

        if final_supply != cap:
            reason = f"supply after mint is {final_supply}, expected {cap}"
            logger.error("Supply invariant violated: %s", reason)
            report.outcome = StageOutcome.failed(STAGE, FailureKind.INVARIANT_VIOLATION, reason)
            return report

        logger.info("Minted %s tokens, tx %s", format_base_units(deficit, mint.decimals), result.signature)
        report.outcome = StageOutcome.confirmed(STAGE, signature=result.signature, delta=deficit)
        return report
