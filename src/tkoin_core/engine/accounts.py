"""Holding-account provisioning."""

from __future__ import annotations

import logging

from tkoin_core.crypto.authority import SigningAuthority
from tkoin_core.errors import LedgerError
from tkoin_core.ledger.base import LedgerAccessor
from tkoin_core.models.instruction import Instruction, InstructionType
from tkoin_core.models.outcome import FailureKind, StageOutcome

logger = logging.getLogger(__name__)

STAGE = "create_account"


def ensure_holding_account(
    ledger: LedgerAccessor,
    payer: SigningAuthority,
    mint_address: str,
    owner_address: str,
) -> tuple[str, StageOutcome]:
    """Make sure (mint, owner) has a holding account.

    Check-then-create; an "already exists" answer from the ledger (another
    caller won the race) counts as success.

    Returns:
        The holding-account address and the stage outcome: CONFIRMED if it
        was created, EMPTY if it already existed, FAILED otherwise.
    """
    address = ledger.holding_address(mint_address, owner_address)
    try:
        if ledger.account_exists(address):
            return address, StageOutcome.empty(STAGE, "account already exists")
    except LedgerError as exc:
        return address, StageOutcome.failed(STAGE, FailureKind.LEDGER_REJECTION, str(exc))

    logger.info("Creating holding account %s for owner %s", address, owner_address)
    result = ledger.submit(payer.sign_instruction(Instruction(
        tx_type=InstructionType.CREATE_ACCOUNT,
        mint=mint_address,
        owner=owner_address,
    )))

    if result.is_confirmed:
        return address, StageOutcome.confirmed(STAGE, signature=result.signature)
    if result.is_no_op:
        logger.info("Holding account %s already exists", address)
        return address, StageOutcome.empty(STAGE, "account already exists")

    logger.error("Creating holding account %s failed: %s", address, result.reason)
    return address, StageOutcome.failed(STAGE, FailureKind.LEDGER_REJECTION, result.reason)
