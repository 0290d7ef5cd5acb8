"""Supply-control engine: capped minter, fee harvest pipeline, transfer-fee verifier."""

from tkoin_core.engine.accounts import ensure_holding_account
from tkoin_core.engine.harvest import FeeHarvestPipeline
from tkoin_core.engine.lease import LeaseHeldError, MintLease
from tkoin_core.engine.minter import CappedSupplyMinter
from tkoin_core.engine.snapshot import SettlementDelta, measure_delta
from tkoin_core.engine.verifier import TransferFeeVerifier, VerifierConfig

__all__ = [
    "CappedSupplyMinter",
    "FeeHarvestPipeline",
    "LeaseHeldError",
    "MintLease",
    "SettlementDelta",
    "TransferFeeVerifier",
    "VerifierConfig",
    "ensure_holding_account",
    "measure_delta",
]
