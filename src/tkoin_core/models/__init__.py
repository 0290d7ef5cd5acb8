"""Data models for tkoin."""

from tkoin_core.models.deployment import DeploymentRecord, TokenConfig
from tkoin_core.models.instruction import Instruction, InstructionType, SignedInstruction
from tkoin_core.models.mint import (
    AccountState,
    MintState,
    TransferFeeConfig,
    compute_transfer_fee,
)
from tkoin_core.models.outcome import (
    FailureKind,
    FeeCheckReport,
    HarvestCycleReport,
    MintReport,
    StageOutcome,
    StageStatus,
)
from tkoin_core.models.units import base_units_to_tokens, format_base_units, tokens_to_base_units

__all__ = [
    "AccountState",
    "DeploymentRecord",
    "FailureKind",
    "FeeCheckReport",
    "HarvestCycleReport",
    "Instruction",
    "InstructionType",
    "MintReport",
    "MintState",
    "SignedInstruction",
    "StageOutcome",
    "StageStatus",
    "TokenConfig",
    "TransferFeeConfig",
    "base_units_to_tokens",
    "compute_transfer_fee",
    "format_base_units",
    "tokens_to_base_units",
]
