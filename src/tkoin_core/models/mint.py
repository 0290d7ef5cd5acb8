"""Mint and holding-account state as observed on the ledger.

The token withholds a percentage fee on every transfer. The fee is not
destroyed at transfer time: it is parked on the recipient's holding
account as a *withheld* component, invisible to a plain balance read,
until it is harvested into the mint's pool, withdrawn to a vault and
burned.

Fee rule (per transfer of ``amount`` base units)::

    fee = min(ceil(amount * fee_rate_bps / 10_000), max_fee_units)

The fee is rounded up so that a transfer can never dodge the fee by
being split into dust.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

BPS_DENOMINATOR = 10_000       # Basis points per 100%
MAX_FEE_RATE_BPS = 10_000      # A fee can never exceed the transfer itself


def compute_transfer_fee(amount: int, fee_rate_bps: int, max_fee_units: int) -> int:
    """Fee withheld on a transfer of ``amount`` base units."""
    if amount < 0:
        msg = f"Transfer amount must be non-negative, got {amount}"
        raise ValueError(msg)
    if not 0 <= fee_rate_bps <= MAX_FEE_RATE_BPS:
        msg = f"Fee rate {fee_rate_bps} bps outside [0, {MAX_FEE_RATE_BPS}]"
        raise ValueError(msg)
    if fee_rate_bps == 0 or amount == 0:
        return 0
    raw_fee = -(-amount * fee_rate_bps // BPS_DENOMINATOR)  # Ceiling division
    return min(raw_fee, max_fee_units)


class TransferFeeConfig(BaseModel):
    """Fee parameters attached to a mint."""

    fee_rate_bps: int = Field(ge=0, le=MAX_FEE_RATE_BPS, description="Fee rate in basis points")
    max_fee_units: int = Field(ge=0, description="Absolute cap on the fee per transfer, base units")

    def fee_for(self, amount: int) -> int:
        return compute_transfer_fee(amount, self.fee_rate_bps, self.max_fee_units)


class MintState(BaseModel):
    """Snapshot of a mint as returned by the ledger."""

    address: str
    decimals: int = Field(ge=0)
    supply: int = Field(ge=0, description="Circulating supply in base units")
    fee_config: TransferFeeConfig
    withheld_pool: int | None = Field(
        default=None,
        description="Harvested-but-not-withdrawn fees, when the ledger exposes it",
    )


class AccountState(BaseModel):
    """Snapshot of a holding account as returned by the ledger.

    ``withheld_hint`` is advisory: ledgers are not required to expose the
    withheld component and the engine never relies on it for settlement.
    """

    address: str
    mint: str
    owner: str
    balance: int = Field(ge=0, description="Visible balance in base units")
    withheld_hint: int | None = Field(default=None, description="Withheld fees, if exposed")
