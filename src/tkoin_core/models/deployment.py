"""Deployment record — the persisted description of one deployed mint.

Written once when the mint is created and read, never mutated, by every
supply-control operation afterwards. Both the snake_case field names and
the camelCase keys written by the deploy tooling are accepted.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from tkoin_core.errors import ConfigurationError
from tkoin_core.models.mint import MAX_FEE_RATE_BPS, TransferFeeConfig
from tkoin_core.models.units import DEFAULT_DECIMALS, tokens_to_base_units


class TokenConfig(BaseModel):
    """Mint parameters fixed at creation time."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(default="", description="Descriptive only, not used by the engine")
    symbol: str = Field(default="", description="Descriptive only, not used by the engine")
    decimals: int = Field(default=DEFAULT_DECIMALS, ge=0, le=18)
    max_supply: int = Field(
        validation_alias=AliasChoices("max_supply", "maxSupply"),
        gt=0,
        description="Supply ceiling in whole tokens",
    )
    fee_rate_bps: int = Field(
        validation_alias=AliasChoices("fee_rate_bps", "feeRateBps", "transferFeeBasisPoints"),
        ge=0,
        le=MAX_FEE_RATE_BPS,
    )
    max_fee_units: int = Field(
        validation_alias=AliasChoices("max_fee_units", "maxFeeUnits", "maxTransferFee"),
        ge=0,
        description="Absolute cap on the fee per transfer, base units",
    )

    @property
    def max_supply_units(self) -> int:
        return tokens_to_base_units(self.max_supply, self.decimals)

    @property
    def fee_config(self) -> TransferFeeConfig:
        return TransferFeeConfig(
            fee_rate_bps=self.fee_rate_bps,
            max_fee_units=self.max_fee_units,
        )


class DeploymentRecord(BaseModel):
    """Addresses and parameters of a deployed mint."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    mint_address: str = Field(validation_alias=AliasChoices("mint_address", "mintAddress"))
    treasury_address: str = Field(
        validation_alias=AliasChoices("treasury_address", "treasuryAddress", "treasuryWallet"),
    )
    network: str = Field(default="", description="Ledger endpoint the mint lives on")
    deployed_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("deployed_at", "deployedAt"),
    )
    config: TokenConfig

    @classmethod
    def from_file(cls, path: str | Path) -> DeploymentRecord:
        """Load a deployment record from its JSON file.

        Raises:
            ConfigurationError: If the file is absent or malformed.
        """
        path = Path(path)
        if not path.exists():
            msg = f"Deployment record not found: {path}"
            raise ConfigurationError(msg)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return cls.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as exc:
            msg = f"Invalid deployment record {path}: {exc}"
            raise ConfigurationError(msg) from exc
