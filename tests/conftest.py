"""Shared fixtures: a deployed mint on an in-memory ledger."""

from __future__ import annotations

from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization

from tkoin_core.crypto.authority import SigningAuthority
from tkoin_core.ledger.memory import InMemoryLedger
from tkoin_core.models.deployment import DeploymentRecord, TokenConfig

DECIMALS = 9
UNIT = 10 ** DECIMALS
MAX_SUPPLY = 1_000_000_000
FEE_RATE_BPS = 100
MAX_FEE_UNITS = 1_000_000 * UNIT


def deploy(
    ledger: InMemoryLedger,
    treasury: SigningAuthority,
    *,
    decimals: int = DECIMALS,
    max_supply: int = MAX_SUPPLY,
    fee_rate_bps: int = FEE_RATE_BPS,
    max_fee_units: int = MAX_FEE_UNITS,
) -> DeploymentRecord:
    mint_address = ledger.create_mint(treasury.address, decimals, fee_rate_bps, max_fee_units)
    return DeploymentRecord(
        mint_address=mint_address,
        treasury_address=treasury.address,
        network="memory://",
        config=TokenConfig(
            name="Tkoin",
            symbol="TK",
            decimals=decimals,
            max_supply=max_supply,
            fee_rate_bps=fee_rate_bps,
            max_fee_units=max_fee_units,
        ),
    )


def write_pem(authority: SigningAuthority, path: Path) -> Path:
    """Write ``authority``'s private key as an unencrypted PEM file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(authority._private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ))
    return path


@pytest.fixture
def treasury() -> SigningAuthority:
    return SigningAuthority.generate()


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def deployment(ledger: InMemoryLedger, treasury: SigningAuthority) -> DeploymentRecord:
    return deploy(ledger, treasury)
