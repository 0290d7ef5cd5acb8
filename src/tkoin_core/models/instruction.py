"""Instructions — the ledger-mutating operations the engine can submit."""

from __future__ import annotations

import hashlib
import json
import secrets
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class InstructionType(str, Enum):
    """Operations understood by the ledger.

    Every mutation the engine performs is exactly one of these, signed by
    the treasury authority (or, for a transfer, by the source owner).
    """

    CREATE_ACCOUNT = "create_account"
    MINT_TO = "mint_to"
    TRANSFER = "transfer"

    # Fee settlement
    HARVEST = "harvest"
    WITHDRAW = "withdraw"
    BURN = "burn"


class Instruction(BaseModel):
    """A single ledger instruction.

    Amounts are always integer base units. ``decimals`` is carried on
    checked operations (transfer, burn) so the ledger can reject an
    instruction built against the wrong precision.
    """

    id: str = Field(default="", description="Instruction hash")
    tx_type: InstructionType = Field(description="Type of instruction")
    mint: str = Field(description="Mint the instruction operates on")
    source: str = Field(default="", description="Debited holding account")
    destination: str = Field(default="", description="Credited holding account")
    owner: str = Field(default="", description="Owner of a newly created holding account")
    accounts: list[str] = Field(
        default_factory=list,
        description="Holding accounts swept by a harvest",
    )
    amount: int = Field(default=0, ge=0, description="Amount in base units")
    decimals: int | None = Field(default=None, description="Expected mint precision")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
    nonce: str = Field(
        default_factory=lambda: secrets.token_hex(16),
        description="Random salt; two otherwise identical instructions get distinct ids",
    )

    def model_post_init(self, __context: Any) -> None:
        """Generate ID if not set."""
        if not self.id:
            self.id = self.compute_id()

    def canonical_payload(self) -> dict[str, Any]:
        return {
            "tx_type": self.tx_type.value,
            "mint": self.mint,
            "source": self.source,
            "destination": self.destination,
            "owner": self.owner,
            "accounts": list(self.accounts),
            "amount": self.amount,
            "decimals": self.decimals,
            "timestamp": self.timestamp.isoformat(),
            "nonce": self.nonce,
        }

    def signing_bytes(self) -> bytes:
        """Canonical byte string covered by the signature."""
        return json.dumps(self.canonical_payload(), sort_keys=True).encode()

    def compute_id(self) -> str:
        """Compute deterministic instruction hash."""
        return hashlib.sha256(self.signing_bytes()).hexdigest()


class SignedInstruction(BaseModel):
    """An instruction together with its signer and signature.

    ``public_key`` is the DER-encoded SubjectPublicKeyInfo of the signer,
    hex encoded, so any ledger can verify the signature without a key
    registry.
    """

    instruction: Instruction
    signer: str = Field(description="Address of the signing authority")
    public_key: str = Field(description="Hex-encoded DER public key")
    signature: str = Field(description="Hex-encoded ECDSA signature")

    @property
    def id(self) -> str:
        return self.instruction.id
