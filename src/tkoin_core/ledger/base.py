"""Ledger accessor interface.

The ledger is an opaque remote service: the engine can read account and
mint state and submit signed instructions, and every submit blocks until
the ledger confirms or rejects it. Accessors never retry; retry and
backoff belong to whoever schedules the engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum

from pydantic import BaseModel, Field

from tkoin_core.crypto.hashing import holding_account_address
from tkoin_core.models.instruction import SignedInstruction
from tkoin_core.models.mint import AccountState, MintState


class SubmitStatus(str, Enum):
    CONFIRMED = "confirmed"
    NO_OP = "no_op"          # Recognized empty state, nothing changed on the ledger
    REJECTED = "rejected"


class NoOpCode(str, Enum):
    """Structured codes for recognized empty states."""

    NOTHING_TO_HARVEST = "nothing_to_harvest"
    NOTHING_TO_WITHDRAW = "nothing_to_withdraw"
    ALREADY_EXISTS = "already_exists"


class SubmitResult(BaseModel):
    """Outcome of submitting one signed instruction."""

    status: SubmitStatus
    signature: str = Field(default="", description="Transaction id when confirmed")
    code: NoOpCode | None = None
    reason: str = Field(default="", description="Rejection reason, verbatim")

    @classmethod
    def confirmed(cls, signature: str) -> SubmitResult:
        return cls(status=SubmitStatus.CONFIRMED, signature=signature)

    @classmethod
    def no_op(cls, code: NoOpCode) -> SubmitResult:
        return cls(status=SubmitStatus.NO_OP, code=code)

    @classmethod
    def rejected(cls, reason: str) -> SubmitResult:
        return cls(status=SubmitStatus.REJECTED, reason=reason)

    @property
    def is_confirmed(self) -> bool:
        return self.status == SubmitStatus.CONFIRMED

    @property
    def is_no_op(self) -> bool:
        return self.status == SubmitStatus.NO_OP


class LedgerAccessor(ABC):
    """Capability to read ledger state and submit signed instructions.

    Reads raise ``LedgerError`` (``AccountNotFoundError`` for a missing
    account or mint). ``submit`` never raises for a ledger-side failure;
    it returns a ``REJECTED`` result carrying the ledger's reason.
    """

    @abstractmethod
    def read_account(self, address: str) -> AccountState:
        """Read a holding account."""

    @abstractmethod
    def read_mint(self, address: str) -> MintState:
        """Read a mint's precision, supply and fee configuration."""

    @abstractmethod
    def submit(self, signed: SignedInstruction) -> SubmitResult:
        """Submit a signed instruction and wait for confirmation."""

    @abstractmethod
    def account_exists(self, address: str) -> bool:
        """Whether a holding account exists."""

    def holding_address(self, mint_address: str, owner_address: str) -> str:
        """Address of the associated holding account for (mint, owner)."""
        return holding_account_address(mint_address, owner_address)
