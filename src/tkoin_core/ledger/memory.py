"""In-process ledger implementing withheld-fee token semantics.

Behaves like the remote ledger the engine targets:

  - a transfer withholds ``compute_transfer_fee(amount)`` on the
    *recipient* holding account; the recipient's visible balance grows by
    ``amount - fee``
  - harvest moves withheld amounts from holding accounts into the mint's
    withheld pool (anyone may harvest)
  - withdraw moves the pool into a vault account (withdraw authority only)
  - burn destroys tokens from an account (owner only) and lowers supply
  - every instruction must carry a valid signature from its declared
    signer, and an instruction id is accepted at most once

Every submit is applied atomically under one lock, which makes the ledger
the single serialization point for callers sharing it.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass

from tkoin_core.crypto.authority import verify_signed_instruction
from tkoin_core.crypto.hashing import derive_address, holding_account_address
from tkoin_core.errors import AccountNotFoundError
from tkoin_core.ledger.base import LedgerAccessor, NoOpCode, SubmitResult
from tkoin_core.models.instruction import Instruction, InstructionType, SignedInstruction
from tkoin_core.models.mint import (
    AccountState,
    MintState,
    TransferFeeConfig,
    compute_transfer_fee,
)


@dataclass
class _MintRecord:
    address: str
    decimals: int
    fee_rate_bps: int
    max_fee_units: int
    mint_authority: str
    withdraw_authority: str
    supply: int = 0
    withheld_pool: int = 0


@dataclass
class _AccountRecord:
    address: str
    mint: str
    owner: str
    balance: int = 0
    withheld: int = 0


class _Rejection(Exception):
    """Internal signal carrying a rejection reason out of an apply step."""


class InMemoryLedger(LedgerAccessor):
    """A complete ledger held in memory."""

    def __init__(self) -> None:
        self._mints: dict[str, _MintRecord] = {}
        self._accounts: dict[str, _AccountRecord] = {}
        self._processed: set[str] = set()
        self._confirmed: list[SignedInstruction] = []
        self._injected: deque[tuple[InstructionType, str]] = deque()
        self._lock = threading.RLock()

    # ── Setup ────────────────────────────────────────────────────

    def create_mint(
        self,
        authority: str,
        decimals: int,
        fee_rate_bps: int,
        max_fee_units: int,
    ) -> str:
        """Create a mint whose mint and withdraw authority is ``authority``.

        Returns the new mint address.
        """
        with self._lock:
            address = derive_address("mint", authority, str(len(self._mints)))
            self._mints[address] = _MintRecord(
                address=address,
                decimals=decimals,
                fee_rate_bps=fee_rate_bps,
                max_fee_units=max_fee_units,
                mint_authority=authority,
                withdraw_authority=authority,
            )
            return address

    def reject_next(self, tx_type: InstructionType, reason: str) -> None:
        """Make the next submit of ``tx_type`` fail with ``reason``.

        Fault injection for exercising failure paths (expired blockhash,
        confirmation timeout, fee-payer out of funds, ...).
        """
        self._injected.append((tx_type, reason))

    @property
    def confirmed_instructions(self) -> list[SignedInstruction]:
        """Every instruction the ledger has confirmed, in order."""
        return list(self._confirmed)

    # ── Reads ────────────────────────────────────────────────────

    def read_account(self, address: str) -> AccountState:
        with self._lock:
            record = self._accounts.get(address)
            if record is None:
                raise AccountNotFoundError(address)
            return AccountState(
                address=record.address,
                mint=record.mint,
                owner=record.owner,
                balance=record.balance,
                withheld_hint=record.withheld,
            )

    def read_mint(self, address: str) -> MintState:
        with self._lock:
            record = self._mints.get(address)
            if record is None:
                raise AccountNotFoundError(address)
            return MintState(
                address=record.address,
                decimals=record.decimals,
                supply=record.supply,
                fee_config=TransferFeeConfig(
                    fee_rate_bps=record.fee_rate_bps,
                    max_fee_units=record.max_fee_units,
                ),
                withheld_pool=record.withheld_pool,
            )

    def account_exists(self, address: str) -> bool:
        with self._lock:
            return address in self._accounts

    # ── Submit ───────────────────────────────────────────────────

    def submit(self, signed: SignedInstruction) -> SubmitResult:
        instruction = signed.instruction
        with self._lock:
            injected = self._take_injected(instruction.tx_type)
            if injected is not None:
                return SubmitResult.rejected(injected)
            if not verify_signed_instruction(signed):
                return SubmitResult.rejected("signature verification failed")
            if instruction.id != instruction.compute_id():
                return SubmitResult.rejected("instruction id does not match its contents")
            if instruction.id in self._processed:
                return SubmitResult.rejected("transaction already processed")

            try:
                mint = self._mint(instruction.mint)
                if instruction.decimals is not None and instruction.decimals != mint.decimals:
                    raise _Rejection(
                        f"decimals mismatch: expected {mint.decimals}, got {instruction.decimals}"
                    )
                code = self._apply(signed.signer, mint, instruction)
            except _Rejection as exc:
                return SubmitResult.rejected(str(exc))

            if code is not None:
                return SubmitResult.no_op(code)
            self._processed.add(instruction.id)
            self._confirmed.append(signed)
            return SubmitResult.confirmed(instruction.id)

    def _take_injected(self, tx_type: InstructionType) -> str | None:
        for i, (injected_type, reason) in enumerate(self._injected):
            if injected_type == tx_type:
                del self._injected[i]
                return reason
        return None

    def _apply(
        self, signer: str, mint: _MintRecord, ix: Instruction,
    ) -> NoOpCode | None:
        handlers = {
            InstructionType.CREATE_ACCOUNT: self._create_account,
            InstructionType.MINT_TO: self._mint_to,
            InstructionType.TRANSFER: self._transfer,
            InstructionType.HARVEST: self._harvest,
            InstructionType.WITHDRAW: self._withdraw,
            InstructionType.BURN: self._burn,
        }
        return handlers[ix.tx_type](signer, mint, ix)

    # Each handler validates everything before mutating anything.

    def _create_account(self, signer: str, mint: _MintRecord, ix: Instruction) -> NoOpCode | None:
        if not ix.owner:
            raise _Rejection("owner is required to create a holding account")
        address = holding_account_address(mint.address, ix.owner)
        if address in self._accounts:
            return NoOpCode.ALREADY_EXISTS
        self._accounts[address] = _AccountRecord(address=address, mint=mint.address, owner=ix.owner)
        return None

    def _mint_to(self, signer: str, mint: _MintRecord, ix: Instruction) -> NoOpCode | None:
        if signer != mint.mint_authority:
            raise _Rejection("signer is not the mint authority")
        destination = self._account(ix.destination, mint)
        self._require_positive(ix.amount)
        destination.balance += ix.amount
        mint.supply += ix.amount
        return None

    def _transfer(self, signer: str, mint: _MintRecord, ix: Instruction) -> NoOpCode | None:
        source = self._account(ix.source, mint)
        destination = self._account(ix.destination, mint)
        if signer != source.owner:
            raise _Rejection("signer does not own the source account")
        self._require_positive(ix.amount)
        if source.balance < ix.amount:
            raise _Rejection(
                f"insufficient funds: balance {source.balance} < amount {ix.amount}"
            )
        fee = compute_transfer_fee(ix.amount, mint.fee_rate_bps, mint.max_fee_units)
        source.balance -= ix.amount
        destination.balance += ix.amount - fee
        destination.withheld += fee
        return None

    def _harvest(self, signer: str, mint: _MintRecord, ix: Instruction) -> NoOpCode | None:
        if not ix.accounts:
            raise _Rejection("no accounts to harvest from")
        accounts = [self._account(address, mint) for address in ix.accounts]
        total = sum(a.withheld for a in accounts)
        if total == 0:
            return NoOpCode.NOTHING_TO_HARVEST
        for account in accounts:
            mint.withheld_pool += account.withheld
            account.withheld = 0
        return None

    def _withdraw(self, signer: str, mint: _MintRecord, ix: Instruction) -> NoOpCode | None:
        if signer != mint.withdraw_authority:
            raise _Rejection("signer is not the withdraw withheld authority")
        destination = self._account(ix.destination, mint)
        if mint.withheld_pool == 0:
            return NoOpCode.NOTHING_TO_WITHDRAW
        destination.balance += mint.withheld_pool
        mint.withheld_pool = 0
        return None

    def _burn(self, signer: str, mint: _MintRecord, ix: Instruction) -> NoOpCode | None:
        source = self._account(ix.source, mint)
        if signer != source.owner:
            raise _Rejection("signer does not own the source account")
        self._require_positive(ix.amount)
        if source.balance < ix.amount:
            raise _Rejection(
                f"insufficient funds: balance {source.balance} < burn {ix.amount}"
            )
        source.balance -= ix.amount
        mint.supply -= ix.amount
        return None

    # ── Helpers ──────────────────────────────────────────────────

    def _mint(self, address: str) -> _MintRecord:
        record = self._mints.get(address)
        if record is None:
            raise _Rejection(f"could not find mint {address}")
        return record

    def _account(self, address: str, mint: _MintRecord) -> _AccountRecord:
        record = self._accounts.get(address)
        if record is None:
            raise _Rejection(f"could not find account {address}")
        if record.mint != mint.address:
            raise _Rejection(f"account {address} belongs to another mint")
        return record

    @staticmethod
    def _require_positive(amount: int) -> None:
        if amount <= 0:
            raise _Rejection("amount must be positive")
