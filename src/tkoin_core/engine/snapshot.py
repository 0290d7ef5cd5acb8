"""Settlement deltas: measuring what an operation moved.

The ledger has no query for "amount pending withdrawal", so the engine
learns it by snapshotting a balance, running the operation and reading
the balance again. Amounts are integer base units end to end, so the
delta is exact; conversion to whole tokens happens only for display.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from tkoin_core.ledger.base import LedgerAccessor

T = TypeVar("T")


@dataclass(frozen=True)
class SettlementDelta:
    """Before/after balances of one account around one operation."""

    address: str
    before: int
    after: int

    @property
    def amount(self) -> int:
        return self.after - self.before


def snapshot_balance(ledger: LedgerAccessor, address: str) -> int:
    return ledger.read_account(address).balance


def measure_delta(
    ledger: LedgerAccessor,
    address: str,
    action: Callable[[], T],
) -> tuple[T, SettlementDelta]:
    """Run ``action`` and measure how it changed ``address``'s balance.

    Ledger read errors propagate. The delta is not protected against other
    writers touching the account between the two reads.
    """
    before = snapshot_balance(ledger, address)
    result = action()
    after = snapshot_balance(ledger, address)
    return result, SettlementDelta(address=address, before=before, after=after)
