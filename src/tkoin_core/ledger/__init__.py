"""Ledger accessors. The engine reads and writes the ledger only through these."""

from tkoin_core.ledger.base import LedgerAccessor, NoOpCode, SubmitResult, SubmitStatus
from tkoin_core.ledger.http import HttpLedger
from tkoin_core.ledger.memory import InMemoryLedger

__all__ = [
    "HttpLedger",
    "InMemoryLedger",
    "LedgerAccessor",
    "NoOpCode",
    "SubmitResult",
    "SubmitStatus",
]
