"""Exception hierarchy for tkoin-core.

Only configuration problems and ledger read failures are raised as
exceptions. Everything a component does on the ledger is reported back to
its caller as a structured outcome (see ``tkoin_core.models.outcome``).
"""

from __future__ import annotations


class TkoinError(Exception):
    """Base class for all tkoin-core errors."""


class ConfigurationError(TkoinError):
    """Raised when the deployment record or treasury key is missing or invalid.

    Nothing is submitted to the ledger once this has been raised.
    """


class LedgerError(TkoinError):
    """Raised when the ledger cannot answer a read."""


class AccountNotFoundError(LedgerError):
    """Raised when an expected account or mint does not exist on the ledger."""

    def __init__(self, address: str) -> None:
        self.address = address
        super().__init__(f"could not find account {address}")
