"""tkoin-core: supply control for a capped-supply, fee-burning ledger token."""

__version__ = "0.1.0"
