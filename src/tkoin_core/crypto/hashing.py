"""Hashing and address derivation for the tkoin ledger."""

from __future__ import annotations

import hashlib

ADDRESS_LENGTH = 40


def sha256(data: str | bytes) -> str:
    """Compute SHA-256 hash of data."""
    if isinstance(data, str):
        data = data.encode()
    return hashlib.sha256(data).hexdigest()


def derive_address(*parts: str) -> str:
    """Derive a deterministic ledger address from its seed parts.

    Parts are joined with ``:`` so that ``("ab", "c")`` and ``("a", "bc")``
    never collide.
    """
    if not parts:
        msg = "At least one seed part is required"
        raise ValueError(msg)
    return sha256(":".join(parts))[:ADDRESS_LENGTH]


def holding_account_address(mint_address: str, owner_address: str) -> str:
    """Address of the associated holding account for (mint, owner).

    Every owner has exactly one associated holding account per mint, so
    callers can compute it locally without asking the ledger.
    """
    return derive_address("holding", mint_address, owner_address)
