"""Cryptographic utilities for tkoin."""

from tkoin_core.crypto.authority import SigningAuthority, verify_signed_instruction
from tkoin_core.crypto.hashing import derive_address, holding_account_address, sha256

__all__ = [
    "SigningAuthority",
    "derive_address",
    "holding_account_address",
    "sha256",
    "verify_signed_instruction",
]
