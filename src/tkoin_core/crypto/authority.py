"""Signing authority for the treasury."""

from __future__ import annotations

import json
from pathlib import Path

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ec import (
    ECDSA,
    EllipticCurvePrivateKey,
    EllipticCurvePublicKey,
)

from tkoin_core.crypto.hashing import ADDRESS_LENGTH, sha256
from tkoin_core.errors import ConfigurationError
from tkoin_core.models.instruction import Instruction, SignedInstruction


def _address_for(public_key: EllipticCurvePublicKey) -> str:
    return sha256(_public_der(public_key))[:ADDRESS_LENGTH]


def _public_der(public_key: EllipticCurvePublicKey) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


class SigningAuthority:
    """A ready-to-sign identity.

    Uses ECDSA with SECP256R1. The address is derived from the SHA-256 of
    the DER public key. The engine never generates or persists treasury
    key material; ``generate`` exists for throwaway test-transfer recipients.
    """

    def __init__(self, private_key: EllipticCurvePrivateKey) -> None:
        self._private_key = private_key
        self._public_key = private_key.public_key()
        self._address = _address_for(self._public_key)

    @classmethod
    def generate(cls) -> SigningAuthority:
        """Generate a new random, unpersisted identity."""
        return cls(ec.generate_private_key(ec.SECP256R1()))

    @classmethod
    def from_file(cls, path: str | Path) -> SigningAuthority:
        """Load the authority from a PEM private key file."""
        path = Path(path)
        if not path.exists():
            msg = f"Treasury key file not found: {path}"
            raise ConfigurationError(msg)
        return cls.from_pem(path.read_bytes())

    @classmethod
    def from_pem(cls, data: bytes | str) -> SigningAuthority:
        if isinstance(data, str):
            data = data.encode()
        try:
            private_key = serialization.load_pem_private_key(data, password=None)
        except ValueError as exc:
            msg = f"Treasury key is not a valid PEM private key: {exc}"
            raise ConfigurationError(msg) from exc
        if not isinstance(private_key, EllipticCurvePrivateKey):
            msg = "Treasury key must be an EC private key"
            raise ConfigurationError(msg)
        return cls(private_key)

    @classmethod
    def from_secret(cls, secret: str) -> SigningAuthority:
        """Parse an inline secret.

        Accepted forms: PEM text, a hex private scalar, or a JSON array of
        byte values (brackets optional, surrounding quotes stripped).
        """
        cleaned = secret.strip()
        if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in "\"'":
            cleaned = cleaned[1:-1].strip()
        if not cleaned:
            msg = "Treasury key secret is empty"
            raise ConfigurationError(msg)

        if cleaned.startswith("-----BEGIN"):
            return cls.from_pem(cleaned.replace("\\n", "\n"))

        try:
            if all(c in "0123456789abcdefABCDEF" for c in cleaned.removeprefix("0x")):
                scalar = int(cleaned.removeprefix("0x"), 16)
            else:
                if not cleaned.startswith("["):
                    cleaned = f"[{cleaned}]"
                scalar = int.from_bytes(bytes(json.loads(cleaned)), "big")
            private_key = ec.derive_private_key(scalar, ec.SECP256R1())
        except (ValueError, TypeError) as exc:
            msg = f"Invalid treasury key format: {exc}"
            raise ConfigurationError(msg) from exc
        return cls(private_key)

    @property
    def address(self) -> str:
        return self._address

    @property
    def public_key(self) -> EllipticCurvePublicKey:
        return self._public_key

    @property
    def public_key_hex(self) -> str:
        return _public_der(self._public_key).hex()

    def sign(self, data: bytes) -> bytes:
        return self._private_key.sign(data, ECDSA(hashes.SHA256()))

    def sign_instruction(self, instruction: Instruction) -> SignedInstruction:
        """Sign an instruction, binding it to this authority's address."""
        signature = self.sign(instruction.signing_bytes())
        return SignedInstruction(
            instruction=instruction,
            signer=self._address,
            public_key=self.public_key_hex,
            signature=signature.hex(),
        )

    def verify(self, signature: bytes, data: bytes) -> bool:
        try:
            self._public_key.verify(signature, data, ECDSA(hashes.SHA256()))
            return True
        except InvalidSignature:
            return False

    def __repr__(self) -> str:
        return f"SigningAuthority(address={self._address!r})"


def verify_signed_instruction(signed: SignedInstruction) -> bool:
    """Check that a signed instruction was produced by its declared signer."""
    try:
        public_key = serialization.load_der_public_key(bytes.fromhex(signed.public_key))
        signature = bytes.fromhex(signed.signature)
    except ValueError:
        return False
    if not isinstance(public_key, EllipticCurvePublicKey):
        return False
    if _address_for(public_key) != signed.signer:
        return False
    try:
        public_key.verify(signature, signed.instruction.signing_bytes(), ECDSA(hashes.SHA256()))
    except InvalidSignature:
        return False
    return True
