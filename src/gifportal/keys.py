"""Static Ed25519 key for the shared ledger account.

The ledger account is derived once at startup from a keypair file in the
JSON shape the Solana/Anchor tooling writes. Account ids are the lowercase
hex encoding of the 32-byte public key.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

logger = logging.getLogger(__name__)

_SEED_LEN = 32
_SECRET_KEY_LEN = 64  # seed followed by public key


class KeypairError(ValueError):
    """Raised when keypair material cannot be parsed."""


def _secret_key_bytes(raw: Any) -> bytes:
    """Accept ``{"_keypair": {"secretKey": {...}}}``, ``{"secretKey": [...]}`` or a list."""
    if isinstance(raw, dict):
        inner = raw.get("_keypair", raw)
        if not isinstance(inner, dict) or "secretKey" not in inner:
            raise KeypairError("keypair object has no secretKey")
        raw = inner["secretKey"]
    if isinstance(raw, dict):
        # JSON-serialized Uint8Array: {"0": 12, "1": 200, ...}
        try:
            raw = [raw[k] for k in sorted(raw, key=int)]
        except ValueError as e:
            raise KeypairError(f"secretKey has non-numeric index: {e}") from e
    if not isinstance(raw, list):
        raise KeypairError(f"secretKey must be a list, got {type(raw).__name__}")
    try:
        data = bytes(int(b) for b in raw)
    except (TypeError, ValueError) as e:
        raise KeypairError(f"secretKey contains a non-byte value: {e}") from e
    if len(data) not in (_SEED_LEN, _SECRET_KEY_LEN):
        raise KeypairError(
            f"secretKey must be {_SEED_LEN} or {_SECRET_KEY_LEN} bytes, got {len(data)}"
        )
    return data


def public_key_hex(public_key: Ed25519PublicKey) -> str:
    raw = public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return raw.hex()


def verify_signature(public_key: str, signature: bytes, message: bytes) -> bool:
    """Check an Ed25519 signature against a hex account id."""
    try:
        key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key))
        key.verify(signature, message)
    except (InvalidSignature, ValueError):
        return False
    return True


class LedgerKeypair:
    """Local Ed25519 signer for an account whose secret key we hold."""

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key = private_key
        self.public_key = public_key_hex(private_key.public_key())

    @classmethod
    def generate(cls) -> LedgerKeypair:
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_secret_key(cls, secret_key: bytes) -> LedgerKeypair:
        """Build from a 32-byte seed or a 64-byte seed+public key.

        When the public half is present it must match the seed.
        """
        keypair = cls(Ed25519PrivateKey.from_private_bytes(secret_key[:_SEED_LEN]))
        if len(secret_key) == _SECRET_KEY_LEN:
            embedded = secret_key[_SEED_LEN:].hex()
            if embedded != keypair.public_key:
                raise KeypairError("secretKey public half does not match its seed")
        return keypair

    @classmethod
    def from_json(cls, data: str) -> LedgerKeypair:
        try:
            obj = json.loads(data)
        except json.JSONDecodeError as e:
            raise KeypairError(f"keypair file is not valid JSON: {e}") from e
        return cls.from_secret_key(_secret_key_bytes(obj))

    @classmethod
    def from_file(cls, path: str | Path) -> LedgerKeypair:
        keypair = cls.from_json(Path(path).read_text())
        logger.info("Loaded ledger keypair %s from %s.", keypair.public_key, path)
        return keypair

    def secret_key(self) -> bytes:
        """64-byte secret key (seed followed by public key)."""
        seed = self._private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return seed + bytes.fromhex(self.public_key)

    def to_json(self) -> str:
        """Serialize in the Anchor ``{"_keypair": {"secretKey": ...}}`` shape."""
        secret = self.secret_key()
        return json.dumps({
            "_keypair": {
                "publicKey": {str(i): b for i, b in enumerate(secret[_SEED_LEN:])},
                "secretKey": {str(i): b for i, b in enumerate(secret)},
            }
        })

    def sign(self, message: bytes) -> bytes:
        return self._private_key.sign(message)

    def __repr__(self) -> str:
        return f"LedgerKeypair({self.public_key})"
