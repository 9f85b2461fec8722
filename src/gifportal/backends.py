"""Capability interfaces the portal core depends on.

Defines the Wallet, LedgerConnection and Signer Protocols plus the
Transaction they exchange. Concrete implementations (``RpcClient``,
``KeypairWallet``) live elsewhere; a browser wallet bridge or a test fake
works just as well.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass
class Transaction:
    """One instruction call, ready to be signed and relayed.

    ``signatures`` maps account id to a base64 Ed25519 signature over
    ``message_bytes()``. Local signers fill it before the wallet adds the
    fee payer's signature.
    """

    program_id: str
    instruction: str
    args: list[Any]
    accounts: dict[str, str]
    fee_payer: str
    commitment: str = "processed"
    signatures: dict[str, str] = field(default_factory=dict)

    def message_bytes(self) -> bytes:
        """Canonical JSON encoding of everything but the signatures."""
        return json.dumps({
            "program_id": self.program_id,
            "instruction": self.instruction,
            "args": self.args,
            "accounts": self.accounts,
            "fee_payer": self.fee_payer,
        }, sort_keys=True, separators=(",", ":")).encode()

    def add_signature(self, public_key: str, signature: bytes) -> None:
        self.signatures[public_key] = base64.b64encode(signature).decode()

    def to_wire(self) -> dict[str, Any]:
        return {
            "message": base64.b64encode(self.message_bytes()).decode(),
            "signatures": dict(self.signatures),
            "commitment": self.commitment,
        }


@runtime_checkable
class Signer(Protocol):
    """Anything holding a secret key for an account."""

    public_key: str

    def sign(self, message: bytes) -> bytes: ...


@runtime_checkable
class Wallet(Protocol):
    """Identity capability: connect, then sign and relay transactions.

    ``connect(only_if_trusted=True)`` must not prompt the user; it raises
    ``NotConnectedError`` when no prior trust exists.
    """

    async def connect(self, *, only_if_trusted: bool = False) -> str: ...

    async def sign_and_send(self, transaction: Transaction) -> str: ...


@runtime_checkable
class LedgerConnection(Protocol):
    """Read access to remote accounts.

    ``get_account`` returns the decoded account data, or None when the
    account does not exist.
    """

    async def get_account(self, account_id: str) -> dict[str, Any] | None: ...
