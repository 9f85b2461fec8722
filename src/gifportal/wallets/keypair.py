"""KeypairWallet: Wallet implementation backed by a local Ed25519 key.

Used by scripts and tests where the acting identity's secret key is
available locally. Relays through ``RpcClient.send_transaction``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from gifportal.errors import InvalidRequestError, NotConnectedError
from gifportal.keys import LedgerKeypair

if TYPE_CHECKING:
    from gifportal.backends import Transaction
    from gifportal.rpc_client import RpcClient

logger = logging.getLogger(__name__)


class KeypairWallet:
    """Signs as the holder of ``keypair`` and relays via ``rpc``.

    ``trusted`` mirrors a browser wallet's remembered approval: when False,
    a trusted-only connect fails silently and an interactive connect
    grants trust for the rest of the process.
    """

    def __init__(
        self,
        keypair: LedgerKeypair,
        rpc: RpcClient,
        trusted: bool = True,
    ) -> None:
        self._keypair = keypair
        self._rpc = rpc
        self._trusted = trusted
        self._connected = False

    @property
    def public_key(self) -> str:
        return self._keypair.public_key

    async def connect(self, *, only_if_trusted: bool = False) -> str:
        if only_if_trusted and not self._trusted:
            raise NotConnectedError("Wallet has not been approved for this site.")
        self._trusted = True
        self._connected = True
        return self._keypair.public_key

    async def disconnect(self) -> None:
        self._connected = False

    async def sign_and_send(self, transaction: Transaction) -> str:
        if not self._connected:
            raise NotConnectedError("Wallet is not connected.")
        if transaction.fee_payer != self._keypair.public_key:
            raise InvalidRequestError(
                f"Fee payer {transaction.fee_payer} is not this wallet's account."
            )
        transaction.add_signature(
            self._keypair.public_key, self._keypair.sign(transaction.message_bytes())
        )
        signature = await self._rpc.send_transaction(transaction)
        logger.debug("Relayed %s as %s.", transaction.instruction, signature)
        return signature
