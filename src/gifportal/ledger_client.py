"""LedgerClient: typed wrapper over the wallet and ledger connection.

Turns a named operation plus typed arguments, accounts and signers into a
relayed transaction, and turns a fetched account into a LedgerSnapshot.
It never touches the snapshot cache.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from gifportal.backends import LedgerConnection, Signer, Transaction, Wallet
from gifportal.constants import (
    ACCOUNT_ROLES,
    DEFAULT_COMMITMENT,
    SIGNER_ROLES,
    Operation,
)
from gifportal.errors import (
    FetchError,
    InvalidRequestError,
    MissingSignerError,
    PortalError,
)
from gifportal.ledger import Identity, LedgerSnapshot, TransactionReceipt

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Argument validation
# ---------------------------------------------------------------------------


def _validate_args(operation: Operation, args: Sequence[Any]) -> list[Any]:
    """Check argument shapes per operation. Returns the args as a list."""
    if operation is Operation.INITIALIZE_LEDGER:
        if args:
            raise InvalidRequestError(f"{operation.value} takes no arguments.")
        return []

    if len(args) != 1:
        raise InvalidRequestError(
            f"{operation.value} takes exactly one payload reference, got {len(args)}."
        )
    payload_ref = args[0]
    if not isinstance(payload_ref, str) or not payload_ref.strip():
        raise InvalidRequestError("Payload reference must be a non-empty string.")
    return [payload_ref]


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class LedgerClient:
    """Submits operations to the ledger program and fetches its account.

    ``submit`` either returns a receipt for a durably accepted operation or
    raises. It never returns a receipt for a rejected one.
    """

    def __init__(
        self,
        wallet: Wallet,
        connection: LedgerConnection,
        program_id: str,
        commitment: str = DEFAULT_COMMITMENT,
    ) -> None:
        self._wallet = wallet
        self._connection = connection
        self._program_id = program_id
        self._commitment = commitment

    def build_transaction(
        self,
        operation: Operation | str,
        args: Sequence[Any],
        accounts: Mapping[str, str],
        signers: Sequence[Signer | Identity],
    ) -> Transaction:
        """Validate a request and return it signed by every local signer.

        The fee payer is the ``user`` account when present, else the first
        Identity among the signers. Raises InvalidRequestError or
        MissingSignerError before anything is sent.
        """
        try:
            op = Operation(operation)
        except ValueError as e:
            raise InvalidRequestError(f"Unknown operation {operation!r}.") from e

        call_args = _validate_args(op, args)

        roles = ACCOUNT_ROLES[op]
        missing_roles = [r for r in roles if not accounts.get(r)]
        if missing_roles:
            raise InvalidRequestError(
                f"{op.value} is missing account(s): {', '.join(missing_roles)}."
            )

        identities = [s for s in signers if isinstance(s, Identity)]
        fee_payer = accounts.get("user") or (
            identities[0].public_key if identities else None
        )
        if not fee_payer:
            raise MissingSignerError(f"{op.value} has no fee payer among its signers.")

        provided = {s.public_key for s in signers}
        required = {accounts[r] for r in SIGNER_ROLES[op]} | {fee_payer}
        missing = sorted(required - provided)
        if missing:
            raise MissingSignerError(
                f"{op.value} requires signature(s) from: {', '.join(missing)}."
            )

        transaction = Transaction(
            program_id=self._program_id,
            instruction=op.value,
            args=call_args,
            accounts={r: accounts[r] for r in roles},
            fee_payer=fee_payer,
            commitment=self._commitment,
        )
        message = transaction.message_bytes()
        for signer in signers:
            if isinstance(signer, Identity):
                continue  # the wallet signs for connected identities
            transaction.add_signature(signer.public_key, signer.sign(message))
        return transaction

    async def submit(
        self,
        operation: Operation | str,
        args: Sequence[Any],
        accounts: Mapping[str, str],
        signers: Sequence[Signer | Identity],
    ) -> TransactionReceipt:
        """Sign and relay one operation. Raises a PortalError on rejection."""
        transaction = self.build_transaction(operation, args, accounts, signers)
        op = Operation(transaction.instruction)
        try:
            signature = await self._wallet.sign_and_send(transaction)
        except PortalError as e:
            logger.warning("Submit of %s failed: %s", op.value, e)
            raise
        logger.info("Submitted %s (signature %s).", op.value, signature)
        return TransactionReceipt(signature=signature, operation=op)

    async def fetch(self, account_id: str) -> LedgerSnapshot:
        """Read the ledger account.

        A missing account yields an Uninitialized snapshot. Transport
        failures and malformed data raise FetchError.
        """
        try:
            data = await self._connection.get_account(account_id)
        except PortalError as e:
            raise FetchError(
                f"Fetch of {account_id} failed: {e}", code=e.code, retryable=e.retryable
            ) from e
        except Exception as e:
            raise FetchError(f"Fetch of {account_id} failed: {e}") from e

        if data is None:
            logger.info("Ledger account %s does not exist yet.", account_id)
            return LedgerSnapshot.uninitialized()

        try:
            return LedgerSnapshot.from_account(data)
        except (TypeError, ValueError) as e:
            raise FetchError(
                f"Ledger account {account_id} is malformed: {e}", retryable=False
            ) from e
