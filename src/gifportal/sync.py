"""Session identity and the sync state machine.

The controller sequences every user action as connect → fetch → mutate →
refetch. A mutation moves through ``Idle → Submitting → Refetching → Idle``
(or ``Submitting → Failed → Idle``); a refresh goes straight to
``Refetching``. One action runs at a time per client instance: a mutation
is rejected with BusyError while another mutation or a refresh is in
flight, and a refresh is rejected while a submit is in flight. Nothing is
queued.

Refresh results are applied in completion order. Two overlapping refreshes
are not sequence-checked: the later-completing one wins even if it started
earlier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from gifportal.backends import Signer, Wallet
from gifportal.constants import (
    SYSTEM_PROGRAM_ID,
    Operation,
    PendingTarget,
    SyncState,
)
from gifportal.errors import BusyError, FetchError, NotConnectedError, PortalError
from gifportal.ledger import (
    Identity,
    LedgerAccountRef,
    LedgerSnapshot,
    TransactionReceipt,
)
from gifportal.ledger_client import LedgerClient
from gifportal.snapshot_cache import SnapshotCache

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class Session:
    """Owns the connected Identity. Session-scoped, never persisted."""

    def __init__(self, wallet: Wallet | None) -> None:
        self._wallet = wallet
        self._identity: Identity | None = None

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def connected(self) -> bool:
        return self._identity is not None

    async def connect(self, trusted_only: bool = False) -> Identity:
        """Connect the wallet. ``trusted_only`` never prompts the user."""
        if self._wallet is None:
            raise NotConnectedError("No compatible wallet found.")
        public_key = await self._wallet.connect(only_if_trusted=trusted_only)
        self._identity = Identity(public_key=str(public_key))
        logger.info("Connected with public key %s.", self._identity)
        return self._identity

    async def disconnect(self) -> None:
        """Forget the identity and tell the wallet, when it supports that."""
        wallet_disconnect = getattr(self._wallet, "disconnect", None)
        if wallet_disconnect is not None:
            await wallet_disconnect()
        if self._identity is not None:
            logger.info("Disconnected %s.", self._identity)
        self._identity = None

    def require_identity(self) -> Identity:
        if self._identity is None:
            raise NotConnectedError("Connect a wallet first.")
        return self._identity


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------


_TARGETS: dict[Operation, PendingTarget] = {
    Operation.INITIALIZE_LEDGER: PendingTarget.ACCOUNT_CREATION,
    Operation.APPEND_ENTRY: PendingTarget.LEDGER_MUTATION,
    Operation.CAST_VOTE: PendingTarget.LEDGER_MUTATION,
}


@dataclass(frozen=True)
class MutationOutcome:
    """A committed mutation and the view read back after it.

    ``refetch_error`` is set when the write committed but the refetch
    failed; ``snapshot`` is then the previous entries in status Unknown.
    """

    receipt: TransactionReceipt
    snapshot: LedgerSnapshot
    refetch_error: FetchError | None = None


class SyncController:
    """Runs mutations and refetches, and is the only writer of the cache."""

    def __init__(
        self,
        client: LedgerClient,
        cache: SnapshotCache,
        session: Session,
        ledger_signer: Signer,
        system_program_id: str = SYSTEM_PROGRAM_ID,
    ) -> None:
        self._client = client
        self._cache = cache
        self._session = session
        self._ledger_signer = ledger_signer
        self._system_program_id = system_program_id
        self.ledger_account = LedgerAccountRef(public_key=ledger_signer.public_key)
        self._pending: set[PendingTarget] = set()
        self._mutation_state = SyncState.IDLE
        self._reads_in_flight = 0
        self.last_error: PortalError | None = None

    # -- status ---------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        if self._mutation_state is not SyncState.IDLE:
            return self._mutation_state
        if self._reads_in_flight:
            return SyncState.REFETCHING
        return SyncState.IDLE

    @property
    def pending(self) -> frozenset[PendingTarget]:
        return frozenset(self._pending)

    @property
    def busy(self) -> bool:
        return bool(self._pending) or self._reads_in_flight > 0

    def _transition(self, new_state: SyncState) -> None:
        logger.debug("Sync state %s -> %s.", self._mutation_state.value, new_state.value)
        self._mutation_state = new_state

    # -- request shaping ------------------------------------------------------

    def _accounts(self, operation: Operation, identity: Identity) -> dict[str, str]:
        accounts = {"baseAccount": self.ledger_account.public_key}
        if operation in (Operation.INITIALIZE_LEDGER, Operation.APPEND_ENTRY):
            accounts["user"] = identity.public_key
        if operation is Operation.INITIALIZE_LEDGER:
            accounts["systemProgram"] = self._system_program_id
        return accounts

    def _signers(self, operation: Operation, identity: Identity) -> list[Signer | Identity]:
        if operation is Operation.INITIALIZE_LEDGER:
            return [self._ledger_signer, identity]
        return [identity]

    # -- actions --------------------------------------------------------------

    async def run_mutation(
        self, operation: Operation, args: list[Any] | None = None,
    ) -> MutationOutcome:
        """Submit one operation, then refetch the ledger.

        Raises NotConnectedError, BusyError, or the submit failure. A refetch
        failure after a committed submit is reported in the outcome instead.
        """
        identity = self._session.require_identity()
        target = _TARGETS[operation]
        if self._pending:
            in_flight = ", ".join(sorted(t.value for t in self._pending))
            raise BusyError(f"Cannot start {operation.value}: {in_flight} in progress.")
        if self._reads_in_flight:
            raise BusyError(f"Cannot start {operation.value}: refresh in progress.")

        self._pending.add(target)
        try:
            self._transition(SyncState.SUBMITTING)
            try:
                receipt = await self._client.submit(
                    operation,
                    args or [],
                    self._accounts(operation, identity),
                    self._signers(operation, identity),
                )
            except PortalError as e:
                self._transition(SyncState.FAILED)
                self.last_error = e
                raise

            self._transition(SyncState.REFETCHING)
            try:
                snapshot = await self._fetch_and_replace()
            except FetchError as e:
                logger.warning(
                    "%s committed (%s) but refetch failed: %s",
                    operation.value, receipt.signature, e,
                )
                return MutationOutcome(receipt, self._cache.current(), refetch_error=e)

            self.last_error = None
            return MutationOutcome(receipt, snapshot)
        finally:
            self._transition(SyncState.IDLE)
            self._pending.discard(target)

    async def refresh(self) -> LedgerSnapshot:
        """Fetch without mutating. Rejected while a submit is in flight."""
        self._session.require_identity()
        if self._mutation_state is SyncState.SUBMITTING:
            raise BusyError("Cannot refresh while a mutation is being submitted.")
        self._reads_in_flight += 1
        try:
            snapshot = await self._fetch_and_replace()
        finally:
            self._reads_in_flight -= 1
        self.last_error = None
        return snapshot

    async def _fetch_and_replace(self) -> LedgerSnapshot:
        """Fetch and install; on FetchError mark the view Unknown and re-raise."""
        try:
            snapshot = await self._client.fetch(self.ledger_account.public_key)
        except FetchError as e:
            logger.warning("Error fetching ledger: %s", e)
            self._cache.mark_unknown()
            self.last_error = e
            raise
        return self._cache.replace(snapshot)
