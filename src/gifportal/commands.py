"""User-facing commands: connect, initialize, append, vote, refresh.

Every command returns a CommandResult. Failures come back as values, so a
UI never has to catch exceptions from this layer.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from gifportal.backends import LedgerConnection, Signer, Wallet
from gifportal.config import PortalConfig
from gifportal.constants import (
    DEFAULT_COMMITMENT,
    SYSTEM_PROGRAM_ID,
    LedgerStatus,
    Operation,
)
from gifportal.errors import NotConnectedError, PortalError
from gifportal.keys import LedgerKeypair
from gifportal.ledger import Identity, LedgerSnapshot, TransactionReceipt
from gifportal.ledger_client import LedgerClient
from gifportal.rpc_client import RpcClient
from gifportal.snapshot_cache import SnapshotCache
from gifportal.sync import MutationOutcome, Session, SyncController

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one command.

    ``committed`` is True when a mutation was accepted remotely, even if
    the refetch that followed failed (``error`` then holds the FetchError).
    """

    success: bool
    snapshot: LedgerSnapshot
    receipt: TransactionReceipt | None = None
    error: PortalError | None = None
    committed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "committed": self.committed,
            "snapshot": self.snapshot.to_dict(),
            "receipt": self.receipt.to_dict() if self.receipt else None,
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass(frozen=True)
class PortalView:
    """Everything a renderer needs."""

    snapshot: LedgerSnapshot
    busy: bool
    last_error: PortalError | None
    identity: Identity | None

    @property
    def connected(self) -> bool:
        return self.identity is not None

    @property
    def can_initialize(self) -> bool:
        """The one-time initialize command is only offered for a missing account."""
        return self.connected and self.snapshot.status is LedgerStatus.UNINITIALIZED


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------


def make_rpc_client(config: PortalConfig) -> RpcClient:
    return RpcClient(
        config.rpc_url,
        commitment=config.commitment,
        timeout=httpx.Timeout(
            connect=config.connect_timeout,
            read=config.read_timeout,
            write=config.write_timeout,
            pool=config.pool_timeout,
        ),
    )


class GifPortal:
    """Command facade over one session, one cache and one controller."""

    def __init__(
        self,
        wallet: Wallet | None,
        connection: LedgerConnection,
        program_id: str,
        ledger_signer: Signer,
        commitment: str = DEFAULT_COMMITMENT,
        system_program_id: str = SYSTEM_PROGRAM_ID,
    ) -> None:
        self.session = Session(wallet)
        self.cache = SnapshotCache()
        client_wallet = wallet if wallet is not None else _NoWallet()
        self.client = LedgerClient(client_wallet, connection, program_id, commitment)
        self.controller = SyncController(
            self.client, self.cache, self.session, ledger_signer, system_program_id
        )

    @classmethod
    def from_config(
        cls,
        config: PortalConfig,
        wallet: Wallet | None,
        rpc: RpcClient | None = None,
    ) -> GifPortal:
        """Load the static ledger key and wire up the RPC connection."""
        return cls(
            wallet,
            rpc or make_rpc_client(config),
            config.program_id,
            LedgerKeypair.from_file(config.ledger_keypair_path),
            commitment=config.commitment,
            system_program_id=config.system_program_id,
        )

    # -- rendering boundary ---------------------------------------------------

    def view(self) -> PortalView:
        return PortalView(
            snapshot=self.cache.current(),
            busy=self.controller.busy,
            last_error=self.controller.last_error,
            identity=self.session.identity,
        )

    # -- session commands -----------------------------------------------------

    async def restore_session(self) -> CommandResult:
        """Trusted-only connect at startup. Failure is silent."""
        try:
            await self.session.connect(trusted_only=True)
        except PortalError as e:
            logger.debug("No trusted wallet session: %s", e)
            return CommandResult(success=False, snapshot=self.cache.current(), error=e)
        return await self.refresh()

    async def connect(self) -> CommandResult:
        """Interactive connect, followed by a refresh of the ledger."""
        try:
            await self.session.connect(trusted_only=False)
        except PortalError as e:
            logger.warning("Wallet connect failed: %s", e)
            self.controller.last_error = e
            return CommandResult(success=False, snapshot=self.cache.current(), error=e)
        return await self.refresh()

    async def disconnect(self) -> None:
        await self.session.disconnect()

    # -- ledger commands ------------------------------------------------------

    async def initialize(self) -> CommandResult:
        """One-time creation of the ledger account.

        A second call fails remotely; check ``view().can_initialize`` first.
        """
        return await self._mutate(Operation.INITIALIZE_LEDGER)

    async def append(self, payload_ref: str) -> CommandResult:
        return await self._mutate(Operation.APPEND_ENTRY, payload_ref)

    async def vote(self, payload_ref: str) -> CommandResult:
        return await self._mutate(Operation.CAST_VOTE, payload_ref)

    async def refresh(self) -> CommandResult:
        return await self._guard(self._refresh)

    # -- internals ------------------------------------------------------------

    async def _refresh(self) -> CommandResult:
        snapshot = await self.controller.refresh()
        return CommandResult(success=True, snapshot=snapshot)

    async def _mutate(self, operation: Operation, *args: Any) -> CommandResult:
        async def _run() -> CommandResult:
            outcome: MutationOutcome = await self.controller.run_mutation(
                operation, list(args)
            )
            return CommandResult(
                success=True,
                snapshot=outcome.snapshot,
                receipt=outcome.receipt,
                error=outcome.refetch_error,
                committed=True,
            )

        return await self._guard(_run)

    async def _guard(self, action: Callable[[], Awaitable[CommandResult]]) -> CommandResult:
        """Convert any failure into a CommandResult."""
        try:
            return await action()
        except PortalError as e:
            return CommandResult(success=False, snapshot=self.cache.current(), error=e)
        except Exception as e:
            logger.exception("Unexpected error in portal command.")
            error = PortalError(f"Unexpected error: {e}")
            self.controller.last_error = error
            return CommandResult(success=False, snapshot=self.cache.current(), error=error)


class _NoWallet:
    """Stand-in used when no wallet is installed; every call is NotConnected."""

    async def connect(self, *, only_if_trusted: bool = False) -> str:
        raise NotConnectedError("No compatible wallet found.")

    async def sign_and_send(self, transaction: Any) -> str:
        raise NotConnectedError("No compatible wallet found.")
