"""Tests for Session and SyncController: state machine, busy guard, partial failure."""

import asyncio
from typing import Any

import pytest

from gifportal.constants import LedgerStatus, Operation, PendingTarget, SyncState
from gifportal.errors import (
    BusyError,
    FetchError,
    NotConnectedError,
    RemoteError,
    TransportError,
)
from gifportal.ledger_client import LedgerClient
from gifportal.snapshot_cache import SnapshotCache
from gifportal.sync import Session, SyncController


LINK = "https://example.com/a.gif"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _controller(program, ledger_keypair, connection=None) -> SyncController:
    session = Session(program)
    client = LedgerClient(program, connection or program, "gif-program")
    return SyncController(client, SnapshotCache(), session, ledger_keypair)


async def _connected(program, ledger_keypair, connection=None) -> SyncController:
    controller = _controller(program, ledger_keypair, connection)
    await controller._session.connect()
    return controller


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


class _GatedConnection:
    """Returns queued account data, each held until its event is set."""

    def __init__(self) -> None:
        self.queue: list[tuple[asyncio.Event, dict[str, Any]]] = []

    async def get_account(self, account_id: str) -> dict[str, Any] | None:
        gate, data = self.queue.pop(0)
        await gate.wait()
        return data


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class TestSession:
    @pytest.mark.asyncio
    async def test_connect_sets_identity(self, program) -> None:
        session = Session(program)
        identity = await session.connect()
        assert identity.public_key == program.user.public_key
        assert session.connected

    @pytest.mark.asyncio
    async def test_no_wallet(self) -> None:
        session = Session(None)
        with pytest.raises(NotConnectedError, match="No compatible wallet"):
            await session.connect()

    @pytest.mark.asyncio
    async def test_trusted_only_without_trust(self, program) -> None:
        program.trusted = False
        session = Session(program)
        with pytest.raises(NotConnectedError):
            await session.connect(trusted_only=True)
        assert session.identity is None

    @pytest.mark.asyncio
    async def test_disconnect_clears_identity(self, program) -> None:
        session = Session(program)
        await session.connect()
        await session.disconnect()
        assert session.identity is None
        assert program.disconnects == 1
        with pytest.raises(NotConnectedError):
            session.require_identity()

    @pytest.mark.asyncio
    async def test_disconnect_without_wallet_hook(self, ledger_keypair) -> None:
        class _ConnectOnly:
            async def connect(self, *, only_if_trusted: bool = False) -> str:
                return ledger_keypair.public_key

        session = Session(_ConnectOnly())
        await session.connect()
        await session.disconnect()
        assert not session.connected


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


class TestRunMutation:
    @pytest.mark.asyncio
    async def test_requires_identity(self, program, ledger_keypair) -> None:
        controller = _controller(program, ledger_keypair)
        with pytest.raises(NotConnectedError):
            await controller.run_mutation(Operation.INITIALIZE_LEDGER)
        assert program.send_calls == 0

    @pytest.mark.asyncio
    async def test_mutation_refetches(self, program, ledger_keypair) -> None:
        controller = await _connected(program, ledger_keypair)
        outcome = await controller.run_mutation(Operation.INITIALIZE_LEDGER)
        assert outcome.receipt.operation is Operation.INITIALIZE_LEDGER
        assert outcome.refetch_error is None
        assert outcome.snapshot.status is LedgerStatus.READY
        assert controller._cache.current() is outcome.snapshot
        assert program.fetch_calls == 1

    @pytest.mark.asyncio
    async def test_returns_to_idle(self, program, ledger_keypair) -> None:
        controller = await _connected(program, ledger_keypair)
        await controller.run_mutation(Operation.INITIALIZE_LEDGER)
        assert controller.state is SyncState.IDLE
        assert controller.pending == frozenset()
        assert not controller.busy

    @pytest.mark.asyncio
    async def test_append_records_owner(self, program, ledger_keypair) -> None:
        controller = await _connected(program, ledger_keypair)
        await controller.run_mutation(Operation.INITIALIZE_LEDGER)
        outcome = await controller.run_mutation(Operation.APPEND_ENTRY, [LINK])
        entry = outcome.snapshot.find(LINK)
        assert entry.owner == program.user.public_key
        assert entry.vote_count == 0

    @pytest.mark.asyncio
    async def test_second_initialize_fails_remotely(self, program, ledger_keypair) -> None:
        controller = await _connected(program, ledger_keypair)
        await controller.run_mutation(Operation.INITIALIZE_LEDGER)
        before = controller._cache.current()
        with pytest.raises(RemoteError, match="already in use"):
            await controller.run_mutation(Operation.INITIALIZE_LEDGER)
        assert controller._cache.current() is before
        assert program.send_calls == 2


class TestBusyGuard:
    @pytest.mark.asyncio
    async def test_concurrent_mutation_is_rejected(self, program, ledger_keypair) -> None:
        controller = await _connected(program, ledger_keypair)
        program.send_gate = asyncio.Event()
        task = asyncio.create_task(controller.run_mutation(Operation.INITIALIZE_LEDGER))
        await _settle()

        assert controller.state is SyncState.SUBMITTING
        assert controller.pending == {PendingTarget.ACCOUNT_CREATION}
        assert controller.busy

        for op, args in [
            (Operation.INITIALIZE_LEDGER, []),
            (Operation.APPEND_ENTRY, [LINK]),
            (Operation.CAST_VOTE, [LINK]),
        ]:
            with pytest.raises(BusyError):
                await controller.run_mutation(op, args)
        assert program.send_calls == 1

        program.send_gate.set()
        outcome = await task
        assert outcome.snapshot.status is LedgerStatus.READY
        assert controller.state is SyncState.IDLE

    @pytest.mark.asyncio
    async def test_refresh_rejected_while_submitting(self, program, ledger_keypair) -> None:
        controller = await _connected(program, ledger_keypair)
        program.send_gate = asyncio.Event()
        task = asyncio.create_task(controller.run_mutation(Operation.INITIALIZE_LEDGER))
        await _settle()
        with pytest.raises(BusyError):
            await controller.refresh()
        program.send_gate.set()
        await task
        assert program.fetch_calls == 1

    @pytest.mark.asyncio
    async def test_mutation_rejected_while_refreshing(self, program, ledger_keypair) -> None:
        connection = _GatedConnection()
        controller = await _connected(program, ledger_keypair, connection)
        gate = asyncio.Event()
        stale = {"totalGifs": 0, "gifList": []}
        connection.queue = [(gate, stale)]

        refresh = asyncio.create_task(controller.refresh())
        await _settle()
        assert controller.state is SyncState.REFETCHING

        for op, args in [
            (Operation.INITIALIZE_LEDGER, []),
            (Operation.APPEND_ENTRY, [LINK]),
            (Operation.CAST_VOTE, [LINK]),
        ]:
            with pytest.raises(BusyError, match="refresh in progress"):
                await controller.run_mutation(op, args)
        assert program.send_calls == 0
        assert controller.pending == frozenset()

        gate.set()
        snapshot = await refresh
        assert snapshot.entries == ()
        assert controller.state is SyncState.IDLE
        assert not controller.busy

    @pytest.mark.asyncio
    async def test_mutation_pending_target(self, program, ledger_keypair) -> None:
        controller = await _connected(program, ledger_keypair)
        await controller.run_mutation(Operation.INITIALIZE_LEDGER)
        program.send_gate = asyncio.Event()
        task = asyncio.create_task(controller.run_mutation(Operation.APPEND_ENTRY, [LINK]))
        await _settle()
        assert controller.pending == {PendingTarget.LEDGER_MUTATION}
        program.send_gate.set()
        await task

    @pytest.mark.asyncio
    async def test_guard_released_after_failure(self, program, ledger_keypair) -> None:
        controller = await _connected(program, ledger_keypair)
        program.fail_send = TransportError("down")
        with pytest.raises(TransportError):
            await controller.run_mutation(Operation.INITIALIZE_LEDGER)
        program.fail_send = None
        outcome = await controller.run_mutation(Operation.INITIALIZE_LEDGER)
        assert outcome.snapshot.status is LedgerStatus.READY


class TestFailures:
    @pytest.mark.asyncio
    async def test_failed_submit_leaves_cache_untouched(self, program, ledger_keypair) -> None:
        controller = await _connected(program, ledger_keypair)
        await controller.run_mutation(Operation.INITIALIZE_LEDGER)
        await controller.run_mutation(Operation.APPEND_ENTRY, [LINK])
        before = controller._cache.current()
        fetches = program.fetch_calls

        program.fail_send = RemoteError("rejected")
        with pytest.raises(RemoteError):
            await controller.run_mutation(Operation.CAST_VOTE, [LINK])

        assert controller._cache.current() is before
        assert program.fetch_calls == fetches
        assert isinstance(controller.last_error, RemoteError)
        assert controller.state is SyncState.IDLE

    @pytest.mark.asyncio
    async def test_refetch_failure_marks_unknown(self, program, ledger_keypair) -> None:
        controller = await _connected(program, ledger_keypair)
        await controller.run_mutation(Operation.INITIALIZE_LEDGER)
        await controller.run_mutation(Operation.APPEND_ENTRY, [LINK])
        before = controller._cache.current()

        program.fail_fetch = TransportError("down")
        outcome = await controller.run_mutation(Operation.CAST_VOTE, [LINK])

        assert isinstance(outcome.refetch_error, FetchError)
        assert controller._cache.status is LedgerStatus.UNKNOWN
        assert controller._cache.current().entries == before.entries
        assert outcome.snapshot is controller._cache.current()
        # the vote itself committed
        base = controller.ledger_account.public_key
        assert program.accounts[base]["gifList"][0]["votes"] == 1

    @pytest.mark.asyncio
    async def test_refresh_failure_marks_unknown(self, program, ledger_keypair) -> None:
        controller = await _connected(program, ledger_keypair)
        await controller.run_mutation(Operation.INITIALIZE_LEDGER)
        program.fail_fetch = TransportError("down")
        with pytest.raises(FetchError):
            await controller.refresh()
        assert controller._cache.status is LedgerStatus.UNKNOWN
        assert isinstance(controller.last_error, FetchError)

    @pytest.mark.asyncio
    async def test_unexpected_refetch_failure_after_commit(self, program, ledger_keypair) -> None:
        controller = await _connected(program, ledger_keypair)
        await controller.run_mutation(Operation.INITIALIZE_LEDGER)

        program.fail_fetch = RuntimeError("bridge glitch")
        outcome = await controller.run_mutation(Operation.APPEND_ENTRY, [LINK])

        assert outcome.receipt.operation is Operation.APPEND_ENTRY
        assert isinstance(outcome.refetch_error, FetchError)
        assert outcome.refetch_error.retryable
        assert controller._cache.status is LedgerStatus.UNKNOWN
        assert controller.state is SyncState.IDLE
        base = controller.ledger_account.public_key
        assert program.accounts[base]["gifList"][0]["gifLink"] == LINK


# ---------------------------------------------------------------------------
# Refresh
# ---------------------------------------------------------------------------


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_requires_identity(self, program, ledger_keypair) -> None:
        controller = _controller(program, ledger_keypair)
        with pytest.raises(NotConnectedError):
            await controller.refresh()
        assert program.fetch_calls == 0

    @pytest.mark.asyncio
    async def test_refresh_of_missing_account(self, program, ledger_keypair) -> None:
        controller = await _connected(program, ledger_keypair)
        snap = await controller.refresh()
        assert snap.status is LedgerStatus.UNINITIALIZED

    @pytest.mark.asyncio
    async def test_later_completing_refresh_wins(self, program, ledger_keypair) -> None:
        connection = _GatedConnection()
        controller = await _connected(program, ledger_keypair, connection)
        first_gate, second_gate = asyncio.Event(), asyncio.Event()
        older = {"totalGifs": 1, "gifList": [{"gifLink": "old", "userAddress": "o", "votes": 0}]}
        newer = {"totalGifs": 1, "gifList": [{"gifLink": "new", "userAddress": "o", "votes": 0}]}
        connection.queue = [(first_gate, older), (second_gate, newer)]

        first = asyncio.create_task(controller.refresh())
        await _settle()
        second = asyncio.create_task(controller.refresh())
        await _settle()
        assert controller.state is SyncState.REFETCHING

        second_gate.set()
        await second
        first_gate.set()
        await first

        assert controller._cache.current().entries[0].payload_ref == "old"
        assert controller.state is SyncState.IDLE
