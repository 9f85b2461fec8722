"""Shared fixtures: an in-memory stand-in for the remote ledger program."""

from __future__ import annotations

import asyncio
import base64
import copy
from typing import Any

import pytest

from gifportal.backends import Transaction
from gifportal.commands import GifPortal
from gifportal.errors import NotConnectedError, RemoteError
from gifportal.keys import LedgerKeypair, verify_signature


class FakeLedgerProgram:
    """Wallet and LedgerConnection backed by a dict of accounts.

    Enforces the remote rules the client relies on: signatures must
    verify, initialization happens once, and votes need an existing link.
    """

    def __init__(self, user: LedgerKeypair | None = None, trusted: bool = True) -> None:
        self.user = user or LedgerKeypair.generate()
        self.trusted = trusted
        self.accounts: dict[str, dict[str, Any]] = {}
        self.sent: list[Transaction] = []
        self.send_calls = 0
        self.fetch_calls = 0
        self.fail_send: Exception | None = None
        self.fail_fetch: Exception | None = None
        self.send_gate: asyncio.Event | None = None
        self.disconnects = 0

    # -- Wallet ---------------------------------------------------------------

    async def connect(self, *, only_if_trusted: bool = False) -> str:
        if only_if_trusted and not self.trusted:
            raise NotConnectedError("not trusted")
        self.trusted = True
        return self.user.public_key

    async def disconnect(self) -> None:
        self.disconnects += 1

    async def sign_and_send(self, transaction: Transaction) -> str:
        self.send_calls += 1
        if self.send_gate is not None:
            await self.send_gate.wait()
        if self.fail_send is not None:
            raise self.fail_send
        transaction.add_signature(
            self.user.public_key, self.user.sign(transaction.message_bytes())
        )
        self._check_signatures(transaction)
        self._execute(transaction)
        self.sent.append(transaction)
        return f"sig-{len(self.sent)}"

    # -- LedgerConnection -----------------------------------------------------

    async def get_account(self, account_id: str) -> dict[str, Any] | None:
        self.fetch_calls += 1
        if self.fail_fetch is not None:
            raise self.fail_fetch
        data = self.accounts.get(account_id)
        return copy.deepcopy(data) if data is not None else None

    # -- program logic --------------------------------------------------------

    def _check_signatures(self, transaction: Transaction) -> None:
        message = transaction.message_bytes()
        for key, sig in transaction.signatures.items():
            if not verify_signature(key, base64.b64decode(sig), message):
                raise RemoteError("Signature verification failed", code=-32003)

    def _execute(self, transaction: Transaction) -> None:
        base = transaction.accounts["baseAccount"]
        if transaction.instruction == "startStuffOff":
            if base not in transaction.signatures:
                raise RemoteError("Signature verification failed", code=-32003)
            if base in self.accounts:
                raise RemoteError(f"Allocate: account {base} already in use", code=0)
            self.accounts[base] = {"totalGifs": 0, "gifList": []}
            return

        account = self.accounts.get(base)
        if account is None:
            raise RemoteError("AccountNotInitialized", code=3012)
        link = transaction.args[0]
        if transaction.instruction == "addGif":
            account["gifList"].append({
                "gifLink": link,
                "userAddress": transaction.accounts["user"],
                "votes": 0,
            })
            account["totalGifs"] += 1
        elif transaction.instruction == "vote":
            for item in account["gifList"]:
                if item["gifLink"] == link:
                    item["votes"] += 1
                    return
            raise RemoteError(f"GIF {link} not found", code=6000)
        else:
            raise RemoteError("InstructionFallbackNotFound", code=101)


@pytest.fixture
def program() -> FakeLedgerProgram:
    return FakeLedgerProgram()


@pytest.fixture
def ledger_keypair() -> LedgerKeypair:
    return LedgerKeypair.generate()


@pytest.fixture
def portal(program: FakeLedgerProgram, ledger_keypair: LedgerKeypair) -> GifPortal:
    return GifPortal(program, program, "gif-program", ledger_keypair)
