"""Async JSON-RPC client for the ledger cluster gateway."""

from __future__ import annotations

import itertools
import logging
from typing import Any

import httpx

from gifportal.backends import Transaction
from gifportal.constants import DEFAULT_COMMITMENT
from gifportal.errors import (
    RemoteError,
    TransportConnectError,
    TransportError,
    TransportTimeoutError,
)

logger = logging.getLogger(__name__)


class RpcClient:
    """Async client for the cluster's JSON-RPC 2.0 endpoint.

    Implements ``LedgerConnection`` and provides ``send_transaction`` for
    wallets that relay through the same endpoint. Constructor accepts
    explicit params: no env-var loading.
    """

    def __init__(
        self,
        rpc_url: str,
        commitment: str = DEFAULT_COMMITMENT,
        timeout: httpx.Timeout | None = None,
    ) -> None:
        self._commitment = commitment
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(
            base_url=rpc_url.rstrip("/"),
            headers={"Content-Type": "application/json"},
            timeout=timeout or httpx.Timeout(connect=5.0, read=15.0, write=10.0, pool=5.0),
        )

    # -- internal request dispatcher -----------------------------------------

    async def _call(self, method: str, params: list[Any]) -> Any:
        """POST one JSON-RPC call and map failures to the portal hierarchy."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            response = await self._client.post("", json=payload)
        except httpx.ConnectError as exc:
            raise TransportConnectError(str(exc)) from exc
        except httpx.TimeoutException as exc:
            raise TransportTimeoutError(str(exc)) from exc
        except httpx.HTTPError as exc:
            raise TransportError(str(exc)) from exc

        if response.status_code >= 500 or response.status_code == 429:
            raise TransportError(response.text, code=response.status_code)
        if response.status_code >= 400:
            raise RemoteError(response.text, code=response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            raise TransportError(f"Invalid JSON-RPC response: {exc}") from exc
        if not isinstance(body, dict):
            raise TransportError("Invalid JSON-RPC response: body is not an object")

        error = body.get("error")
        if error:
            if not isinstance(error, dict):
                error = {"message": str(error)}
            message = error.get("message", "remote error")
            logger.warning("RPC %s rejected: %s", method, message)
            raise RemoteError(message, code=error.get("code"))
        return body.get("result")

    # -- public API methods ---------------------------------------------------

    async def get_account(self, account_id: str) -> dict[str, Any] | None:
        """getAccountInfo: decoded ledger account data, or None if absent."""
        result = await self._call(
            "getAccountInfo",
            [account_id, {"encoding": "jsonParsed", "commitment": self._commitment}],
        )
        if not result:
            return None
        value = result.get("value") if isinstance(result, dict) else None
        if value is None:
            return None
        return value.get("data")

    async def send_transaction(self, transaction: Transaction) -> str:
        """sendTransaction: returns the transaction signature."""
        wire = transaction.to_wire()
        result = await self._call(
            "sendTransaction",
            [wire, {"preflightCommitment": transaction.commitment}],
        )
        return str(result)

    async def get_health(self) -> str:
        """getHealth: ``"ok"`` when the node is caught up."""
        return str(await self._call("getHealth", []))

    # -- lifecycle ------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> RpcClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
