"""Error taxonomy for the portal client.

Exceptions travel inside the core (client, cache, controller). The command
layer converts every ``PortalError`` into a result value, so nothing here
crosses the UI boundary as a raised exception.
"""

from __future__ import annotations


class PortalError(Exception):
    """Base exception for portal operations."""

    retryable: bool = False

    def __init__(self, message: str, *, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code

    def to_dict(self) -> dict[str, object]:
        return {
            "type": type(self).__name__,
            "message": str(self),
            "code": self.code,
            "retryable": self.retryable,
        }


class NotConnectedError(PortalError):
    """No identity is connected, or no compatible wallet is available."""


class RemoteError(PortalError):
    """The remote program rejected the operation (non-retryable)."""


class InvalidRequestError(RemoteError):
    """Malformed operation name, arguments, or account set."""


class MissingSignerError(RemoteError):
    """A required signer is absent from the signer set."""


class TransportError(PortalError):
    """Network or call-layer failure (retryable)."""

    retryable = True


class TransportConnectError(TransportError):
    """Network/DNS failure."""


class TransportTimeoutError(TransportError):
    """Request timeout."""


class FetchError(PortalError):
    """Reading the ledger account failed.

    Never implies that a preceding mutation failed.
    """

    def __init__(
        self, message: str, *, code: int | None = None, retryable: bool = True,
    ) -> None:
        super().__init__(message, code=code)
        self.retryable = retryable


class BusyError(PortalError):
    """Another action is in flight for this client instance."""

    retryable = True
