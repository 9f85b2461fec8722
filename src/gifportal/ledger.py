"""Data model for the shared GIF ledger.

Pure data: no I/O. Snapshots are immutable and replaced wholesale; the
client never patches one in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

from gifportal.constants import LedgerStatus, Operation


# ---------------------------------------------------------------------------
# Entry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Entry:
    """One submission in the ledger.

    ``payload_ref`` is unique within a snapshot because of how the remote
    program appends entries; the client does not enforce it.
    """

    payload_ref: str
    owner: str
    vote_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "gifLink": self.payload_ref,
            "userAddress": self.owner,
            "votes": self.vote_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Entry:
        """Parse one account list item. Raises ValueError on malformed data."""
        if not isinstance(data, dict):
            raise ValueError(f"entry must be an object, got {type(data).__name__}")
        link = data.get("gifLink")
        if not isinstance(link, str) or not link:
            raise ValueError("entry is missing gifLink")
        votes = int(data.get("votes", 0))
        if votes < 0:
            raise ValueError(f"entry {link!r} has negative vote count {votes}")
        return cls(
            payload_ref=link,
            owner=str(data.get("userAddress", "")),
            vote_count=votes,
        )


# ---------------------------------------------------------------------------
# LedgerSnapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerSnapshot:
    """Full ledger state as last observed.

    ``entries`` keeps remote storage order. ``version`` is assigned by the
    cache on replace and only orders local replacements.
    """

    entries: tuple[Entry, ...] = ()
    status: LedgerStatus = LedgerStatus.UNKNOWN
    total_entries: int = 0
    version: int = 0
    fetched_at: str | None = None

    @classmethod
    def initial(cls) -> LedgerSnapshot:
        """Snapshot held before the first fetch: empty and Unknown."""
        return cls()

    @classmethod
    def uninitialized(cls) -> LedgerSnapshot:
        return cls(
            status=LedgerStatus.UNINITIALIZED,
            fetched_at=datetime.now(timezone.utc).isoformat(),
        )

    @classmethod
    def from_account(cls, data: dict[str, Any]) -> LedgerSnapshot:
        """Build a Ready snapshot from fetched account data.

        Raises ValueError if the account data is not shaped like a ledger.
        """
        if not isinstance(data, dict):
            raise ValueError(f"account data must be an object, got {type(data).__name__}")
        raw_list = data.get("gifList", [])
        if not isinstance(raw_list, list):
            raise ValueError("gifList must be a list")
        entries = tuple(Entry.from_dict(item) for item in raw_list)
        return cls(
            entries=entries,
            status=LedgerStatus.READY,
            total_entries=int(data.get("totalGifs", len(entries))),
            fetched_at=datetime.now(timezone.utc).isoformat(),
        )

    def as_unknown(self) -> LedgerSnapshot:
        """Same entries, status Unknown."""
        return replace(self, status=LedgerStatus.UNKNOWN)

    def find(self, payload_ref: str) -> Entry | None:
        for entry in self.entries:
            if entry.payload_ref == payload_ref:
                return entry
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "totalGifs": self.total_entries,
            "gifList": [e.to_dict() for e in self.entries],
            "version": self.version,
            "fetched_at": self.fetched_at,
        }


# ---------------------------------------------------------------------------
# Identities and receipts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Identity:
    """Public account reference of the connected user. Session-scoped."""

    public_key: str

    def __str__(self) -> str:
        return self.public_key


@dataclass(frozen=True)
class LedgerAccountRef:
    """The fixed remote account holding the shared ledger."""

    public_key: str

    def __str__(self) -> str:
        return self.public_key


@dataclass(frozen=True)
class TransactionReceipt:
    """Proof that the remote system durably accepted an operation."""

    signature: str
    operation: Operation
    submitted_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "signature": self.signature,
            "operation": self.operation.value,
            "submitted_at": self.submitted_at,
        }
