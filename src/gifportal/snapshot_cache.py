"""In-memory holder for the last-known ledger snapshot.

Snapshots are immutable and swapped by reference, so a reader holding one
never observes a half-updated ledger. Only the SyncController writes here.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone

from gifportal.constants import LedgerStatus
from gifportal.ledger import LedgerSnapshot

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[LedgerSnapshot], None]


class SnapshotCache:
    """Single-slot cache with whole-snapshot replacement.

    - ``current()`` returns the snapshot as last replaced.
    - ``replace()`` swaps in a new snapshot and stamps a local version.
    - ``mark_unknown()`` keeps the entries but flags them as stale.
    - Listeners are called after every change (the UI notification hook).
    """

    def __init__(self, initial: LedgerSnapshot | None = None) -> None:
        self._snapshot = initial or LedgerSnapshot.initial()
        self._version = self._snapshot.version
        self._listeners: list[SnapshotListener] = []
        self._last_replaced_at: str | None = None
        self._total_replacements: int = 0

    def current(self) -> LedgerSnapshot:
        return self._snapshot

    @property
    def status(self) -> LedgerStatus:
        return self._snapshot.status

    def replace(self, snapshot: LedgerSnapshot) -> LedgerSnapshot:
        """Install ``snapshot`` as current. Returns the stored (versioned) copy."""
        self._version += 1
        stored = replace(snapshot, version=self._version)
        self._snapshot = stored
        self._last_replaced_at = datetime.now(timezone.utc).isoformat()
        self._total_replacements += 1
        logger.debug(
            "Snapshot v%d installed: %s, %d entr%s.",
            stored.version, stored.status.value, len(stored.entries),
            "y" if len(stored.entries) == 1 else "ies",
        )
        self._notify(stored)
        return stored

    def mark_unknown(self) -> LedgerSnapshot:
        """Flag the current view as unreadable without clearing its entries."""
        return self.replace(self._snapshot.as_unknown())

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, snapshot: LedgerSnapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener %r failed.", listener)

    def health(self) -> dict[str, object]:
        """Return cache metrics for monitoring."""
        return {
            "status": self._snapshot.status.value,
            "entries": len(self._snapshot.entries),
            "version": self._snapshot.version,
            "last_replaced_at": self._last_replaced_at,
            "total_replacements": self._total_replacements,
            "listeners": len(self._listeners),
        }
