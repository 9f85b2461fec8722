"""GIF portal: client for a shared, vote-ranked GIF ledger.

Keeps a cached view of the remote ledger account and runs the
connect → fetch → mutate → refetch cycle for each user command.
"""

__version__ = "0.1.0"

from gifportal.backends import LedgerConnection, Signer, Transaction, Wallet
from gifportal.commands import CommandResult, GifPortal, PortalView, make_rpc_client
from gifportal.config import PortalConfig
from gifportal.constants import LedgerStatus, Operation, PendingTarget, SyncState
from gifportal.errors import (
    BusyError,
    FetchError,
    NotConnectedError,
    PortalError,
    RemoteError,
    TransportError,
)
from gifportal.keys import KeypairError, LedgerKeypair
from gifportal.ledger import (
    Entry,
    Identity,
    LedgerAccountRef,
    LedgerSnapshot,
    TransactionReceipt,
)
from gifportal.ledger_client import LedgerClient
from gifportal.rpc_client import RpcClient
from gifportal.snapshot_cache import SnapshotCache
from gifportal.sync import MutationOutcome, Session, SyncController
from gifportal.wallets import KeypairWallet

__all__ = [
    "BusyError",
    "CommandResult",
    "Entry",
    "FetchError",
    "GifPortal",
    "Identity",
    "KeypairError",
    "KeypairWallet",
    "LedgerAccountRef",
    "LedgerClient",
    "LedgerConnection",
    "LedgerKeypair",
    "LedgerSnapshot",
    "LedgerStatus",
    "MutationOutcome",
    "NotConnectedError",
    "Operation",
    "PendingTarget",
    "PortalConfig",
    "PortalError",
    "PortalView",
    "RemoteError",
    "RpcClient",
    "Session",
    "Signer",
    "SnapshotCache",
    "SyncController",
    "SyncState",
    "TransactionReceipt",
    "TransportError",
    "Transaction",
    "Wallet",
    "make_rpc_client",
]
