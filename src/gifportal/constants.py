"""Constants for the GIF portal client: remote operations and status tags."""

from enum import Enum


DEFAULT_COMMITMENT = "processed"  # preflight commitment used for every submit
SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"


class Operation(str, Enum):
    """Named operations the remote ledger program accepts.

    Values are the instruction names of the deployed program.
    """

    INITIALIZE_LEDGER = "startStuffOff"
    APPEND_ENTRY = "addGif"
    CAST_VOTE = "vote"


# Account roles each instruction touches, in the order the program declares them.
ACCOUNT_ROLES: dict[Operation, tuple[str, ...]] = {
    Operation.INITIALIZE_LEDGER: ("baseAccount", "user", "systemProgram"),
    Operation.APPEND_ENTRY: ("baseAccount", "user"),
    Operation.CAST_VOTE: ("baseAccount",),
}

# Roles whose accounts must sign. The fee payer always signs as well.
SIGNER_ROLES: dict[Operation, tuple[str, ...]] = {
    Operation.INITIALIZE_LEDGER: ("baseAccount", "user"),
    Operation.APPEND_ENTRY: ("user",),
    Operation.CAST_VOTE: (),
}


class LedgerStatus(str, Enum):
    """What the client knows about the remote ledger account."""

    UNINITIALIZED = "Uninitialized"
    READY = "Ready"
    UNKNOWN = "Unknown"  # last fetch failed; not the same as empty


class SyncState(str, Enum):
    """Per-action states of the sync controller."""

    IDLE = "Idle"
    SUBMITTING = "Submitting"
    REFETCHING = "Refetching"
    FAILED = "Failed"


class PendingTarget(str, Enum):
    """Logical targets guarded against duplicate submission."""

    ACCOUNT_CREATION = "account_creation"
    LEDGER_MUTATION = "ledger_mutation"
