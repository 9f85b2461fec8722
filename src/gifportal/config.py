"""Portal configuration: plain frozen dataclass, no env loading.

The host application constructs this from its own settings and passes it
to ``GifPortal.from_config``. ``rpc_url`` has no default: it must point at
a gateway that serves the ledger account as JSON and relays the portal's
signed transactions.
"""

from dataclasses import dataclass

from gifportal.constants import DEFAULT_COMMITMENT, SYSTEM_PROGRAM_ID


@dataclass(frozen=True)
class PortalConfig:
    program_id: str
    ledger_keypair_path: str
    rpc_url: str
    commitment: str = DEFAULT_COMMITMENT
    system_program_id: str = SYSTEM_PROGRAM_ID
    connect_timeout: float = 5.0
    read_timeout: float = 15.0
    write_timeout: float = 10.0
    pool_timeout: float = 5.0
