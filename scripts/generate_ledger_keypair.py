#!/usr/bin/env python3
"""Generate the static keypair for the shared GIF ledger account.

Writes the keypair in the ``{"_keypair": {"secretKey": ...}}`` shape the
portal loads at startup, and prints the derived ledger account id.

Every client that should see the same ledger must ship the same file.
"""

from __future__ import annotations

import sys
from pathlib import Path

from gifportal.keys import LedgerKeypair


def main() -> None:
    out = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("keypair.json")
    if out.exists():
        print(f"Error: {out} already exists; refusing to overwrite.", file=sys.stderr)
        sys.exit(1)

    keypair = LedgerKeypair.generate()
    out.write_text(keypair.to_json())

    print("=== Ledger Account Keypair ===")
    print()
    print(f"written to: {out}")
    print(f"ledger account: {keypair.public_key}")
    print()
    print("Keep the file with the client build; it is the ledger's address.")
    print("Run the portal's initialize command once to create the account.")


if __name__ == "__main__":
    main()
