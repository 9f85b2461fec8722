"""Concrete Wallet implementations."""

from gifportal.wallets.keypair import KeypairWallet

__all__ = ["KeypairWallet"]
