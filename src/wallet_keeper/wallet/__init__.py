"""Ledger access for Wallet Keeper.

Chain definitions, exact unit conversion, and the ``LedgerClient`` boundary
with its Web3 implementation for EVM-compatible networks. The signing key is
supplied by the caller; nothing here creates or stores keys.
"""
