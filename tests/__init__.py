"""Wallet Keeper test suite."""
