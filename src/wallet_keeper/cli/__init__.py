"""Command-line interface for Wallet Keeper."""
