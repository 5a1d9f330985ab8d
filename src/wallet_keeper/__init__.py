"""Wallet Keeper - keeps an agent's on-chain wallet funded.

Checks a monitored account's balance, tops it up from an operator-funded
account when it drops below a threshold, and confirms the transfer landed
before reporting back.
"""

__version__ = "0.1.0"
