"""Balance lookup with address parsing and unit normalization."""

from __future__ import annotations

import logging
from decimal import Decimal

from web3 import Web3

from wallet_keeper.core.errors import InvalidAddressError
from wallet_keeper.core.models import InspectionResult
from wallet_keeper.wallet.chains import Chain
from wallet_keeper.wallet.ledger import LedgerClient

logger = logging.getLogger("wallet_keeper.core.inspector")

DEFAULT_SENTINEL = "check"


def parse_address(value: str) -> str:
    """Return the checksummed form of *value* or raise ``InvalidAddressError``.

    All-lowercase and all-uppercase hex are accepted as-is. Mixed case is an
    EIP-55 checksum and must be correct; a mistyped checksum is rejected
    rather than silently normalized to a different account.
    """
    candidate = value.strip()
    if not Web3.is_address(candidate):
        raise InvalidAddressError(value)
    body = candidate[2:]
    if body != body.lower() and body != body.upper() and not Web3.is_checksum_address(candidate):
        raise InvalidAddressError(value)
    try:
        return Web3.to_checksum_address(candidate)
    except ValueError as exc:
        raise InvalidAddressError(value) from exc


class BalanceInspector:
    """Reads one account's balance in native units."""

    def __init__(self, ledger: LedgerClient, chain: Chain, default_address: str) -> None:
        self.ledger = ledger
        self.chain = chain
        self.default_address = parse_address(default_address)

    def resolve(self, identifier: str | None = None) -> str:
        """Map user input to an address.

        Empty input or the ``"check"`` sentinel means the default account and
        is never handed to the parser.
        """
        text = (identifier or "").strip()
        if not text or text.lower() == DEFAULT_SENTINEL:
            return self.default_address
        return parse_address(text)

    async def inspect(self, identifier: str | None = None) -> InspectionResult:
        address = self.resolve(identifier)
        balance = await self.read(address)
        return InspectionResult(address=address, balance=balance, symbol=self.chain.native_symbol)

    async def read(self, address: str) -> Decimal:
        """Query *address* once and normalize to native units."""
        raw = await self.ledger.get_balance(address)
        balance = self.chain.to_native(raw)
        logger.debug(f"Balance of {address}: {balance} {self.chain.native_symbol}")
        return balance
