"""Exceptions and submission-failure classification for the keeper core."""

from __future__ import annotations

from enum import Enum

from wallet_keeper.wallet.ledger import LedgerError


class KeeperError(Exception):
    """Base class for errors raised by the keeper core."""


class InvalidAddressError(KeeperError):
    """The supplied account identifier is not a well-formed address.

    The message is safe to show to a user; the underlying parser error is
    kept only as ``__cause__``.
    """

    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid wallet address: {value!r}")
        self.value = value


class FailureCategory(str, Enum):
    FEE_PAYER_SHORTFALL = "fee_payer_shortfall"
    FUNDS_NOT_RECEIVED = "funds_not_received"
    REJECTED = "rejected"
    REVERTED = "reverted"


# Known ledger error codes. Checked before any message matching.
_CODE_CATEGORIES: dict[int | str, FailureCategory] = {
    "insufficient_funds": FailureCategory.FEE_PAYER_SHORTFALL,
    # System program custom error 1: account lacks lamports for the transfer
    "0x1": FailureCategory.FEE_PAYER_SHORTFALL,
    # EIP-1474 "transaction cost exceeds current gas limit"
    -32010: FailureCategory.REJECTED,
    # EIP-1474 "transaction rejected"
    -32003: FailureCategory.REJECTED,
}

# Best-effort fallback for nodes that only report a generic code (geth
# answers -32000 for almost everything) or none at all.
_MESSAGE_MARKERS: tuple[tuple[str, FailureCategory], ...] = (
    ("insufficient funds", FailureCategory.FEE_PAYER_SHORTFALL),
    ("insufficient lamports", FailureCategory.FEE_PAYER_SHORTFALL),
    ("insufficient balance", FailureCategory.FEE_PAYER_SHORTFALL),
    ("exceeds balance", FailureCategory.FEE_PAYER_SHORTFALL),
    ("custom program error: 0x1", FailureCategory.FEE_PAYER_SHORTFALL),
    ("attempt to debit", FailureCategory.FUNDS_NOT_RECEIVED),
)


def classify_submission_error(exc: BaseException) -> FailureCategory:
    """Map a failed transfer submission onto a :class:`FailureCategory`.

    A ledger error code wins when it is in the known table; otherwise the
    message is scanned for known markers. Anything unrecognised is a plain
    ``REJECTED``.
    """
    code = exc.code if isinstance(exc, LedgerError) else None
    if code is not None:
        key = code.lower() if isinstance(code, str) else code
        if key in _CODE_CATEGORIES:
            return _CODE_CATEGORIES[key]

    message = str(exc).lower()
    for marker, category in _MESSAGE_MARKERS:
        if marker in message:
            return category
    return FailureCategory.REJECTED


def is_shortfall(category: FailureCategory) -> bool:
    """True if the failure means the funding account could not pay."""
    return category in (
        FailureCategory.FEE_PAYER_SHORTFALL,
        FailureCategory.FUNDS_NOT_RECEIVED,
    )
