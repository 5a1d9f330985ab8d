"""Value types shared by the keeper core."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from wallet_keeper.core.errors import FailureCategory


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class OutcomeKind(str, Enum):
    HEALTHY = "healthy"
    TOPPED_UP = "topped_up"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    TRANSFER_FAILED = "transfer_failed"
    CONFIRMATION_UNKNOWN = "confirmation_unknown"
    INVALID_INPUT = "invalid_input"
    TRANSIENT_ERROR = "transient_error"


class TransferStatus(str, Enum):
    PLANNED = "planned"
    FUNDS_VERIFIED = "funds_verified"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Policy / inspection
# ---------------------------------------------------------------------------

class TopUpPolicy(BaseModel):
    """When to top up and by how much, in native units.

    Nothing ties ``top_up_amount`` to ``min_balance``; choosing an amount
    that actually lifts the balance over the threshold is up to the caller.
    """

    model_config = ConfigDict(frozen=True)

    min_balance: Decimal = Field(gt=0)
    top_up_amount: Decimal = Field(gt=0)


@dataclass(frozen=True)
class InspectionResult:
    address: str
    balance: Decimal
    symbol: str = "ETH"


# ---------------------------------------------------------------------------
# Transfer attempt
# ---------------------------------------------------------------------------

@dataclass
class TransferAttempt:
    """One top-up, from planning to a settled (or unprovable) confirmation."""

    id: str
    target: str
    amount: Decimal
    fee_reserve: Decimal
    status: TransferStatus = TransferStatus.PLANNED
    transfer_id: str | None = None
    category: FailureCategory | None = None
    reason: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def plan(cls, target: str, amount: Decimal, fee_reserve: Decimal) -> TransferAttempt:
        return cls(
            id=uuid.uuid4().hex[:12],
            target=target,
            amount=amount,
            fee_reserve=fee_reserve,
        )

    @property
    def required(self) -> Decimal:
        return self.amount + self.fee_reserve

    @property
    def confirmation(self) -> str:
        """``pending``, ``confirmed``, ``failed`` or ``unknown``."""
        if self.status in (TransferStatus.CONFIRMED, TransferStatus.FAILED, TransferStatus.UNKNOWN):
            return self.status.value
        return "pending"

    def _move(self, expected: tuple[TransferStatus, ...], to: TransferStatus) -> None:
        if self.status not in expected:
            raise RuntimeError(
                f"Transfer attempt {self.id} is '{self.status.value}', cannot move to '{to.value}'."
            )
        self.status = to
        self.updated_at = datetime.now(timezone.utc)

    def funds_verified(self) -> None:
        self._move((TransferStatus.PLANNED,), TransferStatus.FUNDS_VERIFIED)

    def submitted(self, transfer_id: str) -> None:
        self._move((TransferStatus.FUNDS_VERIFIED,), TransferStatus.SUBMITTED)
        self.transfer_id = transfer_id

    def confirmed(self) -> None:
        self._move((TransferStatus.SUBMITTED,), TransferStatus.CONFIRMED)

    def fail(self, category: FailureCategory, reason: str) -> None:
        self._move(
            (TransferStatus.PLANNED, TransferStatus.FUNDS_VERIFIED, TransferStatus.SUBMITTED),
            TransferStatus.FAILED,
        )
        self.category = category
        self.reason = reason

    def unknown(self, reason: str) -> None:
        self._move((TransferStatus.SUBMITTED,), TransferStatus.UNKNOWN)
        self.reason = reason


# ---------------------------------------------------------------------------
# Cycle outcome
# ---------------------------------------------------------------------------

class CycleOutcome(BaseModel):
    """Tagged result of one inspection (or inspection + top-up) pass.

    Which optional fields are filled depends on ``kind``; use the
    constructors below rather than building one by hand. For
    ``insufficient_funds``, ``shortfall`` is ``None`` when the funding
    balance covered ``required`` and the ledger still refused the transfer
    (actual fees above the reserve), since the missing amount is then unknown.
    """

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    symbol: str = "ETH"
    address: Optional[str] = None
    balance: Optional[Decimal] = None
    new_balance: Optional[Decimal] = None
    funding_address: Optional[str] = None
    funding_balance: Optional[Decimal] = None
    required: Optional[Decimal] = None
    shortfall: Optional[Decimal] = None
    transfer_id: Optional[str] = None
    category: Optional[FailureCategory] = None
    reason: Optional[str] = None

    @classmethod
    def healthy(cls, address: str, balance: Decimal, symbol: str = "ETH") -> CycleOutcome:
        return cls(kind=OutcomeKind.HEALTHY, address=address, balance=balance, symbol=symbol)

    @classmethod
    def topped_up(
        cls,
        address: str,
        balance: Decimal,
        new_balance: Decimal,
        funding_address: str,
        funding_balance: Decimal,
        transfer_id: str,
        symbol: str = "ETH",
    ) -> CycleOutcome:
        return cls(
            kind=OutcomeKind.TOPPED_UP,
            address=address,
            balance=balance,
            new_balance=new_balance,
            funding_address=funding_address,
            funding_balance=funding_balance,
            transfer_id=transfer_id,
            symbol=symbol,
        )

    @classmethod
    def insufficient_funds(
        cls,
        address: str,
        balance: Decimal,
        funding_address: str,
        funding_balance: Decimal,
        required: Decimal,
        category: FailureCategory = FailureCategory.FEE_PAYER_SHORTFALL,
        reason: str | None = None,
        symbol: str = "ETH",
    ) -> CycleOutcome:
        return cls(
            kind=OutcomeKind.INSUFFICIENT_FUNDS,
            address=address,
            balance=balance,
            funding_address=funding_address,
            funding_balance=funding_balance,
            required=required,
            shortfall=(required - funding_balance) if funding_balance < required else None,
            category=category,
            reason=reason,
            symbol=symbol,
        )

    @classmethod
    def transfer_failed(
        cls,
        address: str,
        balance: Decimal,
        reason: str,
        category: FailureCategory = FailureCategory.REJECTED,
        transfer_id: str | None = None,
        funding_address: str | None = None,
        symbol: str = "ETH",
    ) -> CycleOutcome:
        return cls(
            kind=OutcomeKind.TRANSFER_FAILED,
            address=address,
            balance=balance,
            reason=reason,
            category=category,
            transfer_id=transfer_id,
            funding_address=funding_address,
            symbol=symbol,
        )

    @classmethod
    def confirmation_unknown(
        cls,
        address: str,
        balance: Decimal,
        transfer_id: str,
        reason: str,
        symbol: str = "ETH",
    ) -> CycleOutcome:
        return cls(
            kind=OutcomeKind.CONFIRMATION_UNKNOWN,
            address=address,
            balance=balance,
            transfer_id=transfer_id,
            reason=reason,
            symbol=symbol,
        )

    @classmethod
    def invalid_input(cls, value: str) -> CycleOutcome:
        return cls(kind=OutcomeKind.INVALID_INPUT, reason=f"Not a valid address: {value!r}")

    @classmethod
    def transient_error(cls, reason: str) -> CycleOutcome:
        return cls(kind=OutcomeKind.TRANSIENT_ERROR, reason=reason)
