"""Turn cycle outcomes into structured, operator-readable status."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from wallet_keeper.core.errors import FailureCategory
from wallet_keeper.core.models import CycleOutcome, OutcomeKind

_OK_KINDS = {OutcomeKind.HEALTHY, OutcomeKind.TOPPED_UP}
_ATTENTION_KINDS = {
    OutcomeKind.INSUFFICIENT_FUNDS,
    OutcomeKind.TRANSFER_FAILED,
    OutcomeKind.CONFIRMATION_UNKNOWN,
}

_HEADLINES = {
    OutcomeKind.HEALTHY: "Wallet healthy",
    OutcomeKind.TOPPED_UP: "Wallet topped up",
    OutcomeKind.INSUFFICIENT_FUNDS: "Funding wallet needs funds",
    OutcomeKind.TRANSFER_FAILED: "Top-up transfer failed",
    OutcomeKind.CONFIRMATION_UNKNOWN: "Top-up confirmation unknown",
    OutcomeKind.INVALID_INPUT: "Invalid wallet address",
    OutcomeKind.TRANSIENT_ERROR: "Balance check error",
}


class HealthStatus(BaseModel):
    """Machine-readable status of one cycle plus its human-readable text."""

    kind: OutcomeKind
    ok: bool
    needs_attention: bool
    headline: str
    detail: str
    data: dict[str, str] = Field(default_factory=dict)


def format_amount(value: Decimal) -> str:
    """Render an amount exactly, without exponent or trailing zeros."""
    text = format(value.normalize(), "f")
    return text if text != "-0" else "0"


def describe(outcome: CycleOutcome) -> HealthStatus:
    """Build the :class:`HealthStatus` for *outcome*. Has no side effects."""
    data: dict[str, str] = {}
    for name in (
        "address",
        "balance",
        "new_balance",
        "funding_address",
        "funding_balance",
        "required",
        "shortfall",
        "transfer_id",
        "category",
        "reason",
    ):
        value = getattr(outcome, name)
        if value is None:
            continue
        if isinstance(value, Decimal):
            data[name] = format_amount(value)
        elif isinstance(value, FailureCategory):
            data[name] = value.value
        else:
            data[name] = str(value)
    if outcome.balance is not None:
        data["symbol"] = outcome.symbol

    return HealthStatus(
        kind=outcome.kind,
        ok=outcome.kind in _OK_KINDS,
        needs_attention=outcome.kind in _ATTENTION_KINDS,
        headline=_HEADLINES[outcome.kind],
        detail=_detail(outcome),
        data=data,
    )


def format_status(status: HealthStatus) -> str:
    return f"{status.headline}\n{status.detail}"


def _detail(outcome: CycleOutcome) -> str:
    sym = outcome.symbol
    kind = outcome.kind

    def amount(value: Decimal | None) -> str:
        return f"{format_amount(value)} {sym}" if value is not None else "unknown"

    lines: list[str] = []
    if outcome.balance is not None:
        lines.append(f"Current balance: {amount(outcome.balance)}")

    if kind == OutcomeKind.HEALTHY:
        lines.append("No top-up needed.")

    elif kind == OutcomeKind.TOPPED_UP:
        lines.append(f"Funding wallet balance: {amount(outcome.funding_balance)}")
        lines.append(f"Transfer confirmed: {outcome.transfer_id}")
        lines.append(f"New balance: {amount(outcome.new_balance)}")

    elif kind == OutcomeKind.INSUFFICIENT_FUNDS:
        if outcome.category == FailureCategory.FUNDS_NOT_RECEIVED:
            lines.append(
                "The ledger reports the funding wallet's funds have not arrived yet."
            )
        if outcome.shortfall is not None:
            lines.append(
                f"Funding wallet holds {amount(outcome.funding_balance)} but "
                f"{amount(outcome.required)} is required (top-up plus fees)."
            )
            lines.append(
                f"Send at least {amount(outcome.shortfall)} to the funding wallet:\n"
                f"{outcome.funding_address}"
            )
        else:
            lines.append(
                f"Funding wallet holds {amount(outcome.funding_balance)}, enough for the "
                f"{amount(outcome.required)} reserved (top-up plus fee reserve), but the "
                "ledger refused the transfer: current network fees exceed the reserve."
            )
            lines.append(
                "Add funds beyond that amount to cover current fees, or raise "
                f"policy.fee_reserve, then check again. Funding wallet:\n"
                f"{outcome.funding_address}"
            )
        if outcome.reason:
            lines.append(f"Ledger said: {outcome.reason}")
        lines.append("Run a balance check again once it is funded to complete the top-up.")

    elif kind == OutcomeKind.TRANSFER_FAILED:
        lines.append(f"Transfer failed: {outcome.reason}")
        if outcome.transfer_id:
            lines.append(f"Transaction: {outcome.transfer_id}")
        lines.append("Not retried automatically. Retry manually once the cause is resolved.")

    elif kind == OutcomeKind.CONFIRMATION_UNKNOWN:
        lines.append(
            f"Transfer {outcome.transfer_id} was submitted but could not be confirmed "
            f"({outcome.reason})."
        )
        lines.append(
            "It may or may not have landed. Re-check the balance before assuming "
            "either outcome or sending another top-up."
        )

    elif kind == OutcomeKind.INVALID_INPUT:
        lines.append(f"{outcome.reason}. Provide a 0x-prefixed 20-byte hex address.")

    elif kind == OutcomeKind.TRANSIENT_ERROR:
        lines.append(f"Error checking balance: {outcome.reason}")
        lines.append("This looks temporary; the check will be retried shortly.")

    return "\n".join(lines)
