"""Tests: TopUpPolicy validation and the TransferAttempt lifecycle.

Invariants:
    - both policy amounts are strictly positive; the policy is immutable
    - attempts move planned → funds_verified → submitted → confirmed|failed|unknown
    - out-of-order transitions are refused
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from wallet_keeper.core.errors import FailureCategory
from wallet_keeper.core.models import (
    CycleOutcome,
    TopUpPolicy,
    TransferAttempt,
    TransferStatus,
)

from tests.fakes import FUNDING, TARGET


@pytest.mark.parametrize(
    "min_balance, top_up_amount",
    [("0", "0.1"), ("0.1", "0"), ("-1", "0.1"), ("0.1", "-0.1")],
)
def test_policy_requires_positive_amounts(min_balance, top_up_amount):
    with pytest.raises(ValidationError):
        TopUpPolicy(min_balance=min_balance, top_up_amount=top_up_amount)


def test_policy_accepts_strings_and_is_frozen():
    policy = TopUpPolicy(min_balance="0.005", top_up_amount="0.01")

    assert policy.min_balance == Decimal("0.005")
    with pytest.raises(ValidationError):
        policy.min_balance = Decimal("1")


def test_policy_does_not_link_amount_to_threshold():
    policy = TopUpPolicy(min_balance="1", top_up_amount="0.001")

    assert policy.top_up_amount < policy.min_balance


def test_attempt_happy_lifecycle():
    attempt = TransferAttempt.plan(TARGET, Decimal("0.2"), Decimal("0.000005"))
    assert attempt.status == TransferStatus.PLANNED
    assert attempt.confirmation == "pending"
    assert attempt.required == Decimal("0.200005")

    attempt.funds_verified()
    attempt.submitted("0xabc")
    assert attempt.transfer_id == "0xabc"
    assert attempt.confirmation == "pending"

    attempt.confirmed()
    assert attempt.status == TransferStatus.CONFIRMED
    assert attempt.confirmation == "confirmed"


def test_attempt_unknown_only_after_submission():
    attempt = TransferAttempt.plan(TARGET, Decimal("0.2"), Decimal("0"))

    with pytest.raises(RuntimeError):
        attempt.unknown("timeout")

    attempt.funds_verified()
    attempt.submitted("0xabc")
    attempt.unknown("timeout")
    assert attempt.confirmation == "unknown"


def test_attempt_cannot_submit_before_funds_verified():
    attempt = TransferAttempt.plan(TARGET, Decimal("0.2"), Decimal("0"))

    with pytest.raises(RuntimeError):
        attempt.submitted("0xabc")


def test_attempt_failure_records_category():
    attempt = TransferAttempt.plan(TARGET, Decimal("0.2"), Decimal("0"))

    attempt.fail(FailureCategory.FEE_PAYER_SHORTFALL, "underfunded")

    assert attempt.confirmation == "failed"
    assert attempt.category == FailureCategory.FEE_PAYER_SHORTFALL
    with pytest.raises(RuntimeError):
        attempt.confirmed()


def test_insufficient_funds_shortfall_is_exact():
    outcome = CycleOutcome.insufficient_funds(
        TARGET,
        Decimal("0.05"),
        funding_address=FUNDING,
        funding_balance=Decimal("0.1"),
        required=Decimal("0.2") + Decimal("0.000005"),
    )

    assert outcome.shortfall == Decimal("0.100005")
