"""Top-up protocol: solvency check, transfer, confirmation, re-verification."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal

from wallet_keeper.core.errors import (
    FailureCategory,
    classify_submission_error,
    is_shortfall,
)
from wallet_keeper.core.inspector import BalanceInspector
from wallet_keeper.core.models import CycleOutcome, TopUpPolicy, TransferAttempt
from wallet_keeper.wallet.ledger import ConfirmationLevel, LedgerClient, LedgerError

logger = logging.getLogger("wallet_keeper.core.topup")

# Set aside for network fees on top of the transfer amount
DEFAULT_FEE_RESERVE = Decimal("0.000005")

# Extra time granted to the ledger client beyond its own confirmation timeout
CONFIRMATION_GRACE_SECONDS = 5.0


class TopUpExecutor:
    """Decides whether an account needs funds and, if so, moves them.

    Steps run strictly in order, one ledger call at a time:

    1. read the funding account's balance and refuse to submit a transfer
       it cannot cover (``top_up_amount + fee_reserve``);
    2. submit exactly one transfer;
    3. wait, with a bounded timeout, for it to reach *confirmation_level*;
    4. re-read both balances and report what the ledger now says.

    Every classified result is returned as a :class:`CycleOutcome`. Only
    failures that fit none of the categories (e.g. a dropped connection
    while reading a balance) are raised.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        inspector: BalanceInspector,
        fee_reserve: Decimal = DEFAULT_FEE_RESERVE,
        confirmation_level: ConfirmationLevel = ConfirmationLevel.CONFIRMED,
        confirmation_timeout: float = 90.0,
    ) -> None:
        if fee_reserve < 0:
            raise ValueError("fee_reserve must not be negative")
        if confirmation_timeout <= 0:
            raise ValueError("confirmation_timeout must be positive")
        self.ledger = ledger
        self.inspector = inspector
        self.chain = inspector.chain
        self.fee_reserve = fee_reserve
        self.confirmation_level = confirmation_level
        self.confirmation_timeout = confirmation_timeout

    async def maybe_top_up(
        self,
        address: str,
        balance: Decimal,
        policy: TopUpPolicy,
    ) -> CycleOutcome:
        symbol = self.chain.native_symbol
        if balance >= policy.min_balance:
            return CycleOutcome.healthy(address, balance, symbol)

        attempt = TransferAttempt.plan(address, policy.top_up_amount, self.fee_reserve)
        funding_address = self.ledger.funding_address
        logger.warning(
            f"{address} is below threshold ({balance} < {policy.min_balance} {symbol}); "
            f"top-up {attempt.id} planned for {attempt.amount} {symbol}"
        )

        if address == funding_address:
            reason = "The monitored account is the funding account; it cannot top itself up."
            attempt.fail(FailureCategory.REJECTED, reason)
            logger.error(f"Top-up {attempt.id} refused: {reason}")
            return CycleOutcome.transfer_failed(
                address, balance, reason, funding_address=funding_address, symbol=symbol
            )

        # --- 1. Source solvency ---
        funding_balance = await self.inspector.read(funding_address)
        if funding_balance < attempt.required:
            attempt.fail(FailureCategory.FEE_PAYER_SHORTFALL, "funding account underfunded")
            logger.warning(
                f"Funding account {funding_address} holds {funding_balance} {symbol}, "
                f"needs {attempt.required} {symbol}; top-up {attempt.id} not submitted"
            )
            return CycleOutcome.insufficient_funds(
                address,
                balance,
                funding_address=funding_address,
                funding_balance=funding_balance,
                required=attempt.required,
                symbol=symbol,
            )
        attempt.funds_verified()

        # --- 2. Submit (once) ---
        try:
            transfer_id = await self.ledger.submit_transfer(
                address, self.chain.to_smallest(attempt.amount)
            )
        except LedgerError as exc:
            category = classify_submission_error(exc)
            attempt.fail(category, str(exc))
            logger.warning(f"Top-up {attempt.id} rejected ({category.value}): {exc}")
            if is_shortfall(category):
                return CycleOutcome.insufficient_funds(
                    address,
                    balance,
                    funding_address=funding_address,
                    funding_balance=funding_balance,
                    required=attempt.required,
                    category=category,
                    reason=str(exc),
                    symbol=symbol,
                )
            return CycleOutcome.transfer_failed(
                address,
                balance,
                str(exc),
                category=category,
                funding_address=funding_address,
                symbol=symbol,
            )
        attempt.submitted(transfer_id)
        logger.info(f"Top-up {attempt.id} submitted as {transfer_id}")

        # --- 3. Confirm ---
        try:
            record = await asyncio.wait_for(
                self.ledger.confirm_transfer(
                    transfer_id, self.confirmation_level, self.confirmation_timeout
                ),
                timeout=self.confirmation_timeout + CONFIRMATION_GRACE_SECONDS,
            )
        except asyncio.TimeoutError:
            reason = (
                f"No {self.confirmation_level.value} confirmation within "
                f"{self.confirmation_timeout:g}s"
            )
            attempt.unknown(reason)
            logger.warning(f"Top-up {attempt.id}: {reason} (tx={transfer_id})")
            return CycleOutcome.confirmation_unknown(address, balance, transfer_id, reason, symbol)
        except Exception as exc:
            attempt.unknown(str(exc))
            logger.warning(f"Top-up {attempt.id}: confirmation of {transfer_id} failed: {exc}")
            return CycleOutcome.confirmation_unknown(address, balance, transfer_id, str(exc), symbol)

        if not record.succeeded:
            reason = f"Transaction {transfer_id} failed on-chain"
            attempt.fail(FailureCategory.REVERTED, reason)
            logger.error(f"Top-up {attempt.id}: {reason}")
            return CycleOutcome.transfer_failed(
                address,
                balance,
                reason,
                category=FailureCategory.REVERTED,
                transfer_id=transfer_id,
                funding_address=funding_address,
                symbol=symbol,
            )
        attempt.confirmed()

        # --- 4. Re-verify against the ledger ---
        try:
            new_balance = await self.inspector.read(address)
            remaining = await self.inspector.read(funding_address)
        except Exception:
            logger.error(
                f"Top-up {attempt.id} confirmed as {transfer_id}, but re-reading balances failed"
            )
            raise

        logger.info(
            f"Top-up {attempt.id} confirmed: {address} {balance} -> {new_balance} {symbol}"
        )
        return CycleOutcome.topped_up(
            address,
            balance,
            new_balance=new_balance,
            funding_address=funding_address,
            funding_balance=remaining,
            transfer_id=transfer_id,
            symbol=symbol,
        )
