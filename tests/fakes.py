"""In-memory ledger and builders shared by the test modules."""

from __future__ import annotations

import asyncio
from decimal import Decimal

from web3 import Web3

from wallet_keeper.core.inspector import BalanceInspector
from wallet_keeper.core.models import TopUpPolicy
from wallet_keeper.core.monitor import BalanceMonitor
from wallet_keeper.core.topup import TopUpExecutor
from wallet_keeper.wallet.chains import Chain, get_chain
from wallet_keeper.wallet.ledger import (
    ConfirmationLevel,
    ConfirmationRecord,
    ConfirmationStatus,
)

TARGET = Web3.to_checksum_address("0x" + "a" * 40)
OTHER = Web3.to_checksum_address("0x" + "b" * 40)
FUNDING = Web3.to_checksum_address("0x" + "f" * 40)

BASE = get_chain("base")


class FakeLedger:
    """Ledger double that moves balances when a transfer is confirmed.

    Failure knobs:
      - ``balance_errors``: exceptions raised by successive ``get_balance``
        calls (``None`` entries mean "succeed").
      - ``submit_error`` / ``confirm_error``: raised by those operations.
      - ``confirm_status``: what a confirmation reports.
      - ``confirm_gate``: if set, confirmation waits for this event.
    """

    def __init__(
        self,
        balances: dict[str, str | Decimal] | None = None,
        chain: Chain = BASE,
        funding_address: str = FUNDING,
        transfer_fee: str = "0.000002",
    ) -> None:
        self.chain = chain
        self._funding_address = funding_address
        self.balances: dict[str, int] = {
            addr: chain.to_smallest(value) for addr, value in (balances or {}).items()
        }
        self.transfer_fee = chain.to_smallest(transfer_fee)
        self.calls: list[tuple] = []
        self.balance_errors: list[BaseException | None] = []
        self.submit_error: BaseException | None = None
        self.confirm_error: BaseException | None = None
        self.confirm_status = ConfirmationStatus.CONFIRMED
        self.confirm_gate: asyncio.Event | None = None
        self.confirm_started = asyncio.Event()
        self.on_confirm = None
        self._pending: dict[str, tuple[str, int]] = {}

    @property
    def funding_address(self) -> str:
        return self._funding_address

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    async def get_balance(self, address: str) -> int:
        self.calls.append(("get_balance", address))
        if self.balance_errors:
            error = self.balance_errors.pop(0)
            if error is not None:
                raise error
        return self.balances.get(address, 0)

    async def submit_transfer(self, to_address: str, amount: int) -> str:
        self.calls.append(("submit_transfer", to_address, amount))
        if self.submit_error is not None:
            raise self.submit_error
        tx_id = "0x" + f"{len(self._pending) + 1:064x}"
        self._pending[tx_id] = (to_address, amount)
        return tx_id

    async def confirm_transfer(
        self,
        transfer_id: str,
        level: ConfirmationLevel,
        timeout: float,
    ) -> ConfirmationRecord:
        self.calls.append(("confirm_transfer", transfer_id, level, timeout))
        self.confirm_started.set()
        if self.on_confirm is not None:
            self.on_confirm()
        if self.confirm_gate is not None:
            await self.confirm_gate.wait()
        if self.confirm_error is not None:
            raise self.confirm_error
        if self.confirm_status == ConfirmationStatus.CONFIRMED:
            to_address, amount = self._pending.pop(transfer_id)
            self.balances[to_address] = self.balances.get(to_address, 0) + amount
            self.balances[self._funding_address] -= amount + self.transfer_fee
        return ConfirmationRecord(transfer_id, self.confirm_status, block_number=100)


def make_policy(min_balance: str = "0.1", top_up_amount: str = "0.2") -> TopUpPolicy:
    return TopUpPolicy(min_balance=Decimal(min_balance), top_up_amount=Decimal(top_up_amount))


def make_monitor(
    ledger: FakeLedger,
    policy: TopUpPolicy | None = None,
    fee_reserve: str = "0.000005",
    confirmation_timeout: float = 30.0,
) -> BalanceMonitor:
    inspector = BalanceInspector(ledger, ledger.chain, TARGET)
    executor = TopUpExecutor(
        ledger,
        inspector,
        fee_reserve=Decimal(fee_reserve),
        confirmation_timeout=confirmation_timeout,
    )
    return BalanceMonitor(inspector, executor, policy or make_policy())
