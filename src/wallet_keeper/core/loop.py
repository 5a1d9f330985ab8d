"""Self-healing driver that keeps running balance checks on a fixed cadence."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from wallet_keeper.core.models import OutcomeKind
from wallet_keeper.core.monitor import BalanceMonitor, transient_status
from wallet_keeper.core.reporter import HealthStatus

logger = logging.getLogger("wallet_keeper.core.loop")

StatusSink = Callable[[HealthStatus], Awaitable[None] | None]
Sleep = Callable[[float], Awaitable[None]]


class LoopState(str, Enum):
    RUNNING = "running"
    CANCELLED = "cancelled"


@dataclass
class LoopStats:
    cycles: int = 0
    transient_failures: int = 0
    consecutive_failures: int = 0
    last_kind: OutcomeKind | None = None
    outcomes: dict[str, int] = field(default_factory=dict)

    def record(self, status: HealthStatus) -> None:
        self.cycles += 1
        self.last_kind = status.kind
        self.outcomes[status.kind.value] = self.outcomes.get(status.kind.value, 0) + 1
        if status.kind == OutcomeKind.TRANSIENT_ERROR:
            self.transient_failures += 1
            self.consecutive_failures += 1
        else:
            self.consecutive_failures = 0


class AutonomousLoop:
    """Run :meth:`BalanceMonitor.run_cycle` forever, until told to stop.

    The loop has two states. It starts ``RUNNING`` and only
    :meth:`request_stop` moves it to ``CANCELLED``; nothing inside a cycle
    can end it. After a cycle that returned a status (whatever its kind)
    it waits *interval* seconds. After a cycle that raised, it reports a
    ``transient_error`` status and waits the shorter *recovery_interval*.

    A stop request takes effect between cycles. If the task running the
    loop is cancelled mid-cycle, the in-flight cycle is still awaited to
    completion so a submitted transfer is never abandoned unconfirmed.

    *sleep* replaces the default stop-aware wait, which lets tests drive
    the loop without wall-clock delays.
    """

    def __init__(
        self,
        monitor: BalanceMonitor,
        interval: float = 10.0,
        recovery_interval: float = 5.0,
        on_status: StatusSink | None = None,
        sleep: Sleep | None = None,
        identifier: str = "check",
    ) -> None:
        if interval <= 0 or recovery_interval <= 0:
            raise ValueError("interval and recovery_interval must be positive")
        if recovery_interval > interval:
            logger.warning(
                f"Recovery interval {recovery_interval}s exceeds cadence {interval}s; "
                f"using {interval}s"
            )
            recovery_interval = interval
        self.monitor = monitor
        self.interval = interval
        self.recovery_interval = recovery_interval
        self.identifier = identifier
        self.state = LoopState.RUNNING
        self.stats = LoopStats()
        self._on_status = on_status
        self._sleep = sleep
        self._stop = asyncio.Event()

    @property
    def running(self) -> bool:
        return self.state == LoopState.RUNNING

    def request_stop(self) -> None:
        """Stop the loop at the next cycle boundary."""
        if self.state == LoopState.CANCELLED:
            return
        self.state = LoopState.CANCELLED
        self._stop.set()
        logger.info("Stop requested. Will halt once the current cycle completes.")

    async def run(self) -> LoopStats:
        logger.info(
            f"Starting wallet keeper loop for {self.monitor.default_address} "
            f"(every {self.interval:g}s, recovery {self.recovery_interval:g}s)"
        )
        while self.running:
            delay = await self._run_cycle()
            if not self.running:
                break
            logger.debug(f"Next check in {delay:g}s")
            await self._wait(delay)

        logger.info(
            f"Loop stopped after {self.stats.cycles} cycles "
            f"({self.stats.transient_failures} transient failures)"
        )
        return self.stats

    async def _run_cycle(self) -> float:
        """Run one cycle and return how long to wait before the next."""
        number = self.stats.cycles + 1
        logger.debug(f"=== Cycle {number} ===")
        cycle = asyncio.ensure_future(self.monitor.run_cycle(self.identifier))
        try:
            status = await asyncio.shield(cycle)
        except asyncio.CancelledError:
            self.request_stop()
            logger.warning(f"Cancelled during cycle {number}; letting it finish first")
            await asyncio.wait([cycle])
            if cycle.cancelled():
                raise
            exc = cycle.exception()
            if exc is None:
                self.stats.record(cycle.result())
                await self._emit(cycle.result())
            else:
                logger.error(f"Cycle {number} failed while shutting down: {exc}")
            raise
        except Exception as exc:
            logger.exception(
                f"Cycle {number} failed unexpectedly; recovering in {self.recovery_interval:g}s"
            )
            status = transient_status(exc)
            self.stats.record(status)
            await self._emit(status)
            return self.recovery_interval

        self.stats.record(status)
        await self._emit(status)
        return self.interval

    async def _emit(self, status: HealthStatus) -> None:
        if self._on_status is None:
            logger.info(f"{status.headline}: {status.detail}")
            return
        try:
            result = self._on_status(status)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Status sink raised; continuing")

    async def _wait(self, seconds: float) -> None:
        if self._sleep is not None:
            await self._sleep(seconds)
            return
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
