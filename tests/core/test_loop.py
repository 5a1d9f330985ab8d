"""Tests: AutonomousLoop - recovery after unexpected failures, stop at cycle boundaries.

Invariants:
    - an exception escaping cycle N does not end the loop; cycle N+1 runs after
      the recovery interval
    - classified outcomes (insufficient_funds included) wait the normal interval
    - request_stop() takes effect between cycles, never mid-transfer
    - cancelling the loop task lets an in-flight top-up settle first

Design Decisions:
    - sleep is injected so no test waits on the wall clock (except the
      stop-aware default wait, bounded by wait_for)
"""

import asyncio

import pytest

from wallet_keeper.core.loop import AutonomousLoop, LoopState
from wallet_keeper.core.models import OutcomeKind

from tests.fakes import FUNDING, TARGET, FakeLedger, make_monitor


def _loop(monitor, stop_after: int, statuses: list, delays: list, **kwargs):
    loop_ref = {}

    async def _sleep(seconds):
        delays.append(seconds)
        if len(delays) >= stop_after:
            loop_ref["loop"].request_stop()

    loop = AutonomousLoop(
        monitor,
        interval=10.0,
        recovery_interval=5.0,
        on_status=statuses.append,
        sleep=_sleep,
        **kwargs,
    )
    loop_ref["loop"] = loop
    return loop


async def test_transient_failure_does_not_stop_the_loop():
    ledger = FakeLedger({TARGET: "1", FUNDING: "0"})
    ledger.balance_errors = [ConnectionError("connection reset by peer")]
    statuses, delays = [], []
    loop = _loop(make_monitor(ledger), 2, statuses, delays)

    stats = await loop.run()

    assert [s.kind for s in statuses] == [OutcomeKind.TRANSIENT_ERROR, OutcomeKind.HEALTHY]
    assert delays == [5.0, 10.0]
    assert "connection reset by peer" in statuses[0].detail
    assert stats.cycles == 2
    assert stats.transient_failures == 1
    assert stats.consecutive_failures == 0
    assert loop.state == LoopState.CANCELLED


async def test_classified_outcomes_use_normal_cadence():
    ledger = FakeLedger({TARGET: "0.05", FUNDING: "0"})
    statuses, delays = [], []
    loop = _loop(make_monitor(ledger), 3, statuses, delays)

    stats = await loop.run()

    assert [s.kind for s in statuses] == [OutcomeKind.INSUFFICIENT_FUNDS] * 3
    assert delays == [10.0, 10.0, 10.0]
    assert stats.outcomes == {"insufficient_funds": 3}
    assert ledger.count("submit_transfer") == 0


async def test_repeated_failures_keep_retrying():
    ledger = FakeLedger({TARGET: "1", FUNDING: "0"})
    ledger.balance_errors = [RuntimeError("boom")] * 4
    statuses, delays = [], []
    loop = _loop(make_monitor(ledger), 4, statuses, delays)

    stats = await loop.run()

    assert delays == [5.0] * 4
    assert stats.consecutive_failures == 4


async def test_stop_requested_mid_transfer_lets_cycle_finish(ledger):
    statuses, delays = [], []
    loop = _loop(make_monitor(ledger), 99, statuses, delays)
    ledger.on_confirm = loop.request_stop

    await loop.run()

    assert [s.kind for s in statuses] == [OutcomeKind.TOPPED_UP]
    assert delays == []
    assert ledger.count("confirm_transfer") == 1


async def test_stop_before_run_runs_nothing(ledger):
    statuses, delays = [], []
    loop = _loop(make_monitor(ledger), 99, statuses, delays)
    loop.request_stop()

    stats = await loop.run()

    assert stats.cycles == 0
    assert ledger.calls == []


async def test_task_cancellation_waits_for_in_flight_confirmation(ledger):
    statuses, delays = [], []
    loop = _loop(make_monitor(ledger), 99, statuses, delays)
    ledger.confirm_gate = asyncio.Event()

    task = asyncio.create_task(loop.run())
    await ledger.confirm_started.wait()
    task.cancel()
    await asyncio.sleep(0)
    assert not task.done()

    ledger.confirm_gate.set()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert loop.state == LoopState.CANCELLED
    assert [s.kind for s in statuses] == [OutcomeKind.TOPPED_UP]
    assert ledger.balances[TARGET] == ledger.chain.to_smallest("0.25")


async def test_default_wait_wakes_on_stop():
    ledger = FakeLedger({TARGET: "1", FUNDING: "0"})
    first = asyncio.Event()
    loop = AutonomousLoop(
        make_monitor(ledger),
        interval=3600,
        recovery_interval=1,
        on_status=lambda status: first.set(),
    )

    task = asyncio.create_task(loop.run())
    await first.wait()
    loop.request_stop()
    stats = await asyncio.wait_for(task, timeout=1)

    assert stats.cycles == 1


async def test_async_sink_and_failing_sink():
    ledger = FakeLedger({TARGET: "1", FUNDING: "0"})
    seen = []

    async def _sink(status):
        seen.append(status.kind)
        raise ValueError("sink broke")

    delays = []

    async def _sleep(seconds):
        delays.append(seconds)
        loop.request_stop()

    loop = AutonomousLoop(make_monitor(ledger), on_status=_sink, sleep=_sleep)

    await loop.run()

    assert seen == [OutcomeKind.HEALTHY]
    assert delays == [10.0]


def test_recovery_longer_than_interval_is_clamped(monitor):
    loop = AutonomousLoop(monitor, interval=2, recovery_interval=5)

    assert loop.recovery_interval == 2


def test_non_positive_interval_rejected(monitor):
    with pytest.raises(ValueError):
        AutonomousLoop(monitor, interval=0)
