"""The caller-facing balance check used by the CLI, the agent tool and the loop."""

from __future__ import annotations

import logging

from wallet_keeper.core.errors import InvalidAddressError
from wallet_keeper.core.inspector import BalanceInspector
from wallet_keeper.core.models import CycleOutcome, TopUpPolicy
from wallet_keeper.core.reporter import HealthStatus, describe, format_status
from wallet_keeper.core.topup import TopUpExecutor

logger = logging.getLogger("wallet_keeper.core.monitor")


class BalanceMonitor:
    """Inspect an account and top it up when it falls below *policy*.

    ``check("check")`` (or an empty string) targets the default account;
    any other input is treated as an address.
    """

    def __init__(
        self,
        inspector: BalanceInspector,
        executor: TopUpExecutor,
        policy: TopUpPolicy,
    ) -> None:
        self.inspector = inspector
        self.executor = executor
        self.policy = policy

    @property
    def default_address(self) -> str:
        return self.inspector.default_address

    async def run_cycle(self, identifier: str | None = None) -> HealthStatus:
        """Run one inspection (and top-up if needed) pass.

        Classified problems come back as a status. Unexpected failures are
        raised for the caller to handle.
        """
        try:
            inspection = await self.inspector.inspect(identifier)
        except InvalidAddressError as exc:
            logger.warning(str(exc))
            return describe(CycleOutcome.invalid_input(exc.value))

        outcome = await self.executor.maybe_top_up(
            inspection.address, inspection.balance, self.policy
        )
        status = describe(outcome)
        logger.info(f"Cycle for {inspection.address}: {status.kind.value}")
        return status

    async def check(self, identifier: str | None = None) -> str:
        """Run one cycle and return the formatted status text."""
        return format_status(await self.run_cycle(identifier))


def transient_status(exc: BaseException) -> HealthStatus:
    """Status for a failure that escaped a cycle unclassified."""
    return describe(CycleOutcome.transient_error(str(exc) or type(exc).__name__))
