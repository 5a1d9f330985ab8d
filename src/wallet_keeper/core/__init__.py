"""Balance-check, top-up and recovery-loop core.

Nothing in this package reads the environment or configuration files; all
inputs (ledger client, chain, policy, intervals) are passed in.
"""

from wallet_keeper.core.errors import InvalidAddressError, KeeperError
from wallet_keeper.core.inspector import BalanceInspector
from wallet_keeper.core.loop import AutonomousLoop, LoopState
from wallet_keeper.core.models import CycleOutcome, OutcomeKind, TopUpPolicy
from wallet_keeper.core.monitor import BalanceMonitor
from wallet_keeper.core.reporter import HealthStatus, describe, format_status
from wallet_keeper.core.topup import DEFAULT_FEE_RESERVE, TopUpExecutor

__all__ = [
    "AutonomousLoop",
    "BalanceInspector",
    "BalanceMonitor",
    "CycleOutcome",
    "DEFAULT_FEE_RESERVE",
    "HealthStatus",
    "InvalidAddressError",
    "KeeperError",
    "LoopState",
    "OutcomeKind",
    "TopUpExecutor",
    "TopUpPolicy",
    "describe",
    "format_status",
]
