"""Agent-facing balance monitor tool.

Wraps :meth:`BalanceMonitor.check` so an agent can ask for the default
wallet (``"check"``) or any address and always gets a status string back,
even when the check itself blows up.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from wallet_keeper.core.monitor import transient_status
from wallet_keeper.core.reporter import format_status
from wallet_keeper.tools.registry import tool

if TYPE_CHECKING:
    from wallet_keeper.core.monitor import BalanceMonitor

logger = logging.getLogger("wallet_keeper.tools.balance")

# Module-level state, injected by the agent that embeds this tool
_monitor: BalanceMonitor | None = None


def set_balance_monitor(monitor: BalanceMonitor | None) -> None:
    """Inject the BalanceMonitor instance (called on startup)."""
    global _monitor
    _monitor = monitor


def _require_monitor() -> BalanceMonitor:
    if _monitor is None:
        raise RuntimeError(
            "Balance monitor not configured. Run 'wallet-keeper init' and set the signer key."
        )
    return _monitor


@tool(
    "balance_monitor",
    (
        "Monitors wallet balances and keeps them funded by topping up automatically "
        "when low. Pass a wallet address to check it, or 'check' for the default wallet."
    ),
    {
        "type": "object",
        "properties": {
            "input": {
                "type": "string",
                "description": "Wallet address (0x...) or 'check' for the default wallet.",
            }
        },
        "required": [],
    },
)
async def balance_monitor(input: str = "check") -> str:
    mgr = _require_monitor()
    try:
        return await mgr.check(input)
    except Exception as exc:
        logger.exception("Balance check failed")
        return format_status(transient_status(exc))
