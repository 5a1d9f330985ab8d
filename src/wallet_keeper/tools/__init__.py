"""Agent-facing tools.

Importing :mod:`wallet_keeper.tools.balance_tool` registers the
``balance_monitor`` tool with the global :class:`ToolRegistry`.
"""
