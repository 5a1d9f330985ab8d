"""Tool registry - expose keeper operations to an agent as callable tools.

An agent sees each tool as a name, a description and a JSON schema for its
arguments. :meth:`ToolRegistry.dispatch` runs a call the agent made, with
the arguments either as a dict or as the raw JSON string most LLM APIs
return.
"""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

logger = logging.getLogger("wallet_keeper.tools.registry")

Handler = Callable[..., Union[Awaitable[Any], Any]]


class UnknownToolError(LookupError):
    def __init__(self, name: str) -> None:
        super().__init__(f"No tool named '{name}'")
        self.name = name


@dataclass(frozen=True)
class ToolDefinition:
    """Provider-neutral description of a tool, as sent to an LLM."""

    name: str
    description: str
    parameters: dict[str, Any]

    @property
    def required(self) -> list[str]:
        return list(self.parameters.get("required", []))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


@dataclass
class RegisteredTool:
    definition: ToolDefinition
    handler: Handler

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def is_async(self) -> bool:
        return inspect.iscoroutinefunction(self.handler)

    async def invoke(self, arguments: dict[str, Any]) -> str:
        """Call the handler; non-string results are returned as JSON."""
        missing = [key for key in self.definition.required if key not in arguments]
        if missing:
            raise ValueError(f"Tool '{self.name}' is missing arguments: {', '.join(missing)}")

        result = self.handler(**arguments)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, str):
            return result
        return json.dumps(result, default=str)


class ToolRegistry:
    """Named collection of tools.

    Tools declared with :func:`tool` land in the process-wide
    :meth:`default` registry; tests can build their own.
    """

    _default: ToolRegistry | None = None

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    @classmethod
    def default(cls) -> ToolRegistry:
        if cls._default is None:
            cls._default = cls()
        return cls._default

    def add(self, definition: ToolDefinition, handler: Handler) -> RegisteredTool:
        if definition.name in self._tools:
            logger.debug(f"Replacing tool '{definition.name}'")
        entry = RegisteredTool(definition, handler)
        self._tools[definition.name] = entry
        return entry

    def lookup(self, name: str) -> RegisteredTool:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def names(self) -> list[str]:
        return list(self._tools)

    def definitions(self) -> list[ToolDefinition]:
        return [entry.definition for entry in self._tools.values()]

    async def dispatch(self, name: str, arguments: dict[str, Any] | str | None = None) -> str:
        """Run tool *name* with *arguments* and return its text result.

        Raises :class:`UnknownToolError` for an unregistered name and
        ``ValueError`` for arguments that are not a JSON object or lack a
        required key.
        """
        entry = self.lookup(name)
        if arguments is None or arguments == "":
            arguments = {}
        elif isinstance(arguments, str):
            try:
                arguments = json.loads(arguments)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Arguments for '{name}' are not valid JSON: {exc}") from exc
        if not isinstance(arguments, dict):
            raise ValueError(f"Arguments for '{name}' must be a JSON object")

        logger.debug(f"Dispatching tool '{name}' with {sorted(arguments)}")
        return await entry.invoke(arguments)


def tool(
    name: str,
    description: str,
    parameters: dict[str, Any],
    registry: ToolRegistry | None = None,
):
    """Decorator to register a function as a tool.

    Usage:
        @tool("balance_monitor", "Check and maintain a wallet balance", {...})
        async def balance_monitor(input: str = "check") -> str:
            ...
    """

    def decorator(func: Handler) -> Handler:
        target = registry if registry is not None else ToolRegistry.default()
        target.add(ToolDefinition(name, description, parameters), func)
        return func

    return decorator
