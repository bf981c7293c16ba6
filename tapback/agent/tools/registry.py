"""Tool registry: declaration, per-turn gating and folding of invocations."""

from typing import Any

from loguru import logger

from tapback.agent.tools.base import Tool, ToolContext
from tapback.providers.base import ToolCallRequest


class ToolRegistry:
    """
    Registry for assistant tools.

    ``get_definitions`` declares the tools offered for a turn; ``fold`` turns
    the model's invocations back into typed requests, one per tool, with a
    later invocation of the same tool replacing an earlier one.
    """

    def __init__(self):
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool

    def get_definitions(self, ctx: ToolContext) -> list[dict[str, Any]]:
        """Function-calling definitions for the tools offered in this turn.

        Provider-native tools are excluded; see ``wants_native``.
        """
        return [
            tool.to_schema()
            for tool in self._tools.values()
            if not tool.native and tool.is_offered(ctx)
        ]

    def wants_native(self, name: str, ctx: ToolContext) -> bool:
        tool = self._tools.get(name)
        return bool(tool and tool.native and tool.is_offered(ctx))

    def fold(self, calls: list[ToolCallRequest], ctx: ToolContext) -> dict[str, Any]:
        """Validate each invocation and keep the last valid request per tool.

        Malformed, unknown or not-offered invocations are dropped one by one;
        the rest of the turn carries on with whatever remains.
        """
        folded: dict[str, Any] = {}
        for call in calls:
            tool = self._tools.get(call.name)
            if tool is None:
                logger.warning(f"Discarding call to unknown tool '{call.name}'")
                continue
            if tool.native:
                continue
            if not tool.is_offered(ctx):
                logger.warning(f"Discarding '{call.name}': not available in this conversation")
                continue
            errors = tool.validate_params(call.arguments)
            if errors:
                logger.warning(f"Discarding '{call.name}': " + "; ".join(errors))
                continue
            request = tool.parse(call.arguments, ctx)
            if request is None:
                logger.warning(f"Discarding '{call.name}': nothing usable in {call.arguments}")
                continue
            if call.name in folded:
                logger.debug(f"'{call.name}' invoked more than once; keeping the latest")
            folded[call.name] = request
        return folded

    def summary(self, ctx: ToolContext) -> str:
        """Human-readable list of the tools offered for a context."""
        offered = [name for name, tool in self._tools.items() if tool.is_offered(ctx)]
        return f"{len(offered)}/{len(self._tools)} tools offered: {', '.join(offered)}"


def build_default_registry() -> ToolRegistry:
    """Registry with every built-in tool."""
    from tapback.agent.tools.content import GenerateImageTool, RememberUserTool, WebSearchTool
    from tapback.agent.tools.messaging import EffectTool, GroupIconTool, ReactTool, RenameChatTool

    registry = ToolRegistry()
    for tool in (
        ReactTool(),
        EffectTool(),
        RememberUserTool(),
        GenerateImageTool(),
        WebSearchTool(),
        RenameChatTool(),
        GroupIconTool(),
    ):
        registry.register(tool)
    return registry
