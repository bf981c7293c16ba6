"""Assistant tools.

Each tool declares a capability to the model and validates the model's
invocation on the way back into a typed request.
"""

from tapback.agent.tools.base import Tool, ToolContext
from tapback.agent.tools.registry import ToolRegistry, build_default_registry

__all__ = ["Tool", "ToolContext", "ToolRegistry", "build_default_registry"]
