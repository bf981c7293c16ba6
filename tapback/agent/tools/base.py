"""Base class for assistant tools.

Tools here never run on their own: the model's invocation is validated and
turned into a typed request that the orchestrator folds into the ActionPlan.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from tapback.agent.types import FeatureTier

_JSON_TYPES: dict[str, type | tuple[type, ...]] = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "object": dict,
    "array": list,
}


@dataclass(frozen=True)
class ToolContext:
    """The parts of a turn that decide which tools are on offer."""
    sender: str
    is_group: bool = False
    tier: FeatureTier = FeatureTier.FULL
    web_search: bool = True


class Tool(ABC):
    """
    A capability offered to the model.

    Subclasses declare ``name``, ``description`` and a JSON-schema
    ``parameters`` object, and implement ``parse`` to build the request.
    """

    name: str = ""
    description: str = ""
    parameters: dict[str, Any] = {"type": "object", "properties": {}}
    # Executed by the provider itself (e.g. web search); never folded into a plan.
    native: bool = False

    def is_offered(self, ctx: ToolContext) -> bool:
        """Whether this tool is declared (and honored) for the given turn."""
        return True

    def validate_params(self, params: dict[str, Any]) -> list[str]:
        """Check params against the declared schema. Returns a list of errors."""
        if not isinstance(params, dict):
            return ["parameters must be an object"]

        errors: list[str] = []
        properties = self.parameters.get("properties", {})

        for key in self.parameters.get("required", []):
            value = params.get(key)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors.append(f"missing required parameter '{key}'")

        for key, value in params.items():
            spec = properties.get(key)
            if spec is None or value is None:
                continue
            expected = _JSON_TYPES.get(spec.get("type", ""))
            is_bool_mismatch = isinstance(value, bool) and expected is not bool
            if expected and (not isinstance(value, expected) or is_bool_mismatch):
                errors.append(f"parameter '{key}' must be of type {spec['type']}")
                continue
            allowed = spec.get("enum")
            if allowed and value not in allowed:
                errors.append(f"parameter '{key}' must be one of {allowed}, got {value!r}")

        return errors

    @abstractmethod
    def parse(self, params: dict[str, Any], ctx: ToolContext) -> Any | None:
        """Build the typed request from validated params, or None to discard."""
        pass

    def to_schema(self) -> dict[str, Any]:
        """Tool definition in OpenAI function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


def clean_str(value: Any) -> str | None:
    """Strip a string param; empty or non-string values become None."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None
