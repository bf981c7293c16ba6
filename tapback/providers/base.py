"""Base LLM provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class ProviderError(RuntimeError):
    """A provider call failed. Never retried automatically."""


@dataclass
class ToolCallRequest:
    """A tool call requested by the LLM."""
    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class LLMResponse:
    """Response from an LLM provider.

    ``segments`` keeps the order the provider emitted free text and tool
    invocations in. Providers that cannot preserve interleaving leave it
    empty and the text-then-tools order from ``content``/``tool_calls`` is used.
    """
    content: str | None
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)
    raw_segments: list["str | ToolCallRequest"] = field(default_factory=list)

    @property
    def has_tool_calls(self) -> bool:
        """Check if response contains tool calls."""
        return len(self.tool_calls) > 0

    @property
    def segments(self) -> list["str | ToolCallRequest"]:
        """Ordered output segments: each is free text or one tool invocation."""
        if self.raw_segments:
            return list(self.raw_segments)
        out: list[str | ToolCallRequest] = []
        if self.content:
            out.append(self.content)
        out.extend(self.tool_calls)
        return out


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Implementations handle the specifics of each provider's API
    while maintaining a consistent interface.
    """

    def __init__(self, api_key: str | None = None, api_base: str | None = None):
        self.api_key = api_key
        self.api_base = api_base

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        web_search: bool = False,
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'.
            tools: Optional list of tool definitions in OpenAI format.
            model: Model identifier (provider-specific).
            max_tokens: Maximum tokens in response.
            temperature: Sampling temperature.
            web_search: Let the provider run its native web search.

        Returns:
            LLMResponse with content and/or tool calls.

        Raises:
            ProviderError: if the call fails.
        """
        pass

    @abstractmethod
    def get_default_model(self) -> str:
        """Get the default model for this provider."""
        pass
