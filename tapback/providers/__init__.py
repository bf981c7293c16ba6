"""LLM provider abstraction module."""

from tapback.providers.base import LLMProvider, LLMResponse, ProviderError, ToolCallRequest
from tapback.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "ProviderError", "ToolCallRequest", "LiteLLMProvider"]
