"""Chat completions through LiteLLM."""

import json
import os
import time
from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from tapback.providers.base import LLMProvider, LLMResponse, ProviderError, ToolCallRequest

# Model-name fragments and the env var LiteLLM reads the matching key from.
_KEY_ENV_VARS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("anthropic", "claude"), "ANTHROPIC_API_KEY"),
    (("openai", "gpt"), "OPENAI_API_KEY"),
)

_WEB_SEARCH_OPTIONS = {"search_context_size": "medium"}


def _decode_arguments(raw: Any) -> dict[str, Any]:
    """Tool arguments as a dict. Anything that is not a JSON object lands under ``raw``."""
    if isinstance(raw, str):
        if not raw:
            return {}
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return {"raw": raw}
    return raw if isinstance(raw, dict) else {"raw": raw}


def _usage_of(response: Any) -> dict[str, int]:
    usage = getattr(response, "usage", None)
    if not usage:
        return {}
    return {
        key: getattr(usage, key, 0) or 0
        for key in ("prompt_tokens", "completion_tokens", "total_tokens")
    }


def parse_completion(response: Any) -> LLMResponse:
    """Turn a LiteLLM completion object into an LLMResponse."""
    try:
        choice = response.choices[0]
    except (IndexError, AttributeError) as e:
        raise ProviderError("LLM response has no choices") from e

    message = choice.message
    calls: list[ToolCallRequest] = []
    for index, tc in enumerate(getattr(message, "tool_calls", None) or []):
        try:
            calls.append(ToolCallRequest(
                id=tc.id or f"call_{index}",
                name=tc.function.name,
                arguments=_decode_arguments(tc.function.arguments),
            ))
        except (AttributeError, TypeError) as e:
            logger.warning(f"Dropping tool call {index} with unexpected shape: {e}")

    return LLMResponse(
        content=message.content,
        tool_calls=calls,
        finish_reason=choice.finish_reason or "stop",
        usage=_usage_of(response),
    )


class LiteLLMProvider(LLMProvider):
    """
    Provider backed by ``litellm.acompletion``.

    Any LiteLLM model string works; Anthropic is the default. One call per
    ``chat``. Failures surface as ProviderError and are not retried.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "anthropic/claude-sonnet-4-20250514",
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        litellm.suppress_debug_info = True

        if api_key:
            lowered = default_model.lower()
            for fragments, env_var in _KEY_ENV_VARS:
                if any(fragment in lowered for fragment in fragments):
                    os.environ.setdefault(env_var, api_key)
                    break

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        web_search: bool = False,
    ) -> LLMResponse:
        model = model or self.default_model
        request: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if self.api_base:
            request["api_base"] = self.api_base
        if tools:
            request.update(tools=tools, tool_choice="auto")
        if web_search:
            request["web_search_options"] = dict(_WEB_SEARCH_OPTIONS)

        started = time.perf_counter()
        try:
            completion = await acompletion(**request)
        except Exception as e:
            logger.error(f"LLM call to {model} failed: {e}")
            raise ProviderError(f"Error calling LLM: {e}") from e

        response = parse_completion(completion)
        logger.debug(
            f"[timing] {model} answered in {time.perf_counter() - started:.2f}s "
            f"({len(response.tool_calls)} tool call(s), {response.usage.get('total_tokens', 0)} tokens)"
        )
        return response

    def get_default_model(self) -> str:
        return self.default_model
