"""Content tools: memory, image generation, web search."""

from typing import Any

from tapback.agent.plan import ImageRequest, RememberRequest
from tapback.agent.tools.base import Tool, ToolContext, clean_str


class RememberUserTool(Tool):
    name = "remember_user"
    description = (
        "Save NEW information about someone. ONLY use when you learn genuinely NEW info. "
        "NEVER re-save info already shown in the system prompt. You MUST write a text "
        "response too - this tool does NOT send any message."
    )
    parameters = {
        "type": "object",
        "properties": {
            "handle": {
                "type": "string",
                "description": (
                    "The phone number/handle of the person this info is about. In group chats, "
                    "use this to save info about someone OTHER than the current sender. "
                    "If omitted, saves to the current sender."
                ),
            },
            "name": {
                "type": "string",
                "description": "The person's name if they shared it (e.g., \"Patrick\", \"Sarah\").",
            },
            "fact": {
                "type": "string",
                "description": "A concise fact worth remembering (e.g., \"Has a dog named Max\").",
            },
        },
    }

    def parse(self, params: dict[str, Any], ctx: ToolContext) -> RememberRequest | None:
        name = clean_str(params.get("name"))
        fact = clean_str(params.get("fact"))
        if not name and not fact:
            return None
        return RememberRequest(handle=clean_str(params.get("handle")), name=name, fact=fact)


class GenerateImageTool(Tool):
    name = "generate_image"
    description = (
        "Generate an image. Use when the user asks you to create, draw, generate, or make "
        "an image/picture/photo. Expand their request into a detailed prompt. You MUST also "
        "write a brief text message (like \"lemme draw that for u\") - it is sent BEFORE "
        "the image starts generating."
    )
    parameters = {
        "type": "object",
        "properties": {
            "prompt": {
                "type": "string",
                "description": "Detailed description of the image: style, composition, lighting.",
            },
        },
        "required": ["prompt"],
    }

    def parse(self, params: dict[str, Any], ctx: ToolContext) -> ImageRequest | None:
        prompt = clean_str(params["prompt"])
        return ImageRequest(prompt) if prompt else None


class WebSearchTool(Tool):
    """Real-time lookups, run by the provider itself."""

    name = "web_search"
    description = "Search the web for current information."
    native = True

    def is_offered(self, ctx: ToolContext) -> bool:
        return ctx.web_search

    def parse(self, params: dict[str, Any], ctx: ToolContext) -> None:
        return None
