"""Media adapters: transcription and image generation."""

from openai import AsyncOpenAI

from tapback.media.images import ImageGenerator
from tapback.media.transcription import Transcriber

__all__ = ["ImageGenerator", "Transcriber", "create_media_adapters"]


def create_media_adapters(config) -> tuple[Transcriber, ImageGenerator]:
    """Build both adapters around one OpenAI client."""
    client = AsyncOpenAI(
        api_key=config.providers.openai.api_key or None,
        base_url=config.providers.openai.api_base or None,
    )
    return (
        Transcriber(client, model=config.models.transcription),
        ImageGenerator(client, model=config.models.image, size=config.models.image_size),
    )
