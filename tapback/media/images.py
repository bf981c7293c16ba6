"""Image generation via the OpenAI images API."""

from loguru import logger
from openai import AsyncOpenAI

from tapback.utils.helpers import truncate_string

DEFAULT_IMAGE_MODEL = "dall-e-3"


class ImageGenerator:
    """Turns a prompt into a hosted image URL, or None on any failure."""

    def __init__(self, client: AsyncOpenAI, model: str = DEFAULT_IMAGE_MODEL, size: str = "1024x1024"):
        self.client = client
        self.model = model
        self.size = size

    async def generate(self, prompt: str) -> str | None:
        try:
            logger.info(f"Generating image with {self.model}: \"{truncate_string(prompt)}\"")
            response = await self.client.images.generate(
                model=self.model,
                prompt=prompt,
                n=1,
                size=self.size,
                quality="standard",
            )
            data = response.data or []
            url = data[0].url if data else None
            if url:
                logger.info(f"Image generated: {truncate_string(url)}")
                return url
            logger.error("No image URL in image generation response")
            return None
        except Exception as e:
            logger.error(f"Image generation error: {e}")
            return None
