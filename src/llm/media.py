"""Image and speech generation via the OpenAI media endpoints."""

import base64

import structlog
from openai import AsyncOpenAI

from .base import LLMError
from .providers.openai import _handle_openai_error

logger = structlog.get_logger()


class MediaGenerator:
    """Produces image/audio bytes for the media handler."""

    def __init__(
        self,
        api_key: str | None = None,
        image_model: str = "dall-e-3",
        speech_model: str = "tts-1",
        voice: str = "alloy",
        client=None,
    ):
        self.image_model = image_model
        self.speech_model = speech_model
        self.voice = voice
        self.client = client or AsyncOpenAI(api_key=api_key)

    async def generate_image(self, prompt: str, size: str = "1024x1024") -> bytes:
        try:
            response = await self.client.images.generate(
                model=self.image_model,
                prompt=prompt,
                size=size,
                n=1,
                response_format="b64_json",
            )
        except Exception as e:
            _handle_openai_error(e)
        data = response.data[0].b64_json if response.data else None
        if not data:
            raise LLMError("Image generation returned no data")
        logger.info("media.image_generated", model=self.image_model, size=size)
        return base64.b64decode(data)

    async def generate_speech(self, text: str, voice: str | None = None) -> bytes:
        try:
            response = await self.client.audio.speech.create(
                model=self.speech_model,
                voice=voice or self.voice,
                input=text,
            )
        except Exception as e:
            _handle_openai_error(e)
        logger.info("media.speech_generated", model=self.speech_model, chars=len(text))
        return response.content
