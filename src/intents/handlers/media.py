"""Image and speech generation saved as vault attachments."""

import re
import time
from pathlib import PurePosixPath
from typing import Optional

import structlog

from llm import LLMError

from ..artifacts import MediaResultsArtifact
from ..commands import canonical_command
from ..exact_match import get_quoted_query
from ..gateway import ModelCallError
from ..prompts import PromptTemplates
from ..schemas import MediaPromptArgs, tool_definition
from ..types import (
    HandlerOptions,
    HandlerParams,
    HandlerResult,
    LowConfidenceResult,
    SuccessResult,
)
from .base import HandlerError, IntentHandler

logger = structlog.get_logger()

MEDIA_TOOL = tool_definition("media_prompt", "Extract the media prompt.", MediaPromptArgs)

_EXTENSIONS = {"image": "png", "audio": "mp3"}


class MediaHandler(IntentHandler):
    """``image`` and ``audio`` intents. A fully quoted query is used verbatim."""

    name = "media"
    commands = ("image", "audio")

    async def handle(
        self, params: HandlerParams, options: Optional[HandlerOptions] = None
    ) -> HandlerResult:
        media = self.services.media
        if media is None:
            raise HandlerError("Media generation is not configured.")

        media_type = canonical_command(params.intent.base_type)
        text = get_quoted_query(params.intent.query)
        if text is None:
            args = await self.extract(
                params,
                MEDIA_TOOL,
                MediaPromptArgs,
                system=PromptTemplates.MEDIA.format(media=media_type, tool=MEDIA_TOOL.name),
            )
            if self.is_low_confidence(args):
                return LowConfidenceResult(args.explanation)
            text = args.text

        config = self.services.config.media
        model = model_for(media_type, config)
        name = f"{params.title}:{media_type}"
        token = self.services.aborts.create(name)
        try:
            if media_type == "image":
                data = await token.guard(media.generate_image(text, size=config.image_size))
            else:
                data = await token.guard(media.generate_speech(text, voice=config.voice))
        except LLMError as e:
            raise ModelCallError(model, e) from e
        finally:
            self.services.aborts.clear(name, token)

        filename = f"{_slug(text)}_{int(time.time() * 1000)}.{_EXTENSIONS[media_type]}"
        path = self.services.notes.write_bytes(
            PurePosixPath(self.services.config.paths.attachments_folder, filename).as_posix(), data
        )
        self.services.artifacts.store(
            params.title, MediaResultsArtifact(media_type=media_type, paths=(path,))
        )
        logger.info("media.generated", title=params.title, type=media_type, model=model, path=path)
        self.say(params, f"![[{path}]]")
        return SuccessResult()


def model_for(media_type: str, config) -> str:
    return config.image_model if media_type == "image" else config.speech_model


def _slug(text: str) -> str:
    words = re.findall(r"[A-Za-z0-9]+", text.lower())[:6]
    return "-".join(words) or "media"
