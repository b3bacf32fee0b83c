"""Free-form model answers, streamed into the conversation."""

from typing import Optional

import structlog

from shared_types import ArtifactType

from ..artifacts import GeneratedContentArtifact
from ..prompts import PromptTemplates, language_hint
from ..types import HandlerOptions, HandlerParams, HandlerResult, SuccessResult
from .base import IntentHandler

logger = structlog.get_logger()

STREAM_EVENT = "stream"


class GenerateHandler(IntentHandler):
    """Answers with the conversation history plus the most recently read notes."""

    name = "generate"
    commands = ("generate",)

    def __init__(self, services, events=None):
        super().__init__(services)
        self.events = events

    async def handle(
        self, params: HandlerParams, options: Optional[HandlerOptions] = None
    ) -> HandlerResult:
        title = params.title
        services = self.services
        messages = services.conversations.history_for_llm(title, services.config.llm.history_limit)
        query = params.intent.query
        if query and (not messages or messages[-1]["content"] != query):
            messages.append({"role": "user", "content": query})
        if not messages:
            messages = [{"role": "user", "content": params.original_query or ""}]

        system = PromptTemplates.GENERATE.format(language=language_hint(params.lang))
        read = services.artifacts.most_recent(title, [ArtifactType.READ_CONTENT])
        if read is not None:
            notes = "\n\n".join(f"## {n.path}\n{n.content}" for n in read.notes)
            system += f"\n\nNOTE CONTENT:\n{notes}"

        async def on_chunk(chunk: str):
            if self.events is not None:
                await self.events.emit(title, STREAM_EVENT, {"chunk": chunk})

        content = await services.gateway.stream(
            title,
            self.name,
            messages,
            system=self.system_prompt(params, system),
            model=params.intent.model,
            on_chunk=on_chunk,
        )
        # current model after any fallback during the stream
        model = services.gateway.current_model(title, params.intent.model)
        services.artifacts.store(title, GeneratedContentArtifact(content=content, model=model))
        logger.info("generate.completed", title=title, model=model, chars=len(content))
        self.say(params, content)
        return SuccessResult()
