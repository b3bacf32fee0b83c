"""Read notes into the conversation."""

import re
from typing import Optional

import structlog

from ..artifacts import NoteContent, ReadContentArtifact
from ..prompts import PromptTemplates
from ..schemas import ReadTargetsArgs, tool_definition
from ..types import (
    ErrorResult,
    HandlerOptions,
    HandlerParams,
    HandlerResult,
    LowConfidenceResult,
    SuccessResult,
)
from .base import IntentHandler

logger = structlog.get_logger()

READ_TOOL = tool_definition("read_notes", "Choose the notes to read.", ReadTargetsArgs)

_WIKILINK = re.compile(r"\[\[([^\]|#]+)(?:#[^\]|]*)?(?:\|[^\]]*)?\]\]")
PREVIEW_CHARS = 1500


class ReadHandler(IntentHandler):
    """Loads notes named by ``[[wikilinks]]`` (or chosen by the model) as READ_CONTENT."""

    name = "read"
    commands = ("read",)

    async def handle(
        self, params: HandlerParams, options: Optional[HandlerOptions] = None
    ) -> HandlerResult:
        query = params.intent.query or params.original_query or ""
        names = list(dict.fromkeys(m.strip() for m in _WIKILINK.findall(query)))
        if not names:
            args = await self.extract(
                params,
                READ_TOOL,
                ReadTargetsArgs,
                system=PromptTemplates.READ.format(tool=READ_TOOL.name),
            )
            if self.is_low_confidence(args):
                return LowConfidenceResult(args.explanation)
            names = args.notes

        notes = self.services.notes
        found, missing = [], []
        for name in names:
            path = notes.find_note(name)
            if path is None:
                missing.append(name)
            else:
                found.append(NoteContent(path=path, content=notes.read(path).content))

        if not found:
            error = "Could not find: " + ", ".join(missing)
            self.say(params, error)
            return ErrorResult(error)

        self.services.artifacts.store(params.title, ReadContentArtifact(notes=tuple(found)))
        logger.info("read.completed", title=params.title, notes=len(found))

        sections = []
        for note in found:
            text = note.content.strip()
            if len(text) > PREVIEW_CHARS:
                text = text[:PREVIEW_CHARS].rstrip() + "\n..."
            sections.append(f"### [[{note.path[:-3]}]]\n\n{text}")
        if missing:
            sections.append("Could not find: " + ", ".join(missing))
        self.say(params, "\n\n".join(sections), in_history=False)
        return SuccessResult()
