"""Note creation with confirmation."""

from pathlib import PurePosixPath
from typing import Optional

import structlog

from vault import ensure_md, sanitize_note_name

from ..artifacts import CreatedNotesArtifact
from ..confirmations import CANCELLED_MESSAGE
from ..prompts import PromptTemplates
from ..schemas import CreateNotesArgs, tool_definition
from ..types import (
    ConfirmationResult,
    ErrorResult,
    HandlerOptions,
    HandlerParams,
    HandlerResult,
    SuccessResult,
)
from .base import IntentHandler

logger = structlog.get_logger()

CREATE_TOOL = tool_definition("create_notes", "Plan new notes.", CreateNotesArgs)


class CreateHandler(IntentHandler):
    name = "create"
    commands = ("create",)

    async def handle(
        self, params: HandlerParams, options: Optional[HandlerOptions] = None
    ) -> HandlerResult:
        if options and options.resuming:
            if not options.confirmed:
                return self._reject(params)
            return self._create(params, options.plan)

        args = await self.extract(
            params,
            CREATE_TOOL,
            CreateNotesArgs,
            system=PromptTemplates.CREATE.format(tool=CREATE_TOOL.name),
        )
        if self.is_low_confidence(args):
            self.say(params, args.explanation)
            return ErrorResult(args.explanation)

        notes = []
        for item in args.notes:
            name = ensure_md(sanitize_note_name(item.file_name))
            path = PurePosixPath(item.folder.strip("/"), name).as_posix() if item.folder else name
            notes.append({"path": path, "content": item.content})
        plan = {"notes": notes}

        if params.intent.no_confirm:
            return self._create(params, plan)
        listing = "\n".join(f"- {n['path']}" for n in notes)
        return ConfirmationResult(
            message=f"Create {len(notes)} note(s)?\n{listing}", plan=plan
        )

    def _create(self, params: HandlerParams, plan: dict) -> HandlerResult:
        notes = self.services.notes
        created, failed = [], []
        for note in plan["notes"]:
            try:
                created.append(notes.create(note["path"], note.get("content", "")))
            except (OSError, ValueError) as e:
                failed.append(f"- {note['path']}: {e}")

        if not created:
            error = "No notes were created.\n" + "\n".join(failed)
            self.say(params, error)
            return ErrorResult(error)

        artifact_id = self.services.artifacts.store(
            params.title, CreatedNotesArtifact(paths=tuple(created))
        )
        self.services.search_index.index_paths(created)
        logger.info("create.completed", title=params.title, created=len(created), failed=len(failed))

        lines = [f"Created {len(created)} note(s):"]
        lines.extend(f"- [[{p[:-3]}]]" for p in created)
        if failed:
            lines.append(f"Failed to create {len(failed)}:")
            lines.extend(failed)
        lines.append(f"\nResults id: `{artifact_id}`")
        self.say(params, "\n".join(lines))
        return SuccessResult()

    def _reject(self, params: HandlerParams) -> HandlerResult:
        # Content generated for the note would have nowhere to go
        next_intent = params.next_intent
        if next_intent is not None and next_intent.base_type == "generate" and self.services.router:
            self.services.router.drop_next_intent(params.title)
        self.say(params, CANCELLED_MESSAGE)
        return SuccessResult()
