"""Delete notes by name, pattern or earlier results."""

import time
import uuid
from typing import Optional

import structlog

from shared_types import DeleteBehavior

from ..artifacts import DeletedFilesArtifact
from ..prompts import PromptTemplates
from ..schemas import DeleteArgs, tool_definition
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

DELETE_TOOL = tool_definition("delete_notes", "Choose the notes to delete.", DeleteArgs)


class DeleteHandler(IntentHandler):
    """Moves notes to the trash (revertable) or removes them permanently.

    In trash mode the batch is recorded as a DELETED_FILES artifact whose id
    keys the trash metadata. Permanent deletes record nothing.
    """

    name = "delete"
    commands = ("delete", "delete_from_artifact")

    async def handle(
        self, params: HandlerParams, options: Optional[HandlerOptions] = None
    ) -> HandlerResult:
        if params.intent.from_artifact:
            args = DeleteArgs(
                artifact_id=self.latest_file_artifact(params),
                explanation="Delete the notes from the latest results.",
            )
        else:
            args = await self.extract(
                params,
                DELETE_TOOL,
                DeleteArgs,
                system=PromptTemplates.FILE_TARGETS.format(
                    action="delete",
                    artifacts=self.artifact_summary(params),
                    tool=DELETE_TOOL.name,
                ),
            )
            if self.is_low_confidence(args):
                return LowConfidenceResult(args.explanation)
        return self.execute(params, args)

    def execute(self, params: HandlerParams, args: DeleteArgs) -> HandlerResult:
        paths, missing = self.resolve_targets(params, args)
        if not paths:
            error = "No matching notes to delete."
            if missing:
                error += " Not found: " + ", ".join(missing)
            self.say(params, error)
            return ErrorResult(error)

        behavior = self.services.config.delete.behavior
        artifact_id = f"delete_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"
        deleted, failed = [], []
        for path in paths:
            try:
                if behavior == DeleteBehavior.TRASH:
                    self.services.trash.trash(path, artifact_id)
                elif not self.services.notes.delete(path):
                    raise FileNotFoundError(f"Note not found: {path}")
                deleted.append(path)
            except (OSError, ValueError) as e:
                logger.warning("delete.failed", path=path, error=str(e))
                failed.append((path, str(e)))

        if deleted:
            self.services.search_index.index_paths(deleted)
        if deleted and behavior == DeleteBehavior.TRASH:
            self.services.artifacts.store(
                params.title,
                DeletedFilesArtifact(file_count=len(deleted), paths=tuple(deleted)),
                artifact_id=artifact_id,
            )
        logger.info(
            "delete.completed",
            title=params.title,
            behavior=str(behavior),
            deleted=len(deleted),
            failed=len(failed),
        )

        lines = []
        if deleted:
            where = "to the trash" if behavior == DeleteBehavior.TRASH else "permanently"
            lines.append(f"Deleted {len(deleted)} note(s) {where}:")
            lines.extend(f"- {p}" for p in deleted)
        if failed:
            lines.append(f"Failed to delete {len(failed)} note(s):")
            lines.extend(f"- {p}: {err}" for p, err in failed)
        if missing:
            lines.append("Not found: " + ", ".join(missing))
        message = "\n".join(lines)
        self.say(params, message)
        return SuccessResult() if deleted else ErrorResult(message)
