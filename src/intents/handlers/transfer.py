"""Copy and move notes into a folder."""

from abc import abstractmethod
from typing import Optional

import structlog

from ..artifacts import CreatedNotesArtifact, MoveRecord, MoveResultsArtifact
from ..confirmations import CANCELLED_MESSAGE
from ..prompts import PromptTemplates
from ..schemas import CopyMoveArgs, DestinationArgs, tool_definition
from ..types import (
    ConfirmationResult,
    ErrorResult,
    HandlerOptions,
    HandlerParams,
    HandlerResult,
    LowConfidenceResult,
    SuccessResult,
)
from .base import IntentHandler

logger = structlog.get_logger()


class FileTransferHandler(IntentHandler):
    """Shared flow: resolve notes and destination, confirm a missing folder, transfer."""

    verb = ""
    past = ""

    def __init__(self, services):
        super().__init__(services)
        self.targets_tool = tool_definition(
            f"{self.name}_notes", f"Choose the notes to {self.verb} and where.", CopyMoveArgs
        )
        self.destination_tool = tool_definition(
            f"{self.name}_destination", f"Choose where to {self.verb} the notes.", DestinationArgs
        )

    async def handle(
        self, params: HandlerParams, options: Optional[HandlerOptions] = None
    ) -> HandlerResult:
        if options and options.resuming:
            if not options.confirmed:
                self.say(params, CANCELLED_MESSAGE)
                return SuccessResult()
            self.services.notes.ensure_folder(options.plan["destination"])
            return self.execute(params, options.plan)

        if params.intent.from_artifact:
            artifact_id = self.latest_file_artifact(params)
            tool = self.destination_tool
            args = await self.extract(
                params, tool, DestinationArgs, system=self._system(params, tool)
            )
            paths, _ = self.resolve_targets(
                params,
                CopyMoveArgs(
                    artifact_id=artifact_id,
                    destination_folder=args.destination_folder,
                    explanation=args.explanation,
                ),
            )
            missing: list[str] = []
        else:
            tool = self.targets_tool
            args = await self.extract(
                params, tool, CopyMoveArgs, system=self._system(params, tool)
            )
            paths, missing = self.resolve_targets(params, args)

        if self.is_low_confidence(args):
            return LowConfidenceResult(args.explanation)
        if not paths:
            error = f"No matching notes to {self.verb}."
            if missing:
                error += " Not found: " + ", ".join(missing)
            self.say(params, error)
            return ErrorResult(error)

        destination = args.destination_folder.strip().strip("/")
        plan = {"paths": paths, "destination": destination, "missing": missing}
        if self.services.notes.folder_exists(destination) or not destination:
            return self.execute(params, plan)
        if params.intent.no_confirm:
            self.services.notes.ensure_folder(destination)
            return self.execute(params, plan)
        return ConfirmationResult(
            message=(
                f'The folder "{destination}" does not exist. '
                f"Create it and {self.verb} {len(paths)} note(s) there?"
            ),
            plan=plan,
        )

    def _system(self, params: HandlerParams, tool) -> str:
        return PromptTemplates.FILE_TARGETS.format(
            action=self.verb, artifacts=self.artifact_summary(params), tool=tool.name
        )

    def execute(self, params: HandlerParams, plan: dict) -> HandlerResult:
        done, failed = [], []
        for path in plan["paths"]:
            try:
                done.append((path, self.transfer(path, plan["destination"])))
            except (OSError, ValueError) as e:
                logger.warning(f"{self.name}.failed", path=path, error=str(e))
                failed.append((path, str(e)))

        if not done:
            lines = [f"Failed to {self.verb} any notes:"]
            lines.extend(f"- {p}: {err}" for p, err in failed)
            error = "\n".join(lines)
            self.say(params, error)
            return ErrorResult(error)

        self.services.search_index.index_paths(
            [src for src, _ in done] + [dst for _, dst in done]
        )
        artifact_id = self.record(params, done)
        logger.info(f"{self.name}.completed", title=params.title, done=len(done), failed=len(failed))

        destination = plan["destination"] or "the vault root"
        lines = [f"{self.past} {len(done)} note(s) to {destination}:"]
        lines.extend(f"- {src} -> {dst}" for src, dst in done)
        if failed:
            lines.append(f"Failed for {len(failed)} note(s):")
            lines.extend(f"- {p}: {err}" for p, err in failed)
        if plan.get("missing"):
            lines.append("Not found: " + ", ".join(plan["missing"]))
        lines.append(f"\nResults id: `{artifact_id}`")
        self.say(params, "\n".join(lines))
        return SuccessResult()

    @abstractmethod
    def transfer(self, path: str, destination: str) -> str:
        """Copy or move one note; returns its new path."""

    @abstractmethod
    def record(self, params: HandlerParams, done: list[tuple[str, str]]) -> str:
        """Store the revertable artifact for a finished batch; returns its id."""


class CopyHandler(FileTransferHandler):
    name = "copy"
    commands = ("copy", "copy_from_artifact")
    verb = "copy"
    past = "Copied"

    def transfer(self, path: str, destination: str) -> str:
        return self.services.notes.copy_to_folder(path, destination)

    def record(self, params: HandlerParams, done: list[tuple[str, str]]) -> str:
        return self.services.artifacts.store(
            params.title, CreatedNotesArtifact(paths=tuple(dst for _, dst in done))
        )


class MoveHandler(FileTransferHandler):
    name = "move"
    commands = ("move", "move_from_artifact")
    verb = "move"
    past = "Moved"

    def transfer(self, path: str, destination: str) -> str:
        return self.services.notes.move_to_folder(path, destination)

    def record(self, params: HandlerParams, done: list[tuple[str, str]]) -> str:
        return self.services.artifacts.store(
            params.title,
            MoveResultsArtifact(
                moves=tuple(MoveRecord(source=src, destination=dst) for src, dst in done)
            ),
        )
