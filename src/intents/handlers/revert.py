"""Undo the most recent (or a named) revertable operation."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

import structlog

from shared_types import REVERTABLE_ARTIFACT_TYPES, ArtifactType

from ..types import ErrorResult, HandlerOptions, HandlerParams, HandlerResult, SuccessResult
from .base import HandlerError, IntentHandler

logger = structlog.get_logger()

NOTHING_TO_REVERT = "No recent operations found to revert."
CANNOT_REVERT = "Cannot revert this type of operation."


@dataclass
class RevertOutcome:
    reverted: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)


class RevertVariant(ABC):
    """Reverts one artifact type."""

    artifact_type: ArtifactType
    label = ""

    def __init__(self, services):
        self.services = services

    @abstractmethod
    def revert(self, artifact) -> RevertOutcome:
        """Undo the operation the artifact recorded."""


class RevertCreatedNotes(RevertVariant):
    artifact_type = ArtifactType.CREATED_NOTES
    label = "Removed"

    def revert(self, artifact) -> RevertOutcome:
        outcome = RevertOutcome()
        for path in artifact.paths:
            # a note that is already gone counts as reverted
            self.services.notes.delete(path)
            outcome.reverted.append(path)
        return outcome


class RevertDeletedFiles(RevertVariant):
    artifact_type = ArtifactType.DELETED_FILES
    label = "Restored"

    def revert(self, artifact) -> RevertOutcome:
        outcome = RevertOutcome()
        trashed = self.services.trash.files_for_artifact(artifact.id)
        if not trashed:
            raise HandlerError("The deleted notes are no longer in the trash.")
        for trash_path, original in trashed.items():
            try:
                outcome.reverted.append(self.services.trash.restore(trash_path))
            except (OSError, KeyError, ValueError) as e:
                outcome.failed.append((original, str(e)))
        return outcome


class RevertFrontmatter(RevertVariant):
    artifact_type = ArtifactType.UPDATE_FRONTMATTER_RESULTS
    label = "Restored properties of"

    def revert(self, artifact) -> RevertOutcome:
        outcome = RevertOutcome()
        for change in artifact.updates:
            try:
                self.services.notes.replace_frontmatter(change.path, change.original)
                outcome.reverted.append(change.path)
            except (OSError, ValueError) as e:
                outcome.failed.append((change.path, str(e)))
        return outcome


class RevertMove(RevertVariant):
    artifact_type = ArtifactType.MOVE_RESULTS
    label = "Moved back"

    def revert(self, artifact) -> RevertOutcome:
        outcome = RevertOutcome()
        for move in artifact.moves:
            try:
                outcome.reverted.append(self.services.notes.move(move.destination, move.source))
            except (OSError, ValueError) as e:
                outcome.failed.append((move.destination, str(e)))
        return outcome


VARIANTS = (RevertCreatedNotes, RevertDeletedFiles, RevertFrontmatter, RevertMove)


class RevertHandler(IntentHandler):
    """Picks the artifact named in the query, else the newest revertable one.

    The artifact is removed once at least one file was reverted.
    """

    name = "revert"
    commands = ("revert",)

    def __init__(self, services):
        super().__init__(services)
        self.variants = {v.artifact_type: v(services) for v in VARIANTS}

    async def handle(
        self, params: HandlerParams, options: Optional[HandlerOptions] = None
    ) -> HandlerResult:
        artifact = self._target(params)
        if artifact is None:
            self.say(params, NOTHING_TO_REVERT)
            return ErrorResult(NOTHING_TO_REVERT)

        variant = self.variants.get(ArtifactType(artifact.artifact_type))
        if variant is None:
            self.say(params, CANNOT_REVERT)
            return ErrorResult(CANNOT_REVERT)

        outcome = variant.revert(artifact)
        touched = list(outcome.reverted)
        if artifact.artifact_type == ArtifactType.MOVE_RESULTS:
            touched += [m.destination for m in artifact.moves]
        elif artifact.artifact_type == ArtifactType.DELETED_FILES:
            touched += list(artifact.paths)
        self.services.search_index.index_paths(touched)

        if outcome.reverted:
            self.services.artifacts.remove(params.title, artifact.id)
        logger.info(
            "revert.completed",
            title=params.title,
            artifact=artifact.id,
            reverted=len(outcome.reverted),
            failed=len(outcome.failed),
        )

        lines = []
        if outcome.reverted:
            lines.append(f"{variant.label} {len(outcome.reverted)} note(s):")
            lines.extend(f"- {p}" for p in outcome.reverted)
        if outcome.failed:
            lines.append(f"Could not revert {len(outcome.failed)} note(s):")
            lines.extend(f"- {p}: {e}" for p, e in outcome.failed)
        message = "\n".join(lines)
        self.say(params, message)
        return SuccessResult() if outcome.reverted else ErrorResult(message)

    def _target(self, params: HandlerParams):
        artifacts = self.services.artifacts
        query = params.intent.query or ""
        if query:
            for artifact in reversed(artifacts.all(params.title)):
                if artifact.id and artifact.id in query:
                    return artifact
        return artifacts.most_recent(params.title, REVERTABLE_ARTIFACT_TYPES)
