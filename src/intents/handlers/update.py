"""Frontmatter property updates with confirmation."""

from typing import Optional

import structlog

from ..artifacts import FileChange, UpdateFrontmatterArtifact
from ..confirmations import CANCELLED_MESSAGE
from ..prompts import PromptTemplates
from ..schemas import FrontmatterChangesArgs, PropertyChangesArgs, tool_definition
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

UPDATE_TOOL = tool_definition(
    "update_frontmatter", "Choose notes and the property changes to apply.", FrontmatterChangesArgs
)
PROPERTIES_TOOL = tool_definition(
    "property_changes", "Choose the property changes to apply.", PropertyChangesArgs
)

TAG_KEYS = ("tags", "tag")


class UpdateHandler(IntentHandler):
    """Sets or removes frontmatter properties. Tags are merged, other values replaced."""

    name = "update"
    commands = ("update", "update_from_artifact")

    async def handle(
        self, params: HandlerParams, options: Optional[HandlerOptions] = None
    ) -> HandlerResult:
        if options and options.resuming:
            if not options.confirmed:
                self.say(params, CANCELLED_MESSAGE)
                return SuccessResult()
            return self.apply(params, options.plan)

        if params.intent.from_artifact:
            artifact_id = self.latest_file_artifact(params)
            args = await self.extract(
                params,
                PROPERTIES_TOOL,
                PropertyChangesArgs,
                system=PromptTemplates.FRONTMATTER.format(tool=PROPERTIES_TOOL.name),
            )
            paths, missing = self.resolve_targets(
                params,
                FrontmatterChangesArgs(
                    artifact_id=artifact_id,
                    properties=args.properties,
                    remove=args.remove,
                    explanation=args.explanation,
                ),
            )
        else:
            args = await self.extract(
                params,
                UPDATE_TOOL,
                FrontmatterChangesArgs,
                system="\n\n".join(
                    [
                        PromptTemplates.FRONTMATTER.format(tool=UPDATE_TOOL.name),
                        PromptTemplates.FILE_TARGETS.format(
                            action="update",
                            artifacts=self.artifact_summary(params),
                            tool=UPDATE_TOOL.name,
                        ),
                    ]
                ),
            )
            paths, missing = self.resolve_targets(params, args)

        if self.is_low_confidence(args):
            return LowConfidenceResult(args.explanation)
        if not paths:
            error = "No matching notes to update."
            if missing:
                error += " Not found: " + ", ".join(missing)
            self.say(params, error)
            return ErrorResult(error)

        plan = {
            "paths": paths,
            "properties": {p.name: p.value for p in args.properties},
            "remove": list(args.remove),
        }
        if params.intent.no_confirm:
            return self.apply(params, plan)
        return ConfirmationResult(
            message=f"Update {len(paths)} note(s): {describe_changes(plan)}?", plan=plan
        )

    def apply(self, params: HandlerParams, plan: dict) -> HandlerResult:
        notes = self.services.notes
        changes, failed = [], []
        for path in plan["paths"]:
            try:
                current = notes.get_frontmatter(path)
                updates = {
                    key: merge_tags(current.get(key), value) if key in TAG_KEYS else value
                    for key, value in plan["properties"].items()
                }
                original, updated = notes.update_frontmatter(path, updates, plan["remove"])
                changes.append(FileChange(path=path, original=original, updated=updated))
            except (OSError, ValueError) as e:
                logger.warning("update.failed", path=path, error=str(e))
                failed.append((path, str(e)))

        if not changes:
            error = "Failed to update any notes:\n" + "\n".join(f"- {p}: {e}" for p, e in failed)
            self.say(params, error)
            return ErrorResult(error)

        artifact_id = self.services.artifacts.store(
            params.title, UpdateFrontmatterArtifact(updates=tuple(changes))
        )
        self.services.search_index.index_paths([c.path for c in changes])
        logger.info("update.completed", title=params.title, updated=len(changes), failed=len(failed))

        lines = [f"Updated {len(changes)} note(s):"]
        lines.extend(f"- {c.path}" for c in changes)
        if failed:
            lines.append(f"Failed to update {len(failed)} note(s):")
            lines.extend(f"- {p}: {e}" for p, e in failed)
        lines.append(f"\nResults id: `{artifact_id}`")
        self.say(params, "\n".join(lines))
        return SuccessResult()


def merge_tags(existing, new) -> list[str]:
    """Union of existing and new tags, order kept, ``#`` stripped."""

    def as_list(value) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.replace(",", " ").split()
        return [str(v).lstrip("#") for v in value if str(v).strip()]

    return list(dict.fromkeys(as_list(existing) + as_list(new)))


def describe_changes(plan: dict) -> str:
    parts = [f"set {k} = {v}" for k, v in plan["properties"].items()]
    parts.extend(f"remove {k}" for k in plan["remove"])
    return ", ".join(parts)
