"""Vault search and folder listing."""

from typing import Optional

import structlog

from vault import SearchOperation

from ..artifacts import ListResultsArtifact, SearchResultsArtifact
from ..exact_match import exact_search_operations
from ..prompts import PromptTemplates
from ..schemas import SearchArgs, tool_definition
from ..types import (
    HandlerOptions,
    HandlerParams,
    HandlerResult,
    LowConfidenceResult,
    SuccessResult,
)
from .base import IntentHandler

logger = structlog.get_logger()

SEARCH_TOOL = tool_definition("search", "Search the notes vault.", SearchArgs)


class SearchHandler(IntentHandler):
    """Runs search operations and records the hits as SEARCH_RESULTS.

    ``search?tools=list`` lists the notes in the folder named by the query
    instead and records LIST_RESULTS.
    """

    name = "search"
    commands = ("search",)

    async def handle(
        self, params: HandlerParams, options: Optional[HandlerOptions] = None
    ) -> HandlerResult:
        if "list" in params.intent.tool_hints:
            return self._list_folder(params)

        query = params.intent.query or params.original_query or ""
        operations = exact_search_operations(query)
        if operations is None:
            args = await self.extract(
                params,
                SEARCH_TOOL,
                SearchArgs,
                system=PromptTemplates.SEARCH.format(tool=SEARCH_TOOL.name),
            )
            if self.is_low_confidence(args):
                return LowConfidenceResult(args.explanation)
            operations = [op.model_dump() for op in args.operations]

        config = self.services.config.search
        self.services.search_index.sync()
        hits = self.services.search_index.execute(
            [SearchOperation.from_dict(op) for op in operations], limit=config.max_results
        )
        paths = tuple(h.path for h in hits)
        artifact_id = self.services.artifacts.store(
            params.title, SearchResultsArtifact(query=query, paths=paths, total=len(paths))
        )
        logger.info("search.completed", title=params.title, hits=len(paths))

        if not paths:
            self.say(params, "No notes matched your search.")
        else:
            header = f"Found {len(paths)} note(s):"
            self.say(params, _format_paths(header, paths, config.results_in_message, artifact_id))
        return SuccessResult()

    def _list_folder(self, params: HandlerParams) -> HandlerResult:
        folder = params.intent.query.strip().strip("/")
        paths = tuple(
            self.services.notes.list_notes(folder or None, exclude=self.services.excluded_folders)
        )
        artifact_id = self.services.artifacts.store(params.title, ListResultsArtifact(paths=paths))
        if not paths:
            self.say(params, f"No notes in {folder or 'the vault'}.")
        else:
            header = f"{len(paths)} note(s) in {folder or 'the vault'}:"
            limit = self.services.config.search.results_in_message
            self.say(params, _format_paths(header, paths, limit, artifact_id))
        return SuccessResult()


def _format_paths(header: str, paths: tuple[str, ...], limit: int, artifact_id: str) -> str:
    lines = [header]
    lines.extend(f"- [[{p[:-3] if p.endswith('.md') else p}]]" for p in paths[:limit])
    if len(paths) > limit:
        lines.append(f"...and {len(paths) - limit} more.")
    lines.append(f"\nResults id: `{artifact_id}`")
    return "\n".join(lines)
