"""Handler contract and the services handlers are built with."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import structlog

from cli.config_models import StewardConfig
from llm import ToolDefinition
from shared_types import MessageRole
from vault import ConversationStore, NoteStore, TrashService, VaultSearchIndex

from ..abort import AbortRegistry
from ..artifacts import ArtifactStore
from ..confirmations import ConfirmationBroker
from ..gateway import ModelGateway
from ..prompts import format_artifacts
from ..schemas import parse_tool_args
from ..todo import TodoListService
from ..types import HandlerOptions, HandlerParams, HandlerResult

logger = structlog.get_logger()


class HandlerError(Exception):
    """A user-facing failure; the router posts the message and stops the batch."""


@dataclass
class HandlerServices:
    """Collaborators shared by all handlers. ``router`` is attached by the router."""

    config: StewardConfig
    notes: NoteStore
    conversations: ConversationStore
    artifacts: ArtifactStore
    gateway: ModelGateway
    trash: TrashService
    search_index: VaultSearchIndex
    todo: TodoListService
    aborts: AbortRegistry
    confirmations: ConfirmationBroker
    media: Any = None
    user_commands: Any = None
    router: Any = None

    @property
    def excluded_folders(self) -> tuple[str, ...]:
        return (self.config.paths.steward_folder,)


class IntentHandler(ABC):
    """One intent type's execution contract.

    ``handle`` returns exactly one of SUCCESS, NEEDS_CONFIRMATION,
    LOW_CONFIDENCE or ERROR. Side effects happen before SUCCESS/ERROR is
    returned; NEEDS_CONFIRMATION only renders the question. When the user
    answers, the router calls ``resume`` with the plan from the
    confirmation result, which re-enters ``handle`` with ``options.plan``.
    """

    name: str = "base"
    commands: tuple[str, ...] = ()

    def __init__(self, services: HandlerServices):
        self.services = services

    @abstractmethod
    async def handle(
        self, params: HandlerParams, options: Optional[HandlerOptions] = None
    ) -> HandlerResult: ...

    async def resume(self, params: HandlerParams, plan: dict, confirmed: bool) -> HandlerResult:
        return await self.handle(params, HandlerOptions(plan=plan, confirmed=confirmed))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def say(self, params: HandlerParams, text: str, in_history: bool = True) -> str:
        """Post an assistant message to the conversation."""
        return self.services.conversations.append_message(
            params.title,
            text,
            role=MessageRole.ASSISTANT,
            command=params.intent.base_type,
            in_history=in_history,
        )

    def system_prompt(self, params: HandlerParams, base: str) -> str:
        if not params.intent.system_prompts:
            return base
        return "\n\n".join([base, *params.intent.system_prompts])

    async def extract(
        self,
        params: HandlerParams,
        tool: ToolDefinition,
        model_cls,
        system: str,
        context: Optional[dict] = None,
    ):
        """Call ``tool`` on the intent's query and validate its arguments."""
        response = await self.services.gateway.generate_with_tools(
            params.title,
            f"{self.name}_extraction",
            messages=[{"role": "user", "content": params.intent.query or params.original_query or ""}],
            tools=[tool],
            system=self.system_prompt(params, system),
            tool_choice=tool.name,
            model=params.intent.model,
        )
        return parse_tool_args(response, tool, model_cls, context)

    def artifact_summary(self, params: HandlerParams) -> str:
        return format_artifacts(self.services.artifacts.summarize(params.title))

    def resolve_targets(self, params: HandlerParams, args) -> tuple[list[str], list[str]]:
        """Paths named by a FileTargetArgs, plus the file names that were not found."""
        services = self.services
        exclude = services.excluded_folders
        if args.artifact_id:
            artifact, paths = services.artifacts.resolve_files(params.title, args.artifact_id)
            if artifact is None:
                raise HandlerError(f"No results found with id {args.artifact_id}.")
            return [p for p in paths if services.notes.exists(p)], []
        if args.files:
            found, missing = [], []
            for name in args.files:
                path = services.notes.find_note(name, exclude=exclude)
                if path is None:
                    missing.append(name)
                elif path not in found:
                    found.append(path)
            return found, missing
        try:
            paths = services.notes.resolve_patterns(
                args.file_patterns.patterns, args.file_patterns.folder, exclude=exclude
            )
        except ValueError as e:
            raise HandlerError(str(e)) from e
        return paths, []

    def latest_file_artifact(self, params: HandlerParams) -> str:
        """Id of the newest artifact a *_from_artifact intent can act on."""
        artifact, _ = self.services.artifacts.resolve_files(params.title)
        if artifact is None:
            raise HandlerError("There are no earlier results in this conversation to use.")
        return artifact.id

    def is_low_confidence(self, args) -> bool:
        return args.confidence <= self.services.config.extraction.confidence_threshold
