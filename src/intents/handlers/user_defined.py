"""Expand a user-defined command into its steps."""

from typing import Optional

import structlog

from ..todo import TodoStep
from ..types import HandlerOptions, HandlerParams, HandlerResult, Intent, SuccessResult
from ..user_commands import FROM_USER
from .base import HandlerError, IntentHandler

logger = structlog.get_logger()


class UserDefinedCommandHandler(IntentHandler):
    """Returns the command's steps as ``next_intents``.

    ``$from_user`` in a step query is replaced by the user's query. With
    ``track_progress`` the steps also become a to-do list and each intent is
    linked to its step, which the router completes as the step succeeds.
    """

    name = "user_command"

    async def handle(
        self, params: HandlerParams, options: Optional[HandlerOptions] = None
    ) -> HandlerResult:
        registry = self.services.user_commands
        command = params.intent.base_type
        definition = registry.get(command) if registry is not None else None
        if definition is None:
            raise HandlerError(f"Unknown command: {command}")

        user_query = params.intent.query.strip()
        if definition.query_required and not user_query:
            raise HandlerError(f"/{command} needs a query.")

        intents = []
        for i, step in enumerate(definition.steps, start=1):
            if step.name == command:
                raise HandlerError(f"/{command} cannot run itself.")
            if FROM_USER in step.query:
                query = step.query.replace(FROM_USER, user_query).strip()
            else:
                query = step.query or user_query
            prompts = [p for p in (definition.system_prompt, step.system_prompt) if p]
            prompts.extend(params.intent.system_prompts)
            intents.append(
                Intent(
                    type=step.name,
                    query=query,
                    model=step.model or definition.model or params.intent.model,
                    system_prompts=tuple(prompts),
                    no_confirm=step.no_confirm or params.intent.no_confirm,
                    step=i if definition.track_progress else None,
                )
            )

        if definition.track_progress:
            todo = self.services.todo.create(
                params.title,
                [
                    TodoStep(
                        task=step.task or f"{step.name}: {intent.query}".rstrip(": "),
                        type=step.name,
                        model=intent.model,
                        system_prompts=list(intent.system_prompts),
                        no_confirm=intent.no_confirm,
                    )
                    for step, intent in zip(definition.steps, intents)
                ],
            )
            self.say(params, f"Running /{command}:\n\n{self.services.todo.format(todo)}")
        logger.info("user_command.expanded", command=command, steps=len(intents))
        return SuccessResult(next_intents=tuple(intents))
