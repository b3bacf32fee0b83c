"""To-do list creation and progress updates."""

from typing import Optional

import structlog

from ..commands import llm_vocabulary
from ..prompts import PromptTemplates
from ..schemas import TodoStepsArgs, TodoUpdateArgs, tool_definition
from ..todo import TodoListService, TodoStep
from ..types import HandlerOptions, HandlerParams, HandlerResult, SuccessResult
from .base import HandlerError, IntentHandler

logger = structlog.get_logger()

TODO_TOOL = tool_definition("todo_steps", "Plan the steps of a task.", TodoStepsArgs)
TODO_UPDATE_TOOL = tool_definition(
    "todo_update", "Move through the to-do list.", TodoUpdateArgs
)


class TodoHandler(IntentHandler):
    name = "todo_list"
    commands = ("todo_list", "todo_list_update")

    async def handle(
        self, params: HandlerParams, options: Optional[HandlerOptions] = None
    ) -> HandlerResult:
        if params.intent.base_type == "todo_list_update":
            return await self._update(params)
        return await self._create(params)

    async def _create(self, params: HandlerParams) -> HandlerResult:
        vocabulary = llm_vocabulary()
        args = await self.extract(
            params,
            TODO_TOOL,
            TodoStepsArgs,
            system=PromptTemplates.TODO.format(
                commands=", ".join(vocabulary), tool=TODO_TOOL.name
            ),
        )
        steps = [
            TodoStep(task=s.task, type=s.type if s.type in vocabulary else None)
            for s in args.steps
        ]
        todo = self.services.todo.create(params.title, steps)
        logger.info("todo.planned", title=params.title, steps=len(steps))
        self.say(params, f"To-do list:\n\n{TodoListService.format(todo)}")
        return SuccessResult()

    async def _update(self, params: HandlerParams) -> HandlerResult:
        service = self.services.todo
        todo = service.get(params.title)
        if todo is None:
            raise HandlerError("There is no to-do list in this conversation.")

        args = await self.extract(
            params,
            TODO_UPDATE_TOOL,
            TodoUpdateArgs,
            system=PromptTemplates.TODO_UPDATE.format(
                todo=TodoListService.format(todo), tool=TODO_UPDATE_TOOL.name
            ),
        )
        todo = service.update(
            params.title, current_step=args.current_step, step_status=args.step_status
        )
        self.say(params, f"To-do list:\n\n{TodoListService.format(todo)}")
        return SuccessResult()
