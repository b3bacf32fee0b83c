"""To-do list state machine for explicit multi-step plans."""

from dataclasses import asdict, dataclass, field
from typing import Optional

import structlog

from shared_types import TodoStepStatus

from .state_store import StateStore

logger = structlog.get_logger()

STATE_KEY = "todo_list"

_EXPLICIT_STATUSES = {TodoStepStatus.IN_PROGRESS, TodoStepStatus.SKIPPED, TodoStepStatus.COMPLETED}


@dataclass
class TodoStep:
    task: str
    status: Optional[str] = None
    type: Optional[str] = None
    model: Optional[str] = None
    system_prompts: list[str] = field(default_factory=list)
    no_confirm: bool = False

    def __post_init__(self):
        if self.status is not None and self.status not in _EXPLICIT_STATUSES:
            raise ValueError(f"Invalid step status: {self.status}")


@dataclass
class TodoListState:
    steps: list[TodoStep]
    current_step: int = 1  # 1-based

    def __post_init__(self):
        if not self.steps:
            raise ValueError("A to-do list needs at least one step")
        if not 1 <= self.current_step <= len(self.steps):
            raise ValueError(
                f"current_step {self.current_step} out of range 1..{len(self.steps)}"
            )

    def clamp(self, step: int) -> int:
        return max(1, min(step, len(self.steps)))

    def status_of(self, index: int) -> str:
        """Status of the 1-based step ``index``, inferred when not set explicitly."""
        step = self.steps[index - 1]
        if step.status:
            return step.status
        if index < self.current_step:
            return TodoStepStatus.COMPLETED
        if index == self.current_step:
            return TodoStepStatus.IN_PROGRESS
        return TodoStepStatus.PENDING

    @property
    def is_finished(self) -> bool:
        return all(
            self.status_of(i) in (TodoStepStatus.COMPLETED, TodoStepStatus.SKIPPED)
            for i in range(1, len(self.steps) + 1)
        )

    def to_dict(self) -> dict:
        return {"steps": [asdict(s) for s in self.steps], "current_step": self.current_step}

    @classmethod
    def from_dict(cls, data: dict) -> "TodoListState":
        return cls(
            steps=[TodoStep(**s) for s in data.get("steps", [])],
            current_step=int(data.get("current_step", 1)),
        )


_CHECKBOX = {
    TodoStepStatus.COMPLETED: "[x]",
    TodoStepStatus.SKIPPED: "[-]",
    TodoStepStatus.IN_PROGRESS: "[>]",
    TodoStepStatus.PENDING: "[ ]",
}


class TodoListService:
    """Creates, advances and renders a conversation's to-do list."""

    def __init__(self, state: StateStore, conversations=None):
        self.state = state
        self.conversations = conversations

    def _save(self, title: str, todo: TodoListState) -> TodoListState:
        data = todo.to_dict()
        self.state.set_state(title, STATE_KEY, data)
        if self.conversations is not None:
            self.conversations.set_property(title, STATE_KEY, data)
        return todo

    def create(self, title: str, steps: list[TodoStep], current_step: int = 1) -> TodoListState:
        todo = TodoListState(steps=list(steps), current_step=1)
        todo.current_step = todo.clamp(current_step)
        logger.info("todo.created", title=title, steps=len(steps))
        return self._save(title, todo)

    def get(self, title: str) -> Optional[TodoListState]:
        data = self.state.get_state(title, STATE_KEY)
        return TodoListState.from_dict(data) if data else None

    def update(
        self,
        title: str,
        current_step: Optional[int] = None,
        step_status: Optional[str] = None,
        steps: Optional[list[TodoStep]] = None,
    ) -> Optional[TodoListState]:
        """Move to ``current_step`` (clamped into range) and/or mark the current step.

        ``step_status`` applies to the step that is current before moving.
        """
        todo = self.get(title)
        if todo is None:
            return None
        if steps:
            todo.steps = list(steps)
            todo.current_step = todo.clamp(todo.current_step)
        if step_status:
            if step_status not in _EXPLICIT_STATUSES:
                raise ValueError(f"Invalid step status: {step_status}")
            todo.steps[todo.current_step - 1].status = step_status
        if current_step is not None:
            todo.current_step = todo.clamp(current_step)
        return self._save(title, todo)

    def complete_step(self, title: str, step: int) -> Optional[TodoListState]:
        """Mark ``step`` completed and move past it."""
        todo = self.get(title)
        if todo is None or not 1 <= step <= len(todo.steps):
            return None
        todo.steps[step - 1].status = TodoStepStatus.COMPLETED
        todo.current_step = todo.clamp(step + 1)
        return self._save(title, todo)

    def clear(self, title: str) -> bool:
        cleared = self.state.delete_state(title, STATE_KEY)
        if cleared and self.conversations is not None:
            self.conversations.set_property(title, STATE_KEY, None)
        return cleared

    @staticmethod
    def format(todo: TodoListState) -> str:
        lines = []
        for i, step in enumerate(todo.steps, start=1):
            lines.append(f"- {_CHECKBOX[todo.status_of(i)]} {i}. {step.task}")
        return "\n".join(lines)
