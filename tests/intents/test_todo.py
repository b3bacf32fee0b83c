"""Tests for the to-do list state machine."""

import pytest

from intents import TodoListService
from intents.state_store import StateStore
from intents.todo import TodoListState, TodoStep
from shared_types import TodoStepStatus


@pytest.fixture
def service(tmp_path):
    return TodoListService(StateStore(tmp_path / "state.db"))


def _steps(n):
    return [TodoStep(task=f"step {i}") for i in range(1, n + 1)]


class TestTodoListState:
    def test_requires_steps(self):
        with pytest.raises(ValueError):
            TodoListState(steps=[])

    def test_current_step_must_be_in_range(self):
        with pytest.raises(ValueError):
            TodoListState(steps=_steps(2), current_step=3)

    def test_invalid_explicit_status(self):
        with pytest.raises(ValueError):
            TodoStep(task="x", status="pending")

    def test_inferred_statuses(self):
        todo = TodoListState(steps=_steps(3), current_step=2)
        assert todo.status_of(1) == TodoStepStatus.COMPLETED
        assert todo.status_of(2) == TodoStepStatus.IN_PROGRESS
        assert todo.status_of(3) == TodoStepStatus.PENDING
        assert not todo.is_finished


class TestTodoListService:
    def test_create_and_get(self, service):
        service.create("chat", _steps(2))
        todo = service.get("chat")
        assert [s.task for s in todo.steps] == ["step 1", "step 2"]
        assert todo.current_step == 1

    def test_update_clamps_current_step(self, service):
        service.create("chat", _steps(3))
        todo = service.update("chat", current_step=5)
        assert todo.current_step == 3

        todo = service.update("chat", current_step=0)
        assert todo.current_step == 1

    def test_step_status_applies_before_moving(self, service):
        service.create("chat", _steps(3))
        todo = service.update("chat", current_step=2, step_status=TodoStepStatus.SKIPPED)

        assert todo.status_of(1) == TodoStepStatus.SKIPPED
        assert todo.current_step == 2

    def test_complete_step_advances(self, service):
        service.create("chat", _steps(2))
        service.complete_step("chat", 1)
        todo = service.complete_step("chat", 2)

        assert todo.current_step == 2
        assert todo.is_finished

    def test_update_without_list(self, service):
        assert service.update("chat", current_step=2) is None

    def test_clear(self, service):
        service.create("chat", _steps(1))
        assert service.clear("chat") is True
        assert service.get("chat") is None

    def test_format(self, service):
        todo = service.create("chat", _steps(2))
        assert TodoListService.format(todo) == "- [>] 1. step 1\n- [ ] 2. step 2"
