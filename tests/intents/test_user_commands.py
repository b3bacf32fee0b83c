"""Tests for user-defined command loading and expansion."""

import pytest
from pydantic import ValidationError

from intents import IntentBatch
from intents.handlers.base import HandlerError
from intents.types import HandlerParams, Intent
from intents.user_commands import UserCommandDefinition, UserCommandRegistry
from shared_types import IntentResultStatus

TITLE = "chat"


def _write(folder, name, text):
    folder.mkdir(parents=True, exist_ok=True)
    (folder / name).write_text(text)


def _define(steward, **data):
    data.setdefault("steps", [{"name": "generate"}])
    definition = UserCommandDefinition.model_validate(data)
    steward.services.user_commands.add(definition)
    return definition


async def expand(steward, command, query=""):
    handler = steward.router._by_name["user_command"]
    params = HandlerParams(
        title=TITLE, intent=Intent(type=command, query=query), original_query=query
    )
    return await handler.handle(params)


class TestUserCommandDefinition:
    def test_name_is_normalized(self):
        definition = UserCommandDefinition.model_validate(
            {"command_name": " /Clean Up ", "steps": [{"name": "search"}]}
        )
        assert definition.command_name == "clean_up"

    def test_requires_steps(self):
        with pytest.raises(ValidationError):
            UserCommandDefinition.model_validate({"command_name": "empty", "steps": []})

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            UserCommandDefinition.model_validate({"command_name": " / ", "steps": [{"name": "x"}]})


class TestUserCommandRegistry:
    def test_load_skips_invalid_files(self, tmp_path):
        folder = tmp_path / "Commands"
        _write(
            folder,
            "a.yaml",
            "command_name: tidy\ndescription: Tidy up\nsteps:\n  - name: search\n    query: '#draft'\n",
        )
        _write(folder, "b.yml", "command_name: summary\nsteps:\n  - name: generate\n")
        _write(folder, "broken.yaml", "command_name: [unclosed\n")
        _write(folder, "nosteps.yaml", "command_name: nothing\n")
        _write(folder, "notes.md", "not a command")

        registry = UserCommandRegistry(folder)

        assert registry.load() == 2
        assert sorted(registry.names()) == ["summary", "tidy"]
        assert registry.descriptions() == {
            "tidy": "Tidy up",
            "summary": "User-defined command",
        }

    def test_duplicate_name_keeps_first(self, tmp_path):
        folder = tmp_path / "Commands"
        _write(folder, "a.yaml", "command_name: dup\ndescription: first\nsteps:\n  - name: read\n")
        _write(folder, "b.yaml", "command_name: dup\ndescription: second\nsteps:\n  - name: read\n")

        registry = UserCommandRegistry(folder)
        registry.load()

        assert registry.get("dup").description == "first"

    def test_missing_folder_loads_nothing(self, tmp_path):
        registry = UserCommandRegistry(tmp_path / "absent")
        assert registry.load() == 0
        assert registry.names() == []

    def test_shadows_builtin(self, tmp_path):
        registry = UserCommandRegistry(tmp_path)
        registry.add(UserCommandDefinition(command_name="search", steps=[{"name": "read"}]))
        registry.add(UserCommandDefinition(command_name="tidy", steps=[{"name": "read"}]))

        assert registry.shadows_builtin("search") is True
        assert registry.shadows_builtin("tidy") is False


class TestUserDefinedCommandHandler:
    @pytest.mark.asyncio
    async def test_from_user_substitution(self, steward):
        _define(
            steward,
            command_name="tidy",
            model="fake:tidy",
            system_prompt="Be brief.",
            steps=[
                {"name": "search", "query": "#draft $from_user"},
                {"name": "generate"},
                {"name": "read", "query": "[[Index]]", "no_confirm": True},
            ],
        )

        result = await expand(steward, "tidy", "projects")

        search, generate, read = result.next_intents
        assert search.query == "#draft projects"
        assert generate.query == "projects"
        assert read.query == "[[Index]]"
        assert read.no_confirm is True
        assert search.model == "fake:tidy"
        assert search.system_prompts == ("Be brief.",)
        assert search.step is None

    @pytest.mark.asyncio
    async def test_self_reference_rejected(self, steward):
        _define(steward, command_name="loop", steps=[{"name": "loop"}])

        with pytest.raises(HandlerError, match="cannot run itself"):
            await expand(steward, "loop", "x")

    @pytest.mark.asyncio
    async def test_query_required(self, steward):
        _define(steward, command_name="needs", query_required=True)

        with pytest.raises(HandlerError, match="needs a query"):
            await expand(steward, "needs")

    @pytest.mark.asyncio
    async def test_track_progress_creates_todo(self, steward):
        _define(
            steward,
            command_name="plan",
            track_progress=True,
            steps=[{"name": "search", "query": "#x", "task": "Find notes"}, {"name": "generate"}],
        )

        result = await expand(steward, "plan", "go")

        assert [i.step for i in result.next_intents] == [1, 2]
        todo = steward.services.todo.get(TITLE)
        assert [s.task for s in todo.steps] == ["Find notes", "generate: go"]

    def test_builtin_precedence(self, steward):
        _define(steward, command_name="help", steps=[{"name": "generate"}])

        assert steward.router.handler_for(Intent(type="help")).name == "user_command"
        steward.services.config.commands.builtin_precedence = True
        assert steward.router.handler_for(Intent(type="help")).name == "help"

    @pytest.mark.asyncio
    async def test_runs_through_router(self, steward, provider):
        provider.stream_responses.append(["Summary."])
        _define(steward, command_name="summarize", steps=[{"name": "generate"}])

        status = await steward.router.process_intents(
            IntentBatch(
                title=TITLE, intents=[Intent(type="summarize", query="today")], original_query="today"
            )
        )

        assert status == IntentResultStatus.SUCCESS
        assert steward.conversations.read_history(TITLE)[-1].content == "Summary."
