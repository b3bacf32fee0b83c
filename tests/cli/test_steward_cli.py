"""CLI command tests using Click CliRunner.

get_components is patched at each command module's import point so the
commands run against the test steward instead of the user's config.
"""

from unittest.mock import MagicMock, patch

import httpx
import pytest
from click.testing import CliRunner

from cli.main import cli
from intents.handlers.create import CREATE_TOOL

TITLE = "Steward"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def components(config, steward):
    c = {"config": config, "steward": steward}
    with (
        patch("cli.main.load_config_model", return_value=config),
        patch("cli.main.setup_logging"),
        patch("cli.commands.conversation.get_components", return_value=c),
        patch("cli.commands.vault.get_components", return_value=c),
    ):
        yield c


class TestConversationCommands:
    def test_ask_prints_reply(self, runner, components, vault):
        vault.create("a.md", "alpha", metadata={"tags": ["x"]})

        result = runner.invoke(cli, ["ask", "#x"])

        assert result.exit_code == 0, result.output
        assert "steward>" in result.output
        assert "status: success" in result.output

    def test_pending_and_confirm(self, runner, components, provider, vault):
        provider.queue_tool_call(
            CREATE_TOOL.name,
            {"notes": [{"file_name": "Ideas"}], "explanation": "Create.", "confidence": 0.95},
        )
        runner.invoke(cli, ["ask", "/create Ideas"])
        [pending] = components["steward"].router.get_pending_confirmations()

        listed = runner.invoke(cli, ["pending"])
        assert listed.exit_code == 0
        assert "No pending confirmations." not in listed.output

        result = runner.invoke(cli, ["confirm", pending.id])

        assert result.exit_code == 0, result.output
        assert vault.exists("Ideas.md")

    def test_confirm_unknown_id(self, runner, components):
        result = runner.invoke(cli, ["confirm", "create_1"])
        assert "No pending confirmation with id create_1" in result.output

    def test_pending_empty(self, runner, components):
        result = runner.invoke(cli, ["pending"])
        assert "No pending confirmations." in result.output

    def test_history(self, runner, components):
        runner.invoke(cli, ["ask", "/help"])

        result = runner.invoke(cli, ["history"])

        assert "you>" in result.output
        assert "Available commands" in result.output

    def test_history_empty(self, runner, components):
        result = runner.invoke(cli, ["history", "-c", "nothing"])
        assert "No messages in nothing." in result.output

    def test_reset(self, runner, components):
        result = runner.invoke(cli, ["reset", "--yes"])
        assert result.exit_code == 0
        assert f"Reset: {TITLE}" in result.output


class TestVaultCommands:
    def test_index(self, runner, components, vault):
        vault.create("a.md", "alpha")

        result = runner.invoke(cli, ["index"])

        assert result.exit_code == 0, result.output
        assert "1 updated, 0 removed" in result.output
        assert "Total notes: 1" in result.output

    def test_trash_cleanup(self, runner, components):
        result = runner.invoke(cli, ["trash-cleanup", "--days", "7"])
        assert "Removed 0 trashed note(s) older than 7 days" in result.output

    def test_list_commands(self, runner, components):
        result = runner.invoke(cli, ["commands"])
        assert "search" in result.output
        assert "built-in" in result.output


class TestServerCommands:
    @patch("cli.commands.server.httpx.post")
    def test_stop(self, mock_post, runner, components):
        mock_post.return_value = MagicMock(json=MagicMock(return_value={"cancelled": 2}))

        result = runner.invoke(cli, ["stop"])

        assert "Stopped 2 operation(s)" in result.output
        assert mock_post.call_args.args[0] == "http://127.0.0.1:8765/api/operations/abort"

    @patch("cli.commands.server.httpx.post", side_effect=httpx.ConnectError("refused"))
    def test_stop_unreachable(self, mock_post, runner, components):
        result = runner.invoke(cli, ["stop"])
        assert result.exit_code == 1
        assert "Could not reach" in result.output
