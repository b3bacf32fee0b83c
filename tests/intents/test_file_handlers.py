"""Tests for the handlers that change notes: delete, copy/move, update, create, revert."""

import pytest

from intents import IntentBatch
from intents.handlers.create import CREATE_TOOL
from intents.handlers.delete import DELETE_TOOL
from intents.handlers.revert import NOTHING_TO_REVERT
from intents.handlers.update import PROPERTIES_TOOL, merge_tags
from intents.schemas import EXACTLY_ONE_TARGET
from intents.types import Intent
from shared_types import ArtifactType, DeleteBehavior, IntentResultStatus

TITLE = "chat"
DRAFTS = ["Drafts/one.md", "Drafts/two.md", "three.md"]


@pytest.fixture
def drafts(vault):
    for path in DRAFTS:
        vault.create(path, f"Draft text for {path} #draft")
    vault.create("keep.md", "Nothing to see")
    return DRAFTS


async def run(steward, *intents):
    return await steward.router.process_intents(
        IntentBatch(title=TITLE, intents=list(intents), original_query="q")
    )


def last_message(steward):
    return steward.conversations.read_history(TITLE)[-1].content


async def confirm_latest(steward, confirmed=True):
    pending = steward.router.get_pending_confirmations(TITLE)[-1]
    return await steward.respond_to_confirmation(pending.id, confirmed)


class TestSearch:
    @pytest.mark.asyncio
    async def test_tag_search_records_results(self, steward, drafts, provider):
        status = await run(steward, Intent(type="search", query="#draft"))

        assert status == IntentResultStatus.SUCCESS
        artifact = steward.services.artifacts.most_recent(TITLE)
        assert artifact.artifact_type == ArtifactType.SEARCH_RESULTS
        assert sorted(artifact.paths) == sorted(DRAFTS)
        assert provider.calls == []
        assert f"Results id: `{artifact.id}`" in last_message(steward)

    @pytest.mark.asyncio
    async def test_zero_hits_still_recorded(self, steward, drafts):
        await run(steward, Intent(type="search", query='"no such phrase"'))

        artifact = steward.services.artifacts.most_recent(TITLE)
        assert artifact.paths == ()
        assert last_message(steward) == "No notes matched your search."

    @pytest.mark.asyncio
    async def test_model_search(self, steward, drafts, provider):
        provider.queue_tool_call(
            "search",
            {
                "operations": [{"keywords": ["nothing"]}],
                "explanation": "Keyword search.",
                "confidence": 0.9,
            },
        )

        await run(steward, Intent(type="search", query="notes that say nothing"))

        artifact = steward.services.artifacts.most_recent(TITLE)
        assert artifact.paths == ("keep.md",)

    @pytest.mark.asyncio
    async def test_list_folder(self, steward, drafts):
        await run(steward, Intent(type="search?tools=list", query="Drafts"))

        artifact = steward.services.artifacts.most_recent(TITLE)
        assert artifact.artifact_type == ArtifactType.LIST_RESULTS
        assert list(artifact.paths) == ["Drafts/one.md", "Drafts/two.md"]

    @pytest.mark.asyncio
    async def test_conversation_notes_not_searchable(self, steward, drafts):
        await run(steward, Intent(type="search", query='"Draft text"'))
        await run(steward, Intent(type="search", query='"Draft text"'))

        artifact = steward.services.artifacts.most_recent(TITLE)
        assert all(not p.startswith("Steward/") for p in artifact.paths)


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_search_results(self, steward, drafts, vault):
        await run(steward, Intent(type="search", query="#draft"))
        search = steward.services.artifacts.most_recent(TITLE)

        status = await run(steward, Intent(type="delete_from_artifact"))

        assert status == IntentResultStatus.SUCCESS
        deleted = steward.services.artifacts.most_recent(TITLE)
        assert deleted.artifact_type == ArtifactType.DELETED_FILES
        assert deleted.file_count == 3
        assert not any(vault.exists(p) for p in DRAFTS)
        assert steward.services.artifacts.get(TITLE, search.id) == search
        assert len(steward.services.trash.files_for_artifact(deleted.id)) == 3

    @pytest.mark.asyncio
    async def test_delete_then_revert_twice(self, steward, drafts, vault):
        await run(steward, Intent(type="search", query="#draft"))
        await run(steward, Intent(type="delete_from_artifact"))

        status = await run(steward, Intent(type="revert"))
        assert status == IntentResultStatus.SUCCESS
        assert all(vault.exists(p) for p in DRAFTS)
        assert last_message(steward).startswith("Restored 3 note(s):")

        status = await run(steward, Intent(type="revert"))
        assert status == IntentResultStatus.ERROR
        assert last_message(steward) == NOTHING_TO_REVERT

    @pytest.mark.asyncio
    async def test_same_millisecond_deletes_get_separate_batches(self, steward, vault, monkeypatch):
        from intents.handlers import delete as delete_mod

        vault.create("a.md", "First #one")
        vault.create("b.md", "Second #two")
        monkeypatch.setattr(delete_mod.time, "time", lambda: 1700000000.0)

        async def search_then_delete(title, tag):
            await steward.router.process_intents(
                IntentBatch(title=title, intents=[Intent(type="search", query=tag)])
            )
            return await steward.router.process_intents(
                IntentBatch(title=title, intents=[Intent(type="delete_from_artifact")])
            )

        assert await search_then_delete("chat-a", "#one") == IntentResultStatus.SUCCESS
        assert await search_then_delete("chat-b", "#two") == IntentResultStatus.SUCCESS

        first = steward.services.artifacts.most_recent("chat-a")
        second = steward.services.artifacts.most_recent("chat-b")
        assert first.artifact_type == second.artifact_type == ArtifactType.DELETED_FILES
        assert first.id != second.id
        assert list(steward.services.trash.files_for_artifact(first.id).values()) == ["a.md"]
        assert list(steward.services.trash.files_for_artifact(second.id).values()) == ["b.md"]

        await steward.router.process_intents(
            IntentBatch(title="chat-a", intents=[Intent(type="revert")])
        )
        assert vault.exists("a.md")
        assert not vault.exists("b.md")

    @pytest.mark.asyncio
    async def test_delete_from_artifact_without_results(self, steward):
        status = await run(steward, Intent(type="delete_from_artifact"))

        assert status == IntentResultStatus.ERROR
        assert last_message(steward) == "There are no earlier results in this conversation to use."

    @pytest.mark.asyncio
    async def test_conflicting_targets_rejected(self, steward, drafts, provider, vault):
        provider.queue_tool_call(
            DELETE_TOOL.name,
            {"artifact_id": "search_results_1", "files": ["one"], "explanation": "Both."},
        )

        status = await run(steward, Intent(type="delete", query="delete one"))

        assert status == IntentResultStatus.ERROR
        assert last_message(steward) == EXACTLY_ONE_TARGET
        assert vault.exists("Drafts/one.md")

    @pytest.mark.asyncio
    async def test_low_confidence_deletes_nothing(self, steward, drafts, provider, vault):
        provider.queue_tool_call(
            DELETE_TOOL.name,
            {"files": ["one"], "explanation": "Not sure which note.", "confidence": 0.3},
        )

        status = await run(steward, Intent(type="delete", query="delete that one"))

        assert status == IntentResultStatus.LOW_CONFIDENCE
        assert vault.exists("Drafts/one.md")
        assert last_message(steward) == "Not sure which note."

    @pytest.mark.asyncio
    async def test_delete_by_name_reports_missing(self, steward, drafts, provider, vault):
        provider.queue_tool_call(
            DELETE_TOOL.name, {"files": ["one", "ghost"], "explanation": "Delete by name."}
        )

        await run(steward, Intent(type="delete", query="delete one and ghost"))

        assert not vault.exists("Drafts/one.md")
        assert "Not found: ghost" in last_message(steward)

    @pytest.mark.asyncio
    async def test_permanent_delete_records_nothing(self, steward, drafts, provider, vault):
        steward.config.delete.behavior = DeleteBehavior.PERMANENT
        provider.queue_tool_call(
            DELETE_TOOL.name,
            {"file_patterns": {"patterns": ["^three"]}, "explanation": "Pattern."},
        )

        await run(steward, Intent(type="delete", query="delete three"))

        assert not vault.exists("three.md")
        assert steward.services.artifacts.all(TITLE) == []
        assert "permanently" in last_message(steward)


class TestTransfer:
    @pytest.mark.asyncio
    async def test_move_to_missing_folder_asks_first(self, steward, drafts, provider, vault):
        provider.queue_tool_call(
            "move_notes",
            {"files": ["one"], "destination_folder": "Archive", "explanation": "Move one."},
        )

        status = await run(steward, Intent(type="move", query="move one to Archive"))

        assert status == IntentResultStatus.NEEDS_CONFIRMATION
        assert vault.exists("Drafts/one.md")
        assert last_message(steward).startswith('The folder "Archive" does not exist.')

        await confirm_latest(steward)
        assert vault.exists("Archive/one.md")
        assert not vault.exists("Drafts/one.md")

    @pytest.mark.asyncio
    async def test_move_rejected(self, steward, drafts, provider, vault):
        provider.queue_tool_call(
            "move_notes",
            {"files": ["one"], "destination_folder": "Archive", "explanation": "Move one."},
        )
        await run(steward, Intent(type="move", query="move one to Archive"))

        await confirm_latest(steward, confirmed=False)

        assert vault.exists("Drafts/one.md")
        assert not vault.folder_exists("Archive")

    @pytest.mark.asyncio
    async def test_move_revert(self, steward, drafts, provider, vault):
        vault.ensure_folder("Archive")
        provider.queue_tool_call(
            "move_notes",
            {"files": ["one"], "destination_folder": "Archive", "explanation": "Move one."},
        )
        await run(steward, Intent(type="move", query="move one to Archive"))
        assert vault.exists("Archive/one.md")

        await run(steward, Intent(type="revert"))
        assert vault.exists("Drafts/one.md")
        assert not vault.exists("Archive/one.md")

    @pytest.mark.asyncio
    async def test_copy_search_results(self, steward, drafts, provider, vault):
        vault.ensure_folder("Backup")
        await run(steward, Intent(type="search", query="#draft"))
        provider.queue_tool_call(
            "copy_destination", {"destination_folder": "Backup", "explanation": "Copy."}
        )

        await run(steward, Intent(type="copy_from_artifact", query="copy these to Backup"))

        assert vault.exists("Backup/one.md") and vault.exists("Drafts/one.md")
        copied = steward.services.artifacts.most_recent(TITLE)
        assert copied.artifact_type == ArtifactType.CREATED_NOTES
        assert len(copied.paths) == 3


class TestUpdate:
    @pytest.mark.asyncio
    async def test_update_merges_tags_and_reverts(self, steward, drafts, provider, vault):
        vault.update_frontmatter("three.md", {"tags": ["draft"]})
        await run(steward, Intent(type="search", query='"three"'))
        provider.queue_tool_call(
            PROPERTIES_TOOL.name,
            {
                "properties": [{"name": "tags", "value": ["reviewed"]}],
                "explanation": "Tag as reviewed.",
            },
        )

        status = await run(steward, Intent(type="update_from_artifact", query="tag reviewed"))
        assert status == IntentResultStatus.NEEDS_CONFIRMATION
        assert "set tags = ['reviewed']" in last_message(steward)

        await confirm_latest(steward)
        assert vault.get_frontmatter("three.md")["tags"] == ["draft", "reviewed"]

        await run(steward, Intent(type="revert"))
        assert vault.get_frontmatter("three.md") == {"tags": ["draft"]}

    @pytest.mark.asyncio
    async def test_update_requires_changes(self, steward, drafts, provider):
        await run(steward, Intent(type="search", query="#draft"))
        provider.queue_tool_call(PROPERTIES_TOOL.name, {"explanation": "Nothing."})

        status = await run(steward, Intent(type="update_from_artifact", query="do nothing"))

        assert status == IntentResultStatus.ERROR
        assert last_message(steward) == "No property changes were given."

    def test_merge_tags(self):
        assert merge_tags("a, #b", ["b", "#c"]) == ["a", "b", "c"]
        assert merge_tags(None, "x") == ["x"]


class TestCreate:
    @pytest.mark.asyncio
    async def test_create_in_folder_then_revert(self, steward, provider, vault):
        provider.queue_tool_call(
            CREATE_TOOL.name,
            {
                "notes": [{"file_name": "Plan: Q3?", "folder": "Projects", "content": "# Plan"}],
                "explanation": "Create a plan.",
                "confidence": 0.95,
            },
        )

        await run(steward, Intent(type="create", query="plan", no_confirm=True))
        assert vault.read_text("Projects/Plan Q3.md") == "# Plan"

        await run(steward, Intent(type="revert"))
        assert not vault.exists("Projects/Plan Q3.md")
        assert last_message(steward).startswith("Removed 1 note(s):")

    @pytest.mark.asyncio
    async def test_low_confidence_create_is_an_error(self, steward, provider, vault):
        provider.queue_tool_call(
            CREATE_TOOL.name,
            {
                "notes": [{"file_name": "Maybe"}],
                "explanation": "Unclear what to write.",
                "confidence": 0.2,
            },
        )

        status = await run(steward, Intent(type="create", query="hmm"))

        assert status == IntentResultStatus.ERROR
        assert not vault.exists("Maybe.md")
        assert last_message(steward) == "Unclear what to write."


class TestRevertById:
    @pytest.mark.asyncio
    async def test_revert_named_artifact(self, steward, drafts, provider, vault):
        for name in ("A", "B"):
            provider.queue_tool_call(
                CREATE_TOOL.name,
                {"notes": [{"file_name": name}], "explanation": "Create.", "confidence": 0.95},
            )
            await run(steward, Intent(type="create", query=name, no_confirm=True))
        first = steward.services.artifacts.all(TITLE)[0]

        await run(steward, Intent(type="revert", query=f"undo {first.id}"))

        assert not vault.exists("A.md")
        assert vault.exists("B.md")


class TestHandlerBases:
    def test_revert_variant_is_abstract(self, steward):
        from intents.handlers.revert import RevertVariant

        with pytest.raises(TypeError):
            RevertVariant(steward.services)

    def test_transfer_handler_requires_transfer_and_record(self, steward):
        from intents.handlers.transfer import FileTransferHandler

        class HalfDone(FileTransferHandler):
            name = "half"
            commands = ("half",)

            def transfer(self, path, destination):
                return path

        with pytest.raises(TypeError):
            HalfDone(steward.services)
