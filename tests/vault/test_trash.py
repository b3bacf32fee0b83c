"""Tests for the vault trash."""

import json
from datetime import datetime, timedelta

import pytest

from vault import NoteStore, TrashService
from vault.trash import METADATA_FILE


@pytest.fixture
def store(tmp_path):
    return NoteStore(tmp_path / "vault")


@pytest.fixture
def trash(store):
    return TrashService(store, "Steward/Trash")


class TestTrashService:
    def test_trash_and_restore(self, store, trash):
        store.create("Projects/a.md", "alpha")

        trash_path = trash.trash("Projects/a.md", "deleted_files_1")

        assert trash_path.startswith("Steward/Trash/a_")
        assert not store.exists("Projects/a.md")
        assert trash.files_for_artifact("deleted_files_1") == {trash_path: "Projects/a.md"}

        assert trash.restore(trash_path) == "Projects/a.md"
        assert store.read_text("Projects/a.md") == "alpha"
        assert trash.files_for_artifact("deleted_files_1") == {}

    def test_files_grouped_by_artifact(self, store, trash):
        store.create("a.md", "")
        store.create("b.md", "")
        trash.trash("a.md", "first")
        trash.trash("b.md", "second")

        assert list(trash.files_for_artifact("first").values()) == ["a.md"]

    def test_restore_onto_existing_raises(self, store, trash):
        store.create("a.md", "old")
        trash_path = trash.trash("a.md", "x")
        store.create("a.md", "new")

        with pytest.raises(FileExistsError):
            trash.restore(trash_path)

    def test_restore_unknown_raises(self, trash):
        with pytest.raises(KeyError):
            trash.restore("Steward/Trash/ghost.md")

    def test_cleanup_respects_retention(self, store, trash):
        store.create("old.md", "")
        store.create("new.md", "")
        old_path = trash.trash("old.md", "x")
        new_path = trash.trash("new.md", "y")

        meta_file = store.vault_dir / "Steward/Trash" / METADATA_FILE
        data = json.loads(meta_file.read_text())
        data["files"][old_path]["deleted_at"] = (datetime.now() - timedelta(days=40)).isoformat()
        meta_file.write_text(json.dumps(data))

        assert trash.cleanup(retention_days=30) == 1
        assert not store.exists(old_path)
        assert store.exists(new_path)

    def test_corrupt_metadata_treated_as_empty(self, store, trash):
        meta_file = store.vault_dir / "Steward/Trash" / METADATA_FILE
        meta_file.parent.mkdir(parents=True)
        meta_file.write_text("{not json")

        assert trash.files_for_artifact("x") == {}
