"""Tests for the FTS5 vault search index."""

import pytest

from vault import NoteStore, SearchOperation, VaultSearchIndex


@pytest.fixture
def store(tmp_path):
    store = NoteStore(tmp_path / "vault")
    store.create("Projects/Rocket.md", "Launch plan for the rocket engine", metadata={"tags": ["space"]})
    store.create("Projects/Garden.md", "Tomatoes and basil #outdoor", metadata={"status": "active"})
    store.create("Daily/2024-05-01.md", "Met the rocket team for lunch")
    store.create("Steward/Conversations/chat.md", "rocket rocket rocket")
    return store


@pytest.fixture
def index(tmp_path, store):
    index = VaultSearchIndex(tmp_path / "search.db", store, exclude=("Steward",))
    index.sync()
    return index


def paths(hits):
    return sorted(h.path for h in hits)


class TestSync:
    def test_sync_indexes_all_but_excluded(self, index):
        assert index.count() == 3

    def test_sync_is_incremental(self, index, store):
        assert index.sync() == (0, 0)

        store.create("new.md", "fresh")
        store.delete("Daily/2024-05-01.md")

        assert index.sync() == (1, 1)
        assert index.count() == 3

    def test_index_paths_drops_missing(self, index, store):
        store.delete("Projects/Garden.md")
        index.index_paths(["Projects/Garden.md"])
        assert index.count() == 2

    def test_rebuild(self, index):
        assert index.rebuild() == 3


class TestExecute:
    def test_keyword_ranked(self, index):
        hits = index.execute([SearchOperation(keywords=["rocket"])])

        assert paths(hits) == ["Daily/2024-05-01.md", "Projects/Rocket.md"]

    def test_keyword_prefix_match(self, index):
        hits = index.execute([SearchOperation(keywords=["tomato"])])
        assert paths(hits) == ["Projects/Garden.md"]

    def test_quoted_phrase(self, index):
        assert paths(index.execute([SearchOperation(keywords=['"rocket team"'])])) == [
            "Daily/2024-05-01.md"
        ]
        assert index.execute([SearchOperation(keywords=['"team rocket"'])]) == []

    def test_criteria_are_anded(self, index):
        op = SearchOperation(keywords=["rocket"], folders=["Projects"])
        assert paths(index.execute([op])) == ["Projects/Rocket.md"]

    def test_operations_are_unioned(self, index):
        ops = [SearchOperation(filenames=["garden"]), SearchOperation(folders=["Daily"])]
        assert paths(index.execute(ops)) == ["Daily/2024-05-01.md", "Projects/Garden.md"]

    def test_tag_from_frontmatter_and_body(self, index):
        space = SearchOperation(properties=[{"name": "tag", "value": "#space"}])
        outdoor = SearchOperation(properties=[{"name": "tags", "value": "outdoor"}])

        assert paths(index.execute([space])) == ["Projects/Rocket.md"]
        assert paths(index.execute([outdoor])) == ["Projects/Garden.md"]

    def test_property_match(self, index):
        has_status = SearchOperation(properties=[{"name": "status"}])
        inactive = SearchOperation(properties=[{"name": "Status", "value": "paused"}])

        assert paths(index.execute([has_status])) == ["Projects/Garden.md"]
        assert index.execute([inactive]) == []

    def test_empty_operation_ignored(self, index):
        assert index.execute([SearchOperation()]) == []

    def test_limit(self, index):
        assert len(index.execute([SearchOperation(folders=["Projects"])], limit=1)) == 1

    def test_from_dict(self):
        op = SearchOperation.from_dict({"keywords": ["a"], "folders": None})
        assert op.keywords == ["a"]
        assert op.folders == []
