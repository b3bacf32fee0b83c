"""Shared test fixtures for NoteSteward."""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cli.config_models import StewardConfig  # noqa: E402
from llm import GenerateResponse, LLMProvider, ToolCall  # noqa: E402


class ScriptedProvider(LLMProvider):
    """LLM provider that replays queued responses and records every call.

    Queue entries may be a GenerateResponse/str/list of chunks, or an
    exception instance to raise.
    """

    provider_name = "fake"

    def __init__(self, model: str = "fake-model"):
        self.model = model
        self.tool_responses: list = []
        self.text_responses: list = []
        self.stream_responses: list = []
        self.calls: list[dict] = []

    def queue_tool_call(self, name: str, arguments: dict) -> None:
        self.tool_responses.append(
            GenerateResponse(
                content=None,
                tool_calls=[ToolCall(id=f"call_{len(self.tool_responses)}", name=name, arguments=arguments)],
                finish_reason="tool_calls",
            )
        )

    async def generate(self, messages, system=None, max_tokens=2000):
        self.calls.append({"kind": "generate", "messages": messages, "system": system})
        return self._next(self.text_responses, "")

    async def generate_with_tools(
        self, messages, tools, system=None, max_tokens=2000, tool_choice="auto"
    ):
        self.calls.append(
            {
                "kind": "tools",
                "messages": messages,
                "tools": [t.name for t in tools],
                "system": system,
                "tool_choice": tool_choice,
            }
        )
        return self._next(self.tool_responses, GenerateResponse(content="no plan"))

    async def stream(self, messages, system=None, max_tokens=2000):
        self.calls.append({"kind": "stream", "messages": messages, "system": system})
        chunks = self._next(self.stream_responses, ["ok"])
        for chunk in chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    @staticmethod
    def _next(queue: list, default):
        if not queue:
            return default
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeCollection:
    """In-memory stand-in for a chromadb collection.

    Similarity is exact-text based: identical documents have distance 0,
    anything else distance 1.
    """

    def __init__(self):
        self.items: dict[str, dict] = {}

    def _matches(self, meta: dict, where: dict | None) -> bool:
        return not where or all(meta.get(k) == v for k, v in where.items())

    def upsert(self, ids, documents, metadatas):
        for i, doc, meta in zip(ids, documents, metadatas):
            self.items[i] = {"document": doc, "metadata": meta}

    def get(self, ids=None, where=None, include=None):
        selected = [
            (i, item)
            for i, item in self.items.items()
            if (ids is None or i in ids) and self._matches(item["metadata"], where)
        ]
        return {
            "ids": [i for i, _ in selected],
            "documents": [item["document"] for _, item in selected],
            "metadatas": [item["metadata"] for _, item in selected],
        }

    def delete(self, ids=None, where=None):
        for i in list(ids or []):
            self.items.pop(i, None)

    def query(self, query_texts, n_results=1, include=None):
        text = query_texts[0].strip().lower()
        ranked = sorted(
            self.items.items(),
            key=lambda kv: 0.0 if kv[1]["document"].strip().lower() == text else 1.0,
        )[:n_results]
        return {
            "ids": [[i for i, _ in ranked]],
            "documents": [[item["document"] for _, item in ranked]],
            "metadatas": [[item["metadata"] for _, item in ranked]],
            "distances": [
                [0.0 if item["document"].strip().lower() == text else 1.0 for _, item in ranked]
            ],
        }

    def count(self):
        return len(self.items)


@pytest.fixture
def config(tmp_path) -> StewardConfig:
    """Config rooted in tmp_path with the classifier off and no retry waits."""
    return StewardConfig.from_dict(
        {
            "llm": {"model": "fake:primary"},
            "model_fallback": {"enabled": True, "fallback_chain": ["fake:backup"]},
            "paths": {
                "vault_dir": str(tmp_path / "vault"),
                "state_db": str(tmp_path / "state.db"),
                "search_db": str(tmp_path / "search.db"),
                "chroma_dir": str(tmp_path / "chroma"),
                "log_file": str(tmp_path / "steward.log"),
            },
            "classifier": {"enabled": False},
            "retry": {"max_attempts": 2, "min_wait": 0, "max_wait": 0, "llm_max_wait": 0},
        }
    )


@pytest.fixture
def provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def steward(config, provider):
    """Fully wired steward whose every model call goes to ``provider``."""
    from intents import build_steward

    return build_steward(config, provider_factory_fn=lambda model_id: provider)


@pytest.fixture
def vault(steward):
    """The steward's NoteStore."""
    return steward.services.notes


@pytest.fixture
def fake_collection() -> FakeCollection:
    return FakeCollection()
