"""Semantic-similarity cache of labeled utterances, backed by ChromaDB.

A label is a colon-joined list of intent types (``"search:move_from_artifact"``).
Seed clusters ship with the package; extraction results the model was very
sure about are learned at runtime.
"""

import hashlib
from pathlib import Path
from typing import Optional

import chromadb
import structlog
from chromadb.config import Settings

from observability import metrics

logger = structlog.get_logger()

DEFAULT_COLLECTION = "intent_classifier"
DEFAULT_THRESHOLD = 0.8

SEED_CLUSTERS: dict[str, list[str]] = {
    "search": [
        "search for documents containing",
        "locate notes with keyword",
        "list all notes in a specific folder",
        "find all notes with a specific keyword",
        "search notes with a specific tag",
        "search for notes within a specific folder",
    ],
    "move": [
        "move notes about project to folder",
        "organize files with tag into directory",
        "move documents containing keyword to",
        "relocate notes containing text to folder",
    ],
    "copy": [
        "copy notes about project to folder",
        "duplicate files with tag to directory",
        "copy documents containing keyword to",
        "make copies of documents in folder",
    ],
    "delete": [
        "delete notes about project",
        "remove files with tag",
        "delete documents containing keyword",
        "remove notes containing text",
    ],
    "move_from_artifact": [
        "move these notes to folder",
        "move results to directory",
        "move these files to folder",
        "organize these search results into folder",
    ],
    "copy_from_artifact": [
        "copy these notes to folder",
        "duplicate these results to directory",
        "copy these files to folder",
    ],
    "delete_from_artifact": [
        "delete these notes",
        "remove these files",
        "delete the files I just found",
        "delete these search results",
    ],
    "update_from_artifact": [
        "update tags in these results",
        "add tag to these files",
        "update metadata in these search results",
        "set a property on these notes",
    ],
    "close": [
        "close",
        "close this conversation",
        "end this conversation",
        "we're done",
        "that's all for now",
    ],
    "revert": [
        "undo",
        "revert the last change",
        "undo what you just did",
        "roll back the last operation",
    ],
    "stop": [
        "stop",
        "abort",
        "cancel everything",
        "stop what you are doing",
    ],
    "image": [
        "generate an image of",
        "draw a picture of",
        "create an illustration of",
    ],
    "audio": [
        "read this aloud",
        "pronounce this word",
        "speak this text",
    ],
}


def cluster_version(values: list[str]) -> str:
    """Stable hash of a cluster's values; a change re-seeds that cluster."""
    return hashlib.md5("\n".join(sorted(values)).encode()).hexdigest()


def _value_id(prefix: str, value: str) -> str:
    return f"{prefix}:{hashlib.md5(value.strip().lower().encode()).hexdigest()}"


class IntentClassifier:
    """Nearest-neighbour intent labels by cosine similarity.

    Args:
        chroma_dir: Persistent ChromaDB directory (ignored when ``collection`` is given)
        similarity_threshold: Minimum ``1 - cosine distance`` for a hit
        collection: Pre-built collection for testing/DI
    """

    def __init__(
        self,
        chroma_dir: str | Path | None = None,
        collection_name: str = DEFAULT_COLLECTION,
        similarity_threshold: float = DEFAULT_THRESHOLD,
        clusters: Optional[dict[str, list[str]]] = None,
        collection=None,
    ):
        self.similarity_threshold = similarity_threshold
        self.clusters = clusters if clusters is not None else SEED_CLUSTERS

        if collection is not None:
            self.collection = collection
        else:
            chroma_path = Path(chroma_dir).expanduser()
            chroma_path.mkdir(parents=True, exist_ok=True)
            client = chromadb.PersistentClient(
                path=str(chroma_path),
                settings=Settings(anonymized_telemetry=False),
            )
            self.collection = client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        self.ensure_seeded()

    def ensure_seeded(self) -> int:
        """(Re)seed clusters whose stored version differs; returns clusters refreshed."""
        refreshed = 0
        for label, values in self.clusters.items():
            version = cluster_version(values)
            stored = self.collection.get(where={"cluster": label}, include=["metadatas"])
            versions = {m.get("version") for m in stored.get("metadatas") or []}
            if versions == {version} and len(stored.get("ids") or []) == len(set(values)):
                continue
            if stored.get("ids"):
                self.collection.delete(ids=stored["ids"])
            unique = list(dict.fromkeys(values))
            self.collection.upsert(
                ids=[_value_id(f"seed:{label}", v) for v in unique],
                documents=unique,
                metadatas=[
                    {"label": label, "cluster": label, "source": "seed", "version": version}
                    for _ in unique
                ],
            )
            refreshed += 1
        if refreshed:
            logger.info("classifier.seeded", clusters=refreshed)
        return refreshed

    def classify(self, text: str) -> Optional[str]:
        """Label of the nearest stored utterance, if similar enough."""
        text = text.strip()
        if not text:
            return None
        results = self.collection.query(
            query_texts=[text],
            n_results=1,
            include=["metadatas", "distances"],
        )
        if not results["ids"] or not results["ids"][0]:
            return None
        similarity = 1.0 - results["distances"][0][0]
        label = results["metadatas"][0][0].get("label")
        if similarity < self.similarity_threshold or not label:
            metrics.counter("classifier.miss")
            return None
        metrics.counter("classifier.hit")
        logger.info("classifier.hit", label=label, similarity=round(similarity, 3))
        return label

    def save_embedding(self, text: str, label: str) -> str:
        """Learn ``text`` -> ``label``."""
        entry_id = _value_id("learned", text)
        self.collection.upsert(
            ids=[entry_id],
            documents=[text.strip()],
            metadatas=[{"label": label, "source": "learned"}],
        )
        logger.info("classifier.learned", label=label)
        return entry_id

    def delete_embeddings_by_value(self, text: str) -> int:
        """Forget learned entries whose text equals ``text`` (case-insensitive)."""
        wanted = text.strip().lower()
        stored = self.collection.get(where={"source": "learned"}, include=["documents"])
        ids = [
            entry_id
            for entry_id, doc in zip(stored.get("ids") or [], stored.get("documents") or [])
            if (doc or "").strip().lower() == wanted
        ]
        if ids:
            self.collection.delete(ids=ids)
            logger.info("classifier.forgot", count=len(ids))
        return len(ids)
