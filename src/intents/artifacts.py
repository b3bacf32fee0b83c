"""Typed, append-only per-conversation artifacts."""

import uuid
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from shared_types import FILE_LIST_ARTIFACT_TYPES, ArtifactType

from .state_store import StateStore

logger = structlog.get_logger()


class ArtifactBase(BaseModel):
    """Common artifact fields. Artifacts are immutable once stored."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    created_at: str = ""

    @property
    def file_paths(self) -> list[str]:
        """Paths a *_from_artifact intent can operate on."""
        return list(getattr(self, "paths", ()))


class FileChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    original: dict | str
    updated: dict | str


class MoveRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    destination: str


class NoteContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    content: str


class SearchResultsArtifact(ArtifactBase):
    artifact_type: Literal["search_results"] = "search_results"
    query: str = ""
    paths: tuple[str, ...] = ()
    total: int = 0


class ListResultsArtifact(ArtifactBase):
    artifact_type: Literal["list_results"] = "list_results"
    paths: tuple[str, ...] = ()


class CreatedNotesArtifact(ArtifactBase):
    artifact_type: Literal["created_notes"] = "created_notes"
    paths: tuple[str, ...] = ()


class MoveResultsArtifact(ArtifactBase):
    artifact_type: Literal["move_results"] = "move_results"
    moves: tuple[MoveRecord, ...] = ()

    @property
    def file_paths(self) -> list[str]:
        return [m.destination for m in self.moves]


class DeletedFilesArtifact(ArtifactBase):
    """Deleted notes; restore data lives in the trash metadata keyed by this id."""

    artifact_type: Literal["deleted_files"] = "deleted_files"
    file_count: int = 0
    paths: tuple[str, ...] = ()

    @property
    def file_paths(self) -> list[str]:
        return []


class UpdateFrontmatterArtifact(ArtifactBase):
    artifact_type: Literal["update_frontmatter_results"] = "update_frontmatter_results"
    updates: tuple[FileChange, ...] = ()

    @property
    def file_paths(self) -> list[str]:
        return [u.path for u in self.updates]


class ReadContentArtifact(ArtifactBase):
    artifact_type: Literal["read_content"] = "read_content"
    notes: tuple[NoteContent, ...] = ()

    @property
    def file_paths(self) -> list[str]:
        return [n.path for n in self.notes]


class GeneratedContentArtifact(ArtifactBase):
    artifact_type: Literal["generated_content"] = "generated_content"
    content: str = ""
    model: str = ""


class MediaResultsArtifact(ArtifactBase):
    artifact_type: Literal["media_results"] = "media_results"
    media_type: str = ""
    paths: tuple[str, ...] = ()


Artifact = Annotated[
    Union[
        SearchResultsArtifact,
        ListResultsArtifact,
        CreatedNotesArtifact,
        MoveResultsArtifact,
        DeletedFilesArtifact,
        UpdateFrontmatterArtifact,
        ReadContentArtifact,
        GeneratedContentArtifact,
        MediaResultsArtifact,
    ],
    Field(discriminator="artifact_type"),
]

_artifact_adapter = TypeAdapter(Artifact)


def parse_artifact(data: dict) -> Artifact:
    return _artifact_adapter.validate_python(data)


class ArtifactStore:
    """Per-conversation artifact log backed by the state store."""

    def __init__(self, state: StateStore):
        self.state = state

    def store(self, title: str, artifact: ArtifactBase, artifact_id: Optional[str] = None) -> str:
        """Append an artifact; returns its id (generated unless given)."""
        artifact_id = artifact_id or f"{artifact.artifact_type}_{uuid.uuid4().hex[:10]}"
        stored = artifact.model_copy(
            update={"id": artifact_id, "created_at": datetime.now().isoformat()}
        )
        self.state.insert_artifact(
            artifact_id, title, stored.artifact_type, stored.model_dump(mode="json")
        )
        logger.info("artifact.stored", title=title, type=stored.artifact_type, id=artifact_id)
        return artifact_id

    def get(self, title: str, artifact_id: str) -> Optional[Artifact]:
        data = self.state.fetch_artifact(title, artifact_id)
        return parse_artifact(data) if data else None

    def get_by_type(self, title: str, artifact_type: ArtifactType) -> list[Artifact]:
        return [parse_artifact(d) for d in self.state.fetch_artifacts(title, [artifact_type])]

    def most_recent(
        self, title: str, types: Optional[tuple[ArtifactType, ...] | list[ArtifactType]] = None
    ) -> Optional[Artifact]:
        """Newest artifact of any of ``types`` (any type when None)."""
        rows = self.state.fetch_artifacts(
            title, [str(t) for t in types] if types else None, newest_first=True
        )
        return parse_artifact(rows[0]) if rows else None

    def all(self, title: str) -> list[Artifact]:
        return [parse_artifact(d) for d in self.state.fetch_artifacts(title)]

    def remove(self, title: str, artifact_id: str) -> bool:
        removed = self.state.delete_artifact(title, artifact_id)
        if removed:
            logger.info("artifact.removed", title=title, id=artifact_id)
        return removed

    def clear(self, title: str) -> int:
        return self.state.delete_artifacts(title)

    def resolve_files(
        self, title: str, artifact_id: Optional[str] = None
    ) -> tuple[Optional[Artifact], list[str]]:
        """Artifact plus its file paths: by id, else the newest file-list artifact."""
        if artifact_id:
            artifact = self.get(title, artifact_id)
        else:
            artifact = self.most_recent(title, FILE_LIST_ARTIFACT_TYPES)
        if artifact is None:
            return None, []
        return artifact, artifact.file_paths

    def summarize(self, title: str, limit: int = 5) -> list[dict]:
        """Short description of recent artifacts for extraction prompts."""
        rows = self.state.fetch_artifacts(title, newest_first=True)[:limit]
        summary = []
        for data in rows:
            artifact = parse_artifact(data)
            summary.append(
                {
                    "id": artifact.id,
                    "type": artifact.artifact_type,
                    "files": len(artifact.file_paths),
                }
            )
        return summary
