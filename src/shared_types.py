"""Shared enums and types for notesteward."""

from enum import StrEnum


class IntentResultStatus(StrEnum):
    SUCCESS = "success"
    NEEDS_CONFIRMATION = "needs_confirmation"
    LOW_CONFIDENCE = "low_confidence"
    ERROR = "error"


class ArtifactType(StrEnum):
    SEARCH_RESULTS = "search_results"
    MOVE_RESULTS = "move_results"
    CREATED_NOTES = "created_notes"
    READ_CONTENT = "read_content"
    GENERATED_CONTENT = "generated_content"
    MEDIA_RESULTS = "media_results"
    DELETED_FILES = "deleted_files"
    UPDATE_FRONTMATTER_RESULTS = "update_frontmatter_results"
    LIST_RESULTS = "list_results"


REVERTABLE_ARTIFACT_TYPES = (
    ArtifactType.MOVE_RESULTS,
    ArtifactType.CREATED_NOTES,
    ArtifactType.DELETED_FILES,
    ArtifactType.UPDATE_FRONTMATTER_RESULTS,
)

# Artifacts whose paths can feed a *_from_artifact intent
FILE_LIST_ARTIFACT_TYPES = (
    ArtifactType.SEARCH_RESULTS,
    ArtifactType.CREATED_NOTES,
    ArtifactType.LIST_RESULTS,
)


class DeleteBehavior(StrEnum):
    TRASH = "trash"
    PERMANENT = "permanent"


class TodoStepStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SKIPPED = "skipped"
    COMPLETED = "completed"


class MessageRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
