"""Pydantic configuration models for NoteSteward."""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from shared_types import DeleteBehavior

VALID_LLM_PROVIDERS = {"auto", "claude", "openai"}


def _expand_env(value: Optional[str]) -> Optional[str]:
    """Expand a ``${VAR}`` placeholder."""
    if value and value.startswith("${") and value.endswith("}"):
        return os.getenv(value[2:-1], "")
    return value


def _unit_interval(v: float) -> float:
    if not 0.0 <= v <= 1.0:
        raise ValueError(f"must be between 0 and 1, got {v}")
    return v


class LLMConfig(BaseModel):
    """LLM provider configuration."""

    provider: str = "auto"
    model: str = "openai:gpt-4o-mini"  # "provider:model" or a bare model name
    api_key: Optional[str] = None
    max_tokens: int = 2000
    history_limit: int = 10

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        if v not in VALID_LLM_PROVIDERS:
            raise ValueError(f"Invalid LLM provider: {v}. Must be one of {VALID_LLM_PROVIDERS}")
        return v


class ModelFallbackConfig(BaseModel):
    """Ordered alternates tried when the active model fails."""

    enabled: bool = True
    fallback_chain: list[str] = Field(default_factory=list)

    @field_validator("fallback_chain")
    @classmethod
    def dedupe_chain(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(m.strip() for m in v if m.strip()))


class PathsConfig(BaseModel):
    """File paths configuration."""

    vault_dir: Path = Path("~/steward/vault")
    state_db: Path = Path("~/steward/state.db")
    search_db: Path = Path("~/steward/search.db")
    chroma_dir: Path = Path("~/steward/chroma")
    log_file: Path = Path("~/steward/steward.log")
    steward_folder: str = "Steward"  # inside the vault

    @model_validator(mode="after")
    def expand_paths(self):
        """Expand ~ in all paths."""
        self.vault_dir = self.vault_dir.expanduser()
        self.state_db = self.state_db.expanduser()
        self.search_db = self.search_db.expanduser()
        self.chroma_dir = self.chroma_dir.expanduser()
        self.log_file = self.log_file.expanduser()
        self.steward_folder = self.steward_folder.strip("/") or "Steward"
        return self

    @property
    def conversations_folder(self) -> str:
        return f"{self.steward_folder}/Conversations"

    @property
    def trash_folder(self) -> str:
        return f"{self.steward_folder}/Trash"

    @property
    def commands_folder(self) -> str:
        return f"{self.steward_folder}/Commands"

    @property
    def attachments_folder(self) -> str:
        return f"{self.steward_folder}/Attachments"


class ClassifierConfig(BaseModel):
    """Semantic intent classifier cache."""

    enabled: bool = True
    similarity_threshold: float = 0.8
    collection: str = "intent_classifier"

    @field_validator("similarity_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        return _unit_interval(v)


class ExtractionConfig(BaseModel):
    """Intent extraction thresholds."""

    confidence_threshold: float = 0.7
    classified_confidence: float = 0.9
    learn_threshold: float = 0.9
    show_explanation: bool = False

    @field_validator("confidence_threshold", "classified_confidence", "learn_threshold")
    @classmethod
    def validate_unit(cls, v: float) -> float:
        return _unit_interval(v)


class DeleteConfig(BaseModel):
    behavior: DeleteBehavior = DeleteBehavior.TRASH


class TrashConfig(BaseModel):
    retention_days: int = 30

    @field_validator("retention_days")
    @classmethod
    def validate_retention(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"retention_days must be >= 1, got {v}")
        return v


class SearchConfig(BaseModel):
    """Search defaults."""

    max_results: int = 50
    results_in_message: int = 10


class CommandsConfig(BaseModel):
    """User-defined commands."""

    enabled: bool = True
    builtin_precedence: bool = False


class MediaConfig(BaseModel):
    image_model: str = "dall-e-3"
    image_size: str = "1024x1024"
    speech_model: str = "tts-1"
    voice: str = "alloy"


class RetryConfig(BaseModel):
    """Retry/backoff configuration."""

    max_attempts: int = 3
    min_wait: float = 2.0
    max_wait: float = 10.0
    llm_max_wait: float = 30.0


VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    json_mode: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v_upper = v.upper()
        if v_upper not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {VALID_LOG_LEVELS}")
        return v_upper


class StewardConfig(BaseModel):
    """Main configuration model."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    model_fallback: ModelFallbackConfig = Field(default_factory=ModelFallbackConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    delete: DeleteConfig = Field(default_factory=DeleteConfig)
    trash: TrashConfig = Field(default_factory=TrashConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    commands: CommandsConfig = Field(default_factory=CommandsConfig)
    media: MediaConfig = Field(default_factory=MediaConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def expand_env_vars(self):
        """Expand ${VAR} patterns in API keys."""
        self.llm.api_key = _expand_env(self.llm.api_key)
        return self

    @classmethod
    def from_dict(cls, data: dict) -> "StewardConfig":
        return cls.model_validate(data)

    def to_dict(self) -> dict:
        return self.model_dump(mode="python")
