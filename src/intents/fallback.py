"""Per-conversation model fallback state machine."""

from dataclasses import asdict, dataclass, field
from typing import Optional

import structlog

from observability import metrics

from .state_store import StateStore

logger = structlog.get_logger()

STATE_KEY = "model_fallback"


@dataclass
class ModelFallbackState:
    original_model: str
    attempted_models: list[str] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)  # [{"model": ..., "error": ...}]
    used_models: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "ModelFallbackState":
        return cls(
            original_model=data["original_model"],
            attempted_models=list(data.get("attempted_models") or []),
            errors=list(data.get("errors") or []),
            used_models=list(data.get("used_models") or []),
        )


class ModelFallbackService:
    """Tracks which models a conversation has tried and picks the next one.

    States are ``using(model)`` for each model in ``[original] + chain``.
    ``attempted_models`` only ever grows, so a conversation never returns to
    a model it already tried. The state table is the source of truth; the
    conversation note's frontmatter gets a copy.
    """

    def __init__(
        self,
        state: StateStore,
        fallback_chain: list[str],
        enabled: bool = True,
        conversations=None,
    ):
        self.state = state
        self.fallback_chain = list(fallback_chain)
        self.enabled = enabled
        self.conversations = conversations

    def is_enabled(self) -> bool:
        return self.enabled

    def _save(self, title: str, fb: ModelFallbackState) -> None:
        self.state.set_state(title, STATE_KEY, asdict(fb))
        if self.conversations is not None:
            self.conversations.set_property(title, "model", fb.attempted_models[-1])
            self.conversations.set_property(
                title,
                STATE_KEY,
                {"original_model": fb.original_model, "attempted_models": fb.attempted_models},
            )

    def get_state(self, title: str) -> Optional[ModelFallbackState]:
        if not self.enabled:
            return None
        data = self.state.get_state(title, STATE_KEY)
        return ModelFallbackState.from_dict(data) if data else None

    def initialize_state(self, title: str, original_model: str) -> Optional[ModelFallbackState]:
        """Create the state unless it already exists (idempotent)."""
        if not self.enabled:
            return None
        existing = self.get_state(title)
        if existing is not None:
            return existing
        fb = ModelFallbackState(
            original_model=original_model,
            attempted_models=[original_model],
            used_models=[original_model],
        )
        self._save(title, fb)
        logger.info("fallback.initialized", title=title, model=original_model)
        return fb

    def get_current_model(self, title: str) -> Optional[str]:
        fb = self.get_state(title)
        return fb.attempted_models[-1] if fb and fb.attempted_models else None

    def _untried(self, fb: ModelFallbackState) -> list[str]:
        return [m for m in self.fallback_chain if m not in fb.attempted_models]

    def has_more_fallbacks(self, title: str) -> bool:
        fb = self.get_state(title)
        if fb is None:
            return False
        return bool(self._untried(fb))

    def has_model_failed(self, title: str, model: str) -> bool:
        fb = self.get_state(title)
        if fb is None:
            return False
        return any(e.get("model") == model for e in fb.errors)

    def record_error(self, title: str, model: str, error: str) -> None:
        fb = self.get_state(title)
        if fb is None:
            return
        fb.errors.append({"model": model, "error": error})
        self.state.set_state(title, STATE_KEY, asdict(fb))

    def get_recorded_errors(self, title: str) -> list[dict]:
        fb = self.get_state(title)
        return list(fb.errors) if fb else []

    def switch_to_next_model(self, title: str) -> Optional[str]:
        """Advance to the first untried chain entry; None when exhausted."""
        fb = self.get_state(title)
        if fb is None:
            return None
        untried = self._untried(fb)
        if not untried:
            logger.warning("fallback.exhausted", title=title, attempted=fb.attempted_models)
            return None
        next_model = untried[0]
        fb.attempted_models.append(next_model)
        if next_model not in fb.used_models:
            fb.used_models.append(next_model)
        self._save(title, fb)
        metrics.counter("model.fallback")
        logger.info("fallback.switched", title=title, model=next_model)
        return next_model

    def clear_state(self, title: str) -> bool:
        if not self.enabled:
            return False
        cleared = self.state.delete_state(title, STATE_KEY)
        if cleared and self.conversations is not None:
            self.conversations.set_property(title, STATE_KEY, None)
        return cleared
