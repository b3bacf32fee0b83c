"""Intent, handler result and pending-action types."""

from dataclasses import asdict, dataclass, field
from typing import Optional, Union
from urllib.parse import parse_qs

from shared_types import IntentResultStatus

FROM_ARTIFACT_SUFFIX = "_from_artifact"


@dataclass(frozen=True)
class Intent:
    """One typed unit of work. ``type`` may carry ``?tools=...`` and ``_from_artifact``."""

    type: str
    query: str = ""
    model: Optional[str] = None
    system_prompts: tuple[str, ...] = ()
    no_confirm: bool = False
    step: Optional[int] = None  # linked to-do step (1-based)

    @property
    def command(self) -> str:
        """Type without the ``?...`` option suffix."""
        return self.type.split("?", 1)[0].strip()

    @property
    def from_artifact(self) -> bool:
        return self.command.endswith(FROM_ARTIFACT_SUFFIX)

    @property
    def base_type(self) -> str:
        command = self.command
        if command.endswith(FROM_ARTIFACT_SUFFIX):
            return command[: -len(FROM_ARTIFACT_SUFFIX)]
        return command

    @property
    def tool_hints(self) -> list[str]:
        """Tool names from ``type?tools=a,b``."""
        if "?" not in self.type:
            return []
        params = parse_qs(self.type.split("?", 1)[1])
        hints = []
        for value in params.get("tools", []):
            hints.extend(t.strip() for t in value.split(",") if t.strip())
        return hints

    def to_dict(self) -> dict:
        data = asdict(self)
        data["system_prompts"] = list(self.system_prompts)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Intent":
        return cls(
            type=data["type"],
            query=data.get("query", ""),
            model=data.get("model"),
            system_prompts=tuple(data.get("system_prompts") or ()),
            no_confirm=bool(data.get("no_confirm", False)),
            step=data.get("step"),
        )


@dataclass
class SuccessResult:
    next_intents: tuple[Intent, ...] = ()
    status: IntentResultStatus = field(default=IntentResultStatus.SUCCESS, init=False)


@dataclass
class ConfirmationResult:
    """Suspend: ``plan`` must be JSON-serializable; it is handed back to ``resume``."""

    message: str
    plan: dict = field(default_factory=dict)
    status: IntentResultStatus = field(default=IntentResultStatus.NEEDS_CONFIRMATION, init=False)


@dataclass
class LowConfidenceResult:
    explanation: str
    status: IntentResultStatus = field(default=IntentResultStatus.LOW_CONFIDENCE, init=False)


@dataclass
class ErrorResult:
    error: str
    status: IntentResultStatus = field(default=IntentResultStatus.ERROR, init=False)


HandlerResult = Union[SuccessResult, ConfirmationResult, LowConfidenceResult, ErrorResult]


@dataclass
class HandlerParams:
    title: str
    intent: Intent
    next_intent: Optional[Intent] = None
    lang: Optional[str] = None
    original_query: Optional[str] = None


@dataclass
class IntentBatch:
    """Payload of ``CommandRouter.process_intents``."""

    title: str
    intents: list[Intent]
    original_query: Optional[str] = None
    lang: Optional[str] = None
    confidence: Optional[float] = None
    explanation: Optional[str] = None
    intent_extraction_confirmed: bool = False

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "intents": [i.to_dict() for i in self.intents],
            "original_query": self.original_query,
            "lang": self.lang,
            "confidence": self.confidence,
            "explanation": self.explanation,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "IntentBatch":
        return cls(
            title=data["title"],
            intents=[Intent.from_dict(i) for i in data.get("intents", [])],
            original_query=data.get("original_query"),
            lang=data.get("lang"),
            confidence=data.get("confidence"),
            explanation=data.get("explanation"),
        )


@dataclass
class PendingAction:
    """Everything needed to resume a suspended handler after a restart."""

    handler: str
    plan: dict
    intent: Intent
    remaining: list[Intent] = field(default_factory=list)
    original_query: Optional[str] = None
    lang: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "handler": self.handler,
            "plan": self.plan,
            "intent": self.intent.to_dict(),
            "remaining": [i.to_dict() for i in self.remaining],
            "original_query": self.original_query,
            "lang": self.lang,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PendingAction":
        return cls(
            handler=data["handler"],
            plan=data.get("plan") or {},
            intent=Intent.from_dict(data["intent"]),
            remaining=[Intent.from_dict(i) for i in data.get("remaining", [])],
            original_query=data.get("original_query"),
            lang=data.get("lang"),
        )


@dataclass
class HandlerOptions:
    """Options passed alongside params; ``plan`` is set when resuming a confirmation."""

    plan: Optional[dict] = None
    confirmed: Optional[bool] = None

    @property
    def resuming(self) -> bool:
        return self.plan is not None
