"""Intent orchestration: extraction, routing, confirmation, artifacts and fallback."""

from .abort import AbortRegistry, AbortToken, OperationAborted
from .artifacts import ArtifactStore
from .confirmations import ConfirmationBroker, PendingConfirmation
from .events import ConversationEvents
from .extractor import IntentExtractionError, IntentExtractor
from .fallback import ModelFallbackService
from .gateway import ModelCallError, ModelGateway
from .router import CommandRouter
from .steward import Steward, build_steward
from .todo import TodoListService
from .types import Intent, IntentBatch

__all__ = [
    "AbortRegistry",
    "AbortToken",
    "ArtifactStore",
    "CommandRouter",
    "ConfirmationBroker",
    "ConversationEvents",
    "Intent",
    "IntentBatch",
    "IntentExtractionError",
    "IntentExtractor",
    "ModelCallError",
    "ModelFallbackService",
    "ModelGateway",
    "OperationAborted",
    "PendingConfirmation",
    "Steward",
    "TodoListService",
    "build_steward",
]
