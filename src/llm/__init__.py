"""Multi-provider async LLM abstraction layer."""

from .base import (
    GenerateResponse,
    LLMAuthError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    ToolCall,
    ToolDefinition,
)
from .factory import create_llm_provider, parse_model_id
from .media import MediaGenerator

__all__ = [
    "LLMProvider",
    "create_llm_provider",
    "parse_model_id",
    "LLMError",
    "LLMRateLimitError",
    "LLMAuthError",
    "ToolDefinition",
    "ToolCall",
    "GenerateResponse",
    "MediaGenerator",
]
