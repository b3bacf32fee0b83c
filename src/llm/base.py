"""Base async LLM provider abstraction."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field


class LLMError(Exception):
    """Base LLM error."""


class LLMRateLimitError(LLMError):
    """Rate limit hit."""


class LLMAuthError(LLMError):
    """Authentication failure."""


@dataclass
class ToolDefinition:
    """Tool definition for LLM tool calling."""

    name: str
    description: str
    input_schema: dict  # JSON Schema


@dataclass
class ToolCall:
    """A tool call requested by the LLM."""

    id: str
    name: str
    arguments: dict


@dataclass
class GenerateResponse:
    """Response from generate_with_tools."""

    content: str | None
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str = "stop"  # "stop" | "tool_calls" | "max_tokens"

    def first_call(self, name: str) -> ToolCall | None:
        """Return the first tool call with the given name, if any."""
        for call in self.tool_calls:
            if call.name == name:
                return call
        return None


class LLMProvider(ABC):
    """Abstract async LLM provider interface.

    Providers wrap one SDK client bound to one model. The gateway creates a
    provider per model id, so switching models on fallback is just picking a
    different provider instance.
    """

    provider_name: str = "base"
    model: str

    @property
    def model_id(self) -> str:
        """Qualified ``provider:model`` identifier."""
        return f"{self.provider_name}:{self.model}"

    @abstractmethod
    async def generate(
        self, messages: list[dict], system: str | None = None, max_tokens: int = 2000
    ) -> str:
        """Generate a response from messages.

        Args:
            messages: List of {"role": ..., "content": ...} dicts
            system: Optional system prompt
            max_tokens: Max response tokens

        Returns:
            Generated text
        """
        ...

    @abstractmethod
    async def generate_with_tools(
        self,
        messages: list[dict],
        tools: list[ToolDefinition],
        system: str | None = None,
        max_tokens: int = 2000,
        tool_choice: str = "auto",
    ) -> GenerateResponse:
        """Generate a response with tool-calling support.

        Args:
            messages: Conversation messages
            tools: Available tool definitions
            system: Optional system prompt
            max_tokens: Max response tokens
            tool_choice: "auto", "required", or a tool name to force

        Returns:
            GenerateResponse with content and/or tool_calls
        """
        ...

    @abstractmethod
    def stream(
        self, messages: list[dict], system: str | None = None, max_tokens: int = 2000
    ) -> AsyncIterator[str]:
        """Stream incremental text chunks for a plain completion."""
        ...
