"""Claude (Anthropic) async LLM provider."""

from collections.abc import AsyncIterator

from anthropic import APIError, AsyncAnthropic, AuthenticationError, RateLimitError

from ..base import (
    GenerateResponse,
    LLMAuthError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    ToolCall,
    ToolDefinition,
)


def _handle_error(e: Exception):
    if isinstance(e, AuthenticationError):
        raise LLMAuthError(f"Claude auth failed: {e}") from e
    if isinstance(e, RateLimitError):
        raise LLMRateLimitError(f"Claude rate limit: {e}") from e
    if isinstance(e, APIError):
        raise LLMError(f"Claude API error: {e}") from e
    raise LLMError(f"Claude error: {e}") from e


def _tool_choice(tool_choice: str) -> dict:
    if tool_choice == "auto":
        return {"type": "auto"}
    if tool_choice == "required":
        return {"type": "any"}
    return {"type": "tool", "name": tool_choice}


def _split_system(messages: list[dict], system: str | None) -> tuple[list[dict], str | None]:
    """Anthropic takes system text separately; fold system-role messages into it."""
    parts = [system] if system else []
    rest = []
    for msg in messages:
        if msg.get("role") == "system":
            parts.append(msg["content"])
        else:
            rest.append(msg)
    return rest, "\n\n".join(parts) if parts else None


class ClaudeProvider(LLMProvider):
    """Anthropic Claude provider."""

    provider_name = "claude"

    def __init__(self, api_key: str | None = None, model: str | None = None, client=None):
        self.model = model or "claude-sonnet-4-20250514"
        self.client = client or AsyncAnthropic(api_key=api_key)

    def _kwargs(self, messages: list[dict], system: str | None, max_tokens: int) -> dict:
        api_messages, system_text = _split_system(messages, system)
        kwargs = {"model": self.model, "max_tokens": max_tokens, "messages": api_messages}
        if system_text:
            kwargs["system"] = system_text
        return kwargs

    async def generate(
        self, messages: list[dict], system: str | None = None, max_tokens: int = 2000
    ) -> str:
        try:
            response = await self.client.messages.create(
                **self._kwargs(messages, system, max_tokens)
            )
        except Exception as e:
            _handle_error(e)
        return "".join(b.text for b in response.content if getattr(b, "type", "text") == "text")

    async def generate_with_tools(
        self,
        messages: list[dict],
        tools: list[ToolDefinition],
        system: str | None = None,
        max_tokens: int = 2000,
        tool_choice: str = "auto",
    ) -> GenerateResponse:
        kwargs = self._kwargs(messages, system, max_tokens)
        kwargs["tools"] = [
            {"name": t.name, "description": t.description, "input_schema": t.input_schema}
            for t in tools
        ]
        kwargs["tool_choice"] = _tool_choice(tool_choice)

        try:
            response = await self.client.messages.create(**kwargs)
        except Exception as e:
            _handle_error(e)

        text_parts = []
        tool_calls = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(id=block.id, name=block.name, arguments=block.input))

        if response.stop_reason == "tool_use":
            finish = "tool_calls"
        elif response.stop_reason == "max_tokens":
            finish = "max_tokens"
        else:
            finish = "stop"

        return GenerateResponse(
            content="\n".join(text_parts) if text_parts else None,
            tool_calls=tool_calls,
            finish_reason=finish,
        )

    async def stream(
        self, messages: list[dict], system: str | None = None, max_tokens: int = 2000
    ) -> AsyncIterator[str]:
        try:
            events = await self.client.messages.create(
                **self._kwargs(messages, system, max_tokens), stream=True
            )
            async for event in events:
                if event.type == "content_block_delta" and event.delta.type == "text_delta":
                    yield event.delta.text
        except LLMError:
            raise
        except Exception as e:
            _handle_error(e)
