"""OpenAI async LLM provider."""

import json
from collections.abc import AsyncIterator

from openai import APIError, AsyncOpenAI, AuthenticationError, RateLimitError

from ..base import (
    GenerateResponse,
    LLMAuthError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    ToolCall,
    ToolDefinition,
)


def _handle_openai_error(e: Exception):
    if isinstance(e, AuthenticationError):
        raise LLMAuthError(f"OpenAI auth failed: {e}") from e
    if isinstance(e, RateLimitError):
        raise LLMRateLimitError(f"OpenAI rate limit: {e}") from e
    if isinstance(e, APIError):
        raise LLMError(f"OpenAI API error: {e}") from e
    raise LLMError(f"OpenAI error: {e}") from e


def _tool_choice(tool_choice: str):
    if tool_choice in ("auto", "required", "none"):
        return tool_choice
    return {"type": "function", "function": {"name": tool_choice}}


class OpenAIProvider(LLMProvider):
    """OpenAI GPT provider."""

    provider_name = "openai"

    def __init__(self, api_key: str | None = None, model: str | None = None, client=None):
        self.model = model or "gpt-4o"
        self.client = client or AsyncOpenAI(api_key=api_key)

    @staticmethod
    def _messages(messages: list[dict], system: str | None) -> list[dict]:
        full = [{"role": "system", "content": system}] if system else []
        full.extend(messages)
        return full

    async def generate(
        self, messages: list[dict], system: str | None = None, max_tokens: int = 2000
    ) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=self._messages(messages, system),
            )
        except Exception as e:
            _handle_openai_error(e)
        return response.choices[0].message.content or ""

    async def generate_with_tools(
        self,
        messages: list[dict],
        tools: list[ToolDefinition],
        system: str | None = None,
        max_tokens: int = 2000,
        tool_choice: str = "auto",
    ) -> GenerateResponse:
        tool_defs = [
            {
                "type": "function",
                "function": {
                    "name": t.name,
                    "description": t.description,
                    "parameters": t.input_schema,
                },
            }
            for t in tools
        ]

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=self._messages(messages, system),
                tools=tool_defs,
                tool_choice=_tool_choice(tool_choice),
            )
        except Exception as e:
            _handle_openai_error(e)

        choice = response.choices[0]
        message = choice.message

        tool_calls = []
        for tc in message.tool_calls or []:
            try:
                arguments = json.loads(tc.function.arguments or "{}")
            except json.JSONDecodeError as e:
                raise LLMError(f"OpenAI returned malformed tool arguments: {e}") from e
            tool_calls.append(ToolCall(id=tc.id, name=tc.function.name, arguments=arguments))

        if choice.finish_reason == "tool_calls":
            finish = "tool_calls"
        elif choice.finish_reason == "length":
            finish = "max_tokens"
        else:
            finish = "stop"

        return GenerateResponse(content=message.content, tool_calls=tool_calls, finish_reason=finish)

    async def stream(
        self, messages: list[dict], system: str | None = None, max_tokens: int = 2000
    ) -> AsyncIterator[str]:
        try:
            chunks = await self.client.chat.completions.create(
                model=self.model,
                max_tokens=max_tokens,
                messages=self._messages(messages, system),
                stream=True,
            )
            async for chunk in chunks:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except LLMError:
            raise
        except Exception as e:
            _handle_openai_error(e)
