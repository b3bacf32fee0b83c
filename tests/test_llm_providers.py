"""Tests for LLM provider adapters."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from llm import LLMAuthError, LLMError, LLMRateLimitError, ToolDefinition
from llm.providers.claude import ClaudeProvider
from llm.providers.openai import OpenAIProvider

TOOL = ToolDefinition(
    name="search",
    description="Search the vault",
    input_schema={"type": "object", "properties": {"q": {"type": "string"}}},
)


class _AsyncStream:
    """Async iterator over prepared stream events."""

    def __init__(self, events):
        self._events = list(events)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._events:
            raise StopAsyncIteration
        return self._events.pop(0)


def _claude_client(**create_kwargs):
    client = MagicMock()
    client.messages.create = AsyncMock(**create_kwargs)
    return client


def _openai_client(**create_kwargs):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(**create_kwargs)
    return client


class TestClaudeProvider:
    @pytest.mark.asyncio
    async def test_generate(self):
        mock_resp = MagicMock()
        mock_resp.content = [MagicMock(type="text", text="Hello from Claude")]
        client = _claude_client(return_value=mock_resp)

        provider = ClaudeProvider(client=client, model="claude-test")
        result = await provider.generate(
            messages=[{"role": "user", "content": "hi"}],
            system="Be helpful",
            max_tokens=100,
        )

        assert result == "Hello from Claude"
        client.messages.create.assert_awaited_once_with(
            model="claude-test",
            max_tokens=100,
            messages=[{"role": "user", "content": "hi"}],
            system="Be helpful",
        )

    @pytest.mark.asyncio
    async def test_generate_no_system(self):
        mock_resp = MagicMock()
        mock_resp.content = [MagicMock(type="text", text="response")]
        client = _claude_client(return_value=mock_resp)

        provider = ClaudeProvider(client=client)
        await provider.generate(messages=[{"role": "user", "content": "hi"}])

        call_kwargs = client.messages.create.call_args.kwargs
        assert "system" not in call_kwargs

    @pytest.mark.asyncio
    async def test_system_messages_folded_into_system(self):
        mock_resp = MagicMock()
        mock_resp.content = [MagicMock(type="text", text="ok")]
        client = _claude_client(return_value=mock_resp)

        provider = ClaudeProvider(client=client)
        await provider.generate(
            messages=[
                {"role": "system", "content": "extra"},
                {"role": "user", "content": "hi"},
            ],
            system="base",
        )

        call_kwargs = client.messages.create.call_args.kwargs
        assert call_kwargs["system"] == "base\n\nextra"
        assert call_kwargs["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_auth_error(self):
        from anthropic import AuthenticationError

        client = _claude_client(
            side_effect=AuthenticationError(
                message="bad key", response=MagicMock(status_code=401), body={}
            )
        )

        provider = ClaudeProvider(client=client)
        with pytest.raises(LLMAuthError):
            await provider.generate(messages=[{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_rate_limit_error(self):
        from anthropic import RateLimitError

        client = _claude_client(
            side_effect=RateLimitError(
                message="rate limited", response=MagicMock(status_code=429), body={}
            )
        )

        provider = ClaudeProvider(client=client)
        with pytest.raises(LLMRateLimitError):
            await provider.generate(messages=[{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_api_error(self):
        from anthropic import APIError

        client = _claude_client(
            side_effect=APIError(message="server error", request=MagicMock(), body=None)
        )

        provider = ClaudeProvider(client=client)
        with pytest.raises(LLMError):
            await provider.generate(messages=[{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_tool_call_parsed(self):
        block = MagicMock(type="tool_use", id="tu_1", input={"q": "ai"})
        block.name = "search"
        mock_resp = MagicMock(content=[block], stop_reason="tool_use")
        client = _claude_client(return_value=mock_resp)

        provider = ClaudeProvider(client=client)
        result = await provider.generate_with_tools(
            messages=[{"role": "user", "content": "find ai notes"}],
            tools=[TOOL],
            tool_choice="search",
        )

        assert result.finish_reason == "tool_calls"
        assert result.content is None
        assert result.first_call("search").arguments == {"q": "ai"}
        call_kwargs = client.messages.create.call_args.kwargs
        assert call_kwargs["tool_choice"] == {"type": "tool", "name": "search"}
        assert call_kwargs["tools"][0]["input_schema"] == TOOL.input_schema

    @pytest.mark.asyncio
    async def test_stream_yields_text_deltas(self):
        def delta(text):
            return MagicMock(type="content_block_delta", delta=MagicMock(type="text_delta", text=text))

        events = [MagicMock(type="message_start"), delta("Hel"), delta("lo")]
        client = _claude_client(return_value=_AsyncStream(events))

        provider = ClaudeProvider(client=client)
        chunks = [c async for c in provider.stream([{"role": "user", "content": "hi"}])]

        assert chunks == ["Hel", "lo"]
        assert client.messages.create.call_args.kwargs["stream"] is True


class TestOpenAIProvider:
    @pytest.mark.asyncio
    async def test_generate(self):
        mock_resp = MagicMock()
        mock_resp.choices = [MagicMock(message=MagicMock(content="Hello from GPT"))]
        client = _openai_client(return_value=mock_resp)

        provider = OpenAIProvider(client=client, model="gpt-test")
        result = await provider.generate(
            messages=[{"role": "user", "content": "hi"}],
            system="Be helpful",
            max_tokens=100,
        )

        assert result == "Hello from GPT"
        call_kwargs = client.chat.completions.create.call_args.kwargs
        assert call_kwargs["model"] == "gpt-test"
        assert call_kwargs["messages"][0] == {"role": "system", "content": "Be helpful"}
        assert call_kwargs["messages"][1] == {"role": "user", "content": "hi"}

    @pytest.mark.asyncio
    async def test_generate_no_system(self):
        mock_resp = MagicMock()
        mock_resp.choices = [MagicMock(message=MagicMock(content="response"))]
        client = _openai_client(return_value=mock_resp)

        provider = OpenAIProvider(client=client)
        await provider.generate(messages=[{"role": "user", "content": "hi"}])

        messages = client.chat.completions.create.call_args.kwargs["messages"]
        assert len(messages) == 1
        assert messages[0]["role"] == "user"

    @pytest.mark.asyncio
    async def test_auth_error(self):
        from openai import AuthenticationError

        client = _openai_client(
            side_effect=AuthenticationError(
                message="bad key", response=MagicMock(status_code=401), body={}
            )
        )

        provider = OpenAIProvider(client=client)
        with pytest.raises(LLMAuthError):
            await provider.generate(messages=[{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_rate_limit_error(self):
        from openai import RateLimitError

        client = _openai_client(
            side_effect=RateLimitError(
                message="rate limited", response=MagicMock(status_code=429), body={}
            )
        )

        provider = OpenAIProvider(client=client)
        with pytest.raises(LLMRateLimitError):
            await provider.generate(messages=[{"role": "user", "content": "hi"}])

    @pytest.mark.asyncio
    async def test_tool_call_parsed(self):
        function = MagicMock(arguments=json.dumps({"q": "ai"}))
        function.name = "search"
        tool_call = MagicMock(id="call_1", function=function)
        choice = MagicMock(
            message=MagicMock(content=None, tool_calls=[tool_call]), finish_reason="tool_calls"
        )
        client = _openai_client(return_value=MagicMock(choices=[choice]))

        provider = OpenAIProvider(client=client)
        result = await provider.generate_with_tools(
            messages=[{"role": "user", "content": "find ai notes"}],
            tools=[TOOL],
            tool_choice="search",
        )

        assert result.finish_reason == "tool_calls"
        assert result.tool_calls[0].arguments == {"q": "ai"}
        call_kwargs = client.chat.completions.create.call_args.kwargs
        assert call_kwargs["tool_choice"] == {"type": "function", "function": {"name": "search"}}
        assert call_kwargs["tools"][0]["function"]["parameters"] == TOOL.input_schema

    @pytest.mark.asyncio
    async def test_malformed_tool_arguments(self):
        function = MagicMock(arguments="{not json")
        function.name = "search"
        choice = MagicMock(
            message=MagicMock(content=None, tool_calls=[MagicMock(id="c", function=function)]),
            finish_reason="tool_calls",
        )
        client = _openai_client(return_value=MagicMock(choices=[choice]))

        provider = OpenAIProvider(client=client)
        with pytest.raises(LLMError, match="malformed"):
            await provider.generate_with_tools(
                messages=[{"role": "user", "content": "x"}], tools=[TOOL]
            )

    @pytest.mark.asyncio
    async def test_stream_skips_empty_deltas(self):
        def chunk(content):
            return MagicMock(choices=[MagicMock(delta=MagicMock(content=content))])

        client = _openai_client(return_value=_AsyncStream([chunk("a"), chunk(None), chunk("b")]))

        provider = OpenAIProvider(client=client)
        chunks = [c async for c in provider.stream([{"role": "user", "content": "hi"}])]

        assert chunks == ["a", "b"]
