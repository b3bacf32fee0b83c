"""Model gateway: abort tokens, rate-limit retry and per-conversation fallback."""

import inspect
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Optional, TypeVar

import structlog

from cli.config_models import RetryConfig
from cli.retry import retry_from_config
from llm import GenerateResponse, LLMError, LLMProvider, LLMRateLimitError, ToolDefinition
from observability import metrics

from .abort import AbortRegistry, AbortToken
from .fallback import ModelFallbackService

logger = structlog.get_logger()

T = TypeVar("T")


class ModelCallError(Exception):
    """A model call failed and no fallback model is left to try."""

    def __init__(self, model: str, cause: Exception):
        super().__init__(f"{model} failed: {cause}")
        self.model = model
        self.cause = cause


class ModelGateway:
    """The only way handlers talk to a language model.

    Every call registers an abort token named ``"<title>:<operation>"``.
    Rate limits are retried in place; other provider errors are recorded
    on the conversation's fallback state and the call moves to the next
    model of the chain. An explicit per-intent model never falls back.
    """

    def __init__(
        self,
        default_model: str,
        fallback: ModelFallbackService,
        aborts: AbortRegistry,
        provider_factory: Callable[[str], LLMProvider],
        retry_config: Optional[RetryConfig] = None,
        max_tokens: int = 2000,
    ):
        self.default_model = default_model
        self.fallback = fallback
        self.aborts = aborts
        self.provider_factory = provider_factory
        self.retry_config = retry_config or RetryConfig()
        self.max_tokens = max_tokens
        self._providers: dict[str, LLMProvider] = {}

    def provider_for(self, model: str) -> LLMProvider:
        if model not in self._providers:
            self._providers[model] = self.provider_factory(model)
        return self._providers[model]

    def current_model(self, title: str, override: Optional[str] = None) -> str:
        return override or self.fallback.get_current_model(title) or self.default_model

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    async def generate_with_tools(
        self,
        title: str,
        operation: str,
        messages: list[dict],
        tools: list[ToolDefinition],
        system: Optional[str] = None,
        tool_choice: str = "auto",
        model: Optional[str] = None,
    ) -> GenerateResponse:
        return await self._call(
            title,
            operation,
            model,
            lambda provider: provider.generate_with_tools(
                messages,
                tools,
                system=system,
                max_tokens=self.max_tokens,
                tool_choice=tool_choice,
            ),
        )

    async def generate(
        self,
        title: str,
        operation: str,
        messages: list[dict],
        system: Optional[str] = None,
        model: Optional[str] = None,
    ) -> str:
        return await self._call(
            title,
            operation,
            model,
            lambda provider: provider.generate(messages, system=system, max_tokens=self.max_tokens),
        )

    async def stream(
        self,
        title: str,
        operation: str,
        messages: list[dict],
        system: Optional[str] = None,
        model: Optional[str] = None,
        on_chunk: Optional[Callable[[str], Any]] = None,
    ) -> str:
        """Stream a completion; returns the full text.

        Fallback only happens before the first chunk arrives. A failure after
        text has been delivered is raised as ModelCallError.
        """
        name = f"{title}:{operation}"
        token = self.aborts.create(name)
        try:
            active = self._bootstrap(title, model)
            while True:
                chunks: list[str] = []
                try:
                    iterator = self.provider_for(active).stream(
                        messages, system=system, max_tokens=self.max_tokens
                    )
                    await self._drain(token, iterator, chunks, on_chunk)
                    return "".join(chunks)
                except LLMError as e:
                    if chunks:
                        raise ModelCallError(active, e) from e
                    active = self._next_model_or_raise(title, active, e, model)
        finally:
            self.aborts.clear(name, token)

    async def _drain(
        self,
        token: AbortToken,
        iterator: AsyncIterator[str],
        chunks: list[str],
        on_chunk: Optional[Callable[[str], Any]],
    ) -> None:
        try:
            while True:
                try:
                    chunk = await token.guard(iterator.__anext__())
                except StopAsyncIteration:
                    return
                chunks.append(chunk)
                if on_chunk is not None:
                    result = on_chunk(chunk)
                    if inspect.isawaitable(result):
                        await result
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _call(
        self,
        title: str,
        operation: str,
        model: Optional[str],
        fn: Callable[[LLMProvider], Awaitable[T]],
    ) -> T:
        name = f"{title}:{operation}"
        token = self.aborts.create(name)
        try:
            active = self._bootstrap(title, model)
            while True:
                try:
                    with metrics.timer(f"model.{operation}"):
                        return await self._attempt(token, active, fn)
                except LLMError as e:
                    active = self._next_model_or_raise(title, active, e, model)
        finally:
            self.aborts.clear(name, token)

    async def _attempt(
        self, token: AbortToken, model: str, fn: Callable[[LLMProvider], Awaitable[T]]
    ) -> T:
        provider = self.provider_for(model)
        async for attempt in retry_from_config(self.retry_config, exceptions=(LLMRateLimitError,)):
            with attempt:
                return await token.guard(fn(provider))
        raise LLMError(f"No attempt made for {model}")

    def _bootstrap(self, title: str, override: Optional[str]) -> str:
        if override:
            return override
        self.fallback.initialize_state(title, self.default_model)
        return self.current_model(title)

    def _next_model_or_raise(
        self, title: str, failed: str, error: LLMError, override: Optional[str]
    ) -> str:
        logger.warning("model.call_failed", title=title, model=failed, error=str(error))
        metrics.counter("model.error")
        if override or not self.fallback.is_enabled():
            raise ModelCallError(failed, error) from error
        self.fallback.record_error(title, failed, str(error))
        next_model = self.fallback.switch_to_next_model(title)
        if next_model is None:
            raise ModelCallError(failed, error) from error
        return next_model
