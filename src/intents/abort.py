"""Cooperative cancellation: named abort tokens shared by in-flight operations."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class OperationAborted(Exception):
    """Raised inside an operation whose abort token was cancelled."""

    def __init__(self, name: str):
        super().__init__(f"Operation aborted: {name}")
        self.name = name


class AbortToken:
    """Cancellation signal for one named operation."""

    def __init__(self, name: str):
        self.name = name
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationAborted(self.name)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        On cancellation the pending work is cancelled and OperationAborted is
        raised, so callers see a prompt rejection instead of a hang.
        """
        self.raise_if_cancelled()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
        if work.done():
            return work.result()
        work.cancel()
        await asyncio.gather(work, return_exceptions=True)
        raise OperationAborted(self.name)


class AbortRegistry:
    """Process-wide map from operation name to its abort token.

    Names are scoped by the caller, e.g. ``"<conversation>:<operation>"``.
    """

    def __init__(self):
        self._tokens: dict[str, AbortToken] = {}

    def create(self, name: str) -> AbortToken:
        """Create a fresh token; an existing token with the same name is cancelled first."""
        existing = self._tokens.get(name)
        if existing is not None:
            existing.cancel()
        token = AbortToken(name)
        self._tokens[name] = token
        return token

    def get(self, name: str) -> AbortToken | None:
        return self._tokens.get(name)

    def cancel(self, name: str) -> bool:
        token = self._tokens.pop(name, None)
        if token is None:
            return False
        token.cancel()
        logger.info("abort.cancelled", operation=name)
        return True

    def cancel_all(self) -> int:
        """Cancel every active token; returns how many were active."""
        tokens = list(self._tokens.values())
        self._tokens.clear()
        for token in tokens:
            token.cancel()
        if tokens:
            logger.info("abort.cancelled_all", count=len(tokens))
        return len(tokens)

    def cancel_prefix(self, prefix: str) -> int:
        names = [n for n in self._tokens if n.startswith(prefix)]
        for name in names:
            self.cancel(name)
        return len(names)

    def clear(self, name: str, token: AbortToken | None = None) -> None:
        """Forget a finished operation's token (only if it is still ``token``)."""
        if token is None or self._tokens.get(name) is token:
            self._tokens.pop(name, None)

    def active_count(self) -> int:
        return len(self._tokens)
