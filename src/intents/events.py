"""Per-conversation typed event channels."""

import inspect
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger()


@dataclass
class ConversationEvent:
    title: str
    name: str
    payload: dict = field(default_factory=dict)


Listener = Callable[[ConversationEvent], Any]


class ConversationEvents:
    """Subscriptions are scoped to one conversation and dropped when it closes."""

    def __init__(self):
        self._listeners: dict[str, dict[str, list[Listener]]] = defaultdict(lambda: defaultdict(list))

    def subscribe(self, title: str, name: str, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for event ``name``; returns an unsubscribe callable."""
        self._listeners[title][name].append(listener)

        def unsubscribe():
            listeners = self._listeners.get(title, {}).get(name, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    async def emit(self, title: str, name: str, payload: dict | None = None) -> int:
        """Deliver an event to this conversation's listeners; returns delivery count."""
        event = ConversationEvent(title=title, name=name, payload=payload or {})
        listeners = list(self._listeners.get(title, {}).get(name, []))
        for listener in listeners:
            result = listener(event)
            if inspect.isawaitable(result):
                await result
        logger.debug("event.emitted", title=title, name=name, listeners=len(listeners))
        return len(listeners)

    def close(self, title: str) -> None:
        self._listeners.pop(title, None)
