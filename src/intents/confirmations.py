"""Confirmation broker: suspended actions awaiting a yes/no answer."""

import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional

import structlog

from shared_types import MessageRole

from .events import ConversationEvents
from .state_store import StateStore

logger = structlog.get_logger()

CANCELLED_MESSAGE = "Operation cancelled."


@dataclass
class PendingConfirmation:
    id: str
    type: str
    conversation_title: str
    message: str
    context: dict = field(default_factory=dict)
    created_at: str = ""
    on_confirm_event: Optional[dict] = None  # {"name": ..., "payload": {...}}


# Resumes the pending action stored in ``context``; called for both answers.
Resumer = Callable[[PendingConfirmation, bool], Awaitable[None]]


class ConfirmationBroker:
    """Maps confirmation ids to serializable pending actions.

    Entries are persisted, so a restart does not drop a question the user
    has not answered yet. Within one conversation the router keeps at most
    one entry pending.
    """

    def __init__(self, state: StateStore, events: ConversationEvents, conversations=None):
        self.state = state
        self.events = events
        self.conversations = conversations
        self._resumer: Optional[Resumer] = None

    def set_resumer(self, resumer: Resumer) -> None:
        self._resumer = resumer

    def request(
        self,
        title: str,
        type: str,
        message: str,
        context: Optional[dict] = None,
        on_confirm_event: Optional[dict] = None,
    ) -> str:
        """Store a pending confirmation and return its id (``<type>_<epoch ms>``)."""
        base = f"{type}_{int(time.time() * 1000)}"
        confirmation_id = base
        suffix = 1
        while self.state.confirmation_exists(confirmation_id):
            confirmation_id = f"{base}_{suffix}"
            suffix += 1

        pending = PendingConfirmation(
            id=confirmation_id,
            type=type,
            conversation_title=title,
            message=message,
            context=context or {},
            created_at=datetime.now().isoformat(),
            on_confirm_event=on_confirm_event,
        )
        self.state.insert_confirmation(asdict(pending))
        logger.info("confirmation.requested", id=confirmation_id, title=title, type=type)
        return confirmation_id

    async def respond(self, confirmation_id: str, confirmed: bool) -> bool:
        """Resolve a pending confirmation. Unknown ids are ignored and return False."""
        record = self.state.pop_confirmation(confirmation_id)
        if record is None:
            logger.debug("confirmation.unknown", id=confirmation_id)
            return False

        pending = PendingConfirmation(**record)
        title = pending.conversation_title
        logger.info("confirmation.resolved", id=confirmation_id, confirmed=confirmed)

        if confirmed and pending.on_confirm_event:
            event = pending.on_confirm_event
            await self.events.emit(title, event["name"], event.get("payload") or {})
            return True

        if pending.context.get("action") and self._resumer is not None:
            await self._resumer(pending, confirmed)
            return True

        if self.conversations is not None:
            text = (
                f'Confirmation received for "{pending.type}".' if confirmed else CANCELLED_MESSAGE
            )
            self.conversations.append_message(title, text, role=MessageRole.ASSISTANT)
        return True

    def get_pending(self, title: Optional[str] = None) -> list[PendingConfirmation]:
        return [PendingConfirmation(**r) for r in self.state.fetch_confirmations(title)]

    def latest_for(self, title: str) -> Optional[PendingConfirmation]:
        pending = self.get_pending(title)
        return pending[-1] if pending else None

    def discard_for(self, title: str) -> int:
        count = self.state.delete_confirmations(title)
        if count:
            logger.info("confirmation.discarded", title=title, count=count)
        return count
