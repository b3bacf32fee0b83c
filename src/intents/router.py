"""Sequential per-conversation intent execution."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Optional

import structlog

from observability import metrics
from shared_types import IntentResultStatus, MessageRole

from .abort import OperationAborted
from .commands import ISOLATED_COMMANDS, canonical_command
from .confirmations import ConfirmationBroker, PendingConfirmation
from .events import ConversationEvent, ConversationEvents
from .gateway import ModelCallError
from .handlers.base import HandlerError, HandlerServices, IntentHandler
from .schemas import ToolArgumentsError
from .state_store import StateStore
from .types import (
    ErrorResult,
    HandlerParams,
    HandlerResult,
    Intent,
    IntentBatch,
    PendingAction,
)

logger = structlog.get_logger()

LOW_CONFIDENCE_KEY = "low_confidence_batch"
LOW_CONFIDENCE_EVENT = "intent_extraction_confirmed"
USER_COMMAND_HANDLER = "user_command"


@dataclass
class _Queue:
    intents: list[Intent]
    index: int = 0
    original_query: Optional[str] = None
    lang: Optional[str] = None


class CommandRouter:
    """Runs a conversation's intents one at a time against their handlers.

    Intents of one conversation never run concurrently (a per-title
    ``asyncio.Lock``). A handler asking for confirmation suspends the queue:
    the remaining intents are stored with the pending confirmation as a
    PendingAction and picked up again in ``_resume`` when the user answers.
    ``confirm``/``yes``/``no``/``stop``/``abort`` run outside the lock so they
    can act on a conversation that is busy or suspended.
    """

    def __init__(
        self,
        services: HandlerServices,
        handlers: list[IntentHandler],
        state: StateStore,
        confirmations: ConfirmationBroker,
        events: ConversationEvents,
        confidence_threshold: float = 0.7,
    ):
        self.services = services
        self.state = state
        self.confirmations = confirmations
        self.events = events
        self.confidence_threshold = confidence_threshold

        self._handlers: dict[str, IntentHandler] = {}
        self._by_name: dict[str, IntentHandler] = {}
        for handler in handlers:
            self._by_name[handler.name] = handler
            for command in handler.commands:
                self._handlers[command] = handler

        self._locks: dict[str, asyncio.Lock] = {}
        self._queues: dict[str, _Queue] = {}
        self._subscribed: set[str] = set()

        services.router = self
        confirmations.set_resumer(self._resume)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def handler_for(self, intent: Intent) -> Optional[IntentHandler]:
        command = canonical_command(intent.command)
        user_commands = self.services.user_commands
        if user_commands is not None and user_commands.get(intent.base_type) is not None:
            builtin = self._handlers.get(command)
            if builtin is None or not self.services.config.commands.builtin_precedence:
                return self._by_name.get(USER_COMMAND_HANDLER)
        return self._handlers.get(command)

    async def process_intents(self, batch: IntentBatch) -> IntentResultStatus:
        """Run a batch; returns the status of the last intent that ran."""
        title = batch.title
        status = IntentResultStatus.SUCCESS
        queued = []
        for intent in batch.intents:
            if intent.command in ISOLATED_COMMANDS:
                status = await self._run_isolated(batch, intent)
            else:
                queued.append(intent)
        if not queued:
            return status

        # A new request replaces whatever this conversation was waiting on
        self.confirmations.discard_for(title)
        self.state.delete_state(title, LOW_CONFIDENCE_KEY)

        if (
            batch.confidence is not None
            and batch.confidence <= self.confidence_threshold
            and not batch.intent_extraction_confirmed
        ):
            return self._hold_low_confidence(batch, queued)

        queue = _Queue(intents=queued, original_query=batch.original_query, lang=batch.lang)
        async with self._lock(title):
            self._queues[title] = queue
            try:
                return await self._run(title, queue)
            finally:
                self._queues.pop(title, None)

    async def confirm_low_confidence(self, title: str) -> Optional[IntentResultStatus]:
        """Run the batch held back for low confidence, as confirmed by the user."""
        data = self.state.get_state(title, LOW_CONFIDENCE_KEY)
        if data is None:
            return None
        self.state.delete_state(title, LOW_CONFIDENCE_KEY)
        batch = IntentBatch.from_dict(data)
        batch.intent_extraction_confirmed = True
        return await self.process_intents(batch)

    async def respond_to_confirmation(self, confirmation_id: str, confirmed: bool) -> bool:
        for pending in self.confirmations.get_pending():
            if pending.id == confirmation_id:
                self._subscribe(pending.conversation_title)
                if not confirmed and pending.on_confirm_event:
                    self.state.delete_state(pending.conversation_title, LOW_CONFIDENCE_KEY)
                break
        return await self.confirmations.respond(confirmation_id, confirmed)

    def get_pending_confirmations(self, title: Optional[str] = None) -> list[PendingConfirmation]:
        return self.confirmations.get_pending(title)

    def drop_next_intent(self, title: str) -> Optional[Intent]:
        queue = self._queues.get(title)
        if queue is None or queue.index + 1 >= len(queue.intents):
            return None
        dropped = queue.intents.pop(queue.index + 1)
        logger.info("router.intent_dropped", title=title, type=dropped.type)
        return dropped

    def clear_queue(self, title: str) -> int:
        """Drop the intents queued after the one currently running."""
        queue = self._queues.get(title)
        if queue is None:
            return 0
        dropped = len(queue.intents) - queue.index - 1
        del queue.intents[queue.index + 1 :]
        return max(dropped, 0)

    def clear(self, title: str) -> None:
        self.clear_queue(title)
        self.confirmations.discard_for(title)
        self.state.delete_state(title, LOW_CONFIDENCE_KEY)
        self.events.close(title)
        self._subscribed.discard(title)
        lock = self._locks.get(title)
        if lock is not None and not lock.locked():
            del self._locks[title]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _lock(self, title: str) -> asyncio.Lock:
        return self._locks.setdefault(title, asyncio.Lock())

    def _params(self, title: str, queue: _Queue) -> HandlerParams:
        intent = queue.intents[queue.index]
        next_index = queue.index + 1
        return HandlerParams(
            title=title,
            intent=intent,
            next_intent=queue.intents[next_index] if next_index < len(queue.intents) else None,
            lang=queue.lang,
            original_query=queue.original_query,
        )

    async def _run(self, title: str, queue: _Queue) -> IntentResultStatus:
        status = IntentResultStatus.SUCCESS
        while queue.index < len(queue.intents):
            params = self._params(title, queue)
            handler = self.handler_for(params.intent)
            if handler is None:
                self._post(title, f"Unknown command: {params.intent.type}")
                metrics.record_intent(params.intent.base_type, IntentResultStatus.ERROR)
                return IntentResultStatus.ERROR

            result = await self._execute(handler, params, lambda: handler.handle(params))
            status = await self._apply(title, queue, handler, params, result)
            if status != IntentResultStatus.SUCCESS:
                return status
        return status

    async def _execute(
        self,
        handler: IntentHandler,
        params: HandlerParams,
        invoke: Callable[[], Awaitable[HandlerResult]],
    ) -> HandlerResult:
        intent = params.intent
        log = logger.bind(title=params.title, intent=intent.type, handler=handler.name)
        try:
            with metrics.timer(f"handler.{intent.base_type}"):
                result = await invoke()
        except (HandlerError, ToolArgumentsError) as e:
            result = ErrorResult(str(e))
            self._post(params.title, str(e), command=intent.base_type)
        except OperationAborted:
            log.info("handler.aborted")
            result = ErrorResult("Operation aborted.")
            self._post(params.title, "Operation aborted.", command=intent.base_type)
        except ModelCallError as e:
            log.warning("handler.model_failed", model=e.model, error=str(e.cause))
            message = f"The model {e.model} failed: {e.cause}"
            result = ErrorResult(message)
            self._post(params.title, message, command=intent.base_type)
        except Exception as e:
            log.exception("handler.failed")
            message = f"Something went wrong while running {intent.base_type}: {e}"
            result = ErrorResult(message)
            self._post(params.title, message, command=intent.base_type)

        metrics.record_intent(intent.base_type, result.status)
        log.info("handler.completed", status=str(result.status))
        return result

    async def _apply(
        self,
        title: str,
        queue: _Queue,
        handler: IntentHandler,
        params: HandlerParams,
        result: HandlerResult,
    ) -> IntentResultStatus:
        intent = params.intent
        while result.status == IntentResultStatus.NEEDS_CONFIRMATION and intent.no_confirm:
            plan = result.plan
            result = await self._execute(
                handler, params, lambda: handler.resume(params, plan, True)
            )

        if result.status == IntentResultStatus.SUCCESS:
            queue.index += 1
            if result.next_intents:
                queue.intents[queue.index : queue.index] = list(result.next_intents)
            if intent.step is not None:
                self.services.todo.complete_step(title, intent.step)
            return IntentResultStatus.SUCCESS

        if result.status == IntentResultStatus.NEEDS_CONFIRMATION:
            action = PendingAction(
                handler=handler.name,
                plan=result.plan,
                intent=intent,
                remaining=queue.intents[queue.index + 1 :],
                original_query=queue.original_query,
                lang=queue.lang,
            )
            self.confirmations.request(
                title, handler.name, result.message, context={"action": action.to_dict()}
            )
            self._post(title, result.message, command=intent.base_type)
            return IntentResultStatus.NEEDS_CONFIRMATION

        if result.status == IntentResultStatus.LOW_CONFIDENCE:
            self._post(title, result.explanation, command=intent.base_type)
        return result.status

    async def _run_isolated(self, batch: IntentBatch, intent: Intent) -> IntentResultStatus:
        handler = self.handler_for(intent)
        if handler is None:
            self._post(batch.title, f"Unknown command: {intent.type}")
            return IntentResultStatus.ERROR
        params = HandlerParams(
            title=batch.title, intent=intent, lang=batch.lang, original_query=batch.original_query
        )
        result = await self._execute(handler, params, lambda: handler.handle(params))
        return result.status

    async def _resume(self, pending: PendingConfirmation, confirmed: bool) -> None:
        """Resumer registered with the broker: continue a suspended queue."""
        title = pending.conversation_title
        action = PendingAction.from_dict(pending.context["action"])
        handler = self._by_name.get(action.handler)
        if handler is None:
            logger.error("router.resume_unknown_handler", handler=action.handler, title=title)
            self._post(title, f"Cannot resume {action.handler}: handler not available.")
            return

        queue = _Queue(
            intents=[action.intent, *action.remaining],
            original_query=action.original_query,
            lang=action.lang,
        )
        async with self._lock(title):
            self._queues[title] = queue
            try:
                params = self._params(title, queue)
                result = await self._execute(
                    handler, params, lambda: handler.resume(params, action.plan, confirmed)
                )
                status = await self._apply(title, queue, handler, params, result)
                if status == IntentResultStatus.SUCCESS:
                    await self._run(title, queue)
            finally:
                self._queues.pop(title, None)

    # ------------------------------------------------------------------
    # Low confidence
    # ------------------------------------------------------------------

    def _hold_low_confidence(
        self, batch: IntentBatch, queued: list[Intent]
    ) -> IntentResultStatus:
        title = batch.title
        held = IntentBatch(
            title=title,
            intents=queued,
            original_query=batch.original_query,
            lang=batch.lang,
            confidence=batch.confidence,
            explanation=batch.explanation,
        )
        self.state.set_state(title, LOW_CONFIDENCE_KEY, held.to_dict())
        self._subscribe(title)
        message = batch.explanation or "I'm not sure what you want me to do."
        self.confirmations.request(
            title,
            "intent_extraction",
            message,
            on_confirm_event={"name": LOW_CONFIDENCE_EVENT, "payload": {}},
        )
        self._post(title, f"{message}\n\nShould I go ahead?")
        metrics.counter("router.low_confidence")
        logger.info("router.low_confidence", title=title, confidence=batch.confidence)
        return IntentResultStatus.LOW_CONFIDENCE

    def _subscribe(self, title: str) -> None:
        if title in self._subscribed:
            return

        async def on_confirmed(event: ConversationEvent):
            await self.confirm_low_confidence(event.title)

        self.events.subscribe(title, LOW_CONFIDENCE_EVENT, on_confirmed)
        self._subscribed.add(title)

    def _post(self, title: str, text: str, command: Optional[str] = None) -> None:
        self.services.conversations.append_message(
            title, text, role=MessageRole.ASSISTANT, command=command
        )
