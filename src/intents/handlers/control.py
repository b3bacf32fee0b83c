"""Conversation control commands: stop, close, help, build_search_index."""

from typing import Optional

import structlog

from ..commands import describe_commands
from ..types import HandlerOptions, HandlerParams, HandlerResult, SuccessResult
from .base import IntentHandler

logger = structlog.get_logger()


class StopHandler(IntentHandler):
    """Cancels every in-flight operation and the conversation's queued intents."""

    name = "stop"
    commands = ("stop", "abort")

    async def handle(
        self, params: HandlerParams, options: Optional[HandlerOptions] = None
    ) -> HandlerResult:
        count = self.services.aborts.cancel_all()
        if self.services.router is not None:
            self.services.router.clear_queue(params.title)
        logger.info("stop.requested", title=params.title, cancelled=count)
        if count:
            self.say(params, f"Stopped {count} running operation(s).")
        else:
            self.say(params, "No operations are running.")
        return SuccessResult()


class CloseHandler(IntentHandler):
    name = "close"
    commands = ("close",)

    async def handle(
        self, params: HandlerParams, options: Optional[HandlerOptions] = None
    ) -> HandlerResult:
        title = params.title
        if self.services.router is not None:
            self.services.router.clear_queue(title)
        self.services.confirmations.discard_for(title)
        self.services.aborts.cancel_prefix(f"{title}:")
        self.say(params, "Conversation closed.")
        self.services.conversations.close(title)
        return SuccessResult()


class HelpHandler(IntentHandler):
    name = "help"
    commands = ("help",)

    async def handle(
        self, params: HandlerParams, options: Optional[HandlerOptions] = None
    ) -> HandlerResult:
        user_commands = self.services.user_commands
        extra = user_commands.descriptions() if user_commands is not None else {}
        self.say(
            params,
            "Available commands (type `/name query` to run one directly):\n\n"
            + describe_commands(extra),
            in_history=False,
        )
        return SuccessResult()


class BuildIndexHandler(IntentHandler):
    name = "build_search_index"
    commands = ("build_search_index",)

    async def handle(
        self, params: HandlerParams, options: Optional[HandlerOptions] = None
    ) -> HandlerResult:
        count = self.services.search_index.rebuild()
        logger.info("search_index.rebuilt", notes=count)
        self.say(params, f"Search index rebuilt: {count} note(s) indexed.")
        return SuccessResult()
