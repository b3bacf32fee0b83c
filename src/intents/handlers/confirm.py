"""Answer the conversation's pending confirmation."""

from typing import Optional

from ..types import ErrorResult, HandlerOptions, HandlerParams, HandlerResult, SuccessResult
from .base import IntentHandler

AFFIRMATIVE = frozenset(
    {
        "yes", "y", "sure", "ok", "yeah", "yep", "create", "confirm", "proceed",
        "có", "có nha", "đồng ý", "vâng", "ừ", "tạo", "tiếp tục",
    }
)
NEGATIVE = frozenset(
    {
        "no", "n", "nope", "don't", "dont", "cancel", "stop",
        "không", "không nha", "đừng", "hủy", "dừng lại",
    }
)

NO_PENDING = "There is no pending confirmation."
NOT_UNDERSTOOD = "I didn't understand your confirmation. Please answer yes or no."


def parse_confirmation(text: str) -> Optional[bool]:
    """True/False for a recognised answer, None otherwise. Empty counts as yes."""
    answer = (text or "").strip().lower().rstrip(".!?,;: ")
    if not answer or answer in AFFIRMATIVE:
        return True
    if answer in NEGATIVE:
        return False
    return None


class ConfirmHandler(IntentHandler):
    name = "confirm"
    commands = ("confirm", "yes", "no")

    async def handle(
        self, params: HandlerParams, options: Optional[HandlerOptions] = None
    ) -> HandlerResult:
        pending = self.services.confirmations.latest_for(params.title)
        if pending is None:
            self.say(params, NO_PENDING)
            return ErrorResult(NO_PENDING)

        command = params.intent.command
        if command == "yes":
            confirmed = True
        elif command == "no":
            confirmed = False
        else:
            confirmed = parse_confirmation(params.intent.query)
        if confirmed is None:
            self.say(params, NOT_UNDERSTOOD)
            return ErrorResult(NOT_UNDERSTOOD)

        await self.services.router.respond_to_confirmation(pending.id, confirmed)
        return SuccessResult()
