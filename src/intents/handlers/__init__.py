"""Intent handlers, one per command family."""

from .base import HandlerError, HandlerServices, IntentHandler
from .confirm import ConfirmHandler, parse_confirmation
from .control import BuildIndexHandler, CloseHandler, HelpHandler, StopHandler
from .create import CreateHandler
from .delete import DeleteHandler
from .generate import GenerateHandler
from .media import MediaHandler
from .read import ReadHandler
from .revert import RevertHandler
from .search import SearchHandler
from .todo import TodoHandler
from .transfer import CopyHandler, MoveHandler
from .update import UpdateHandler
from .user_defined import UserDefinedCommandHandler


def build_handlers(services: HandlerServices, events=None) -> list[IntentHandler]:
    """One instance of every built-in handler plus the user-defined command handler."""
    return [
        SearchHandler(services),
        CreateHandler(services),
        DeleteHandler(services),
        CopyHandler(services),
        MoveHandler(services),
        UpdateHandler(services),
        ReadHandler(services),
        GenerateHandler(services, events=events),
        MediaHandler(services),
        RevertHandler(services),
        ConfirmHandler(services),
        StopHandler(services),
        CloseHandler(services),
        HelpHandler(services),
        BuildIndexHandler(services),
        TodoHandler(services),
        UserDefinedCommandHandler(services),
    ]


__all__ = [
    "BuildIndexHandler",
    "CloseHandler",
    "ConfirmHandler",
    "CopyHandler",
    "CreateHandler",
    "DeleteHandler",
    "GenerateHandler",
    "HandlerError",
    "HandlerServices",
    "HelpHandler",
    "IntentHandler",
    "MediaHandler",
    "MoveHandler",
    "ReadHandler",
    "RevertHandler",
    "SearchHandler",
    "StopHandler",
    "TodoHandler",
    "UpdateHandler",
    "UserDefinedCommandHandler",
    "build_handlers",
    "parse_confirmation",
]
