"""Conversation routes: send messages, read history, pending confirmations."""

import asyncio
import json

import structlog
from fastapi import APIRouter, Depends, HTTPException
from starlette.responses import StreamingResponse

from intents import Steward
from intents.handlers.generate import STREAM_EVENT
from web.deps import get_steward
from web.models import (
    ArtifactSummary,
    ConfirmationAnswer,
    ConfirmationOut,
    ConfirmationResponse,
    MessageCreate,
    MessageOut,
    TodoOut,
    TodoStepOut,
    TurnResponse,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["conversations"])


def _messages(steward: Steward, title: str, since: int = 0) -> list[MessageOut]:
    return [
        MessageOut(id=m.id, role=m.role, content=m.content, command=m.command)
        for m in steward.conversations.read_history(title)[since:]
    ]


def _confirmation_out(p) -> ConfirmationOut:
    return ConfirmationOut(
        id=p.id,
        type=p.type,
        conversation_title=p.conversation_title,
        message=p.message,
        created_at=p.created_at,
    )


@router.get("/conversations", response_model=list[str])
async def list_conversations(steward: Steward = Depends(get_steward)):
    return steward.conversations.list_conversations()


@router.get("/conversations/{title}/messages", response_model=list[MessageOut])
async def get_messages(title: str, limit: int = 50, steward: Steward = Depends(get_steward)):
    messages = _messages(steward, title)
    return messages[-limit:] if limit > 0 else messages


@router.post("/conversations/{title}/messages", response_model=TurnResponse)
async def post_message(title: str, body: MessageCreate, steward: Steward = Depends(get_steward)):
    """Run one user turn and return the messages it produced."""
    before = len(steward.conversations.read_history(title))
    status = await steward.handle_utterance(title, body.text, lang=body.lang, reload=body.reload)
    return TurnResponse(status=str(status), messages=_messages(steward, title, since=before))


@router.post("/conversations/{title}/messages/stream")
async def post_message_stream(
    title: str, body: MessageCreate, steward: Steward = Depends(get_steward)
):
    """SSE version of a turn: ``chunk`` events while generating, then ``done``."""
    queue: asyncio.Queue[dict | None] = asyncio.Queue()
    before = len(steward.conversations.read_history(title))

    def _on_chunk(event):
        queue.put_nowait({"type": "chunk", "content": event.payload.get("chunk", "")})

    async def _run_turn():
        unsubscribe = steward.events.subscribe(title, STREAM_EVENT, _on_chunk)
        try:
            status = await steward.handle_utterance(
                title, body.text, lang=body.lang, reload=body.reload
            )
            queue.put_nowait(
                {
                    "type": "done",
                    "status": str(status),
                    "messages": [
                        m.model_dump() for m in _messages(steward, title, since=before)
                    ],
                }
            )
        except Exception as exc:
            logger.exception("web.stream_failed", title=title)
            queue.put_nowait({"type": "error", "detail": str(exc)})
        finally:
            unsubscribe()
            queue.put_nowait(None)  # sentinel

    async def _sse_generator():
        task = asyncio.create_task(_run_turn())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield f"data: {json.dumps(event)}\n\n"
        finally:
            task.cancel()

    return StreamingResponse(_sse_generator(), media_type="text/event-stream")


@router.get("/conversations/{title}/confirmations", response_model=list[ConfirmationOut])
async def get_confirmations(title: str, steward: Steward = Depends(get_steward)):
    return [_confirmation_out(p) for p in steward.router.get_pending_confirmations(title)]


@router.get("/conversations/{title}/artifacts", response_model=list[ArtifactSummary])
async def get_artifacts(title: str, limit: int = 20, steward: Steward = Depends(get_steward)):
    return [ArtifactSummary(**a) for a in steward.services.artifacts.summarize(title, limit)]


@router.get("/conversations/{title}/todo", response_model=TodoOut)
async def get_todo(title: str, steward: Steward = Depends(get_steward)):
    todo = steward.services.todo.get(title)
    if todo is None:
        raise HTTPException(status_code=404, detail="No to-do list")
    return TodoOut(
        current_step=todo.current_step,
        steps=[
            TodoStepOut(index=i, task=step.task, status=str(todo.status_of(i)))
            for i, step in enumerate(todo.steps, start=1)
        ],
    )


@router.post("/conversations/{title}/reset", status_code=204)
async def reset_conversation(title: str, steward: Steward = Depends(get_steward)):
    steward.reset(title)


@router.get("/confirmations", response_model=list[ConfirmationOut])
async def list_confirmations(steward: Steward = Depends(get_steward)):
    return [_confirmation_out(p) for p in steward.router.get_pending_confirmations()]


@router.post("/confirmations/{confirmation_id}", response_model=ConfirmationResponse)
async def answer_confirmation(
    confirmation_id: str, body: ConfirmationAnswer, steward: Steward = Depends(get_steward)
):
    """Resolve a confirmation. Unknown ids are a no-op (``handled: false``)."""
    pending = {p.id: p for p in steward.router.get_pending_confirmations()}
    entry = pending.get(confirmation_id)
    if entry is None:
        return ConfirmationResponse(handled=False)

    title = entry.conversation_title
    before = len(steward.conversations.read_history(title))
    handled = await steward.respond_to_confirmation(confirmation_id, body.confirmed)
    return ConfirmationResponse(handled=handled, messages=_messages(steward, title, since=before))
