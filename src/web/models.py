"""Pydantic request/response schemas for the web API."""

from typing import Optional

from pydantic import BaseModel, Field

# --- Conversations ---


class MessageCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=20_000)
    lang: Optional[str] = Field(None, max_length=8)
    reload: bool = False


class MessageOut(BaseModel):
    id: str
    role: str
    content: str
    command: Optional[str] = None


class TurnResponse(BaseModel):
    status: str
    messages: list[MessageOut] = []


class ArtifactSummary(BaseModel):
    id: str
    type: str
    files: int


class TodoStepOut(BaseModel):
    index: int
    task: str
    status: str


class TodoOut(BaseModel):
    current_step: int
    steps: list[TodoStepOut]


# --- Confirmations ---


class ConfirmationOut(BaseModel):
    id: str
    type: str
    conversation_title: str
    message: str
    created_at: str


class ConfirmationAnswer(BaseModel):
    confirmed: bool


class ConfirmationResponse(BaseModel):
    handled: bool
    messages: list[MessageOut] = []


# --- Operations ---


class AbortResponse(BaseModel):
    cancelled: int
