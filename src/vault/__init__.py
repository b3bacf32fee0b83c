"""Markdown vault: notes, trash, search index and conversation notes."""

from .conversations import ConversationStore, Message
from .search import SearchHit, SearchOperation, VaultSearchIndex
from .storage import NoteStore, ensure_md, sanitize_note_name
from .trash import TrashService

__all__ = [
    "ConversationStore",
    "Message",
    "NoteStore",
    "SearchHit",
    "SearchOperation",
    "TrashService",
    "VaultSearchIndex",
    "ensure_md",
    "sanitize_note_name",
]
