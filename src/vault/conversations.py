"""Conversation notes: message log plus frontmatter properties."""

import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import structlog

from shared_types import MessageRole

from .storage import NoteStore, sanitize_note_name

logger = structlog.get_logger()

_MESSAGE_HEADER = re.compile(r'^<!-- message (?P<attrs>.*?) -->\n', re.MULTILINE)
_ATTR = re.compile(r'(\w+)="([^"]*)"')


@dataclass
class Message:
    id: str
    role: str
    content: str
    command: Optional[str] = None
    in_history: bool = True


class ConversationStore:
    """Stores each conversation as a markdown note under ``<steward_folder>/Conversations``.

    Messages are separated by HTML comment headers carrying id, role and
    command, so the note stays readable in any markdown editor.
    """

    def __init__(self, store: NoteStore, folder: str):
        self.store = store
        self.folder = folder.strip("/")

    def path_for(self, title: str) -> str:
        name = sanitize_note_name(title) or "Untitled"
        return f"{self.folder}/{name}.md"

    def exists(self, title: str) -> bool:
        return self.store.exists(self.path_for(title))

    def ensure(self, title: str) -> str:
        path = self.path_for(title)
        if not self.store.exists(path):
            self.store.create(
                path,
                "",
                metadata={"conversation": title, "created": datetime.now().isoformat()},
            )
            logger.info("conversation.created", title=title)
        return path

    def list_conversations(self) -> list[str]:
        titles = []
        for rel in self.store.list_notes(self.folder):
            meta = self.store.get_frontmatter(rel)
            titles.append(meta.get("conversation") or rel.rsplit("/", 1)[-1][:-3])
        return titles

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def append_message(
        self,
        title: str,
        content: str,
        role: str = MessageRole.ASSISTANT,
        command: Optional[str] = None,
        in_history: bool = True,
    ) -> str:
        """Append a message and return its id."""
        path = self.ensure(title)
        message_id = uuid.uuid4().hex[:8]
        attrs = f'id="{message_id}" role="{role}"'
        if command:
            attrs += f' command="{command}"'
        if not in_history:
            attrs += ' history="false"'

        post = self.store.read(path)
        body = post.content.rstrip("\n")
        block = f"<!-- message {attrs} -->\n{content.strip()}\n"
        post.content = f"{body}\n\n{block}" if body else block
        self.store.write(path, post)
        return message_id

    def read_history(self, title: str) -> list[Message]:
        path = self.path_for(title)
        if not self.store.exists(path):
            return []
        text = self.store.read_text(path)

        messages = []
        headers = list(_MESSAGE_HEADER.finditer(text))
        for i, match in enumerate(headers):
            end = headers[i + 1].start() if i + 1 < len(headers) else len(text)
            attrs = dict(_ATTR.findall(match.group("attrs")))
            messages.append(
                Message(
                    id=attrs.get("id", ""),
                    role=attrs.get("role", MessageRole.ASSISTANT),
                    content=text[match.end():end].strip(),
                    command=attrs.get("command"),
                    in_history=attrs.get("history") != "false",
                )
            )
        return messages

    def history_for_llm(self, title: str, limit: int = 10) -> list[dict]:
        """Recent user/assistant turns as provider messages."""
        turns = [
            {"role": m.role, "content": m.content}
            for m in self.read_history(title)
            if m.in_history and m.role in (MessageRole.USER, MessageRole.ASSISTANT) and m.content
        ]
        return turns[-limit:] if limit else turns

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    def get_property(self, title: str, key: str, default: Any = None) -> Any:
        path = self.path_for(title)
        if not self.store.exists(path):
            return default
        return self.store.get_frontmatter(path).get(key, default)

    def set_property(self, title: str, key: str, value: Any) -> None:
        path = self.ensure(title)
        if value is None:
            self.store.update_frontmatter(path, {}, remove=[key])
        else:
            self.store.update_frontmatter(path, {key: value})

    def close(self, title: str) -> None:
        self.set_property(title, "closed", True)
        self.set_property(title, "closed_at", datetime.now().isoformat())
