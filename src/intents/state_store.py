"""SQLite-backed per-conversation state: typed state records, artifacts, pending confirmations."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import structlog

from db import wal_connect

logger = structlog.get_logger()


class StateStore:
    """Single database holding the durable state of every conversation."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path).expanduser()
        self._init_db()

    def _init_db(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS conversation_state (
                    title TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (title, key)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS artifacts (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT UNIQUE NOT NULL,
                    title TEXT NOT NULL,
                    artifact_type TEXT NOT NULL,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_artifacts_title ON artifacts(title)")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS pending_confirmations (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    type TEXT NOT NULL,
                    message TEXT NOT NULL,
                    context TEXT NOT NULL,
                    on_confirm_event TEXT,
                    created_at TEXT NOT NULL
                )
            """)

    # ------------------------------------------------------------------
    # Conversation state records
    # ------------------------------------------------------------------

    def get_state(self, title: str, key: str) -> Optional[Any]:
        with wal_connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT value FROM conversation_state WHERE title = ? AND key = ?", (title, key)
            ).fetchone()
        return json.loads(row[0]) if row else None

    def set_state(self, title: str, key: str, value: Any) -> None:
        with wal_connect(self.db_path) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO conversation_state(title, key, value, updated_at) "
                "VALUES (?, ?, ?, ?)",
                (title, key, json.dumps(value), datetime.now().isoformat()),
            )

    def delete_state(self, title: str, key: str) -> bool:
        with wal_connect(self.db_path) as conn:
            cur = conn.execute(
                "DELETE FROM conversation_state WHERE title = ? AND key = ?", (title, key)
            )
        return cur.rowcount > 0

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def insert_artifact(self, artifact_id: str, title: str, artifact_type: str, data: dict) -> None:
        with wal_connect(self.db_path) as conn:
            conn.execute(
                "INSERT INTO artifacts(id, title, artifact_type, data, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (artifact_id, title, artifact_type, json.dumps(data), datetime.now().isoformat()),
            )

    def fetch_artifacts(
        self, title: str, types: Optional[list[str]] = None, newest_first: bool = False
    ) -> list[dict]:
        sql = "SELECT data FROM artifacts WHERE title = ?"
        params: list = [title]
        if types:
            sql += f" AND artifact_type IN ({', '.join('?' for _ in types)})"
            params.extend(types)
        sql += " ORDER BY seq DESC" if newest_first else " ORDER BY seq ASC"
        with wal_connect(self.db_path) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [json.loads(r[0]) for r in rows]

    def fetch_artifact(self, title: str, artifact_id: str) -> Optional[dict]:
        with wal_connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT data FROM artifacts WHERE title = ? AND id = ?", (title, artifact_id)
            ).fetchone()
        return json.loads(row[0]) if row else None

    def delete_artifact(self, title: str, artifact_id: str) -> bool:
        with wal_connect(self.db_path) as conn:
            cur = conn.execute(
                "DELETE FROM artifacts WHERE title = ? AND id = ?", (title, artifact_id)
            )
        return cur.rowcount > 0

    def delete_artifacts(self, title: str) -> int:
        with wal_connect(self.db_path) as conn:
            cur = conn.execute("DELETE FROM artifacts WHERE title = ?", (title,))
        return cur.rowcount

    # ------------------------------------------------------------------
    # Pending confirmations
    # ------------------------------------------------------------------

    def insert_confirmation(self, record: dict) -> None:
        with wal_connect(self.db_path) as conn:
            conn.execute(
                "INSERT INTO pending_confirmations"
                "(id, title, type, message, context, on_confirm_event, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    record["id"],
                    record["conversation_title"],
                    record["type"],
                    record["message"],
                    json.dumps(record.get("context") or {}),
                    json.dumps(record["on_confirm_event"]) if record.get("on_confirm_event") else None,
                    record["created_at"],
                ),
            )

    def confirmation_exists(self, confirmation_id: str) -> bool:
        with wal_connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT 1 FROM pending_confirmations WHERE id = ?", (confirmation_id,)
            ).fetchone()
        return row is not None

    def pop_confirmation(self, confirmation_id: str) -> Optional[dict]:
        """Fetch and delete in one transaction."""
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute(
                "SELECT * FROM pending_confirmations WHERE id = ?", (confirmation_id,)
            ).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM pending_confirmations WHERE id = ?", (confirmation_id,))
        return _confirmation_row(row)

    def fetch_confirmations(self, title: Optional[str] = None) -> list[dict]:
        sql = "SELECT * FROM pending_confirmations"
        params: tuple = ()
        if title is not None:
            sql += " WHERE title = ?"
            params = (title,)
        sql += " ORDER BY created_at ASC"
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_confirmation_row(r) for r in rows]

    def delete_confirmations(self, title: str) -> int:
        with wal_connect(self.db_path) as conn:
            cur = conn.execute("DELETE FROM pending_confirmations WHERE title = ?", (title,))
        return cur.rowcount


def _confirmation_row(row) -> dict:
    return {
        "id": row["id"],
        "type": row["type"],
        "conversation_title": row["title"],
        "message": row["message"],
        "context": json.loads(row["context"]),
        "on_confirm_event": json.loads(row["on_confirm_event"]) if row["on_confirm_event"] else None,
        "created_at": row["created_at"],
    }
