"""FTS5 full-text search index over vault notes."""

import json
import re
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

import structlog

from db import wal_connect

from .storage import NoteStore

logger = structlog.get_logger()


@dataclass
class SearchOperation:
    """One search operation; all given criteria must match (AND)."""

    keywords: list[str] = field(default_factory=list)
    filenames: list[str] = field(default_factory=list)
    folders: list[str] = field(default_factory=list)
    properties: list[dict] = field(default_factory=list)  # [{"name": ..., "value": ...}]

    @classmethod
    def from_dict(cls, data: dict) -> "SearchOperation":
        return cls(
            keywords=list(data.get("keywords") or []),
            filenames=list(data.get("filenames") or []),
            folders=list(data.get("folders") or []),
            properties=list(data.get("properties") or []),
        )

    def is_empty(self) -> bool:
        return not (self.keywords or self.filenames or self.folders or self.properties)


@dataclass
class SearchHit:
    path: str
    name: str
    score: float = 0.0


class VaultSearchIndex:
    """SQLite FTS5 index for vault notes.

    Operations are unioned (OR); a note matching several operations keeps
    its best score. Keyword matches rank by BM25, everything else scores 0.
    """

    def __init__(self, db_path: str | Path, store: NoteStore, exclude: tuple[str, ...] = ()):
        self.db_path = Path(db_path).expanduser()
        self.store = store
        self.exclude = exclude
        self._init_db()

    def _init_db(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE VIRTUAL TABLE IF NOT EXISTS note_fts USING fts5(
                    path UNINDEXED,
                    name,
                    content,
                    tags,
                    tokenize='porter unicode61'
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS note_meta (
                    path TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    mtime REAL NOT NULL,
                    tags TEXT NOT NULL DEFAULT '[]',
                    properties TEXT NOT NULL DEFAULT '{}'
                )
            """)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def upsert(self, path: str, content: str, metadata: dict, mtime: float):
        name = PurePosixPath(path).stem
        tags = _extract_tags(content, metadata)
        properties = json.dumps(metadata, default=str)
        with wal_connect(self.db_path) as conn:
            conn.execute("DELETE FROM note_fts WHERE path = ?", (path,))
            conn.execute(
                "INSERT INTO note_fts(path, name, content, tags) VALUES (?, ?, ?, ?)",
                (path, name, content, " ".join(tags)),
            )
            conn.execute(
                "INSERT OR REPLACE INTO note_meta(path, name, mtime, tags, properties) "
                "VALUES (?, ?, ?, ?, ?)",
                (path, name, mtime, json.dumps(tags), properties),
            )

    def delete(self, path: str):
        with wal_connect(self.db_path) as conn:
            conn.execute("DELETE FROM note_fts WHERE path = ?", (path,))
            conn.execute("DELETE FROM note_meta WHERE path = ?", (path,))

    def sync(self) -> tuple[int, int]:
        """Incremental sync from the vault. Returns (added_or_updated, deleted)."""
        with wal_connect(self.db_path) as conn:
            existing = dict(conn.execute("SELECT path, mtime FROM note_meta").fetchall())

        updated = 0
        current = set()
        for entry in self.store.get_all_content(exclude=self.exclude):
            current.add(entry["id"])
            if existing.get(entry["id"]) == entry["mtime"]:
                continue
            self.upsert(entry["id"], entry["content"], entry["metadata"], entry["mtime"])
            updated += 1

        stale = set(existing) - current
        for path in stale:
            self.delete(path)

        logger.info("search_index.synced", updated=updated, deleted=len(stale))
        return updated, len(stale)

    def index_paths(self, paths: list[str]) -> None:
        """Re-index the given notes; paths that no longer exist are dropped."""
        for path in paths:
            excluded = any(path == ex or path.startswith(ex.rstrip("/") + "/") for ex in self.exclude)
            if self.store.exists(path) and not excluded:
                post = self.store.read(path)
                self.upsert(path, post.content, dict(post.metadata), self.store.mtime(path))
            else:
                self.delete(path)

    def rebuild(self) -> int:
        with wal_connect(self.db_path) as conn:
            conn.execute("DELETE FROM note_fts")
            conn.execute("DELETE FROM note_meta")
        updated, _ = self.sync()
        return updated

    def count(self) -> int:
        with wal_connect(self.db_path) as conn:
            return conn.execute("SELECT COUNT(*) FROM note_meta").fetchone()[0]

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def execute(self, operations: list[SearchOperation], limit: int = 100) -> list[SearchHit]:
        """Run search operations and return ranked hits (best first)."""
        best: dict[str, SearchHit] = {}
        for op in operations:
            if op.is_empty():
                continue
            for hit in self._run_operation(op):
                current = best.get(hit.path)
                if current is None or hit.score > current.score:
                    best[hit.path] = hit

        hits = sorted(best.values(), key=lambda h: (-h.score, h.path))
        return hits[:limit]

    def _run_operation(self, op: SearchOperation) -> list[SearchHit]:
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = {
                r["path"]: r for r in conn.execute("SELECT * FROM note_meta").fetchall()
            }
            scores: dict[str, float] = {path: 0.0 for path in rows}

            if op.keywords:
                keyword_scores: dict[str, float] = {}
                for keyword in op.keywords:
                    fts_query = self._to_fts5_query(keyword)
                    if not fts_query:
                        continue
                    try:
                        matches = conn.execute(
                            "SELECT path, bm25(note_fts) AS rank FROM note_fts "
                            "WHERE note_fts MATCH ?",
                            (fts_query,),
                        ).fetchall()
                    except sqlite3.OperationalError as e:
                        logger.warning("vault_fts_search_error", query=keyword, error=str(e))
                        continue
                    for m in matches:
                        # bm25 is lower-is-better and negative
                        keyword_scores[m["path"]] = keyword_scores.get(m["path"], 0.0) - m["rank"]
                scores = {p: s for p, s in keyword_scores.items() if p in scores}

        results = []
        for path, score in scores.items():
            row = rows[path]
            if op.filenames and not _match_filename(row["name"], op.filenames):
                continue
            if op.folders and not _match_folder(path, op.folders):
                continue
            if op.properties and not _match_properties(
                json.loads(row["tags"]), json.loads(row["properties"]), op.properties
            ):
                continue
            results.append(SearchHit(path=path, name=row["name"], score=score))
        return results

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_fts5_query(keyword: str) -> str:
        """Quoted keywords become exact phrases; others are prefix-matched tokens (AND)."""
        keyword = keyword.strip()
        if len(keyword) >= 2 and keyword[0] == keyword[-1] and keyword[0] in "\"'":
            phrase = keyword[1:-1].replace('"', "")
            return f'"{phrase}"' if phrase.strip() else ""
        tokens = re.findall(r"\w+", keyword.lower())
        if not tokens:
            return ""
        return " ".join(f"{t}*" for t in tokens)


def _extract_tags(content: str, metadata: dict) -> list[str]:
    tags = metadata.get("tags") or []
    if isinstance(tags, str):
        tags = [t.strip() for t in tags.split(",")]
    found = {str(t).lstrip("#").lower() for t in tags if str(t).strip()}
    found.update(t.lower() for t in re.findall(r"(?<!\w)#([\w/-]+)", content))
    return sorted(found)


def _match_filename(name: str, filenames: list[str]) -> bool:
    lowered = name.lower()
    return any(PurePosixPath(f).stem.lower() in lowered for f in filenames if f.strip())


def _match_folder(path: str, folders: list[str]) -> bool:
    parent = PurePosixPath(path).parent.as_posix().lower()
    for folder in folders:
        folder = folder.strip("/").lower()
        if folder in ("", ".") and parent == ".":
            return True
        if parent == folder or parent.startswith(folder + "/"):
            return True
    return False


def _match_properties(tags: list[str], metadata: dict, properties: list[dict]) -> bool:
    for prop in properties:
        name = str(prop.get("name", "")).lower()
        value = prop.get("value")
        if name in ("tag", "tags"):
            if str(value).lstrip("#").lower() not in tags:
                return False
            continue
        actual = {k.lower(): v for k, v in metadata.items()}.get(name)
        if actual is None:
            return False
        if value is None:
            continue
        if isinstance(actual, list):
            if str(value).lower() not in {str(v).lower() for v in actual}:
                return False
        elif str(actual).lower() != str(value).lower():
            return False
    return True
