"""Markdown vault CRUD operations.

All paths handed in and out of :class:`NoteStore` are vault-relative POSIX
strings (``"Projects/Plan.md"``). Absolute paths never leave this module.
"""

import fnmatch
import re
import shutil
from pathlib import Path, PurePosixPath
from typing import Optional

import frontmatter
import structlog

logger = structlog.get_logger()

MAX_CONTENT_LENGTH = 500_000
_ILLEGAL_NAME_CHARS = re.compile(r'[\\/:*?"<>|#^\[\]]')


def sanitize_note_name(name: str) -> str:
    """Strip characters that are not allowed in note filenames."""
    cleaned = _ILLEGAL_NAME_CHARS.sub("", name).strip().strip(".")
    return re.sub(r"\s+", " ", cleaned)[:120]


def ensure_md(path: str) -> str:
    return path if path.lower().endswith(".md") else f"{path}.md"


class NoteStore:
    """Manages markdown notes with YAML frontmatter inside one vault directory."""

    def __init__(self, vault_dir: str | Path):
        self.vault_dir = Path(vault_dir).expanduser().resolve()
        self.vault_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _validate_path(self, rel_path: str | Path) -> Path:
        """Resolve a vault-relative path, refusing anything outside the vault."""
        resolved = (self.vault_dir / str(rel_path).lstrip("/")).resolve()
        if not resolved.is_relative_to(self.vault_dir):
            raise ValueError(f"Path escapes vault directory: {rel_path}")
        return resolved

    def relative(self, path: Path) -> str:
        return path.resolve().relative_to(self.vault_dir).as_posix()

    def exists(self, rel_path: str) -> bool:
        return self._validate_path(rel_path).is_file()

    def mtime(self, rel_path: str) -> float:
        return self._validate_path(rel_path).stat().st_mtime

    def folder_exists(self, rel_path: str) -> bool:
        if not rel_path or rel_path in ("/", "."):
            return True
        return self._validate_path(rel_path).is_dir()

    def ensure_folder(self, rel_path: str) -> None:
        self._validate_path(rel_path).mkdir(parents=True, exist_ok=True)

    def unique_path(self, rel_path: str) -> str:
        """Return ``rel_path`` or ``name 1.md``, ``name 2.md``... if taken."""
        candidate = PurePosixPath(rel_path)
        counter = 1
        while self.exists(candidate.as_posix()):
            candidate = candidate.with_name(f"{PurePosixPath(rel_path).stem} {counter}{candidate.suffix}")
            counter += 1
        return candidate.as_posix()

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def read(self, rel_path: str) -> frontmatter.Post:
        return frontmatter.load(self._validate_path(rel_path))

    def read_text(self, rel_path: str) -> str:
        return self.read(rel_path).content

    def create(self, rel_path: str, content: str = "", metadata: Optional[dict] = None) -> str:
        """Create a new note. Raises FileExistsError if the path is taken."""
        if len(content) > MAX_CONTENT_LENGTH:
            raise ValueError(f"Content exceeds max length ({MAX_CONTENT_LENGTH} chars)")
        target = self._validate_path(rel_path)
        if target.exists():
            raise FileExistsError(f"Note already exists: {rel_path}")
        target.parent.mkdir(parents=True, exist_ok=True)

        post = frontmatter.Post(content)
        for key, value in (metadata or {}).items():
            post[key] = value
        target.write_text(frontmatter.dumps(post) if post.metadata else content)
        return self.relative(target)

    def write(self, rel_path: str, post: frontmatter.Post) -> None:
        target = self._validate_path(rel_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(frontmatter.dumps(post) if post.metadata else post.content)

    def write_bytes(self, rel_path: str, data: bytes) -> str:
        target = self._validate_path(rel_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return self.relative(target)

    def append(self, rel_path: str, text: str) -> None:
        target = self._validate_path(rel_path)
        with open(target, "a") as f:
            f.write(text)

    def delete(self, rel_path: str) -> bool:
        target = self._validate_path(rel_path)
        if target.is_file():
            target.unlink()
            return True
        return False

    def move(self, src: str, dst: str) -> str:
        """Move ``src`` to the exact path ``dst``. Raises if ``dst`` exists."""
        source = self._validate_path(src)
        target = self._validate_path(dst)
        if not source.is_file():
            raise FileNotFoundError(f"Note not found: {src}")
        if target.exists():
            raise FileExistsError(f"Destination already exists: {dst}")
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source), str(target))
        return self.relative(target)

    def move_to_folder(self, src: str, folder: str) -> str:
        return self.move(src, PurePosixPath(folder, PurePosixPath(src).name).as_posix())

    def copy_to_folder(self, src: str, folder: str) -> str:
        source = self._validate_path(src)
        if not source.is_file():
            raise FileNotFoundError(f"Note not found: {src}")
        dst = self.unique_path(PurePosixPath(folder, source.name).as_posix())
        target = self._validate_path(dst)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        return self.relative(target)

    # ------------------------------------------------------------------
    # Frontmatter
    # ------------------------------------------------------------------

    def get_frontmatter(self, rel_path: str) -> dict:
        return dict(self.read(rel_path).metadata)

    def update_frontmatter(
        self, rel_path: str, updates: dict, remove: tuple[str, ...] | list[str] = ()
    ) -> tuple[dict, dict]:
        """Apply property updates/removals. Returns (original, updated) metadata."""
        post = self.read(rel_path)
        original = dict(post.metadata)
        for key, value in updates.items():
            post[key] = value
        for key in remove:
            post.metadata.pop(key, None)
        self.write(rel_path, post)
        return original, dict(post.metadata)

    def replace_frontmatter(self, rel_path: str, metadata: dict) -> None:
        post = self.read(rel_path)
        post.metadata = dict(metadata)
        self.write(rel_path, post)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_notes(self, folder: str | None = None, exclude: tuple[str, ...] = ()) -> list[str]:
        """List note paths under ``folder`` (whole vault by default), sorted."""
        root = self._validate_path(folder) if folder else self.vault_dir
        if not root.is_dir():
            return []
        notes = []
        for f in sorted(root.rglob("*.md")):
            rel = self.relative(f)
            if any(rel == ex or rel.startswith(ex.rstrip("/") + "/") for ex in exclude):
                continue
            notes.append(rel)
        return notes

    def find_note(self, name: str, exclude: tuple[str, ...] = ()) -> str | None:
        """Find a note by exact path or case-insensitive basename."""
        name = name.strip()
        if not name:
            return None
        direct = ensure_md(name)
        if self.exists(direct):
            return direct
        wanted = PurePosixPath(direct).name.lower()
        for rel in self.list_notes(exclude=exclude):
            if PurePosixPath(rel).name.lower() == wanted:
                return rel
        return None

    def resolve_patterns(
        self, patterns: list[str], folder: str | None = None, exclude: tuple[str, ...] = ()
    ) -> list[str]:
        """Match note paths against regex patterns (glob syntax also accepted)."""
        compiled = []
        for pattern in patterns:
            if any(ch in pattern for ch in "*?") and not any(ch in pattern for ch in "^$\\("):
                compiled.append(re.compile(fnmatch.translate(pattern), re.IGNORECASE))
            else:
                try:
                    compiled.append(re.compile(pattern, re.IGNORECASE))
                except re.error as e:
                    raise ValueError(f"Invalid file pattern {pattern!r}: {e}") from e

        matched = []
        for rel in self.list_notes(folder, exclude=exclude):
            name = PurePosixPath(rel).name
            if any(rx.search(name) or rx.fullmatch(rel) for rx in compiled):
                matched.append(rel)
        return matched

    def get_all_content(self, exclude: tuple[str, ...] = ()) -> list[dict]:
        """All notes with content, metadata and mtime, for indexing."""
        entries = []
        for rel in self.list_notes(exclude=exclude):
            path = self._validate_path(rel)
            try:
                post = frontmatter.load(path)
            except (OSError, ValueError) as e:
                logger.warning("note_load_failed", path=rel, error=str(e))
                continue
            entries.append(
                {
                    "id": rel,
                    "content": post.content,
                    "metadata": dict(post.metadata),
                    "mtime": path.stat().st_mtime,
                }
            )
        return entries
