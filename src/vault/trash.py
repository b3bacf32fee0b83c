"""Soft-delete: notes moved into the steward trash folder with restore metadata."""

import json
import time
from datetime import datetime, timedelta
from pathlib import PurePosixPath

import structlog

from .storage import NoteStore

logger = structlog.get_logger()

METADATA_FILE = "trash-metadata.json"


class TrashService:
    """Moves notes to ``<steward_folder>/Trash`` and remembers where they came from.

    Metadata is keyed by trash path and tagged with the artifact id of the
    delete operation, so a revert can restore exactly one batch.
    """

    def __init__(self, store: NoteStore, trash_folder: str):
        self.store = store
        self.trash_folder = trash_folder.strip("/")
        self._metadata_path = self.store._validate_path(f"{self.trash_folder}/{METADATA_FILE}")

    def _load(self) -> dict:
        if not self._metadata_path.exists():
            return {"files": {}}
        try:
            data = json.loads(self._metadata_path.read_text())
        except json.JSONDecodeError as e:
            logger.warning("trash_metadata_corrupt", error=str(e))
            return {"files": {}}
        data.setdefault("files", {})
        return data

    def _save(self, data: dict) -> None:
        self._metadata_path.parent.mkdir(parents=True, exist_ok=True)
        self._metadata_path.write_text(json.dumps(data, indent=2))

    def trash(self, rel_path: str, artifact_id: str) -> str:
        """Move one note into the trash; returns its trash path."""
        src = PurePosixPath(rel_path)
        stamp = int(time.time() * 1000)
        target = f"{self.trash_folder}/{src.stem}_{stamp}{src.suffix}"
        target = self.store.unique_path(target)
        trash_path = self.store.move(rel_path, target)

        data = self._load()
        data["files"][trash_path] = {
            "original_path": rel_path,
            "deleted_at": datetime.now().isoformat(),
            "artifact_id": artifact_id,
        }
        self._save(data)
        logger.info("trash.moved", path=rel_path, trash_path=trash_path, artifact_id=artifact_id)
        return trash_path

    def files_for_artifact(self, artifact_id: str) -> dict[str, str]:
        """Map trash path -> original path for one delete batch."""
        return {
            trash_path: meta["original_path"]
            for trash_path, meta in self._load()["files"].items()
            if meta.get("artifact_id") == artifact_id
        }

    def restore(self, trash_path: str) -> str:
        """Move a trashed note back; raises FileExistsError if the original path is taken."""
        data = self._load()
        meta = data["files"].get(trash_path)
        if meta is None:
            raise KeyError(f"No trash metadata for {trash_path}")
        restored = self.store.move(trash_path, meta["original_path"])
        del data["files"][trash_path]
        self._save(data)
        logger.info("trash.restored", path=restored)
        return restored

    def cleanup(self, retention_days: int) -> int:
        """Permanently delete trashed notes older than ``retention_days``."""
        cutoff = datetime.now() - timedelta(days=retention_days)
        data = self._load()
        removed = 0
        for trash_path, meta in list(data["files"].items()):
            try:
                deleted_at = datetime.fromisoformat(meta["deleted_at"])
            except (KeyError, ValueError):
                deleted_at = cutoff
            if deleted_at > cutoff:
                continue
            self.store.delete(trash_path)
            del data["files"][trash_path]
            removed += 1
        if removed:
            self._save(data)
        logger.info("trash.cleanup", removed=removed, retention_days=retention_days)
        return removed
