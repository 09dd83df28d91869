"""File-backed sync checkpoint: cursor, counters, running flag and a bounded error log."""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

MAX_CRITICAL_ERRORS = 50


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncCheckpoint(BaseModel):
    last_id: str | None = None
    total_retrieved: int = 0
    total_indexed: int = 0
    last_interaction_at: datetime | None = None
    started_at: datetime | None = None
    is_running: bool = False
    critical_errors: list[str] = Field(default_factory=list)

    def add_critical_error(self, message: str, *, limit: int = MAX_CRITICAL_ERRORS, now: datetime | None = None) -> None:
        stamp = (now or _utcnow()).isoformat()
        self.critical_errors.append(f"{stamp}: {message}")
        overflow = len(self.critical_errors) - max(1, limit)
        if overflow > 0:
            del self.critical_errors[:overflow]

    def advance(self, last_id: str, *, retrieved: int, indexed: int) -> None:
        # pages arrive in ascending key order, never move the cursor backwards
        if self.last_id is None or last_id > self.last_id:
            self.last_id = last_id
        self.total_retrieved += max(0, retrieved)
        self.total_indexed += max(0, indexed)


class CheckpointStore:
    def __init__(self, path: str | os.PathLike[str] | None = None):
        if path is None:
            from paper_search.core.config import settings

            path = settings.SYNC_CHECKPOINT_FILE
        self.path = Path(path)

    def load(self) -> SyncCheckpoint:
        if not self.path.exists():
            return SyncCheckpoint()
        try:
            return SyncCheckpoint.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("sync_checkpoint_unreadable", extra={"path": str(self.path), "error": str(exc)})
            return SyncCheckpoint()

    def save(self, checkpoint: SyncCheckpoint) -> None:
        checkpoint.last_interaction_at = _utcnow()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(checkpoint.model_dump_json(indent=2))
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def reset(self) -> SyncCheckpoint:
        checkpoint = SyncCheckpoint()
        self.save(checkpoint)
        return checkpoint

    def recover(self) -> SyncCheckpoint:
        """Clear a running flag left behind by a process that died mid-run."""
        checkpoint = self.load()
        if checkpoint.is_running:
            logger.warning("sync_checkpoint_running_flag_reset", extra={"last_id": checkpoint.last_id})
            checkpoint.is_running = False
            self.save(checkpoint)
        return checkpoint
