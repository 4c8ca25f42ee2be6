"""
Run checkpoints for multi-configuration benchmarks.

After every finished configuration the orchestrator saves the configurations
completed so far together with their results. A later run with the same
settings resumes with only the pending configurations; a checkpoint written
for different settings, older than `MAX_CHECKPOINT_AGE` or unreadable is
discarded.

Usage:
    from telemetry_bench.checkpoint import CheckpointStore

    store = CheckpointStore(Path("output/checkpoints/benchmark.checkpoint.json"))
    checkpoint = store.resume(fingerprint) or store.start(fingerprint, ["postgresql"])
    checkpoint.record("postgresql", result)
    store.save(checkpoint)
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from telemetry_bench.utils.logging import get_logger

MAX_CHECKPOINT_AGE = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunFingerprint(BaseModel):
    """Settings that must match for a checkpoint to be resumed."""

    configurations: List[str]
    dataset_size: int
    seed: str
    load_data: bool
    iterations: int
    time_limit_seconds: Optional[float] = None


class RunCheckpoint(BaseModel):
    session_id: str
    updated_at: datetime
    fingerprint: RunFingerprint
    completed: List[str] = Field(default_factory=list)
    pending: List[str] = Field(default_factory=list)
    partial_results: List[Dict[str, Any]] = Field(default_factory=list)

    def record(self, key: str, result: Dict[str, Any], now: Optional[datetime] = None) -> None:
        """Mark `key` completed and keep its result."""
        self.completed.append(key)
        self.pending = [name for name in self.pending if name != key]
        self.partial_results.append(result)
        self.updated_at = now or _utcnow()


class CheckpointStore:
    """
    JSON file holding at most one RunCheckpoint.

    Parameters
    ----------
    path : Path | str
        Checkpoint file; parent directories are created on save.
    clock : callable | None
        Returns the current aware datetime; defaults to UTC now.
    """

    def __init__(
        self,
        path: Path | str,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.path = Path(path)
        self._clock = clock or _utcnow
        self._log = logger or get_logger(__name__)

    def start(self, fingerprint: RunFingerprint, configurations: List[str]) -> RunCheckpoint:
        checkpoint = RunCheckpoint(
            session_id=f"session_{uuid.uuid4().hex[:12]}",
            updated_at=self._clock(),
            fingerprint=fingerprint,
            pending=list(configurations),
        )
        self.save(checkpoint)
        return checkpoint

    def load(self) -> Optional[RunCheckpoint]:
        """Read the stored checkpoint; stale or corrupted files are removed."""
        if not self.path.exists():
            return None
        try:
            checkpoint = RunCheckpoint.model_validate_json(self.path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            self._log.warning(
                f"[CHECKPOINT] Ignoring unreadable checkpoint {self.path}",
                extra={"error": str(exc)[:200]},
            )
            self.clear()
            return None
        if self._clock() - checkpoint.updated_at > MAX_CHECKPOINT_AGE:
            self._log.warning(f"[CHECKPOINT] Ignoring checkpoint older than {MAX_CHECKPOINT_AGE}")
            self.clear()
            return None
        return checkpoint

    def resume(self, fingerprint: RunFingerprint) -> Optional[RunCheckpoint]:
        """Return the stored checkpoint when it was written for `fingerprint`."""
        checkpoint = self.load()
        if checkpoint is None:
            return None
        if checkpoint.fingerprint != fingerprint:
            self._log.warning(
                "[CHECKPOINT] Found checkpoint for different settings, ignoring",
                extra={"session_id": checkpoint.session_id},
            )
            self.clear()
            return None
        self._log.info(
            f"[RESUME] Session {checkpoint.session_id}: "
            f"{len(checkpoint.completed)}/{len(fingerprint.configurations)} configurations done",
            extra={"completed": checkpoint.completed, "pending": checkpoint.pending},
        )
        return checkpoint

    def save(self, checkpoint: RunCheckpoint) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        staging = self.path.with_name(self.path.name + ".tmp")
        with staging.open("w", encoding="utf-8") as f:
            f.write(checkpoint.model_dump_json(indent=2))
        staging.replace(self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


__all__ = ["MAX_CHECKPOINT_AGE", "CheckpointStore", "RunCheckpoint", "RunFingerprint"]
