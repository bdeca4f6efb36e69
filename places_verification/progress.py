"""
Places Verification: Progress Tracking and Checkpoints

A run is resumable from two files:

    progress file  ProgressState (counters + last processed index)
    output file    the VerifiedRecords written so far, in index order

Both are written atomically (temp file + os.replace).  The output file is
always written before the progress file, so after a crash between the two
the output may be ahead of the progress file but never behind it.
``align_checkpoint`` repairs either direction on resume.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from .records import (
    STATUS_ERROR,
    STATUS_NOT_FOUND,
    STATUS_VERIFIED,
    VerifiedRecord,
    utc_now,
)

logger = logging.getLogger(__name__)


class CheckpointError(Exception):
    """Progress or output could not be persisted or read back."""


@dataclass
class ProgressState:
    """Per-run counters and the resume position."""

    total: int = 0
    valid: int = 0
    processed: int = 0
    verified: int = 0
    not_found: int = 0
    errors: int = 0
    skipped: int = 0
    last_processed_index: int = -1
    start_time: str = field(default_factory=utc_now)
    last_update: str = field(default_factory=utc_now)
    completed: bool = False
    cleaned: bool = False

    @classmethod
    def fresh(cls, total: int, valid: int) -> "ProgressState":
        return cls(total=total, valid=valid, skipped=total - valid)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ProgressState":
        known = {name for name in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in raw.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @property
    def next_index(self) -> int:
        return self.last_processed_index + 1

    def record(self, verified_record: VerifiedRecord) -> None:
        """Count one emitted record and advance the resume position."""
        if verified_record.status == STATUS_VERIFIED:
            self.verified += 1
        elif verified_record.status == STATUS_NOT_FOUND:
            self.not_found += 1
        elif verified_record.status == STATUS_ERROR:
            self.errors += 1
        self.processed += 1
        self.last_processed_index = verified_record.index
        self.last_update = utc_now()

    def percent(self) -> float:
        if not self.valid:
            return 100.0
        return (self.processed / self.valid) * 100


# ---------------------------------------------------------------------------
# Atomic JSON I/O
# ---------------------------------------------------------------------------


def write_json_atomic(path: str | Path, payload: Any) -> None:
    """Write JSON to a temp file beside ``path`` then rename it into place."""
    out_path = Path(path)
    tmp_path = out_path.with_name(out_path.name + ".tmp")
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, out_path)
    except OSError as e:
        raise CheckpointError(f"Could not write {out_path}: {e}") from e


def save_checkpoint(
    progress: ProgressState,
    records: list[VerifiedRecord],
    progress_path: str | Path,
    output_path: str | Path,
) -> None:
    """Persist output then progress, each atomically."""
    write_json_atomic(output_path, [r.to_dict() for r in records])
    write_json_atomic(progress_path, progress.to_dict())


def load_progress(progress_path: str | Path) -> ProgressState | None:
    """Load a saved ProgressState, or None when there is no progress file."""
    path = Path(progress_path)
    if not path.exists():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        raise CheckpointError(f"Could not read progress file {path}: {e}") from e
    if not isinstance(raw, dict):
        raise CheckpointError(f"Progress file {path} is not a JSON object")
    return ProgressState.from_dict(raw)


def load_output(output_path: str | Path) -> list[VerifiedRecord]:
    """Load previously written VerifiedRecords; missing file → empty list."""
    path = Path(output_path)
    if not path.exists():
        return []
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        raise CheckpointError(f"Could not read output file {path}: {e}") from e
    if not isinstance(raw, list):
        raise CheckpointError(f"Output file {path} is not a JSON array")
    return [VerifiedRecord.from_dict(entry) for entry in raw if isinstance(entry, dict)]


# ---------------------------------------------------------------------------
# Resume alignment
# ---------------------------------------------------------------------------


def align_checkpoint(
    progress: ProgressState,
    records: list[VerifiedRecord],
) -> tuple[ProgressState, list[VerifiedRecord]]:
    """
    Make the loaded output and progress agree on where to continue.

    Output records beyond ``last_processed_index`` were written after the
    last progress save and are dropped.  If the output stops short of
    ``last_processed_index`` the resume position is rewound to the last
    record actually on disk and the counters are recomputed from the output.
    A completed, cleaned run has intentionally lost records and is left as is.
    """
    if progress.completed and progress.cleaned:
        return progress, records

    kept = [r for r in records if 0 <= r.index <= progress.last_processed_index]
    dropped = len(records) - len(kept)
    if dropped:
        logger.warning(
            "Dropping %d output records written after the last progress save",
            dropped,
        )

    last_on_disk = max((r.index for r in kept), default=-1)
    consistent = (
        last_on_disk == progress.last_processed_index
        and len(kept) == progress.processed
    )
    if consistent:
        return progress, kept

    logger.warning(
        "Output and progress disagree (output ends at %d with %d records, "
        "progress at %d with %d processed); recomputing counters",
        last_on_disk, len(kept), progress.last_processed_index, progress.processed,
    )
    rebuilt = ProgressState(
        total=progress.total,
        valid=progress.valid,
        skipped=progress.skipped,
        start_time=progress.start_time,
    )
    for record in sorted(kept, key=lambda r: r.index):
        rebuilt.record(record)
    return rebuilt, sorted(kept, key=lambda r: r.index)
