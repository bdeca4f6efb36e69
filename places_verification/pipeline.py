"""
Places Verification: Pipeline Driver

Runs every valid input record through search → details → adjudication →
merge, strictly in index order, with a fixed delay between records and a
checkpoint every ``save_every`` records.

Fatal conditions (the run stops and the exception propagates):
    - input file missing or unreadable     InputFileError
    - progress/output cannot be persisted  CheckpointError
    - API key rejected                     PlacesAuthError

Anything else raised while processing one record turns that record into
an ``error`` VerifiedRecord and the run continues.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .algorithms.match_policy import MatchConfig
from .candidate_search import RATE_LIMIT_COOLDOWN_S, find_best_match
from .cleaner import clean_verified_records
from .merge import error_record, merge_place_data
from .places_client import PlacesAuthError
from .progress import (
    CheckpointError,
    ProgressState,
    align_checkpoint,
    load_output,
    load_progress,
    save_checkpoint,
    write_json_atomic,
)
from .records import LocalRecord, VerifiedRecord, is_valid_input

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

REQUEST_DELAY_S = 0.1
SAVE_PROGRESS_INTERVAL = 100
PROGRESS_LOG_INTERVAL = 25


class InputFileError(Exception):
    """The input file is missing or is not a JSON array."""


@dataclass
class RunOptions:
    """Knobs for a single verification run."""

    resume: bool = False
    clean: bool = False
    save_every: int = SAVE_PROGRESS_INTERVAL
    delay_s: float = REQUEST_DELAY_S
    cooldown_s: float = RATE_LIMIT_COOLDOWN_S
    limit: int | None = None


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


def load_input(input_path: str | Path) -> list[LocalRecord]:
    """Load and normalise the input file."""
    path = Path(input_path)
    if not path.exists():
        raise InputFileError(f"Input file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as e:
        raise InputFileError(f"Could not read input file {path}: {e}") from e
    if not isinstance(raw, list):
        raise InputFileError(f"Input file {path} is not a JSON array")

    return [LocalRecord.from_dict(entry) for entry in raw if isinstance(entry, dict)]


def select_valid(records: list[LocalRecord]) -> list[LocalRecord]:
    return [r for r in records if is_valid_input(r)]


# ---------------------------------------------------------------------------
# Per-record processing
# ---------------------------------------------------------------------------


def verify_record(
    client: Any,
    index: int,
    local: LocalRecord,
    config: MatchConfig,
    cooldown_s: float = RATE_LIMIT_COOLDOWN_S,
) -> VerifiedRecord:
    """
    Verify one record.  Never raises except for an auth failure.
    """
    try:
        match = find_best_match(
            client,
            local.latitude,
            local.longitude,
            local.name,
            config,
            cooldown_s=cooldown_s,
        )
        return merge_place_data(index, local, match, client.api_key, config)
    except PlacesAuthError:
        raise
    except Exception as e:
        logger.error("Error processing %s: %s", local.name, e)
        return error_record(index, local, e)


def _log_record(record: VerifiedRecord, position: int, total: int) -> None:
    label = {
        "verified": "Verified",
        "not_found": "Not found",
        "error": "Error",
    }[record.status]
    logger.info("[%d/%d] %s: %s (%s)", position, total, label, record.place.name, record.note)


def log_summary(progress: ProgressState, output_path: str | Path) -> None:
    logger.info("=" * 60)
    logger.info("PLACES VERIFICATION SUMMARY")
    logger.info("  Total            : %d", progress.total)
    logger.info("  Valid            : %d", progress.valid)
    logger.info("  Processed        : %d", progress.processed)
    logger.info("  Verified         : %d", progress.verified)
    logger.info("  Not found        : %d", progress.not_found)
    logger.info("  Errors           : %d", progress.errors)
    logger.info("  Skipped (filter) : %d", progress.skipped)
    logger.info("  Output           : %s", output_path)
    logger.info("=" * 60)


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


def _start_state(
    all_records: list[LocalRecord],
    valid: list[LocalRecord],
    progress_path: str | Path,
    output_path: str | Path,
    resume: bool,
) -> tuple[ProgressState, list[VerifiedRecord]]:
    if not resume:
        return ProgressState.fresh(len(all_records), len(valid)), []

    saved = load_progress(progress_path)
    if saved is None:
        logger.info("No saved progress at %s, starting fresh", progress_path)
        return ProgressState.fresh(len(all_records), len(valid)), []

    if saved.valid and saved.valid != len(valid):
        raise CheckpointError(
            f"Saved progress covers {saved.valid} valid records but the input "
            f"now has {len(valid)}; refusing to resume against a different input"
        )

    existing = load_output(output_path)
    logger.info("Loaded %d existing verified places", len(existing))
    progress, records = align_checkpoint(saved, existing)
    progress.total = len(all_records)
    progress.valid = len(valid)
    progress.skipped = len(all_records) - len(valid)
    logger.info("Resuming from index %d", progress.next_index)
    return progress, records


def run_verification(
    client: Any,
    input_path: str | Path,
    output_path: str | Path,
    progress_path: str | Path,
    config: MatchConfig | None = None,
    options: RunOptions | None = None,
) -> ProgressState:
    """
    Verify every valid input record against the Places API.

    Returns the final ProgressState.  Output and progress files are left on
    disk in a state a later ``resume=True`` run can continue from.
    """
    if config is None:
        config = MatchConfig()
    if options is None:
        options = RunOptions()

    logger.info("Starting places verification...")
    logger.info("Input file: %s", input_path)
    logger.info("Output file: %s", output_path)

    all_records = load_input(input_path)
    valid = select_valid(all_records)
    logger.info("Total places: %d", len(all_records))
    logger.info("Valid places to verify: %d", len(valid))
    logger.info("Skipped invalid places: %d", len(all_records) - len(valid))

    progress, verified_records = _start_state(
        all_records, valid, progress_path, output_path, options.resume,
    )

    end = len(valid)
    if options.limit is not None:
        end = min(end, progress.next_index + options.limit)

    if progress.next_index >= len(valid) and progress.completed:
        logger.info("All records already processed. Nothing to do.")

    since_save = 0
    try:
        for i in range(progress.next_index, end):
            local = valid[i]
            record = verify_record(client, i, local, config, cooldown_s=options.cooldown_s)
            verified_records.append(record)
            progress.record(record)
            _log_record(record, i + 1, len(valid))

            since_save += 1
            if since_save >= options.save_every:
                save_checkpoint(progress, verified_records, progress_path, output_path)
                since_save = 0
                logger.info(
                    "Progress saved: %d/%d (%.1f%%)",
                    progress.processed, progress.valid, progress.percent(),
                )
            elif progress.processed % PROGRESS_LOG_INTERVAL == 0:
                logger.info(
                    "Progress: %d/%d (%.1f%%), %d verified, %d not found, %d errors",
                    progress.processed, progress.valid, progress.percent(),
                    progress.verified, progress.not_found, progress.errors,
                )

            time.sleep(options.delay_s)

    except KeyboardInterrupt:
        logger.warning("Interrupted! Saving progress...")
        save_checkpoint(progress, verified_records, progress_path, output_path)
        logger.info("Progress saved. Resume with: --resume")
        raise
    except PlacesAuthError as e:
        logger.error("%s", e)
        save_checkpoint(progress, verified_records, progress_path, output_path)
        logger.info("Progress saved before aborting. Fix the key and resume with: --resume")
        raise

    progress.completed = progress.next_index >= len(valid)

    final_records = verified_records
    if options.clean and progress.completed:
        final_records = clean_verified_records(verified_records)
        progress.cleaned = True
    elif options.clean:
        logger.info("Run not complete yet, skipping clean pass")

    # Output first, then progress, as in every checkpoint
    write_json_atomic(output_path, [r.to_dict() for r in final_records])
    write_json_atomic(progress_path, progress.to_dict())

    log_summary(progress, output_path)
    return progress
