"""
Places Verification: Command-line Entry Point

Verifies a local POI file against the Google Places API (New) using a
coordinate-first matching approach that tolerates typos in place names.

Usage:
    # Set your API key:
    export GOOGLE_PLACES_API_KEY="AIza..."

    # Dry run: count valid/skipped records without making API calls:
    verify-places --input places.json --dry-run

    # Full run, deduplicating the output at the end:
    verify-places --input places.json --output places.verified.json --clean

    # Resume an interrupted run:
    verify-places --input places.json --output places.verified.json --resume

Matching logic (see match_rules.yaml):
    - Very close (< 50m): accept regardless of name
    - Close (< 100m): accept with 30%+ name similarity
    - Far (< 500m): accept with 60%+ name similarity
"""

from __future__ import annotations

import argparse
import logging
import sys

import yaml

from .algorithms.match_policy import load_match_config
from .pipeline import (
    REQUEST_DELAY_S,
    SAVE_PROGRESS_INTERVAL,
    InputFileError,
    RunOptions,
    load_input,
    run_verification,
    select_valid,
)
from .places_client import PlacesAuthError, PlacesClient, get_api_key
from .progress import CheckpointError

logger = logging.getLogger("places_verification")

DEFAULT_INPUT = "places.json"
DEFAULT_OUTPUT = "places.verified.json"
DEFAULT_PROGRESS = "verification_progress.json"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Verify local places against the Google Places API (New)",
    )
    parser.add_argument(
        "--input",
        default=DEFAULT_INPUT,
        help=f"Input JSON array of places (default: {DEFAULT_INPUT})",
    )
    parser.add_argument(
        "--output",
        default=DEFAULT_OUTPUT,
        help=f"Output JSON file for verified places (default: {DEFAULT_OUTPUT})",
    )
    parser.add_argument(
        "--progress",
        default=DEFAULT_PROGRESS,
        help=f"Progress checkpoint file (default: {DEFAULT_PROGRESS})",
    )
    parser.add_argument(
        "-r", "--resume",
        action="store_true",
        help="Resume from saved progress instead of starting fresh.",
    )
    parser.add_argument(
        "-c", "--clean",
        action="store_true",
        help="Run the deduplication pass after verification.",
    )
    parser.add_argument(
        "--rules",
        default=None,
        metavar="FILE",
        help="YAML file with match thresholds and weights (default: packaged match_rules.yaml)",
    )
    parser.add_argument(
        "--save-every",
        type=int,
        default=SAVE_PROGRESS_INTERVAL,
        help=f"Save progress every N records (default: {SAVE_PROGRESS_INTERVAL})",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=REQUEST_DELAY_S,
        help=f"Seconds to wait between records (default: {REQUEST_DELAY_S})",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Process at most N records in this run (for cost control).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Load and filter the input without making API calls.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging (per-radius candidate scores).",
    )
    args = parser.parse_args(argv)
    if args.save_every < 1:
        parser.error("--save-every must be at least 1")
    if args.limit is not None and args.limit < 1:
        parser.error("--limit must be at least 1")
    return args


def dry_run(input_path: str) -> None:
    records = load_input(input_path)
    valid = select_valid(records)
    print(f"\n{'='*60}")
    print("PLACES VERIFICATION: DRY RUN")
    print(f"{'='*60}")
    print(f"  Input           : {input_path}")
    print(f"  Total places    : {len(records):,}")
    print(f"  Valid to verify : {len(valid):,}")
    print(f"  Skipped         : {len(records) - len(valid):,}")
    print(f"  Max API calls   : {len(valid) * 5:,} (3 nearby + 1 text + 1 details each)")
    print(f"{'='*60}\n")


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    try:
        if args.dry_run:
            dry_run(args.input)
            return 0

        config = load_match_config(args.rules)
        client = PlacesClient(get_api_key())
        options = RunOptions(
            resume=args.resume,
            clean=args.clean,
            save_every=args.save_every,
            delay_s=args.delay,
            limit=args.limit,
        )
        try:
            run_verification(
                client,
                args.input,
                args.output,
                args.progress,
                config=config,
                options=options,
            )
        finally:
            client.close()
    except KeyboardInterrupt:
        return 130
    except (
        InputFileError, CheckpointError, PlacesAuthError, ValueError, OSError, yaml.YAMLError,
    ) as e:
        logger.error("Verification failed: %s", e)
        return 1

    logger.info("Done!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
