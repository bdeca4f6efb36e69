"""Places Verification: match local POIs against the Google Places API."""

from .records import Candidate, LocalRecord, VerifiedRecord
from .pipeline import RunOptions, run_verification

__all__ = [
    "Candidate",
    "LocalRecord",
    "VerifiedRecord",
    "RunOptions",
    "run_verification",
]
