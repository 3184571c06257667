"""
Core DNS synchronization functionality.

This package contains the canonical data model and the pure parts of the
sync engine: normalization, filtering, merging and diffing.
"""

from .deduplicator import merge
from .diff_engine import diff, simulate_apply
from .filters import filter_records, matches, parse_filter_rules, passes
from .normalizer import normalize_record, normalize_records

__all__ = [
    "merge",
    "diff",
    "simulate_apply",
    "filter_records",
    "matches",
    "parse_filter_rules",
    "passes",
    "normalize_record",
    "normalize_records",
]
