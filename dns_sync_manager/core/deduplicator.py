"""
Deduplicator - Merge record lists from several source providers
"""

import logging
from typing import Iterable, List, Sequence

from .models import Record

logger = logging.getLogger(__name__)


def merge(record_lists: Sequence[Iterable[Record]]) -> List[Record]:
    """
    Merge record lists in the given order, first occurrence wins.

    Two records are duplicates when they share lower-cased name, type and
    content. Later duplicates are dropped silently.
    """
    seen = set()
    merged = []
    total = 0
    for records in record_lists:
        for record in records:
            total += 1
            key = record.dedup_key
            if key in seen:
                continue
            seen.add(key)
            merged.append(record)

    logger.debug(f"Merged {total} source records into {len(merged)} unique records")
    return merged
