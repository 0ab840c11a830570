"""
Deduplicator / merger

Sites often render an item's cover and title in separate anchors that point to
the same series. Records are keyed by source URL; the first populated value of
a field wins and later sightings only fill gaps.
"""

import logging
from dataclasses import replace
from typing import List, TypeVar, Iterable, Optional

from models import (
    ExtractionCandidate, NormalizedRecord, MERGEABLE_FIELDS, is_empty_value,
)

logger = logging.getLogger(__name__)

R = TypeVar('R', ExtractionCandidate, NormalizedRecord)


def fill_gaps(existing: R, new: R) -> R:
    """Copy fields from new into existing only where existing is empty."""
    updates = {}
    for name in MERGEABLE_FIELDS:
        current = getattr(existing, name)
        incoming = getattr(new, name)
        if is_empty_value(name, current) and not is_empty_value(name, incoming):
            updates[name] = incoming
    if not updates:
        return existing
    return replace(existing, **updates)


def merge(existing_records: List[R], new_record: R) -> List[R]:
    """Return a new list with new_record appended or merged into its URL twin."""
    updated = list(existing_records)
    for i, record in enumerate(updated):
        if record.source_url == new_record.source_url:
            updated[i] = fill_gaps(record, new_record)
            return updated
    updated.append(new_record)
    return updated


def merge_all(records: Iterable[R]) -> List[R]:
    merged: List[R] = []
    for record in records:
        merged = merge(merged, record)
    return merged


def build_records(candidates: Iterable[ExtractionCandidate], normalizer,
                  rank_offset: Optional[int] = None) -> List[NormalizedRecord]:
    """Candidate pipeline: prepare -> merge by URL -> normalize -> drop rejects.

    When rank_offset is given, surviving records are ranked in DOM order
    starting at rank_offset + 1.
    """
    prepared = []
    for candidate in candidates:
        ready = normalizer.prepare(candidate)
        if ready is not None:
            prepared.append(ready)

    records: List[NormalizedRecord] = []
    for candidate in merge_all(prepared):
        record = normalizer.normalize(candidate)
        if record is None:
            logger.debug(f"[Merger] Dropped untitled record {candidate.source_url}")
            continue
        records.append(record)

    if rank_offset is not None:
        records = [replace(r, rank=rank_offset + i + 1) for i, r in enumerate(records)]
    return records
