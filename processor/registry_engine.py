"""Merge, status and filter operations over hackathon collections.

Every function here is pure: inputs are never mutated and a new list is
returned. Persistence is the caller's concern (see storage.registry_store).
"""
import dataclasses
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from processor.models import (
    STATUS_ACTIVE,
    STATUS_ENDED,
    STATUS_UPCOMING,
    Hackathon,
    normalize_tier,
)
from processor.record_processor import parse_instant

ALL = 'All'


def name_key(record: Hackathon) -> str:
    """Key under which two records count as the same hackathon."""
    return record.name.lower()


def merge_batch(
    existing: Iterable[Hackathon],
    incoming: Iterable[Hackathon]
) -> List[Hackathon]:
    """
    Merge a freshly fetched batch into an existing collection.

    Records are keyed by case-insensitive name. Incoming records are taken
    first, in order, then existing records whose name has not been seen.
    The first record for a name wins entirely; fields are never combined.

    Args:
        existing: Current collection
        incoming: Newly fetched batch

    Returns:
        New list with no two records sharing a case-insensitive name
    """
    merged: Dict[str, Hackathon] = {}

    for record in list(incoming) + list(existing):
        key = name_key(record)
        if key not in merged:
            merged[key] = record

    return list(merged.values())


def derive_status(record: Hackathon, now: Optional[datetime] = None) -> str:
    """
    Derive the lifecycle status of a record from its dates.

    Args:
        record: Record to evaluate
        now: Reference time (default: current UTC time)

    Returns:
        UPCOMING if now is before the start, ENDED if now is after the end,
        ACTIVE otherwise

    Raises:
        RecordValidationError: If either date cannot be parsed
    """
    now = _as_utc(now)
    start = parse_instant(record.start_date)
    end = parse_instant(record.end_date)

    if now < start:
        return STATUS_UPCOMING
    if now > end:
        return STATUS_ENDED
    return STATUS_ACTIVE


def with_status(record: Hackathon, now: Optional[datetime] = None) -> Hackathon:
    """Return a copy of the record carrying its freshly derived status."""
    return dataclasses.replace(record, status=derive_status(record, now))


def apply_statuses(
    records: Iterable[Hackathon],
    now: Optional[datetime] = None
) -> List[Hackathon]:
    now = _as_utc(now)
    return [with_status(record, now) for record in records]


def delete_by_id(collection: List[Hackathon], record_id: str) -> List[Hackathon]:
    """
    Remove the record with the given id.

    An unknown id is not an error; the returned list then equals the input.
    """
    return [record for record in collection if record.id != record_id]


def filter_records(
    records: Iterable[Hackathon],
    query: str = '',
    location_type: Optional[str] = None,
    category: Optional[str] = None,
    prize_type: Optional[str] = None
) -> List[Hackathon]:
    """
    Filter records the way the registry browser does.

    The query matches name or location case-insensitively. A filter of
    None or 'All' does not restrict.
    """
    needle = (query or '').strip().lower()

    def matches(record: Hackathon) -> bool:
        if needle and needle not in record.name.lower() \
                and needle not in record.location.lower():
            return False
        if location_type not in (None, ALL) and record.location_type != location_type:
            return False
        if category not in (None, ALL) and record.category != category:
            return False
        if prize_type not in (None, ALL) and record.prize_type != prize_type:
            return False
        return True

    return [record for record in records if matches(record)]


def registry_stats(records: List[Hackathon]) -> dict:
    """
    Summarize a collection.

    Records without a status count as live.
    """
    by_tier = {'tier1': 0, 'tier2': 0, 'tier3': 0}
    for record in records:
        by_tier[f"tier{normalize_tier(record.discovery_tier)}"] += 1

    return {
        'total': len(records),
        'online': sum(1 for r in records if r.location_type == 'Online'),
        'offline': sum(1 for r in records if r.location_type == 'Offline'),
        'hybrid': sum(1 for r in records if r.location_type == 'Hybrid'),
        'live': sum(
            1 for r in records
            if r.status in (STATUS_ACTIVE, STATUS_UPCOMING, None)
        ),
        'by_tier': by_tier,
    }


def _as_utc(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now
