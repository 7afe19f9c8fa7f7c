"""Persistent hackathon registry and preferences."""
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from processor import registry_engine
from processor.errors import RecordValidationError
from processor.models import Hackathon, UserPreferences
from processor.record_processor import RecordProcessor, parse_instant
from storage.backends import StoragePort
from storage.seed_data import SEED_HACKATHONS

logger = logging.getLogger(__name__)

REGISTRY_KEY = 'hackathon_registry_v1'
LAST_SEARCH_KEY = 'hackathon_last_search'
PREFERENCES_KEY = 'hackathon_preferences_v1'
REGISTRY_VERSION = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HackathonRegistry:
    """
    Owner of the in-memory record collection.

    Every mutation rewrites the whole collection to storage before
    returning.
    """

    SEARCH_INTERVAL_DAYS = 7

    def __init__(
        self,
        storage: StoragePort,
        processor: Optional[RecordProcessor] = None
    ):
        self.storage = storage
        self.processor = processor or RecordProcessor()
        self.records: List[Hackathon] = []

    def load(self, now: Optional[datetime] = None) -> List[Hackathon]:
        """
        Load the collection from storage and recompute every status.

        Unreadable blobs are treated as an empty registry. Records that fail
        validation, and records repeating an id already loaded, are logged
        and skipped.

        Returns:
            The loaded records
        """
        now = now or _utcnow()
        self.records = []

        try:
            raw = self.storage.get(REGISTRY_KEY)
        except Exception as e:
            logger.error(f"Failed to read registry from storage: {e}")
            return self.records

        if raw is None:
            logger.info("No registry found in storage")
            return self.records

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse registry blob: {e}")
            return self.records

        # Older blobs stored a bare list of records
        if isinstance(payload, list):
            items = payload
        elif isinstance(payload, dict):
            items = payload.get('records') or []
        else:
            logger.error(
                f"Unexpected registry payload type: {type(payload).__name__}"
            )
            return self.records

        loaded = []
        seen_ids = set()
        for item in items:
            try:
                record = self.processor.process_record(item)
                record = registry_engine.with_status(record, now)
            except RecordValidationError as e:
                logger.warning(f"Skipping stored record: {e}")
                continue
            if record.id in seen_ids:
                logger.warning(
                    f"Skipping stored record '{record.name}': duplicate id {record.id}"
                )
                continue
            seen_ids.add(record.id)
            loaded.append(record)

        self.records = loaded
        logger.info(f"Loaded {len(self.records)} records from registry")
        return self.records

    def save(self, records: List[Hackathon]) -> None:
        """Persist the full collection and make it current."""
        payload = {
            'records': [self.processor.record_to_dict(r) for r in records],
            'timestamp': _utcnow().isoformat(),
            'version': REGISTRY_VERSION,
        }
        self.storage.set(REGISTRY_KEY, json.dumps(payload))
        self.records = list(records)
        logger.info(f"Saved {len(records)} records to registry")

    def merge(
        self,
        incoming: List[Hackathon],
        now: Optional[datetime] = None
    ) -> int:
        """
        Merge a fetched batch into the registry and persist it.

        Returns:
            Number of records whose name was not already in the registry
        """
        known = {registry_engine.name_key(r) for r in self.records}
        incoming = registry_engine.apply_statuses(incoming, now)
        merged = registry_engine.merge_batch(self.records, incoming)
        self.save(merged)

        added = sum(
            1 for r in merged if registry_engine.name_key(r) not in known
        )
        logger.info(
            f"Merged {len(incoming)} incoming records: {added} new, "
            f"{len(merged)} total"
        )
        return added

    def seed(self, now: Optional[datetime] = None) -> int:
        """
        Add the bundled seed records without overriding stored ones.

        Returns:
            Number of seed records added
        """
        seeds = registry_engine.apply_statuses(
            self.processor.process_records(SEED_HACKATHONS), now
        )
        before = len(self.records)
        merged = registry_engine.merge_batch(seeds, self.records)
        self.save(merged)
        return len(merged) - before

    def delete(self, record_id: str) -> bool:
        """
        Delete a record by id.

        Returns:
            True if a record was removed
        """
        remaining = registry_engine.delete_by_id(self.records, record_id)
        if len(remaining) == len(self.records):
            logger.info(f"No record with id {record_id} to delete")
            return False

        self.save(remaining)
        logger.info(f"Deleted record {record_id[:6]} from registry")
        return True

    def purge(self) -> None:
        """Remove every record and the persisted blobs."""
        self.records = []
        self.storage.remove(REGISTRY_KEY)
        self.storage.remove(LAST_SEARCH_KEY)
        logger.info("Registry purged")

    def get(self, record_id: str) -> Optional[Hackathon]:
        """
        Look up a record by id.

        Args:
            record_id: Record identifier

        Returns:
            The matching record, or None
        """
        for record in self.records:
            if record.id == record_id:
                return record
        return None

    def mark_searched(self, now: Optional[datetime] = None) -> None:
        """
        Record the time of a completed external search.

        Args:
            now: Search time (default: current UTC time)
        """
        self.storage.set(LAST_SEARCH_KEY, (now or _utcnow()).isoformat())

    def last_search(self) -> Optional[datetime]:
        """
        Read the time of the last external search.

        Returns:
            Aware UTC datetime, or None if no valid timestamp is stored
        """
        raw = self.storage.get(LAST_SEARCH_KEY)
        if not raw:
            return None
        try:
            return parse_instant(raw)
        except RecordValidationError:
            logger.warning(f"Ignoring malformed last-search timestamp: {raw!r}")
            return None

    def is_search_due(self, now: Optional[datetime] = None) -> bool:
        """True when no search has run within SEARCH_INTERVAL_DAYS."""
        last = self.last_search()
        if last is None:
            return True
        return (now or _utcnow()) - last >= timedelta(days=self.SEARCH_INTERVAL_DAYS)

    def stats(self) -> Dict[str, Any]:
        """
        Summarize the current collection.

        Returns:
            Counts by location type, live records and discovery tier
        """
        return registry_engine.registry_stats(self.records)

    def export(self, now: Optional[datetime] = None) -> Tuple[str, str]:
        """
        Serialize the collection for download.

        Returns:
            Tuple of (file name, pretty-printed JSON)
        """
        now = now or _utcnow()
        filename = f"hackathon_registry_{now.strftime('%Y-%m-%d')}.json"
        content = json.dumps(
            [self.processor.record_to_dict(r) for r in self.records],
            indent=2
        )
        return filename, content


class PreferencesStore:
    """Reads and writes user preferences."""

    def __init__(self, storage: StoragePort):
        self.storage = storage

    def load(self) -> UserPreferences:
        """Load preferences, falling back to defaults on missing or bad data."""
        try:
            raw = self.storage.get(PREFERENCES_KEY)
        except Exception as e:
            logger.error(f"Failed to read preferences from storage: {e}")
            return UserPreferences()

        if raw is None:
            return UserPreferences()

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse preferences blob: {e}")
            return UserPreferences()

        if not isinstance(data, dict):
            logger.error("Preferences blob is not an object")
            return UserPreferences()

        return self.from_dict(data)

    def save(self, preferences: UserPreferences) -> None:
        """
        Persist preferences, stamping last_updated.

        Args:
            preferences: Preferences to store; updated in place
        """
        preferences.last_updated = _utcnow().isoformat()
        self.storage.set(PREFERENCES_KEY, json.dumps(self.to_dict(preferences)))

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> UserPreferences:
        """
        Build preferences from their stored camelCase form.

        Missing or mistyped fields fall back to defaults. Blank and repeated
        skills are dropped.
        """
        defaults = UserPreferences()
        min_prize = data.get('minPrize', defaults.min_prize)
        if not isinstance(min_prize, (int, float)) or isinstance(min_prize, bool):
            min_prize = defaults.min_prize
        preferences = UserPreferences(
            knowledge_scope=[],
            current_location=str(data.get('currentLocation') or ''),
            preferred_categories=_string_list(
                data.get('preferredCategories'), defaults.preferred_categories
            ),
            min_prize=min_prize,
            last_updated=data.get('lastUpdated'),
        )
        for skill in _string_list(data.get('knowledgeScope'), defaults.knowledge_scope):
            preferences.add_skill(skill)
        return preferences

    @staticmethod
    def to_dict(preferences: UserPreferences) -> Dict[str, Any]:
        data = {
            'knowledgeScope': list(preferences.knowledge_scope),
            'currentLocation': preferences.current_location,
            'preferredCategories': list(preferences.preferred_categories),
            'minPrize': preferences.min_prize,
        }
        if preferences.last_updated:
            data['lastUpdated'] = preferences.last_updated
        return data


def _string_list(value: Any, default: List[str]) -> List[str]:
    if not isinstance(value, list):
        return list(default)
    return [str(v) for v in value]
