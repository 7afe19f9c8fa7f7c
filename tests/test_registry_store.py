"""Unit tests for the persistent registry and preferences store."""
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from processor.models import STATUS_ACTIVE, STATUS_ENDED, STATUS_UPCOMING, UserPreferences
from processor.record_processor import RecordProcessor
from storage.backends import InMemoryStorage
from storage.registry_store import (
    LAST_SEARCH_KEY,
    PREFERENCES_KEY,
    REGISTRY_KEY,
    HackathonRegistry,
    PreferencesStore,
)

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def registry(storage):
    return HackathonRegistry(storage)


def _blob(records):
    processor = RecordProcessor()
    return json.dumps({
        'records': [processor.record_to_dict(r) for r in records],
        'timestamp': NOW.isoformat(),
        'version': 1,
    })


class TestLoad:
    """Test cases for HackathonRegistry.load."""

    def test_first_run_is_empty(self, registry):
        assert registry.load(NOW) == []

    def test_statuses_are_recomputed(self, storage, registry, make_record):
        """Test that stored statuses are replaced by derived ones."""
        storage.set(REGISTRY_KEY, _blob([
            make_record(id='old', name='Old', start_date='2025-01-01',
                        end_date='2025-02-01', status=STATUS_UPCOMING),
            make_record(id='live', name='Live', start_date='2025-05-01',
                        end_date='2025-06-15', status=STATUS_ENDED),
            make_record(id='next', name='Next', start_date='2025-07-01',
                        end_date='2025-07-03'),
        ]))

        records = registry.load(NOW)

        assert [r.status for r in records] == [STATUS_ENDED, STATUS_ACTIVE, STATUS_UPCOMING]

    def test_corrupt_blob_is_treated_as_empty(self, storage, registry):
        storage.set(REGISTRY_KEY, '{not json')

        assert registry.load(NOW) == []

    def test_storage_failure_is_treated_as_empty(self):
        storage = Mock()
        storage.get.side_effect = OSError('disk gone')

        assert HackathonRegistry(storage).load(NOW) == []

    def test_legacy_bare_list_is_accepted(self, storage, registry, raw_record):
        storage.set(REGISTRY_KEY, json.dumps([raw_record]))

        records = registry.load(NOW)

        assert [r.name for r in records] == ['HackMIT']

    def test_malformed_records_are_skipped(self, storage, registry, raw_record):
        broken = dict(raw_record, name='Broken', startDate='whenever')
        storage.set(REGISTRY_KEY, json.dumps({'records': [broken, raw_record]}))

        records = registry.load(NOW)

        assert [r.name for r in records] == ['HackMIT']

    def test_duplicate_ids_keep_first_record(self, storage, registry, raw_record):
        """Test that a stored blob repeating an id loads one record per id."""
        storage.set(REGISTRY_KEY, json.dumps({'records': [
            dict(raw_record, id='1', name='Alpha'),
            dict(raw_record, id='1', name='Beta'),
            dict(raw_record, id='2', name='Gamma'),
        ]}))

        records = registry.load(NOW)

        assert [(r.id, r.name) for r in records] == [('1', 'Alpha'), ('2', 'Gamma')]
        assert registry.delete('1') is True
        assert [r.name for r in registry.records] == ['Gamma']


class TestMutations:
    """Test cases for merge, delete and purge."""

    def test_merge_persists_full_collection(self, storage, registry, make_record):
        registry.save([
            make_record(id='old-hackmit', name='hackmit'),
            make_record(id='ethindia', name='ETHIndia'),
        ])

        added = registry.merge([make_record(id='new-hackmit', name='HackMIT')], NOW)

        assert added == 0
        assert [r.name for r in registry.records] == ['HackMIT', 'ETHIndia']
        payload = json.loads(storage.get(REGISTRY_KEY))
        assert payload['version'] == 1
        assert 'timestamp' in payload
        assert [r['name'] for r in payload['records']] == ['HackMIT', 'ETHIndia']

    def test_merge_counts_new_names(self, registry, make_record):
        registry.save([make_record(id='a', name='Alpha')])

        added = registry.merge([
            make_record(id='b', name='Beta'),
            make_record(id='c', name='ALPHA'),
        ], NOW)

        assert added == 1
        assert len(registry.records) == 2

    def test_merge_derives_status(self, registry, make_record):
        registry.merge([make_record(start_date='2025-07-01', end_date='2025-07-03')], NOW)

        assert registry.records[0].status == STATUS_UPCOMING

    def test_delete(self, storage, registry, make_record):
        registry.save([make_record(id='a', name='A'), make_record(id='b', name='B')])

        assert registry.delete('a') is True
        assert [r.id for r in registry.records] == ['b']
        assert len(json.loads(storage.get(REGISTRY_KEY))['records']) == 1

    def test_delete_unknown_id_is_noop(self, registry, make_record):
        records = [make_record(id='a', name='A')]
        registry.save(records)

        assert registry.delete('zzz') is False
        assert registry.records == records

    def test_purge_matches_first_run(self, storage, registry, make_record):
        """Test that purge removes the blobs rather than emptying them."""
        registry.save([make_record()])
        registry.mark_searched(NOW)

        registry.purge()

        assert storage.get(REGISTRY_KEY) is None
        assert storage.get(LAST_SEARCH_KEY) is None
        reloaded = HackathonRegistry(storage)
        assert reloaded.load(NOW) == []
        assert reloaded.last_search() is None
        assert reloaded.is_search_due(NOW)

    def test_seed_does_not_override_stored_records(self, registry, make_record):
        registry.save([make_record(id='mine', name='hackmit')])

        added = registry.seed(NOW)

        assert added == 1
        assert [r.id for r in registry.records] == ['mine', 'ethindia-2025']


class TestSearchScheduleAndExport:
    """Test cases for last-search tracking, stats and export."""

    def test_search_due_after_interval(self, registry):
        registry.mark_searched(NOW)

        assert not registry.is_search_due(NOW + timedelta(days=6))
        assert registry.is_search_due(NOW + timedelta(days=7))

    def test_malformed_last_search_is_ignored(self, storage, registry):
        storage.set(LAST_SEARCH_KEY, 'yesterday-ish')

        assert registry.last_search() is None

    def test_export(self, registry, make_record):
        registry.save([make_record(id='a', name='A')])

        filename, content = registry.export(NOW)

        assert filename == 'hackathon_registry_2025-06-01.json'
        assert '\n  ' in content
        assert json.loads(content)[0]['id'] == 'a'

    def test_stats(self, registry, make_record):
        registry.save([make_record(discovery_tier=1, location_type='Online')])

        stats = registry.stats()

        assert stats['total'] == 1
        assert stats['online'] == 1
        assert stats['by_tier']['tier1'] == 1


class TestPreferencesStore:
    """Test cases for PreferencesStore."""

    def test_defaults_when_missing(self, storage):
        prefs = PreferencesStore(storage).load()

        assert prefs.knowledge_scope == ['React', 'TypeScript', 'AI']
        assert prefs.current_location == ''
        assert prefs.preferred_categories == ['AI & Machine Learning']
        assert prefs.min_prize == 0

    def test_save_and_load(self, storage):
        store = PreferencesStore(storage)
        prefs = UserPreferences(
            knowledge_scope=['Python'],
            current_location='Berlin',
            preferred_categories=['Data Science'],
            min_prize=500
        )

        store.save(prefs)
        loaded = store.load()

        assert loaded.knowledge_scope == ['Python']
        assert loaded.current_location == 'Berlin'
        assert loaded.preferred_categories == ['Data Science']
        assert loaded.min_prize == 500
        assert loaded.last_updated is not None
        assert json.loads(storage.get(PREFERENCES_KEY))['currentLocation'] == 'Berlin'

    def test_corrupt_blob_falls_back_to_defaults(self, storage):
        storage.set(PREFERENCES_KEY, '[1, 2')

        assert PreferencesStore(storage).load() == UserPreferences()

    def test_add_skill_enforces_uniqueness(self):
        prefs = UserPreferences(knowledge_scope=['Rust'])

        assert prefs.add_skill('Go') is True
        assert prefs.add_skill('Go') is False
        assert prefs.add_skill('  ') is False
        assert prefs.knowledge_scope == ['Rust', 'Go']

    def test_from_dict_drops_blank_and_repeated_skills(self):
        prefs = PreferencesStore.from_dict({
            'knowledgeScope': ['Go', ' Go ', '', 'Rust', 'Go'],
            'minPrize': True,
        })

        assert prefs.knowledge_scope == ['Go', 'Rust']
        assert prefs.min_prize == 0
        assert prefs.preferred_categories == ['AI & Machine Learning']
