"""Unit tests for HackathonScout."""
import threading
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from discovery.scout import ActivityLog, HackathonScout, find_local_matches, top_pick
from processor.errors import ProviderAuthorizationError
from processor.models import STATUS_ACTIVE, STATUS_ENDED, STATUS_UPCOMING, UserPreferences
from storage.backends import InMemoryStorage
from storage.registry_store import HackathonRegistry

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def registry():
    return HackathonRegistry(InMemoryStorage())


@pytest.fixture
def search():
    return Mock()


@pytest.fixture
def prefs():
    return UserPreferences(preferred_categories=['AI'])


class TestFindLocalMatches:
    """Test cases for find_local_matches."""

    def test_global_scope_matches_category_and_skips_ended(self, make_record, prefs):
        records = [
            make_record(id='1', name='A', category='AI & Machine Learning', status=STATUS_ACTIVE),
            make_record(id='2', name='B', category='AI & Machine Learning', status=STATUS_ENDED),
            make_record(id='3', name='C', category='Game Dev', status=STATUS_UPCOMING),
        ]

        assert [r.id for r in find_local_matches(records, prefs)] == ['1']

    def test_location_bias_allows_online(self, make_record, prefs):
        prefs.current_location = 'berlin'
        records = [
            make_record(id='1', name='A', category='AI', location='Berlin, Germany'),
            make_record(id='2', name='B', category='AI', location='Paris'),
            make_record(id='3', name='C', category='AI', location='Online/Remote',
                        location_type='Online'),
        ]

        assert [r.id for r in find_local_matches(records, prefs)] == ['1', '3']


def test_top_pick(make_record):
    records = [
        make_record(id='a', name='A', relevance_score=70),
        make_record(id='b', name='B', relevance_score=90),
        make_record(id='c', name='C', relevance_score=90),
    ]

    assert top_pick(records).id == 'b'
    assert top_pick([]) is None


class TestExecuteScout:
    """Test cases for HackathonScout.execute_scout."""

    def test_registry_hit_skips_search(self, registry, search, prefs, make_record):
        registry.save([
            make_record(id='a', name='A', category='AI', relevance_score=60),
            make_record(id='b', name='B', category='AI', relevance_score=95),
        ])
        scout = HackathonScout(search, registry)

        result = scout.execute_scout(prefs, now=NOW)

        assert result.source == 'registry'
        assert result.top_pick.id == 'b'
        assert result.added == 0
        search.search_hackathons.assert_not_called()
        assert any('Registry Hit' in line for line in scout.activity_log.entries)

    def test_no_local_matches_runs_search_and_merges(self, registry, search, prefs, make_record):
        registry.save([make_record(id='old', name='hackmit', category='Game Dev')])
        search.search_hackathons.return_value = [
            make_record(id='new', name='HackMIT', category='AI', relevance_score=50),
            make_record(id='eth', name='ETHIndia', category='AI', relevance_score=99),
        ]
        scout = HackathonScout(search, registry)

        result = scout.execute_scout(prefs, now=NOW)

        assert result.source == 'search'
        assert result.added == 1
        assert result.total == 2
        assert result.top_pick.id == 'eth'
        assert [r.id for r in registry.records] == ['new', 'eth']
        assert registry.last_search() == NOW

    def test_forced_deep_search_ignores_registry(self, registry, search, prefs, make_record):
        registry.save([make_record(id='a', name='A', category='AI')])
        search.search_hackathons.return_value = []
        scout = HackathonScout(search, registry)

        result = scout.execute_scout(prefs, force_deep_search=True, region='Tokyo', now=NOW)

        assert result.source == 'search'
        assert result.records == []
        assert registry.last_search() is None
        call = search.search_hackathons.call_args
        assert call.kwargs['region'] == 'Tokyo'
        assert any('Deep Search forced' in line for line in scout.activity_log.entries)
        assert any('No new nodes detected' in line for line in scout.activity_log.entries)

    def test_authorization_failure_propagates_and_releases_guard(self, registry, search, prefs):
        search.search_hackathons.side_effect = ProviderAuthorizationError('bad key')
        scout = HackathonScout(search, registry)

        with pytest.raises(ProviderAuthorizationError):
            scout.execute_scout(prefs, now=NOW)

        assert registry.records == []
        search.search_hackathons.side_effect = None
        search.search_hackathons.return_value = []
        assert scout.execute_scout(prefs, now=NOW).source == 'search'

    def test_concurrent_request_is_skipped(self, registry, search, prefs, make_record):
        """Test that a second cycle is refused while one is in flight."""
        started = threading.Event()
        release = threading.Event()

        def slow_search(*args, **kwargs):
            started.set()
            release.wait(timeout=5)
            return [make_record(id='x', name='X', category='AI')]

        search.search_hackathons.side_effect = slow_search
        scout = HackathonScout(search, registry)

        worker = threading.Thread(target=scout.execute_scout, args=(prefs,))
        worker.start()
        assert started.wait(timeout=5)

        skipped = scout.execute_scout(prefs)
        release.set()
        worker.join(timeout=5)

        assert skipped.source == 'skipped'
        assert skipped.errors == ['Scout already in progress']
        assert search.search_hackathons.call_count == 1
        search.search_hackathons.side_effect = None
        search.search_hackathons.return_value = []
        assert scout.execute_scout(prefs, force_deep_search=True).source == 'search'


def test_activity_log_timestamps_entries():
    log = ActivityLog(clock=lambda: datetime(2025, 6, 1, 9, 5, 7))

    log('Vault: Global registry wipe successful.')

    assert log.entries == ['[09:05:07] Vault: Global registry wipe successful.']
