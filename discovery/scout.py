"""Registry-first hackathon scout."""
import logging
import threading
from datetime import datetime
from typing import List, Optional

from discovery.hackathon_search import HackathonSearch
from processor.models import STATUS_ENDED, Hackathon, ScoutResult, UserPreferences
from storage.registry_store import HackathonRegistry

logger = logging.getLogger(__name__)


class ActivityLog:
    """Append-only log of progress messages shown to the user."""

    def __init__(self, clock=None):
        self.entries: List[str] = []
        self._clock = clock or datetime.now

    def append(self, message: str) -> None:
        stamp = self._clock().strftime('%H:%M:%S')
        self.entries.append(f"[{stamp}] {message}")
        logger.info(message)

    __call__ = append


def find_local_matches(
    records: List[Hackathon],
    prefs: UserPreferences
) -> List[Hackathon]:
    """
    Select stored records that still run and fit the preferences.

    A category matches when any preferred category is a substring of the
    record's category. With a location bias, a record must be at that
    location or be online.
    """
    location = prefs.current_location.strip().lower()
    matches = []

    for record in records:
        if record.status == STATUS_ENDED:
            continue
        if not any(cat in record.category for cat in prefs.preferred_categories):
            continue
        if not prefs.is_global and location not in record.location.lower() \
                and record.location_type != 'Online':
            continue
        matches.append(record)

    return matches


def top_pick(records: List[Hackathon]) -> Optional[Hackathon]:
    """Highest relevance score; earliest record wins ties."""
    if not records:
        return None
    return sorted(records, key=lambda r: r.relevance_score, reverse=True)[0]


class HackathonScout:
    """
    Runs discovery cycles against the registry.

    Stored matches are preferred over a new search unless a deep search is
    forced. Only one cycle runs at a time.
    """

    def __init__(
        self,
        search: HackathonSearch,
        registry: HackathonRegistry,
        activity_log: Optional[ActivityLog] = None
    ):
        self.search = search
        self.registry = registry
        self.activity_log = activity_log or ActivityLog()
        self._in_flight = threading.Lock()

    def execute_scout(
        self,
        prefs: UserPreferences,
        force_deep_search: bool = False,
        region: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> ScoutResult:
        """
        Run one scout cycle.

        Args:
            prefs: User preferences
            force_deep_search: Skip the registry and always search
            region: Optional location overriding prefs.current_location
            now: Reference time for status derivation

        Returns:
            ScoutResult describing where the records came from

        Raises:
            ProviderAuthorizationError: If the provider rejects the credentials
        """
        log = self.activity_log

        if not self._in_flight.acquire(blocking=False):
            log("Agent: A scan is already running. Request ignored.")
            return ScoutResult(
                source='skipped',
                records=[],
                top_pick=None,
                added=0,
                total=len(self.registry.records),
                errors=['Scout already in progress']
            )

        try:
            if not force_deep_search:
                local_matches = find_local_matches(self.registry.records, prefs)
                if local_matches:
                    log(
                        f"Agent: Registry Hit. Analyzing {len(local_matches)} "
                        "matching nodes..."
                    )
                    best = top_pick(local_matches)
                    log(f'Agent: Prioritized "{best.name}" from local persistence.')
                    return ScoutResult(
                        source='registry',
                        records=local_matches,
                        top_pick=best,
                        added=0,
                        total=len(self.registry.records),
                        errors=[]
                    )

            if force_deep_search:
                log("Agent: Deep Search forced. Crawling global endpoints...")
            else:
                log("Agent: No local matches. Initiating external telemetry...")

            results = self.search.search_hackathons(prefs, region=region, on_log=log)

            added = 0
            if results:
                added = self.registry.merge(results, now)
                self.registry.mark_searched(now)
                log(f"Agent: {len(results)} new records synchronized.")
            else:
                log("Agent: Scan completed. No new nodes detected.")

            return ScoutResult(
                source='search',
                records=results,
                top_pick=top_pick(results),
                added=added,
                total=len(self.registry.records),
                errors=[]
            )
        finally:
            log("Agent: Execution cycle finished.")
            self._in_flight.release()
