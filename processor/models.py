"""Data models for hackathon discovery."""
from dataclasses import dataclass, field
from typing import List, Optional


LOCATION_TYPES = ('Online', 'Offline', 'Hybrid')
PRIZE_TYPES = ('Price', 'Non-price')

STATUS_UPCOMING = 'UPCOMING'
STATUS_ACTIVE = 'ACTIVE'
STATUS_ENDED = 'ENDED'

DEFAULT_DISCOVERY_TIER = 3
DISCOVERY_TIERS = (1, 2, 3)

HACKATHON_CATEGORIES = [
    'Web Development',
    'Mobile Apps',
    'AI & Machine Learning',
    'Blockchain & Web3',
    'Cybersecurity',
    'IoT & Hardware',
    'Game Dev',
    'Data Science',
    'Sustainability',
]


def normalize_tier(tier: Optional[int]) -> int:
    """Map a missing or unknown discovery tier to the most restrictive tier."""
    return tier if tier in (1, 2) else DEFAULT_DISCOVERY_TIER


@dataclass(frozen=True)
class Coordinates:
    """Latitude/longitude pair in degrees."""
    lat: float
    lng: float


@dataclass(frozen=True)
class GroundingSource:
    """Citation returned by the search provider."""
    title: str
    url: str


@dataclass(frozen=True)
class Hackathon:
    """Validated and normalized hackathon record."""
    id: str
    name: str
    location_type: str
    location: str
    time_period: str
    start_date: str
    end_date: str
    conducted_by: str
    prize_money: str
    prize_type: str
    category: str
    participant_count: int
    url: str
    relevance_score: float
    coordinates: Optional[Coordinates] = None
    discovery_tier: Optional[int] = None
    sources: List[GroundingSource] = field(default_factory=list)
    status: Optional[str] = None


@dataclass
class UserPreferences:
    """Search preferences for the scout."""
    knowledge_scope: List[str] = field(
        default_factory=lambda: ['React', 'TypeScript', 'AI']
    )
    current_location: str = ''
    preferred_categories: List[str] = field(
        default_factory=lambda: ['AI & Machine Learning']
    )
    min_prize: float = 0
    last_updated: Optional[str] = None

    def add_skill(self, skill: str) -> bool:
        """
        Add a skill to the knowledge scope unless it is already present.

        Returns:
            True if the skill was added, False otherwise
        """
        skill = skill.strip()
        if not skill or skill in self.knowledge_scope:
            return False
        self.knowledge_scope.append(skill)
        return True

    @property
    def is_global(self) -> bool:
        return not self.current_location.strip()


@dataclass
class ScoutResult:
    """Result of a scout cycle."""
    source: str
    records: List[Hackathon]
    top_pick: Optional[Hackathon]
    added: int
    total: int
    errors: list[str]


@dataclass(frozen=True)
class LocationInsight:
    """Free-text answer from a map-grounded location lookup."""
    text: str
    sources: List[GroundingSource]


@dataclass(frozen=True)
class GeneratedImage:
    """Image payload returned by the image-generation provider."""
    mime_type: str
    data: bytes
