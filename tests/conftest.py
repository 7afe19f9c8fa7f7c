"""Shared fixtures for hackathon scout tests."""
import pytest

from processor.models import Coordinates, Hackathon


def build_record(**overrides) -> Hackathon:
    """Create a Hackathon with sensible defaults."""
    fields = dict(
        id='hack-1',
        name='Test Hackathon',
        location_type='Offline',
        location='Berlin, Germany',
        time_period='Jul 1 - Jul 3, 2025',
        start_date='2025-07-01',
        end_date='2025-07-03',
        conducted_by='Test Org',
        prize_money='$5,000',
        prize_type='Price',
        category='AI & Machine Learning',
        participant_count=300,
        url='https://example.com/hack',
        relevance_score=80.0,
        coordinates=Coordinates(lat=52.52, lng=13.405),
        discovery_tier=None,
    )
    fields.update(overrides)
    return Hackathon(**fields)


@pytest.fixture
def make_record():
    """Factory fixture for Hackathon records."""
    return build_record


@pytest.fixture
def raw_record():
    """Provider-shaped dictionary for a single hackathon."""
    return {
        'name': 'HackMIT',
        'locationType': 'Offline',
        'location': 'Cambridge, MA, USA',
        'coordinates': {'lat': 42.3601, 'lng': -71.0942},
        'timePeriod': 'Sep 13 - Sep 15, 2025',
        'startDate': '2025-09-13',
        'endDate': '2025-09-15',
        'conductedBy': 'MIT',
        'prizeMoney': '$10,000+',
        'prizeType': 'Price',
        'category': 'General',
        'participantCount': 1000,
        'url': 'https://hackmit.org',
        'relevanceScore': 98,
        'discoveryTier': 1,
    }
