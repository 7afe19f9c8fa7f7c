"""Zoom-based visibility and marker scaling for the globe view.

Camera distance is measured from the globe centre and shrinks as the viewer
zooms in. Tier 1 records are visible from farthest away, tier 3 only up
close.
"""
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional

from processor.models import Hackathon, normalize_tier


@dataclass(frozen=True)
class VisibilitySettings:
    """Camera distance thresholds."""
    tier1_distance: float = 10.0
    tier2_distance: float = 6.0
    tier3_distance: float = 4.0
    max_distance: float = 10.0
    min_distance: float = 2.5


DEFAULT_SETTINGS = VisibilitySettings()

REFERENCE_DISTANCE = 6.0
SCALE_EXPONENT = 1.2
MIN_SCALE_FACTOR = 0.3
MAX_SCALE_FACTOR = 1.5
LABEL_DISTANCE = 5.0

BASE_SCALES = {1: 1.0, 2: 0.8, 3: 0.6}

# Lower bounds, checked in order
ZOOM_BANDS = [
    (8.0, 'Global View'),
    (6.0, 'Continental View'),
    (4.0, 'Regional View'),
]
CLOSEST_BAND = 'City View'


def tier_threshold(
    tier: Optional[int],
    settings: VisibilitySettings = DEFAULT_SETTINGS
) -> float:
    """
    Camera distance at or below which a tier becomes visible.

    Args:
        tier: Discovery tier; missing or unknown tiers count as tier 3
        settings: Distance thresholds

    Returns:
        Maximum visible camera distance
    """
    tier = normalize_tier(tier)
    if tier == 1:
        return settings.tier1_distance
    if tier == 2:
        return settings.tier2_distance
    return settings.tier3_distance


def is_visible(
    distance: float,
    tier: Optional[int] = None,
    settings: VisibilitySettings = DEFAULT_SETTINGS
) -> bool:
    """
    Decide whether a record of the given tier renders at a camera distance.

    Non-finite and negative distances are never visible.
    """
    if not math.isfinite(distance) or distance < 0:
        return False
    return distance <= tier_threshold(tier, settings)


def base_scale(tier: Optional[int]) -> float:
    """Marker scale for a tier before distance is taken into account."""
    return BASE_SCALES[normalize_tier(tier)]


def scale_for(
    distance: float,
    tier: Optional[int] = None,
    settings: VisibilitySettings = DEFAULT_SETTINGS
) -> float:
    """
    Compute the marker scale for a camera distance.

    The scale is base_scale(tier) * clamp((6 / distance) ** 1.2, 0.3, 1.5).
    Distances below the minimum camera distance, including non-positive and
    NaN values, are raised to it.
    """
    if not distance >= settings.min_distance:
        distance = settings.min_distance

    factor = (REFERENCE_DISTANCE / distance) ** SCALE_EXPONENT
    factor = max(MIN_SCALE_FACTOR, min(MAX_SCALE_FACTOR, factor))
    return base_scale(tier) * factor


def zoom_label(distance: float) -> str:
    """
    Name the zoom band for a camera distance.

    Args:
        distance: Camera distance

    Returns:
        One of Global, Continental, Regional or City View
    """
    for lower_bound, label in ZOOM_BANDS:
        if distance >= lower_bound:
            return label
    return CLOSEST_BAND


def visibility_description(
    distance: float,
    settings: VisibilitySettings = DEFAULT_SETTINGS
) -> str:
    if distance <= settings.tier3_distance:
        return 'Showing all nodes'
    if distance <= settings.tier2_distance:
        return 'Showing major & regional nodes'
    return 'Showing major global nodes'


def should_show_labels(distance: float) -> bool:
    return distance < LABEL_DISTANCE


def select_visible(
    records: Iterable[Hackathon],
    distance: float,
    settings: VisibilitySettings = DEFAULT_SETTINGS
) -> List[Hackathon]:
    """Keep the records visible at the given distance, in input order."""
    return [
        record for record in records
        if is_visible(distance, record.discovery_tier, settings)
    ]


def clamp_distance(
    distance: float,
    settings: VisibilitySettings = DEFAULT_SETTINGS
) -> float:
    """Clamp a requested camera distance to the orbit controls' range."""
    if math.isnan(distance):
        return settings.max_distance
    return max(settings.min_distance, min(settings.max_distance, distance))
