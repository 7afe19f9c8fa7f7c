"""Marker layout for the 3D globe."""
import math
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from processor.models import STATUS_ENDED, Hackathon
from visibility import zoom_policy

GLOBE_RADIUS = 2.0
MARKER_RADIUS = 2.03

ONLINE_COLOR = '#3b82f6'
VENUE_COLOR = '#ef4444'


@dataclass(frozen=True)
class Marker:
    """Placement of one record on the globe."""
    record_id: str
    name: str
    position: Tuple[float, float, float]
    scale: float
    color: str
    show_label: bool
    tier: int


def lat_lng_to_vector3(
    lat: float,
    lng: float,
    radius: float = MARKER_RADIUS
) -> Tuple[float, float, float]:
    """
    Convert latitude/longitude in degrees to a point on a y-up sphere.
    """
    phi = math.radians(90 - lat)
    theta = math.radians(lng + 180)
    return (
        -radius * math.sin(phi) * math.cos(theta),
        radius * math.cos(phi),
        radius * math.sin(phi) * math.sin(theta),
    )


def build_markers(records: Iterable[Hackathon], distance: float) -> List[Marker]:
    """
    Lay out markers for the records visible at the given camera distance.

    Records without coordinates and records that have ended are not placed.
    """
    show_label = zoom_policy.should_show_labels(distance)
    markers = []

    for record in zoom_policy.select_visible(records, distance):
        if record.coordinates is None or record.status == STATUS_ENDED:
            continue

        tier = zoom_policy.normalize_tier(record.discovery_tier)
        markers.append(Marker(
            record_id=record.id,
            name=record.name,
            position=lat_lng_to_vector3(
                record.coordinates.lat, record.coordinates.lng
            ),
            scale=zoom_policy.scale_for(distance, tier),
            color=ONLINE_COLOR if record.location_type == 'Online' else VENUE_COLOR,
            show_label=show_label,
            tier=tier,
        ))

    return markers


def view_summary(records: List[Hackathon], distance: float) -> dict:
    """Describe what the globe shows at a camera distance."""
    markers = build_markers(records, distance)
    return {
        'camera_distance': distance,
        'zoom_label': zoom_policy.zoom_label(distance),
        'description': zoom_policy.visibility_description(distance),
        'show_labels': zoom_policy.should_show_labels(distance),
        'visible_count': len(markers),
        'markers': [
            {
                'id': m.record_id,
                'name': m.name,
                'position': list(m.position),
                'scale': round(m.scale, 4),
                'color': m.color,
                'show_label': m.show_label,
                'tier': m.tier,
            }
            for m in markers
        ],
    }
