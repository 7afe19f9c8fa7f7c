"""Record processor for validating and normalizing hackathon data."""
import hashlib
import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from processor.errors import RecordValidationError
from processor.models import (
    DISCOVERY_TIERS,
    LOCATION_TYPES,
    PRIZE_TYPES,
    Coordinates,
    GroundingSource,
    Hackathon,
)

logger = logging.getLogger(__name__)

PRIZE_TYPE_ALIASES = {
    'monetary': 'Price',
    'cash': 'Price',
    'non-monetary': 'Non-price',
    'nonmonetary': 'Non-price',
}

# Fallbacks for providers that ignore the ISO 8601 instruction
DATE_FORMATS = [
    '%m/%d/%Y',
    '%B %d, %Y',
    '%b %d, %Y',
    '%d %B %Y',
    '%d %b %Y',
    '%Y/%m/%d',
]


def parse_instant(value: Any) -> datetime:
    """
    Parse a date or date-time string into an aware UTC datetime.

    Date-only values resolve to midnight UTC. Naive date-times are assumed
    to be UTC.

    Raises:
        RecordValidationError: If the value is not a recognizable date
    """
    if not isinstance(value, str) or not value.strip():
        raise RecordValidationError(f"Invalid date value: {value!r}")

    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = None
        for fmt in DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        raise RecordValidationError(f"Invalid date value: {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def generate_record_id(name: str, start_date: str, end_date: str) -> str:
    """
    Generate an identifier for a record from its name and date range.

    Returns:
        SHA256 hex digest of the lower-cased name and both dates
    """
    composite = f"{name.strip().lower()}|{start_date}|{end_date}"
    return hashlib.sha256(composite.encode('utf-8')).hexdigest()


class RecordProcessor:
    """Converts loosely typed provider or storage payloads into Hackathon records."""

    MAX_NAME_LENGTH = 200
    MAX_TEXT_LENGTH = 500
    REQUIRED_FIELDS = ('name', 'startDate', 'endDate', 'locationType')

    def process_records(
        self,
        raw_records: List[Dict[str, Any]],
        sources: Optional[List[GroundingSource]] = None,
        generate_ids: bool = False
    ) -> List[Hackathon]:
        """
        Process and validate a batch of raw records.

        Invalid records are logged and skipped.

        Args:
            raw_records: Dictionaries as returned by the provider or storage
            sources: Grounding sources to attach to every record of the batch
            generate_ids: Ignore any incoming id and derive one from the
                name and dates

        Returns:
            List of validated Hackathon objects
        """
        processed = []

        for raw in raw_records:
            try:
                processed.append(self.process_record(
                    raw, sources=sources, generate_ids=generate_ids
                ))
            except RecordValidationError as e:
                name = raw.get('name') if isinstance(raw, dict) else None
                logger.warning(f"Skipping record '{name}': {e}")
                continue

        logger.info(
            f"Processed {len(processed)} valid records out of "
            f"{len(raw_records)} total records"
        )
        return processed

    def process_record(
        self,
        raw: Dict[str, Any],
        sources: Optional[List[GroundingSource]] = None,
        generate_ids: bool = False
    ) -> Hackathon:
        """
        Validate and normalize a single raw record.

        Stored records keep their id unless generate_ids is set.

        Raises:
            RecordValidationError: On missing required fields or bad values
        """
        if not isinstance(raw, dict):
            raise RecordValidationError(
                f"Expected a mapping, got {type(raw).__name__}"
            )

        self._validate_required_fields(raw)

        name = raw['name'].strip()[:self.MAX_NAME_LENGTH]
        start_date = self._normalize_date(raw['startDate'])
        end_date = self._normalize_date(raw['endDate'])

        if parse_instant(end_date) < parse_instant(start_date):
            raise RecordValidationError(
                f"End date {end_date} precedes start date {start_date}"
            )

        if sources is None:
            sources = self._parse_sources(raw.get('sources'))

        record_id = None if generate_ids else raw.get('id')
        if not record_id:
            record_id = generate_record_id(name, start_date, end_date)

        return Hackathon(
            id=str(record_id),
            name=name,
            location_type=self._normalize_location_type(raw['locationType']),
            location=self._text(raw.get('location')),
            time_period=self._text(raw.get('timePeriod')),
            start_date=start_date,
            end_date=end_date,
            conducted_by=self._text(raw.get('conductedBy')),
            prize_money=self._text(raw.get('prizeMoney')),
            prize_type=self._normalize_prize_type(raw.get('prizeType')),
            category=self._text(raw.get('category')),
            participant_count=self._participant_count(raw.get('participantCount')),
            url=self._text(raw.get('url')),
            relevance_score=self._relevance_score(raw.get('relevanceScore')),
            coordinates=self._parse_coordinates(raw.get('coordinates')),
            discovery_tier=self._discovery_tier(raw.get('discoveryTier')),
            sources=list(sources),
            status=raw.get('status'),
        )

    def record_to_dict(self, record: Hackathon) -> Dict[str, Any]:
        """
        Convert a Hackathon into the camelCase dictionary used for storage
        and export.
        """
        item = {
            'id': record.id,
            'name': record.name,
            'locationType': record.location_type,
            'location': record.location,
            'timePeriod': record.time_period,
            'startDate': record.start_date,
            'endDate': record.end_date,
            'conductedBy': record.conducted_by,
            'prizeMoney': record.prize_money,
            'prizeType': record.prize_type,
            'category': record.category,
            'participantCount': record.participant_count,
            'url': record.url,
            'relevanceScore': record.relevance_score,
            'sources': [
                {'title': s.title, 'url': s.url} for s in record.sources
            ],
        }

        # Add optional fields if present
        if record.coordinates:
            item['coordinates'] = {
                'lat': record.coordinates.lat,
                'lng': record.coordinates.lng,
            }
        if record.discovery_tier is not None:
            item['discoveryTier'] = record.discovery_tier
        if record.status:
            item['status'] = record.status

        return item

    def _validate_required_fields(self, raw: Dict[str, Any]) -> None:
        for field_name in self.REQUIRED_FIELDS:
            value = raw.get(field_name)
            if not isinstance(value, str) or not value.strip():
                raise RecordValidationError(
                    f"Missing required field: {field_name}"
                )

    def _normalize_date(self, value: str) -> str:
        """
        Normalize a date to ISO 8601.

        Date-only input stays a plain YYYY-MM-DD string.
        """
        text = value.strip()
        try:
            parsed = datetime.fromisoformat(text)
            if len(text) == 10:
                return parsed.strftime('%Y-%m-%d')
            return parsed.isoformat()
        except ValueError:
            pass

        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).strftime('%Y-%m-%d')
            except ValueError:
                continue

        raise RecordValidationError(f"Invalid date format: {value!r}")

    def _normalize_location_type(self, value: str) -> str:
        for location_type in LOCATION_TYPES:
            if value.strip().lower() == location_type.lower():
                return location_type
        raise RecordValidationError(f"Unknown location type: {value!r}")

    def _normalize_prize_type(self, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            return 'Non-price'
        key = value.strip().lower()
        for prize_type in PRIZE_TYPES:
            if key == prize_type.lower():
                return prize_type
        normalized = PRIZE_TYPE_ALIASES.get(key)
        if normalized is None:
            raise RecordValidationError(f"Unknown prize type: {value!r}")
        return normalized

    def _text(self, value: Any) -> str:
        if value is None:
            return ''
        return str(value).strip()[:self.MAX_TEXT_LENGTH]

    def _participant_count(self, value: Any) -> int:
        try:
            count = float(value)
        except (TypeError, ValueError):
            return 0
        if not math.isfinite(count):
            return 0
        return max(0, int(count))

    def _relevance_score(self, value: Any) -> float:
        try:
            score = float(value)
        except (TypeError, ValueError):
            return 0.0
        if not math.isfinite(score):
            return 0.0
        return min(100.0, max(0.0, score))

    def _discovery_tier(self, value: Any) -> Optional[int]:
        if value is None:
            return None
        try:
            tier = float(value)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(tier):
            return None
        tier = int(tier)
        return tier if tier in DISCOVERY_TIERS else None

    def _parse_coordinates(self, value: Any) -> Optional[Coordinates]:
        if not isinstance(value, dict):
            return None
        try:
            lat = float(value['lat'])
            lng = float(value['lng'])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Ignoring malformed coordinates: {value!r}")
            return None
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0):
            logger.warning(f"Ignoring out-of-range coordinates: {lat}, {lng}")
            return None
        return Coordinates(lat=lat, lng=lng)

    def _parse_sources(self, value: Any) -> List[GroundingSource]:
        if not isinstance(value, list):
            return []
        sources = []
        for entry in value:
            if isinstance(entry, dict) and entry.get('url'):
                sources.append(GroundingSource(
                    title=str(entry.get('title') or entry['url']),
                    url=str(entry['url'])
                ))
        return sources
