"""Hackathon discovery through Gemini with Google Search grounding."""
import base64
import json
import logging
import re
from typing import Any, Callable, List, Optional

from discovery.gemini_client import (
    GeminiClient,
    candidate_parts,
    grounding_sources,
    response_text,
)
from processor.errors import ProviderAuthorizationError, ProviderError
from processor.models import (
    HACKATHON_CATEGORIES,
    GeneratedImage,
    Hackathon,
    LocationInsight,
    UserPreferences,
)
from processor.record_processor import RecordProcessor

logger = logging.getLogger(__name__)

LogSink = Callable[[str], None]

SEARCH_MODEL = 'gemini-3-pro-preview'
MAPS_MODEL = 'gemini-2.5-flash'
IMAGE_MODEL = 'gemini-2.5-flash-image'

ASPECT_RATIOS = ('1:1', '4:3', '3:4', '16:9', '9:16')

FENCE_PATTERN = re.compile(r'^```(?:json)?\s*|\s*```$')

HACKATHON_SCHEMA = {
    'type': 'ARRAY',
    'items': {
        'type': 'OBJECT',
        'properties': {
            'name': {'type': 'STRING'},
            'locationType': {'type': 'STRING'},
            'location': {'type': 'STRING'},
            'coordinates': {
                'type': 'OBJECT',
                'properties': {
                    'lat': {'type': 'NUMBER'},
                    'lng': {'type': 'NUMBER'},
                },
                'required': ['lat', 'lng'],
            },
            'timePeriod': {'type': 'STRING'},
            'startDate': {'type': 'STRING'},
            'endDate': {'type': 'STRING'},
            'conductedBy': {'type': 'STRING'},
            'prizeMoney': {'type': 'STRING'},
            'prizeType': {'type': 'STRING'},
            'category': {'type': 'STRING'},
            'participantCount': {'type': 'NUMBER'},
            'url': {'type': 'STRING'},
            'relevanceScore': {'type': 'NUMBER'},
            'discoveryTier': {'type': 'NUMBER'},
        },
        'required': [
            'name', 'locationType', 'location', 'startDate', 'endDate',
            'conductedBy', 'prizeMoney', 'prizeType', 'category',
            'participantCount', 'url', 'relevanceScore', 'coordinates',
            'timePeriod',
        ],
    },
}


def build_search_prompt(prefs: UserPreferences, region: Optional[str] = None) -> str:
    """Build the grounded search prompt for a preference profile."""
    location = (region or prefs.current_location).strip()
    if location:
        location_context = f"Target Location Bias: {location}"
    else:
        location_context = (
            "Target Scope: Global (Worldwide discovery, no specific city bias)"
        )

    skills = ', '.join(prefs.knowledge_scope)
    categories = ', '.join(prefs.preferred_categories)
    category_choices = categories or ', '.join(HACKATHON_CATEGORIES)
    prize_line = ''
    if prefs.min_prize:
        prize_line = f"\n- Minimum prize pool: ${prefs.min_prize:,.0f}"

    return f"""
Conduct a deep search for current and upcoming hackathons.
Use Google Search Grounding to find verified, real-world data from platforms like Devpost, Devfolio, HackerEarth, and corporate innovation pages.

User Profile:
- Tech Stack: {skills}
- Interest Categories: {categories}
- {location_context}{prize_line}

MANDATORY SPECIFICATIONS for each result:
- name: Official hackathon name.
- conductedBy: Organizing company or community (e.g., 'Google Cloud', 'Meta', 'EthGlobal').
- location: Specific city/country or 'Online/Remote'.
- locationType: Exactly 'Online', 'Offline', or 'Hybrid'.
- timePeriod: Readable string (e.g., 'March 16 - April 25, 2025').
- startDate/endDate: Valid ISO 8601 date strings.
- prizeMoney: Amount (e.g. '$100,000') or specific reward description (e.g. 'Paid Internship + Swag').
- prizeType: Exactly 'Price' (for cash) or 'Non-price' (for non-monetary rewards).
- category: Vertical (from: {category_choices}).
- participantCount: Approximate or actual number of people currently applied/registered (integer).
- coordinates: Estimated Lat/Lng for map visualization.
- relevanceScore: 0-100 based on fit for: {skills}.
- discoveryTier: 1 for globally significant events, 2 for regional, 3 for local.

Return only valid JSON matching the provided schema.
"""


def parse_json_array(text: str) -> List[Any]:
    """
    Decode the model's JSON answer, tolerating markdown code fences.

    Raises:
        ProviderError: If the text is not a JSON array
    """
    cleaned = FENCE_PATTERN.sub('', (text or '[]').strip()) or '[]'
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ProviderError(f"Response is not valid JSON: {e}") from e
    if not isinstance(data, list):
        raise ProviderError("Response is not a JSON array")
    return data


class HackathonSearch:
    """Discovers hackathons and related content through Gemini."""

    def __init__(
        self,
        client: GeminiClient,
        processor: Optional[RecordProcessor] = None,
        model: str = SEARCH_MODEL
    ):
        self.client = client
        self.processor = processor or RecordProcessor()
        self.model = model

    def search_hackathons(
        self,
        prefs: UserPreferences,
        region: Optional[str] = None,
        on_log: Optional[LogSink] = None
    ) -> List[Hackathon]:
        """
        Search for hackathons matching the preferences.

        Args:
            prefs: User preferences
            region: Optional location overriding prefs.current_location
            on_log: Optional sink for progress messages

        Returns:
            Normalized records, each carrying the batch's grounding sources.
            Empty on generic failures.

        Raises:
            ProviderAuthorizationError: If the provider rejects the credentials
        """
        log = on_log or (lambda message: None)

        log("Agent: Initiating Global Hackathon Discovery...")
        log(
            f"Parameters: {', '.join(prefs.knowledge_scope)} | "
            f"{', '.join(prefs.preferred_categories)}"
        )

        body = {
            'contents': [{
                'role': 'user',
                'parts': [{'text': build_search_prompt(prefs, region)}],
            }],
            'tools': [{'google_search': {}}],
            'generationConfig': {
                'responseMimeType': 'application/json',
                'responseSchema': HACKATHON_SCHEMA,
            },
        }

        try:
            payload = self.client.generate_content(self.model, body)
            log("Agent: Grounding successful. Syncing telemetry...")
            sources = grounding_sources(payload, 'web')
            raw_records = parse_json_array(response_text(payload))
        except ProviderAuthorizationError:
            log("System Error: Provider rejected the configured credentials.")
            raise
        except ProviderError as e:
            logger.error(f"Hackathon search failed: {e}")
            log("System Error: Search grounding failed.")
            return []

        # The provider has no stable identifiers; ids are always derived here
        records = self.processor.process_records(
            raw_records, sources=sources, generate_ids=True
        )
        logger.info(
            f"Search returned {len(records)} valid records "
            f"with {len(sources)} grounding sources"
        )
        return records

    def deep_scan_location(
        self,
        query: str,
        lat: Optional[float] = None,
        lng: Optional[float] = None
    ) -> LocationInsight:
        """
        Ask a maps-grounded model about a venue or city.

        Raises:
            ProviderError: On provider failure
        """
        body = {
            'contents': [{
                'role': 'user',
                'parts': [{
                    'text': (
                        f"Describe the venue and surroundings of {query} for a "
                        "visiting hackathon participant: transit, nearby "
                        "accommodation, and notable tech hubs."
                    ),
                }],
            }],
            'tools': [{'googleMaps': {}}],
        }
        if lat is not None and lng is not None:
            body['toolConfig'] = {
                'retrievalConfig': {
                    'latLng': {'latitude': lat, 'longitude': lng},
                },
            }

        payload = self.client.generate_content(MAPS_MODEL, body)
        return LocationInsight(
            text=response_text(payload),
            sources=grounding_sources(payload, 'maps')
        )

    def generate_art(self, hackathon_name: str, aspect_ratio: str = '16:9') -> GeneratedImage:
        """
        Generate promotional artwork for a hackathon.

        Raises:
            ValueError: On an unsupported aspect ratio
            ProviderError: On provider failure or a response without an image
        """
        if aspect_ratio not in ASPECT_RATIOS:
            raise ValueError(f"Unsupported aspect ratio: {aspect_ratio}")

        body = {
            'contents': [{
                'role': 'user',
                'parts': [{
                    'text': (
                        f"Futuristic promotional poster for the hackathon "
                        f"'{hackathon_name}', neon circuitry over a night-time "
                        "globe, no text."
                    ),
                }],
            }],
            'generationConfig': {
                'responseModalities': ['IMAGE'],
                'imageConfig': {'aspectRatio': aspect_ratio},
            },
        }

        payload = self.client.generate_content(IMAGE_MODEL, body)
        for part in candidate_parts(payload):
            inline = part.get('inlineData')
            if not isinstance(inline, dict) or not inline.get('data'):
                continue
            try:
                data = base64.b64decode(inline['data'])
            except (ValueError, TypeError) as e:
                raise ProviderError(f"Image data is not valid base64: {e}") from e
            return GeneratedImage(
                mime_type=inline.get('mimeType') or 'image/png',
                data=data
            )

        raise ProviderError("Image generation returned no image data")
