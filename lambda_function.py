"""AWS Lambda handler for the Hackathon Scout."""
import base64
import json
import logging
import os
import time
from typing import Any, Dict

from discovery.gemini_client import GeminiClient
from discovery.hackathon_search import SEARCH_MODEL, HackathonSearch
from discovery.scout import ActivityLog, HackathonScout
from processor import registry_engine
from processor.errors import ProviderAuthorizationError, ProviderError
from processor.models import HACKATHON_CATEGORIES, LOCATION_TYPES, PRIZE_TYPES
from processor.record_processor import RecordProcessor
from storage.backends import InMemoryStorage, JsonFileStorage, StoragePort
from storage.dynamodb_storage import DynamoDBStorage
from storage.registry_store import HackathonRegistry, PreferencesStore
from visibility.globe_markers import view_summary
from visibility.zoom_policy import clamp_distance


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    RESERVED = set(vars(logging.LogRecord('', 0, '', 0, '', None, None))) | {'asctime'}

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        # Carry fields passed through `extra=`
        for key, value in vars(record).items():
            if key not in self.RESERVED and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def build_storage(backend: str, table_name: str, storage_dir: str) -> StoragePort:
    """Instantiate the configured storage backend."""
    backend = backend.lower()
    if backend == 'dynamodb':
        return DynamoDBStorage(table_name=table_name)
    if backend == 'file':
        return JsonFileStorage(storage_dir)
    if backend == 'memory':
        return InMemoryStorage()
    raise ValueError(f"Unknown storage backend: {backend}")


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body, default=str)}


def _error_response(
    status_code: int,
    message: str,
    error: Exception,
    start_time: float,
    **extra: Any
) -> Dict[str, Any]:
    body = {
        'message': message,
        'error': str(error),
        'error_type': type(error).__name__,
        'duration_seconds': round(time.time() - start_time, 2),
    }
    body.update(extra)
    return _response(status_code, body)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for the Hackathon Scout.

    The `action` field of the event selects the operation (default: scout).

    Args:
        event: Invocation payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and a JSON body
    """
    # Read configuration from environment variables
    storage_backend = os.environ.get('STORAGE_BACKEND', 'dynamodb')
    table_name = os.environ.get('TABLE_NAME', 'hackathon-scout')
    storage_dir = os.environ.get('STORAGE_DIR', '/tmp/hackathon-scout')
    api_key = os.environ.get('GEMINI_API_KEY') or os.environ.get('API_KEY', '')
    model = os.environ.get('GEMINI_MODEL', SEARCH_MODEL)
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '60'))

    # Initialize logging
    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    event = event or {}
    action = event.get('action', 'scout')

    start_time = time.time()
    logger.info(
        "Lambda execution started",
        extra={
            'action': action,
            'storage_backend': storage_backend,
            'timeout_seconds': timeout_seconds
        }
    )

    try:
        # Instantiate components
        processor = RecordProcessor()
        storage = build_storage(storage_backend, table_name, storage_dir)
        registry = HackathonRegistry(storage, processor=processor)
        preferences_store = PreferencesStore(storage)
        search = HackathonSearch(
            GeminiClient(api_key=api_key, timeout=timeout_seconds),
            processor=processor,
            model=model
        )

        logger.info("Loading registry")
        registry.load()

        if action == 'scout':
            return _handle_scout(
                event, registry, preferences_store, search, start_time, logger
            )
        if action == 'visible':
            return _handle_visible(event, registry)
        if action == 'list':
            return _handle_list(event, registry)
        if action == 'delete':
            return _handle_delete(event, registry)
        if action == 'purge':
            registry.purge()
            return _response(200, {'message': 'Registry purged'})
        if action == 'export':
            filename, content = registry.export()
            return _response(200, {'filename': filename, 'content': content})
        if action == 'stats':
            stats = registry.stats()
            stats['search_due'] = registry.is_search_due()
            return _response(200, {'statistics': stats})
        if action == 'seed':
            added = registry.seed()
            return _response(200, {
                'message': 'Seed records loaded',
                'records_added': added,
                'total_records': len(registry.records)
            })
        if action == 'deep_scan':
            return _handle_deep_scan(event, registry, search, start_time, logger)
        if action == 'art':
            return _handle_art(event, search, start_time, logger)

        return _response(400, {'message': f'Unknown action: {action}'})

    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _error_response(500, 'Request failed', e, start_time)


def _handle_scout(event, registry, preferences_store, search, start_time, logger):
    """
    Run one scout cycle, saving any preferences carried by the event.

    Args:
        event: Invocation payload (preferences, force_deep_search, region)
        registry: Loaded HackathonRegistry
        preferences_store: Store for user preferences
        search: HackathonSearch used on a registry miss
        start_time: Invocation start, for the duration field
        logger: Handler logger

    Returns:
        200 with the scout result, or 401 when the provider rejects the key
    """
    activity_log = ActivityLog()
    scout = HackathonScout(search, registry, activity_log=activity_log)

    prefs = preferences_store.load()
    if 'preferences' in event:
        prefs = PreferencesStore.from_dict(event['preferences'])
        preferences_store.save(prefs)

    try:
        logger.info("Running scout cycle")
        result = scout.execute_scout(
            prefs,
            force_deep_search=bool(event.get('force_deep_search', False)),
            region=event.get('region')
        )
    except ProviderAuthorizationError as e:
        logger.error(
            f"Provider authorization failed: {str(e)}",
            extra={'error_type': type(e).__name__}
        )
        return _error_response(
            401, 'Provider authorization failed', e, start_time,
            reauthenticate=True,
            log=activity_log.entries
        )

    duration = time.time() - start_time
    logger.info(
        "Lambda execution completed successfully",
        extra={
            'duration_seconds': round(duration, 2),
            'source': result.source,
            'records_found': len(result.records),
            'records_added': result.added,
            'total_records': result.total
        }
    )

    processor = registry.processor
    return _response(200, {
        'message': 'Scout completed successfully',
        'statistics': {
            'source': result.source,
            'records_found': len(result.records),
            'records_added': result.added,
            'total_records': result.total,
            'duration_seconds': round(duration, 2)
        },
        'top_pick': processor.record_to_dict(result.top_pick) if result.top_pick else None,
        'records': [processor.record_to_dict(r) for r in result.records],
        'log': activity_log.entries,
        'errors': result.errors
    })


def _handle_visible(event, registry):
    """
    Describe the globe at a camera distance.

    The requested distance is clamped to the orbit range first.

    Returns:
        200 with the view summary, or 400 without a numeric camera_distance
    """
    try:
        distance = float(event['camera_distance'])
    except (KeyError, TypeError, ValueError):
        return _response(400, {'message': 'camera_distance must be a number'})
    return _response(200, view_summary(registry.records, clamp_distance(distance)))


def _handle_list(event, registry):
    """
    Filter the registry by free-text query, location type, category
    and prize type.

    Args:
        event: Invocation payload (query, location_type, category, prize_type)
        registry: Loaded HackathonRegistry

    Returns:
        200 with the matching records and the available filter values
    """
    records = registry_engine.filter_records(
        registry.records,
        query=event.get('query', ''),
        location_type=event.get('location_type'),
        category=event.get('category'),
        prize_type=event.get('prize_type')
    )
    processor = registry.processor
    return _response(200, {
        'total_records': len(registry.records),
        'match_count': len(records),
        'records': [processor.record_to_dict(r) for r in records],
        'filters': {
            'location_types': list(LOCATION_TYPES),
            'categories': list(HACKATHON_CATEGORIES),
            'prize_types': list(PRIZE_TYPES),
        },
    })


def _handle_delete(event, registry):
    """
    Delete one record by id.

    Returns:
        200 with the new total, 400 without an id, 404 for an unknown id
    """
    record_id = event.get('id')
    if not record_id:
        return _response(400, {'message': 'id is required'})
    if not registry.delete(record_id):
        return _response(404, {'message': f'No record with id {record_id}'})
    return _response(200, {
        'message': 'Record deleted',
        'total_records': len(registry.records)
    })


def _handle_deep_scan(event, registry, search, start_time, logger):
    """
    Ask the maps-grounded model about a stored record's location.

    Returns:
        200 with the insight, 404 for an unknown id, 401 or 502 on
        provider failure
    """
    record = registry.get(event.get('id', ''))
    if record is None:
        return _response(404, {'message': f"No record with id {event.get('id')}"})

    lat = record.coordinates.lat if record.coordinates else None
    lng = record.coordinates.lng if record.coordinates else None
    try:
        insight = search.deep_scan_location(record.location, lat, lng)
    except ProviderError as e:
        logger.warning(f"Location deep scan failed: {e}")
        status = 401 if isinstance(e, ProviderAuthorizationError) else 502
        return _error_response(status, 'Location deep scan failed', e, start_time)

    return _response(200, {
        'text': insight.text,
        'sources': [{'title': s.title, 'url': s.url} for s in insight.sources]
    })


def _handle_art(event, search, start_time, logger):
    """
    Generate promotional artwork for a hackathon name.

    Returns:
        200 with base64 image data, 400 on a bad request, 401 or 502 on
        provider failure
    """
    name = event.get('name')
    if not name:
        return _response(400, {'message': 'name is required'})
    try:
        image = search.generate_art(name, event.get('aspect_ratio', '16:9'))
    except ValueError as e:
        return _error_response(400, 'Invalid art request', e, start_time)
    except ProviderError as e:
        logger.warning(f"Art generation failed: {e}")
        status = 401 if isinstance(e, ProviderAuthorizationError) else 502
        return _error_response(status, 'Art generation failed', e, start_time)

    return _response(200, {
        'mime_type': image.mime_type,
        'data': base64.b64encode(image.data).decode('ascii')
    })
