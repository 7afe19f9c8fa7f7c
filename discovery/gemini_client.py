"""REST client for the Gemini generateContent endpoint."""
import logging
import time
from typing import Any, Dict, List, Optional

import requests

from processor.errors import ProviderAuthorizationError, ProviderError
from processor.models import GroundingSource

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
AUTH_ERROR_MARKERS = (
    'api key not valid',
    'requested entity was not found',
    'permission denied',
)


class GeminiClient:
    """Thin wrapper over the generateContent REST call."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(
        self,
        api_key: str,
        timeout: int = 60,
        max_retries: int = 3,
        base_delay: float = 1,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the client.

        Args:
            api_key: Gemini API key
            timeout: HTTP request timeout in seconds (default: 60)
            max_retries: Attempts for transient failures (default: 3)
            base_delay: First backoff delay in seconds (default: 1)
            session: Optional requests session to reuse connections
        """
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.session = session or requests.Session()

    def generate_content(self, model: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Call generateContent with retry logic.

        Args:
            model: Model name, e.g. 'gemini-3-pro-preview'
            body: Request payload

        Returns:
            Decoded JSON response

        Raises:
            ProviderAuthorizationError: If the key is rejected
            ProviderError: On any other failure once retries are exhausted
        """
        if not self.api_key:
            raise ProviderAuthorizationError("No Gemini API key configured")

        url = f"{self.BASE_URL}/models/{model}:generateContent"
        headers = {
            'x-goog-api-key': self.api_key,
            'Content-Type': 'application/json',
        }

        for attempt in range(self.max_retries):
            last_attempt = attempt == self.max_retries - 1
            try:
                logger.info(
                    f"Calling {model} (attempt {attempt + 1}/{self.max_retries})"
                )
                response = self.session.post(
                    url,
                    json=body,
                    headers=headers,
                    timeout=self.timeout
                )
            except requests.RequestException as e:
                if last_attempt:
                    logger.error(
                        f"All {self.max_retries} attempts failed. Last error: {e}"
                    )
                    raise ProviderError(f"Request to {model} failed: {e}") from e
                self._backoff(attempt, e)
                continue

            if response.ok:
                try:
                    return response.json()
                except ValueError as e:
                    raise ProviderError(f"Malformed response from {model}") from e

            message = self._error_message(response)
            if self._is_auth_failure(response.status_code, message):
                logger.error(
                    f"Authorization failed for {model}: "
                    f"{response.status_code} {message}"
                )
                raise ProviderAuthorizationError(message)

            if response.status_code in RETRYABLE_STATUS_CODES and not last_attempt:
                self._backoff(attempt, f"{response.status_code} {message}")
                continue

            logger.error(f"{model} returned {response.status_code}: {message}")
            raise ProviderError(f"{response.status_code}: {message}")

        raise ProviderError(f"Request to {model} failed")

    def _backoff(self, attempt: int, error: Any) -> None:
        delay = self.base_delay * (2 ** attempt)
        logger.warning(
            f"Request failed (attempt {attempt + 1}/{self.max_retries}): {error}. "
            f"Retrying in {delay} seconds..."
        )
        time.sleep(delay)

    def _error_message(self, response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text or response.reason or ''
        error = payload.get('error') if isinstance(payload, dict) else None
        if isinstance(error, dict):
            return str(error.get('message') or error.get('status') or '')
        return response.text

    def _is_auth_failure(self, status_code: int, message: str) -> bool:
        if status_code in (401, 403):
            return True
        lowered = message.lower()
        return status_code in (400, 404) and any(
            marker in lowered for marker in AUTH_ERROR_MARKERS
        )


def response_text(payload: Dict[str, Any]) -> str:
    """
    Concatenate the text parts of the first candidate.

    Parts without a string text field are ignored.
    """
    texts = []
    for part in candidate_parts(payload):
        text = part.get('text')
        if isinstance(text, str):
            texts.append(text)
    return ''.join(texts)


def candidate_parts(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Content parts of the first candidate that are JSON objects."""
    content = _first_candidate(payload).get('content')
    parts = content.get('parts') if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return []
    return [part for part in parts if isinstance(part, dict)]


def grounding_sources(payload: Dict[str, Any], kind: str = 'web') -> List[GroundingSource]:
    """
    Extract grounding citations from the first candidate.

    Args:
        payload: generateContent response
        kind: Chunk type to collect ('web' or 'maps')
    """
    metadata = _first_candidate(payload).get('groundingMetadata')
    chunks = metadata.get('groundingChunks') if isinstance(metadata, dict) else None
    if not isinstance(chunks, list):
        return []

    sources = []
    for chunk in chunks:
        entry = chunk.get(kind) if isinstance(chunk, dict) else None
        if not isinstance(entry, dict):
            continue
        uri = entry.get('uri')
        if not uri or not isinstance(uri, str):
            continue
        title = entry.get('title')
        sources.append(GroundingSource(
            title=title if isinstance(title, str) and title else uri,
            url=uri
        ))
    return sources


def _first_candidate(payload: Dict[str, Any]) -> Dict[str, Any]:
    candidates = payload.get('candidates') if isinstance(payload, dict) else None
    if not isinstance(candidates, list) or not candidates \
            or not isinstance(candidates[0], dict):
        return {}
    return candidates[0]
