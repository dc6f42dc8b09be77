"""Postcode geocoder client with connection reuse and retry logic."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests
from tenacity import (
    retry,
    stop_after_attempt,
    wait_fixed,
    retry_if_exception,
    before_sleep_log,
    RetryError,
)

logger = logging.getLogger(__name__)

DEFAULT_POSTCODE_API_URL = "https://api.postcodes.io"


class GeocoderUnavailableError(Exception):
    """Raised when the postcode lookup cannot be reached (network error, 5xx)."""
    pass


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float


def _is_retryable_error(exc: Exception) -> bool:
    """
    Determine if an exception is retryable.

    Only retries on:
    - Timeouts
    - Server errors (5xx)
    - Connection errors without a response

    Does NOT retry on client errors (4xx).
    """
    if isinstance(exc, requests.Timeout):
        return True

    if isinstance(exc, requests.HTTPError):
        response = getattr(exc, 'response', None)
        if response is not None:
            return response.status_code >= 500
        return True

    if isinstance(exc, requests.RequestException):
        response = getattr(exc, 'response', None)
        if response is not None and 400 <= response.status_code < 500:
            return False
        return True

    return False


def clean_postcode(postcode: str) -> str:
    return "".join(str(postcode).split()).upper()


class PostcodeGeocoder:
    """
    Client for a postcodes.io-compatible lookup API.

    Responsibilities:
    - Own a requests.Session for connection reuse
    - Resolve postcodes to coordinates (None when the postcode does not exist)
    - Validate postcode existence
    - Surface outages as GeocoderUnavailableError so callers can degrade
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        request_timeout_seconds: int = 5,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            base_url: Base URL of the postcode API
            request_timeout_seconds: Timeout for individual HTTP requests
            session: Optional pre-configured session (tests inject a mock)
        """
        self.base_url = (base_url or DEFAULT_POSTCODE_API_URL).rstrip('/')
        self.request_timeout_seconds = request_timeout_seconds
        self.session = session or requests.Session()

        logger.info(f"PostcodeGeocoder initialized: base_url={self.base_url}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_fixed(1),
        retry=retry_if_exception(_is_retryable_error),
        before_sleep=before_sleep_log(logger, logging.WARNING)
    )
    def _get(self, path: str) -> Optional[Dict[str, Any]]:
        """GET a JSON document; None on 404."""
        response = self.session.get(
            f"{self.base_url}{path}",
            timeout=self.request_timeout_seconds
        )
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    def _fetch(self, path: str) -> Optional[Dict[str, Any]]:
        try:
            return self._get(path)
        except (requests.RequestException, RetryError, ValueError) as e:
            raise GeocoderUnavailableError(f"Postcode lookup failed for {path}: {e}") from e

    def resolve(self, postcode: str) -> Optional[Coordinates]:
        """
        Resolve a postcode to coordinates.

        Returns:
            Coordinates, or None when the postcode is unknown.

        Raises:
            GeocoderUnavailableError: If the lookup service cannot be reached.
        """
        cleaned = clean_postcode(postcode)
        if not cleaned:
            return None

        payload = self._fetch(f"/postcodes/{quote(cleaned)}")
        result = (payload or {}).get('result')
        if not result:
            return None

        latitude, longitude = result.get('latitude'), result.get('longitude')
        if latitude is None or longitude is None:
            logger.debug(f"Postcode {cleaned} has no coordinates")
            return None
        return Coordinates(latitude=float(latitude), longitude=float(longitude))

    def is_valid(self, postcode: str) -> bool:
        """
        Check that a postcode exists.

        Raises:
            GeocoderUnavailableError: If the lookup service cannot be reached.
        """
        cleaned = clean_postcode(postcode)
        if not cleaned:
            return False
        payload = self._fetch(f"/postcodes/{quote(cleaned)}/validate")
        return bool((payload or {}).get('result'))

    def close(self) -> None:
        self.session.close()
