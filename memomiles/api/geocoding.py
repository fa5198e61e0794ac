# memomiles/api/geocoding.py
from __future__ import annotations

import logging
import threading
import time
import unicodedata
from typing import Callable, Dict, Iterable, Optional

import googlemaps
from googlemaps import exceptions as gmaps_exceptions

from memomiles.api.config import get_geocode_request_delay, get_google_maps_config
from memomiles.api.countries import split_country
from memomiles.api.errors import GeocodingUnavailableError
from memomiles.api.models import GeocodeResult, LngLat

logger = logging.getLogger(__name__)

# Everything the googlemaps client raises for a failed (as opposed to empty)
# request. None of these are ever cached.
PROVIDER_ERRORS = (
    gmaps_exceptions.ApiError,
    gmaps_exceptions.TransportError,
    gmaps_exceptions.Timeout,
)

ProgressCallback = Callable[[int, int], None]

_gmaps: googlemaps.Client | None = None
_client_lock = threading.Lock()


def get_maps_client() -> googlemaps.Client:
    """Return a cached googlemaps.Client instance."""
    global _gmaps
    with _client_lock:
        if _gmaps is None:
            cfg = get_google_maps_config()
            api_key = cfg.get("api_key", "")
            if not api_key:
                logger.error("No Google Maps API key found in config")
                raise GeocodingUnavailableError("Google Maps API key is not configured")
            logger.info(f"Initializing Google Maps client with key: {api_key[:6]}...")
            try:
                _gmaps = googlemaps.Client(key=api_key, timeout=cfg["timeout"])
            except ValueError as e:
                logger.error(f"Failed to initialize Google Maps client: {e}")
                raise GeocodingUnavailableError(str(e)) from e
    return _gmaps


def normalize_query(query: str) -> str:
    """Cache key for a query: NFC, lowercase, whitespace collapsed."""
    text = unicodedata.normalize("NFC", query or "")
    return " ".join(text.lower().split())


def _country_component(match: dict) -> Optional[str]:
    for component in match.get("address_components", []):
        if "country" in component.get("types", []):
            return component.get("short_name", "").lower() or None
    return None


class _PendingLookup:
    """An upstream request other threads can wait on."""

    def __init__(self):
        self.event = threading.Event()
        self.result: Optional[GeocodeResult] = None
        self.error: Optional[Exception] = None


class GeocodeCache:
    """Memoizing resolver from free-text location to coordinates.

    Successful lookups are kept for the lifetime of the process; empty
    results and provider failures are not, so they can be retried.
    Concurrent lookups of the same (normalized) query share one request.
    """

    def __init__(
        self,
        client: Optional[googlemaps.Client] = None,
        request_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        language: Optional[str] = None,
    ):
        self._client = client
        self.request_delay = get_geocode_request_delay() if request_delay is None else request_delay
        self.language = language or get_google_maps_config()["language"]
        self._sleep = sleep
        self._cache: Dict[str, GeocodeResult] = {}
        self._pending: Dict[str, _PendingLookup] = {}
        self._lock = threading.Lock()
        self.upstream_requests = 0

    @property
    def client(self) -> googlemaps.Client:
        if self._client is None:
            self._client = get_maps_client()
        return self._client

    def __len__(self) -> int:
        return len(self._cache)

    def cached(self, query: str) -> Optional[GeocodeResult]:
        """Return the memoized result for ``query`` without any request."""
        with self._lock:
            return self._cache.get(normalize_query(query))

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def resolve(self, query: str) -> Optional[GeocodeResult]:
        """Resolve ``query`` to its top match, or None if nothing matched.

        Raises:
            GeocodingUnavailableError: the provider request failed
        """
        key = normalize_query(query)
        if not key:
            return None

        with self._lock:
            hit = self._cache.get(key)
            if hit is not None:
                logger.debug(f"Geocode cache hit for '{query}'")
                return hit
            pending = self._pending.get(key)
            is_leader = pending is None
            if is_leader:
                pending = _PendingLookup()
                self._pending[key] = pending

        if not is_leader:
            logger.debug(f"Waiting on in-flight geocode for '{query}'")
            pending.event.wait()
            if pending.error is not None:
                raise pending.error
            return pending.result

        try:
            pending.result = self._lookup(query)
            return pending.result
        except Exception as e:
            pending.error = e
            raise
        finally:
            with self._lock:
                if pending.result is not None:
                    self._cache[key] = pending.result
                self._pending.pop(key, None)
            pending.event.set()

    def _lookup(self, query: str) -> Optional[GeocodeResult]:
        search_text, country_code = split_country(query)
        params = {"language": self.language}
        if country_code:
            params["components"] = {"country": country_code}

        logger.debug(f"Geocoding '{search_text}' (country={country_code})")
        with self._lock:
            self.upstream_requests += 1
        try:
            results = self.client.geocode(search_text, **params)
        except PROVIDER_ERRORS as e:
            logger.error(f"Geocoding error for '{query}': {e}")
            raise GeocodingUnavailableError(f"Geocoding failed for '{query}'") from e

        if not results:
            logger.warning(f"No results found for place: {query}")
            return None

        match = results[0]
        loc = match["geometry"]["location"]
        result = GeocodeResult(
            coordinates=LngLat(loc["lng"], loc["lat"]),
            place_name=match.get("formatted_address") or search_text,
            query=query,
            country_code=country_code or _country_component(match),
        )
        logger.debug(f"Geocoded {query} to {result.coordinates}")
        return result

    def resolve_many(
        self,
        queries: Iterable[str],
        on_progress: Optional[ProgressCallback] = None,
    ) -> Dict[str, GeocodeResult]:
        """Resolve several queries one after another.

        Upstream requests are spaced ``request_delay`` seconds apart to stay
        clear of provider throttling; cache hits go straight through.
        Queries that fail or match nothing are left out of the result.

        Args:
            queries: Free-text locations, duplicates allowed
            on_progress: Called with ``(completed, total)`` after each query

        Returns:
            Dictionary mapping each resolved query to its result
        """
        unique = list(dict.fromkeys(q for q in queries if q and q.strip()))
        total = len(unique)
        results: Dict[str, GeocodeResult] = {}
        start_time = time.time()

        for completed, query in enumerate(unique, 1):
            needs_request = self.cached(query) is None
            try:
                result = self.resolve(query)
            except GeocodingUnavailableError as e:
                logger.warning(f"Failed to geocode '{query}': {e}")
                result = None

            if result is not None:
                results[query] = result
            if on_progress:
                on_progress(completed, total)
            if needs_request and completed < total and self.request_delay > 0:
                self._sleep(self.request_delay)

        duration = time.time() - start_time
        logger.info(f"Batch geocoded {len(results)}/{total} places in {duration:.2f}s")
        return results


_geocode_cache: Optional[GeocodeCache] = None


def get_geocode_cache() -> GeocodeCache:
    """Get the process-wide GeocodeCache instance."""
    global _geocode_cache
    if _geocode_cache is None:
        _geocode_cache = GeocodeCache()
    return _geocode_cache


__all__ = [
    "GeocodeCache",
    "get_geocode_cache",
    "get_maps_client",
    "normalize_query",
]
