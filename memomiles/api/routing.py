# memomiles/api/routing.py
"""Drive-stop resolution and road geometry for route rendering.

Drive stops store their endpoints as one string, ``"<start> to <end>"``.
This module splits that string, geocodes both sides through the shared
GeocodeCache and asks the Directions API for a drawable road path. Road
geometry is display-only; nothing in the itinerary depends on it.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional, Tuple

import googlemaps
from googlemaps import convert

from memomiles.api.errors import DriveFormatError, GeocodingUnavailableError, LocationNotFoundError
from memomiles.api.geocoding import PROVIDER_ERRORS, GeocodeCache, get_geocode_cache
from memomiles.api.models import DriveRouteResult, DriveSummary, LngLat, RouteGeometry

logger = logging.getLogger(__name__)

DRIVE_SEPARATOR = " to "
_SEPARATOR_RE = re.compile(r"\s+to\s+", re.IGNORECASE)

METERS_PER_KM = 1000.0
METERS_PER_MILE = 1609.34


def split_drive_location(composite: str) -> Tuple[str, str]:
    """Split ``"Paris to Lyon"`` into ``("Paris", "Lyon")``.

    Raises:
        DriveFormatError: unless there are exactly two non-empty parts
    """
    parts = _SEPARATOR_RE.split((composite or "").strip())
    if len(parts) != 2 or not all(part.strip() for part in parts):
        raise DriveFormatError(f"Drive location must look like '<start> to <end>', got {composite!r}")
    return parts[0].strip(), parts[1].strip()


def compose_drive_location(start: str, end: str) -> str:
    """Join two endpoints into the stored drive location."""
    composite = f"{(start or '').strip()}{DRIVE_SEPARATOR}{(end or '').strip()}"
    split_drive_location(composite)
    return composite


def format_duration(seconds: float) -> str:
    """``7500`` -> ``"2h 5m"``; under an hour -> ``"45m"``."""
    hours, minutes = divmod(int(round(seconds / 60)), 60)
    return f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"


def format_distance(meters: float) -> str:
    """``12345`` -> ``"12.3 km (7.7 mi)"``."""
    return f"{meters / METERS_PER_KM:.1f} km ({meters / METERS_PER_MILE:.1f} mi)"


def straight_line(start: LngLat, end: LngLat) -> RouteGeometry:
    """Fallback geometry when no road path is available."""
    return RouteGeometry(coordinates=[start, end], fallback=True)


class RouteResolver:
    """Resolves drive stops and fetches road geometry between coordinates."""

    def __init__(self, geocoder: Optional[GeocodeCache] = None, client: Optional[googlemaps.Client] = None):
        self._geocoder = geocoder
        self._client = client

    @property
    def geocoder(self) -> GeocodeCache:
        if self._geocoder is None:
            self._geocoder = get_geocode_cache()
        return self._geocoder

    @property
    def client(self) -> googlemaps.Client:
        return self._client or self.geocoder.client

    def resolve_drive(self, composite: str) -> DriveRouteResult:
        """Geocode both ends of a drive location.

        Either end may come back unresolved; callers decide how to degrade
        (e.g. only draw the end point).

        Raises:
            DriveFormatError: the location is not ``"<start> to <end>"``
            GeocodingUnavailableError: the provider request failed
        """
        start_text, end_text = split_drive_location(composite)
        result = DriveRouteResult(
            start=self.geocoder.resolve(start_text),
            end=self.geocoder.resolve(end_text),
        )
        if not result.complete:
            logger.warning(
                f"Drive '{composite}' only partly resolved "
                f"(start={result.start is not None}, end={result.end is not None})"
            )
        return result

    def fetch_route_geometry(self, start: LngLat, end: LngLat) -> Optional[RouteGeometry]:
        """Road-following path between two coordinates, or None.

        None covers both "no route" and provider failure; the renderer is
        expected to fall back to ``straight_line``.
        """
        try:
            routes = self.client.directions(
                origin=(start.lat, start.lng),
                destination=(end.lat, end.lng),
                mode="driving",
            )
        except PROVIDER_ERRORS + (GeocodingUnavailableError,) as e:
            logger.error(f"Directions request failed {start} -> {end}: {e}")
            return None

        if not routes:
            logger.warning(f"No route found {start} -> {end}")
            return None

        route = routes[0]
        points = convert.decode_polyline(route["overview_polyline"]["points"])
        legs = route.get("legs") or []
        return RouteGeometry(
            coordinates=[LngLat(point["lng"], point["lat"]) for point in points],
            distance_m=sum(leg["distance"]["value"] for leg in legs) if legs else None,
            duration_s=sum(leg["duration"]["value"] for leg in legs) if legs else None,
        )

    def route_or_straight_line(self, start: LngLat, end: LngLat) -> RouteGeometry:
        return self.fetch_route_geometry(start, end) or straight_line(start, end)

    def fetch_drive_summary(self, start: LngLat, end: LngLat) -> Optional[DriveSummary]:
        """Formatted driving time and distance, or None if unavailable."""
        geometry = self.fetch_route_geometry(start, end)
        if geometry is None or geometry.distance_m is None or geometry.duration_s is None:
            return None
        return DriveSummary(
            driving_time=format_duration(geometry.duration_s),
            distance=format_distance(geometry.distance_m),
        )

    def calculate_route(self, start_location: str, end_location: str) -> Dict[str, Any]:
        """Geocode two places and describe the drive between them.

        Raises:
            LocationNotFoundError: either place, or the route, was not found
            GeocodingUnavailableError: the geocoding request failed
        """
        start = self.geocoder.resolve(start_location)
        if start is None:
            raise LocationNotFoundError("Could not find start location")
        end = self.geocoder.resolve(end_location)
        if end is None:
            raise LocationNotFoundError("Could not find end location")

        geometry = self.fetch_route_geometry(start.coordinates, end.coordinates)
        if geometry is None or geometry.distance_m is None:
            raise LocationNotFoundError("No route found")

        return {
            "drivingTime": format_duration(geometry.duration_s or 0),
            "distance": format_distance(geometry.distance_m),
            "startCoordinates": start.coordinates.to_list(),
            "endCoordinates": end.coordinates.to_list(),
            "geometry": geometry.to_geojson(),
        }


_route_resolver: Optional[RouteResolver] = None


def get_route_resolver() -> RouteResolver:
    """Get the process-wide RouteResolver instance."""
    global _route_resolver
    if _route_resolver is None:
        _route_resolver = RouteResolver()
    return _route_resolver
