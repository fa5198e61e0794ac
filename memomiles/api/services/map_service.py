# memomiles/api/services/map_service.py
"""Service layer for map-related operations."""

import logging
from typing import Any, Callable, Dict, List, Optional

from memomiles.api.errors import DriveFormatError, GeocodingUnavailableError
from memomiles.api.geocoding import GeocodeCache
from memomiles.api.models import LngLat, Stop, StopType, Trip
from memomiles.api.routing import RouteResolver, straight_line

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class MapService:
    """Handles coordinate resolution and route serialization for trips."""

    @staticmethod
    def validate_coordinates(lat: float, lng: float) -> bool:
        """Validate that coordinates are within valid ranges.

        Args:
            lat: Latitude
            lng: Longitude

        Returns:
            True if valid, False otherwise
        """
        return -90 <= lat <= 90 and -180 <= lng <= 180

    @staticmethod
    def resolve_missing_coordinates(
        trip: Trip,
        geocoder: GeocodeCache,
        router: RouteResolver,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Trip:
        """Attach coordinates to every stop that lacks them.

        Plain stops are geocoded by location as one paced batch. Drive
        stops get both endpoints, ``coordinates`` set to the end point (or
        the start when only that resolved) and, when empty, driving time
        and distance from the directions provider.

        Lookups that fail are logged and skipped, so the caller can still
        render the rest of the trip.

        Args:
            trip: Trip to enrich in place
            geocoder: Geocode cache used for every lookup
            router: Route resolver used for drive stops
            on_progress: Called with ``(completed, total)`` stop counts

        Returns:
            The same trip, for convenience
        """
        pending = [stop for _, stop in trip.iter_stops() if stop.coordinates is None]
        drives = [stop for stop in pending if stop.type is StopType.DRIVE]
        places = [stop for stop in pending if stop.type is not StopType.DRIVE]
        total = len(pending)
        completed = 0

        def _report(done_in_batch: int, _batch_total: int) -> None:
            if on_progress:
                on_progress(completed + done_in_batch, total)

        if places:
            logger.info(f"Batch geocoding {len(places)} stops for trip {trip.id}...")
            resolved = geocoder.resolve_many([stop.location for stop in places], on_progress=_report)
            for stop in places:
                result = resolved.get(stop.location)
                if result is not None:
                    stop.coordinates = result.coordinates
            unique_queries = len(set(stop.location for stop in places))
            completed += len(places)
            # repeated locations are looked up once, so catch up the count
            if on_progress and unique_queries != len(places):
                on_progress(completed, total)

        for stop in drives:
            MapService._resolve_drive(stop, router)
            completed += 1
            if on_progress:
                on_progress(completed, total)

        located = sum(1 for stop in pending if stop.coordinates is not None)
        logger.info(f"Geocoded {located}/{total} stops successfully")
        return trip

    @staticmethod
    def _resolve_drive(stop: Stop, router: RouteResolver) -> None:
        try:
            result = router.resolve_drive(stop.location)
        except DriveFormatError as e:
            logger.warning(f"Skipping malformed drive stop {stop.id}: {e}")
            return
        except GeocodingUnavailableError as e:
            logger.warning(f"Failed to geocode drive '{stop.location}': {e}")
            return

        if result.start:
            stop.start_coordinates = result.start.coordinates
        if result.end:
            stop.end_coordinates = result.end.coordinates
        stop.coordinates = stop.end_coordinates or stop.start_coordinates

        if result.complete and not (stop.driving_time and stop.distance):
            summary = router.fetch_drive_summary(stop.start_coordinates, stop.end_coordinates)
            if summary is not None:
                stop.driving_time = summary.driving_time
                stop.distance = summary.distance

    @staticmethod
    def route_points(trip: Trip) -> List[Dict[str, Any]]:
        """Stops with coordinates in draw order (day order, then stop order).

        Returns:
            Dicts with a 1-based ``order``, ``date``, ``dayId`` and the stop
        """
        points = []
        for day, stop in trip.iter_stops():
            if stop.coordinates is None:
                continue
            points.append({
                "order": len(points) + 1,
                "date": day.date.isoformat(),
                "dayId": day.id,
                "stopId": stop.id,
                "location": stop.location,
                "type": stop.type.value,
                "time": stop.time,
                "notes": stop.notes,
                "coordinates": stop.coordinates,
            })
        return points

    @staticmethod
    def route_geojson(trip: Trip, router: Optional[RouteResolver] = None) -> Dict[str, Any]:
        """Serialize the whole trip route as a GeoJSON FeatureCollection.

        One numbered Point per located stop plus a single LineString. With
        a router each leg follows the road; legs it cannot route (or every
        leg, without a router) are straight lines.
        """
        points = MapService.route_points(trip)
        features = []
        for point in points:
            properties = {key: value for key, value in point.items() if key != "coordinates"}
            features.append({
                "type": "Feature",
                "properties": properties,
                "geometry": {"type": "Point", "coordinates": point["coordinates"].to_list()},
            })

        line: List[LngLat] = []
        fallback_legs = 0
        for previous, current in zip(points, points[1:]):
            start, end = previous["coordinates"], current["coordinates"]
            leg = router.route_or_straight_line(start, end) if router else straight_line(start, end)
            fallback_legs += leg.fallback
            # consecutive legs share their joining point
            line.extend(leg.coordinates[1:] if line else leg.coordinates)

        if line:
            features.append({
                "type": "Feature",
                "properties": {"kind": "route", "fallbackLegs": fallback_legs},
                "geometry": {"type": "LineString", "coordinates": [p.to_list() for p in line]},
            })

        return {"type": "FeatureCollection", "features": features}

    @staticmethod
    def calculate_bounds(trip: Trip) -> Dict[str, Any]:
        """Calculate bounding box for all located stops in a trip.

        Returns:
            Dictionary with north, south, east, west bounds
        """
        coords = [stop.coordinates for _, stop in trip.iter_stops() if stop.coordinates is not None]
        if not coords:
            return {}

        lats = [point.lat for point in coords]
        lngs = [point.lng for point in coords]
        return {
            'north': max(lats),
            'south': min(lats),
            'east': max(lngs),
            'west': min(lngs)
        }


# Export for use in other modules
__all__ = ['MapService']
