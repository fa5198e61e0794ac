# memomiles/api/sun_times.py
"""Sunrise/sunset enrichment for trip days.

Uses the free sunrise-sunset.org API. Sun times are a nice-to-have: when
a day has no geocoded stop, or the provider fails, the day is returned
untouched.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import requests

from memomiles.api.config import get_display_timezone, get_sun_times_config
from memomiles.api.errors import SunTimesUnavailableError
from memomiles.api.models import Day, LngLat, Trip

logger = logging.getLogger(__name__)


def _get_tz(tz_name: Optional[str]):
    """Return a ZoneInfo instance with safe fallback."""
    try:
        return ZoneInfo(tz_name or get_display_timezone())
    except (ZoneInfoNotFoundError, TypeError, ValueError):
        logger.warning(f"Unknown timezone {tz_name!r}, using UTC")
        return timezone.utc


def format_clock(moment: datetime, tz_name: Optional[str] = None) -> str:
    """``2024-06-15T04:48:00+00:00`` -> ``"4:48 AM"`` in the display zone."""
    local = moment.astimezone(_get_tz(tz_name))
    return f"{local.hour % 12 or 12}:{local.minute:02d} {'AM' if local.hour < 12 else 'PM'}"


class SunTimesClient:
    """Thin client for the sunrise-sunset.org JSON API."""

    def __init__(self, session: Optional[requests.Session] = None, url: Optional[str] = None,
                 timeout: Optional[float] = None):
        cfg = get_sun_times_config()
        self.session = session or requests.Session()
        self.url = url or cfg["url"]
        self.timeout = cfg["timeout"] if timeout is None else timeout

    def fetch(self, coordinates: LngLat, on: date) -> Tuple[datetime, datetime]:
        """Return UTC sunrise and sunset for a coordinate and date.

        Raises:
            SunTimesUnavailableError: network/HTTP failure or a non-OK reply
        """
        params = {
            "lat": coordinates.lat,
            "lng": coordinates.lng,
            "date": on.isoformat(),
            "formatted": 0,
        }
        try:
            response = self.session.get(self.url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Failed to fetch sunrise/sunset data: {e}")
            raise SunTimesUnavailableError(str(e)) from e

        status = payload.get("status") if isinstance(payload, dict) else None
        if status != "OK":
            logger.error(f"Invalid sunrise/sunset API response: {status}")
            raise SunTimesUnavailableError(f"Provider status {status}")

        try:
            results = payload["results"]
            return (
                datetime.fromisoformat(results["sunrise"]),
                datetime.fromisoformat(results["sunset"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed sunrise/sunset API response: {e}")
            raise SunTimesUnavailableError(f"Malformed provider response: {e}") from e


def first_geocoded_coordinates(day: Day) -> Optional[LngLat]:
    """Coordinates of the day's first stop that has any."""
    for stop in day.stops:
        if stop.coordinates is not None:
            return stop.coordinates
    return None


def augment_day_sun_times(
    day: Day,
    coordinates: Optional[LngLat],
    client: SunTimesClient,
    tz_name: Optional[str] = None,
) -> Day:
    """Set ``day.sunrise``/``day.sunset`` for ``coordinates``.

    Returns the same Day; it is left unchanged when ``coordinates`` is None
    or the provider fails.
    """
    if coordinates is None:
        return day
    try:
        sunrise, sunset = client.fetch(coordinates, day.date)
    except SunTimesUnavailableError as e:
        logger.warning(f"Skipping sun times for {day.date}: {e}")
        return day

    day.sunrise = format_clock(sunrise, tz_name)
    day.sunset = format_clock(sunset, tz_name)
    return day


def augment_trip_sun_times(trip: Trip, client: SunTimesClient, tz_name: Optional[str] = None) -> Trip:
    """Run ``augment_day_sun_times`` over every day of the trip."""
    for day in trip.days:
        augment_day_sun_times(day, first_geocoded_coordinates(day), client, tz_name)
    return trip
