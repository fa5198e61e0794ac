"""
Shared pytest fixtures and fakes for the itinerary tests.

This module provides:
- A fake googlemaps client (canned geocode/directions payloads, call log)
- A fake sunrise/sunset client
- Sample trips built through the itinerary service
- A Flask app + Socket.IO server wired with the fakes
"""
import os
from datetime import date, datetime, timezone

import pytest
from googlemaps import convert, exceptions as gmaps_exceptions

os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("FLASK_SECRET_KEY", "test-secret")
os.environ.setdefault("GEOCODE_REQUEST_DELAY", "0")

from main import create_app  # noqa: E402
from memomiles.api.errors import SunTimesUnavailableError  # noqa: E402
from memomiles.api.geocoding import GeocodeCache  # noqa: E402
from memomiles.api.routing import RouteResolver  # noqa: E402
from memomiles.api.services.favorites_service import InMemoryKeyValueStore  # noqa: E402
from memomiles.api.services.itinerary_service import ItineraryService  # noqa: E402
from memomiles.api.storage import InMemoryTripRepository  # noqa: E402

# ─────────────────────────── FAKE PROVIDERS ───────────────────────────

# search text (lowercase) -> (lat, lng, formatted address, country code)
PLACES = {
    "malmö": (55.6050, 13.0038, "Malmö, Sweden", "se"),
    "paris": (48.8566, 2.3522, "Paris, France", "fr"),
    "lyon": (45.7640, 4.8357, "Lyon, France", "fr"),
    "san francisco": (37.7749, -122.4194, "San Francisco, CA, USA", "us"),
    "monterey": (36.6002, -121.8947, "Monterey, CA, USA", "us"),
    "big sur": (36.2704, -121.8081, "Big Sur, CA, USA", "us"),
    "auckland": (-36.8485, 174.7633, "Auckland, New Zealand", "nz"),
}


class FakeMapsClient:
    """Stands in for googlemaps.Client; records every call."""

    def __init__(self, places=None):
        self.places = dict(PLACES if places is None else places)
        self.geocode_calls = []
        self.directions_calls = []
        self.fail_geocode = False
        self.fail_directions = False
        self.no_route = False
        self.route_distance_m = 465_000
        self.route_duration_s = 4 * 3600 + 35 * 60

    def geocode(self, address, components=None, language=None):
        self.geocode_calls.append((address, components))
        if self.fail_geocode:
            raise gmaps_exceptions.TransportError("connection reset")
        place = self.places.get(address.lower())
        if place is None:
            return []
        lat, lng, name, country = place
        return [{
            "geometry": {"location": {"lat": lat, "lng": lng}},
            "formatted_address": name,
            "address_components": [
                {"long_name": name, "short_name": country.upper(), "types": ["country", "political"]},
            ],
        }]

    def directions(self, origin, destination, mode=None):
        self.directions_calls.append((origin, destination, mode))
        if self.fail_directions:
            raise gmaps_exceptions.ApiError("OVER_QUERY_LIMIT")
        if self.no_route:
            return []
        midway = ((origin[0] + destination[0]) / 2 + 0.1, (origin[1] + destination[1]) / 2)
        return [{
            "overview_polyline": {"points": convert.encode_polyline([origin, midway, destination])},
            "legs": [{
                "distance": {"value": self.route_distance_m},
                "duration": {"value": self.route_duration_s},
            }],
        }]


class FakeSunTimesClient:
    """Returns fixed UTC sun times, or fails on demand."""

    def __init__(self):
        self.calls = []
        self.fail = False

    def fetch(self, coordinates, on):
        self.calls.append((coordinates, on))
        if self.fail:
            raise SunTimesUnavailableError("provider down")
        return (
            datetime(on.year, on.month, on.day, 4, 48, tzinfo=timezone.utc),
            datetime(on.year, on.month, on.day, 19, 5, tzinfo=timezone.utc),
        )


# ─────────────────────────── FIXTURES ───────────────────────────

@pytest.fixture
def maps_client():
    return FakeMapsClient()


@pytest.fixture
def sleeps():
    """Delays requested by the geocoder, recorded instead of slept."""
    return []


@pytest.fixture
def geocoder(maps_client, sleeps):
    return GeocodeCache(client=maps_client, request_delay=0.1, sleep=sleeps.append, language="en")


@pytest.fixture
def router(geocoder, maps_client):
    return RouteResolver(geocoder=geocoder, client=maps_client)


@pytest.fixture
def sun_client():
    return FakeSunTimesClient()


@pytest.fixture
def trip():
    """A three-day trip, Jun 10-12 2024, with no stops."""
    return ItineraryService.create_trip("Pacific Coast", date(2024, 6, 10), date(2024, 6, 12))


def add_timed(trip, day_index, *times, type="activity"):
    """Add one stop per time to ``trip.days[day_index]``; returns the stops."""
    day = trip.days[day_index]
    return [
        ItineraryService.add_stop(trip, day.id, {"type": type, "time": at, "location": f"Stop at {at}"})
        for at in times
    ]


def snapshot(trip):
    return trip.to_dict()


@pytest.fixture
def repository():
    return InMemoryTripRepository()


@pytest.fixture
def app_bundle(repository, geocoder, router, sun_client):
    app, socketio = create_app(
        repository=repository,
        geocoder=geocoder,
        router=router,
        sun_client=sun_client,
        favorites_store=InMemoryKeyValueStore(),
    )
    app.config["TESTING"] = True
    return app, socketio


@pytest.fixture
def client(app_bundle):
    app, _ = app_bundle
    return app.test_client()
