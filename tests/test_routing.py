"""Tests for drive-stop resolution and road geometry."""

import pytest

from memomiles.api.errors import DriveFormatError, GeocodingUnavailableError, LocationNotFoundError
from memomiles.api.models import DriveSummary, LngLat
from memomiles.api.routing import (
    RouteResolver,
    compose_drive_location,
    format_distance,
    format_duration,
    split_drive_location,
    straight_line,
)

PARIS = LngLat(2.3522, 48.8566)
LYON = LngLat(4.8357, 45.7640)


# ─── drive locations ───────────────────────────────────────────────────────

@pytest.mark.parametrize("composite, expected", [
    ("Paris to Lyon", ("Paris", "Lyon")),
    ("  Paris   TO  Lyon ", ("Paris", "Lyon")),
    ("Toronto to Ottawa", ("Toronto", "Ottawa")),
    ("San Francisco, USA to Big Sur", ("San Francisco, USA", "Big Sur")),
])
def test_split_drive_location(composite, expected):
    assert split_drive_location(composite) == expected


@pytest.mark.parametrize("composite", ["Paris", "Paris to", "to Lyon", "A to B to C", "", None])
def test_split_drive_location_rejects_malformed(composite):
    with pytest.raises(DriveFormatError):
        split_drive_location(composite)


def test_compose_drive_location_validates_both_sides():
    assert compose_drive_location(" Paris ", "Lyon") == "Paris to Lyon"
    with pytest.raises(DriveFormatError):
        compose_drive_location("Paris", "")


def test_drive_format_error_is_a_value_error():
    with pytest.raises(ValueError):
        split_drive_location("nowhere")


# ─── formatting ────────────────────────────────────────────────────────────

@pytest.mark.parametrize("seconds, text", [(7500, "2h 5m"), (2700, "45m"), (3600, "1h 0m"), (16500, "4h 35m")])
def test_format_duration(seconds, text):
    assert format_duration(seconds) == text


def test_format_distance():
    assert format_distance(12345) == "12.3 km (7.7 mi)"
    assert format_distance(465000) == "465.0 km (288.9 mi)"


# ─── resolve_drive ─────────────────────────────────────────────────────────

def test_resolve_drive_returns_both_ends_and_midpoint(router):
    result = router.resolve_drive("Paris to Lyon")

    assert result.complete
    assert result.start.coordinates == PARIS
    assert result.end.coordinates == LYON
    assert result.midpoint == pytest.approx(((2.3522 + 4.8357) / 2, (48.8566 + 45.7640) / 2))
    assert result.to_dict()["midpoint"] == pytest.approx([3.59395, 47.3103])


def test_resolve_drive_reuses_cached_endpoints(router, maps_client):
    router.geocoder.resolve("Paris")

    router.resolve_drive("Paris to Lyon")

    assert [call[0] for call in maps_client.geocode_calls] == ["Paris", "Lyon"]


def test_resolve_drive_partial_result(router):
    result = router.resolve_drive("Paris to Atlantis")

    assert result.start is not None
    assert result.end is None
    assert not result.complete
    assert result.midpoint is None


def test_resolve_drive_propagates_provider_failure(router, maps_client):
    maps_client.fail_geocode = True
    with pytest.raises(GeocodingUnavailableError):
        router.resolve_drive("Paris to Lyon")


def test_resolve_drive_rejects_malformed_location(router, maps_client):
    with pytest.raises(DriveFormatError):
        router.resolve_drive("Paris, Lyon")
    assert maps_client.geocode_calls == []


# ─── geometry ──────────────────────────────────────────────────────────────

def test_fetch_route_geometry_decodes_polyline(router, maps_client):
    geometry = router.fetch_route_geometry(PARIS, LYON)

    assert maps_client.directions_calls == [((48.8566, 2.3522), (45.7640, 4.8357), "driving")]
    assert not geometry.fallback
    assert len(geometry.coordinates) == 3
    assert geometry.coordinates[0] == pytest.approx(PARIS, abs=1e-5)
    assert geometry.coordinates[-1] == pytest.approx(LYON, abs=1e-5)
    assert geometry.distance_m == 465_000
    assert geometry.duration_s == 16_500


@pytest.mark.parametrize("flag", ["fail_directions", "no_route"])
def test_fetch_route_geometry_returns_none_when_unavailable(router, maps_client, flag):
    setattr(maps_client, flag, True)
    assert router.fetch_route_geometry(PARIS, LYON) is None


def test_route_or_straight_line_falls_back(router, maps_client):
    maps_client.no_route = True

    geometry = router.route_or_straight_line(PARIS, LYON)

    assert geometry.fallback
    assert geometry.coordinates == [PARIS, LYON]
    assert geometry.to_geojson() == {"type": "LineString", "coordinates": [[2.3522, 48.8566], [4.8357, 45.7640]]}


def test_straight_line_is_marked_as_fallback():
    assert straight_line(PARIS, LYON).fallback


def test_fetch_drive_summary(router, maps_client):
    assert router.fetch_drive_summary(PARIS, LYON) == DriveSummary("4h 35m", "465.0 km (288.9 mi)")

    maps_client.fail_directions = True
    assert router.fetch_drive_summary(PARIS, LYON) is None


# ─── calculate_route ───────────────────────────────────────────────────────

def test_calculate_route(router):
    route = router.calculate_route("Paris", "Lyon")

    assert route["drivingTime"] == "4h 35m"
    assert route["distance"] == "465.0 km (288.9 mi)"
    assert route["startCoordinates"] == [2.3522, 48.8566]
    assert route["endCoordinates"] == [4.8357, 45.7640]
    assert route["geometry"]["type"] == "LineString"


def test_calculate_route_unknown_place(router):
    with pytest.raises(LocationNotFoundError, match="start"):
        router.calculate_route("Atlantis", "Lyon")
    with pytest.raises(LocationNotFoundError, match="end"):
        router.calculate_route("Paris", "Atlantis")


def test_calculate_route_without_road(router, maps_client):
    maps_client.no_route = True
    with pytest.raises(LocationNotFoundError, match="No route"):
        router.calculate_route("Paris", "Lyon")


def test_router_uses_geocoder_client_by_default(geocoder, maps_client):
    assert RouteResolver(geocoder=geocoder).client is maps_client
