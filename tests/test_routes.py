"""
HTTP tests for the travel blueprint.

Uses the Flask test client from the ``client`` fixture; every provider is
faked in conftest, so nothing leaves the process.
"""

import pytest

from conftest import add_timed

BASE = "/travel/api"


def create_trip(client, **overrides):
    body = {"title": "Pacific Coast", "startDate": "2024-06-10", "endDate": "2024-06-12"}
    body.update(overrides)
    response = client.post(f"{BASE}/trips", json=body)
    assert response.status_code == 201
    return response.get_json()


def add_stop(client, trip, day_index, **body):
    day_id = trip["days"][day_index]["id"]
    return client.post(f"{BASE}/trips/{trip['id']}/days/{day_id}/stops", json=body)


# ─────────────────────────── BASICS ───────────────────────────

def test_health(client):
    assert client.get("/travel/health").get_json() == {"status": "ok", "service": "travel"}


def test_debug_endpoint(client):
    assert client.get("/debug").get_json()["status"] == "ok"


def test_api_config_requires_key(client, monkeypatch):
    monkeypatch.delenv("GOOGLE_MAPS_API_KEY", raising=False)
    assert client.get("/travel/api/config").status_code == 500

    monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "test-key")
    assert client.get("/travel/api/config").get_json()["google_maps_api_key"] == "test-key"


# ─────────────────────────── GEOCODING ───────────────────────────

class TestGeocodeEndpoints:

    def test_geocode(self, client, maps_client):
        response = client.get(f"{BASE}/geocode", query_string={"q": "Malmö, Sweden"})

        assert response.status_code == 200
        assert response.get_json()["coordinates"] == [13.0038, 55.6050]
        assert maps_client.geocode_calls == [("Malmö", {"country": "se"})]

    def test_geocode_requires_query(self, client):
        assert client.get(f"{BASE}/geocode").status_code == 400

    def test_geocode_not_found(self, client):
        response = client.get(f"{BASE}/geocode", query_string={"q": "Atlantis"})
        assert response.status_code == 404
        assert response.get_json()["type"] == "LocationNotFoundError"

    def test_geocode_provider_down(self, client, maps_client):
        maps_client.fail_geocode = True
        response = client.get(f"{BASE}/geocode", query_string={"q": "Paris"})
        assert response.status_code == 502
        assert response.get_json()["type"] == "GeocodingUnavailableError"

    def test_route(self, client):
        response = client.post(f"{BASE}/route", json={"startLocation": "Paris", "endLocation": "Lyon"})

        assert response.status_code == 200
        assert response.get_json()["drivingTime"] == "4h 35m"

    def test_route_requires_both_ends(self, client):
        assert client.post(f"{BASE}/route", json={"startLocation": "Paris"}).status_code == 400


# ─────────────────────────── TRIPS ───────────────────────────

class TestTrips:

    def test_create_get_list_delete(self, client):
        trip = create_trip(client)
        assert [day["date"] for day in trip["days"]] == ["2024-06-10", "2024-06-11", "2024-06-12"]

        assert client.get(f"{BASE}/trips/{trip['id']}").get_json() == trip
        assert [t["id"] for t in client.get(f"{BASE}/trips").get_json()] == [trip["id"]]

        assert client.delete(f"{BASE}/trips/{trip['id']}").status_code == 204
        assert client.get(f"{BASE}/trips/{trip['id']}").status_code == 404
        assert client.delete(f"{BASE}/trips/{trip['id']}").status_code == 404

    @pytest.mark.parametrize("body, status", [
        ({"title": ""}, 400),
        ({"startDate": None}, 400),
        ({"startDate": "2024-06-12", "endDate": "2024-06-10"}, 422),
    ])
    def test_create_rejects_bad_input(self, client, body, status):
        base = {"title": "Trip", "startDate": "2024-06-10", "endDate": "2024-06-12"}
        base.update(body)
        if base["startDate"] is None:
            del base["startDate"]
        assert client.post(f"{BASE}/trips", json=base).status_code == status

    def test_resize_needs_confirmation_to_drop_stops(self, client):
        trip = create_trip(client)
        add_stop(client, trip, 2, location="Monterey", time="10:00")
        url = f"{BASE}/trips/{trip['id']}/dates"

        response = client.patch(url, json={"startDate": "2024-06-10", "endDate": "2024-06-11"})
        assert response.status_code == 409
        body = response.get_json()
        assert body["requiresConfirmation"] is True
        assert body["droppedDays"] == [trip["days"][2]["id"]]
        assert body["droppedStops"] == 1

        response = client.patch(url, json={"startDate": "2024-06-10", "endDate": "2024-06-11", "confirm": True})
        assert response.status_code == 200
        assert response.get_json()["endDate"] == "2024-06-11"

    def test_resize_without_lost_stops(self, client):
        trip = create_trip(client)
        response = client.patch(
            f"{BASE}/trips/{trip['id']}/dates", json={"startDate": "Jul 1, 2024", "endDate": "Jul 4, 2024"},
        )
        assert response.status_code == 200
        assert [day["date"] for day in response.get_json()["days"]][-1] == "2024-07-04"


# ─────────────────────────── DAYS ───────────────────────────

class TestDays:

    def test_insert_day_at_front(self, client):
        trip = create_trip(client)

        response = client.post(f"{BASE}/trips/{trip['id']}/days", json={"index": 0})

        assert response.status_code == 201
        assert response.get_json()["startDate"] == "2024-06-09"

    def test_insert_day_defaults_to_end(self, client):
        trip = create_trip(client)
        response = client.post(f"{BASE}/trips/{trip['id']}/days", json={})
        assert response.get_json()["endDate"] == "2024-06-13"

    @pytest.mark.parametrize("index, status", [("first", 400), (7, 422)])
    def test_insert_day_bad_index(self, client, index, status):
        trip = create_trip(client)
        assert client.post(f"{BASE}/trips/{trip['id']}/days", json={"index": index}).status_code == status

    def test_update_and_remove_day(self, client):
        trip = create_trip(client)
        url = f"{BASE}/trips/{trip['id']}/days/{trip['days'][1]['id']}"

        assert client.patch(url, json={"activities": "Hike"}).get_json()["days"][1]["activities"] == "Hike"

        body = client.delete(url).get_json()
        assert [day["date"] for day in body["days"]] == ["2024-06-10", "2024-06-11"]
        assert client.delete(url).status_code == 404


# ─────────────────────────── STOPS ───────────────────────────

class TestStops:

    def test_add_stop(self, client):
        trip = create_trip(client)

        response = add_stop(client, trip, 0, location="Big Sur", time="9:30", activityIcon="hiking")

        assert response.status_code == 201
        stop = response.get_json()
        assert stop["time"] == "09:30"
        assert stop["activityIcon"] == "hiking"
        saved = client.get(f"{BASE}/trips/{trip['id']}").get_json()
        assert saved["days"][0]["stops"] == [stop]

    def test_add_stop_with_insert_index(self, client):
        trip = create_trip(client)
        add_stop(client, trip, 0, location="A", time="09:00")
        add_stop(client, trip, 0, location="B", time="11:00")

        assert add_stop(client, trip, 0, location="C", time="10:00", insertIndex=0).status_code == 409
        assert add_stop(client, trip, 0, location="C", time="10:00", insertIndex=1).status_code == 201

    def test_add_invalid_stop(self, client):
        trip = create_trip(client)
        response = add_stop(client, trip, 0, type="drive", location="Paris")
        assert response.status_code == 422
        assert response.get_json()["type"] == "InvalidStopError"

    def test_patch_reorder_and_delete(self, client):
        trip = create_trip(client)
        first = add_stop(client, trip, 0, location="A", time="09:00").get_json()
        loose = add_stop(client, trip, 0, location="B").get_json()
        stops_url = f"{BASE}/trips/{trip['id']}/days/{trip['days'][0]['id']}/stops"

        patched = client.patch(f"{stops_url}/{first['id']}", json={"notes": "Early"}).get_json()
        assert patched["notes"] == "Early"
        assert patched["id"] == first["id"]

        body = client.put(stops_url, json={"stopIds": [loose["id"], first["id"]]}).get_json()
        assert [stop["id"] for stop in body["days"][0]["stops"]] == [loose["id"], first["id"]]
        assert client.put(stops_url, json={"stopIds": [loose["id"]]}).status_code == 422

        assert client.delete(f"{stops_url}/{first['id']}").status_code == 200
        assert client.delete(f"{stops_url}/{first['id']}").status_code == 200

    def test_move_stop(self, client):
        trip = create_trip(client)
        add_stop(client, trip, 1, location="A", time="09:00")
        add_stop(client, trip, 1, location="B", time="11:00")
        moving = add_stop(client, trip, 0, location="C", time="10:00").get_json()

        response = client.post(f"{BASE}/trips/{trip['id']}/stops/{moving['id']}/move", json={
            "fromDayId": trip["days"][0]["id"], "toDayId": trip["days"][1]["id"],
        })

        assert response.status_code == 200
        body = response.get_json()
        assert body["index"] == 1
        assert [stop["time"] for stop in body["trip"]["days"][1]["stops"]] == ["09:00", "10:00", "11:00"]

    @pytest.mark.parametrize("target_index", ["0", 0.5])
    def test_move_with_non_integer_index_keeps_stop(self, client, target_index):
        trip = create_trip(client)
        moving = add_stop(client, trip, 0, location="Beach").get_json()

        response = client.post(f"{BASE}/trips/{trip['id']}/stops/{moving['id']}/move", json={
            "fromDayId": trip["days"][0]["id"], "toDayId": trip["days"][1]["id"], "targetIndex": target_index,
        })

        assert response.status_code == 422
        assert response.get_json()["type"] == "InvalidMoveError"
        saved = client.get(f"{BASE}/trips/{trip['id']}").get_json()
        assert [stop["id"] for stop in saved["days"][0]["stops"]] == [moving["id"]]

    def test_add_stop_with_non_integer_insert_index(self, client):
        trip = create_trip(client)
        response = add_stop(client, trip, 0, location="C", insertIndex="1")
        assert response.status_code == 422
        assert response.get_json()["type"] == "InvalidStopError"

    def test_move_conflict(self, client):
        trip = create_trip(client)
        add_stop(client, trip, 1, location="A", time="10:00")
        moving = add_stop(client, trip, 0, location="C", time="10:00").get_json()

        response = client.post(f"{BASE}/trips/{trip['id']}/stops/{moving['id']}/move", json={
            "fromDayId": trip["days"][0]["id"], "toDayId": trip["days"][1]["id"],
        })

        assert response.status_code == 409
        assert response.get_json()["type"] == "TimeConflictError"
        saved = client.get(f"{BASE}/trips/{trip['id']}").get_json()
        assert [stop["id"] for stop in saved["days"][0]["stops"]] == [moving["id"]]


# ─────────────────────────── ENRICHMENT ───────────────────────────

class TestEnrichment:

    def test_geocode_trip_then_route(self, client):
        trip = create_trip(client)
        add_stop(client, trip, 0, location="San Francisco", time="08:00")
        add_stop(client, trip, 1, location="Monterey")
        add_stop(client, trip, 2, location="Big Sur")

        body = client.post(f"{BASE}/trips/{trip['id']}/geocode").get_json()
        assert all("coordinates" in stop for day in body["days"] for stop in day["stops"])

        route = client.get(f"{BASE}/trips/{trip['id']}/route").get_json()
        assert route["type"] == "FeatureCollection"
        assert route["bounds"]["north"] == 37.7749
        assert route["features"][-1]["properties"]["fallbackLegs"] == 0

        straight = client.get(f"{BASE}/trips/{trip['id']}/route", query_string={"roads": "0"}).get_json()
        assert straight["features"][-1]["properties"]["fallbackLegs"] == 2

    def test_sun_times(self, client, repository, sun_client):
        trip = create_trip(client)
        add_stop(client, trip, 0, location="Paris", coordinates=[2.3522, 48.8566])

        body = client.post(f"{BASE}/trips/{trip['id']}/sun-times", json={"timezone": "UTC"}).get_json()

        assert body["days"][0]["sunrise"] == "4:48 AM"
        assert "sunrise" not in body["days"][1]
        assert repository.get(trip["id"]).days[0].sunset == "7:05 PM"


# ─────────────────────────── FAVORITES ───────────────────────────

def test_favorites(client):
    place = {"id": "p1", "name": "Bixby Bridge", "coordinates": [-121.9018, 36.3715]}

    assert client.post(f"{BASE}/favorites", json=place).status_code == 201
    assert client.post(f"{BASE}/favorites", json=place).status_code == 200
    assert client.post(f"{BASE}/favorites", json={"name": "No id"}).status_code == 400
    assert client.get(f"{BASE}/favorites").get_json()[0]["name"] == "Bixby Bridge"

    assert client.delete(f"{BASE}/favorites/p1").status_code == 204
    assert client.get(f"{BASE}/favorites").get_json() == []


def test_repository_sees_service_changes(client, repository):
    trip = create_trip(client)
    loaded = repository.get(trip["id"])
    add_timed(loaded, 0, "09:00")
    repository.save(loaded)

    assert client.get(f"{BASE}/trips/{trip['id']}").get_json()["days"][0]["stops"][0]["time"] == "09:00"
