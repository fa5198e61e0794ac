# memomiles/routes/travel.py
"""Travel routes and blueprint configuration."""

import logging
from typing import Optional

from flask import Blueprint, jsonify, request

from memomiles.api.config import get_google_maps_config
from memomiles.api.errors import ItineraryError, LocationNotFoundError, MemomilesError, TripNotFoundError
from memomiles.api.geocoding import GeocodeCache, get_geocode_cache
from memomiles.api.models import FieldPatch, ReorderStops, parse_date
from memomiles.api.routing import RouteResolver, get_route_resolver
from memomiles.api.services.date_reflow import days_dropped_by_resize, insert_day, remove_day, resize_trip_dates
from memomiles.api.services.favorites_service import (
    FavoritePlace,
    FavoritesService,
    KeyValueStore,
    SessionKeyValueStore,
)
from memomiles.api.services.itinerary_service import ItineraryService
from memomiles.api.services.map_service import MapService
from memomiles.api.storage import TripRepository
from memomiles.api.sun_times import SunTimesClient, augment_trip_sun_times

logger = logging.getLogger(__name__)


def create_travel_blueprint(
    repository: TripRepository,
    geocoder: Optional[GeocodeCache] = None,
    router: Optional[RouteResolver] = None,
    sun_client: Optional[SunTimesClient] = None,
    favorites_store: Optional[KeyValueStore] = None,
):
    """Create and configure the travel blueprint.

    Args:
        repository: Trip store every mutating request writes back to
        geocoder: Geocode cache (defaults to the process-wide one)
        router: Route resolver (defaults to the process-wide one)
        sun_client: Sunrise/sunset client
        favorites_store: Store for favourites (defaults to the Flask session)

    Returns:
        Configured Flask Blueprint
    """
    travel_bp = Blueprint("travel", __name__, url_prefix="/travel")
    favorites = FavoritesService(favorites_store or SessionKeyValueStore())
    sun_times = sun_client or SunTimesClient()

    def _geocoder() -> GeocodeCache:
        return geocoder if geocoder is not None else get_geocode_cache()

    def _router() -> RouteResolver:
        return router if router is not None else get_route_resolver()

    def _body() -> dict:
        return request.get_json(silent=True) or {}

    def _load(trip_id: str):
        trip = repository.get(trip_id)
        if trip is None:
            raise TripNotFoundError(f"Trip {trip_id} not found")
        return trip

    def _date(data: dict, key: str):
        try:
            return parse_date(data[key])
        except KeyError:
            raise ItineraryError(f"{key} is required") from None
        except ValueError as e:
            raise ItineraryError(str(e)) from e

    def _saved(trip, status: int = 200):
        repository.save(trip)
        return jsonify(trip.to_dict()), status

    @travel_bp.errorhandler(MemomilesError)
    def handle_core_error(error: MemomilesError):
        logger.info(f"Rejected {request.method} {request.path}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @travel_bp.route("/health")
    def health():
        """Health check endpoint."""
        return jsonify({"status": "ok", "service": "travel"})

    @travel_bp.route("/api/config")
    def api_config():
        """Return Google Maps configuration for frontend."""
        config = get_google_maps_config()
        if config.get("api_key"):
            return jsonify({
                "auth_type": "api_key",
                "google_maps_api_key": config["api_key"],
            })
        return jsonify({"error": "No Google Maps API key configured"}), 500

    # ── geocoding ────────────────────────────────────────────────────────

    @travel_bp.route("/api/geocode")
    def api_geocode():
        query = request.args.get("q", "").strip()
        if not query:
            return jsonify({"error": "Query parameter 'q' is required"}), 400
        result = _geocoder().resolve(query)
        if result is None:
            raise LocationNotFoundError()
        return jsonify(result.to_dict())

    @travel_bp.route("/api/route", methods=["POST"])
    def api_route():
        """Driving time, distance and geometry between two places."""
        data = _body()
        start, end = data.get("startLocation"), data.get("endLocation")
        if not start or not end:
            return jsonify({"error": "Start and end locations are required"}), 400
        return jsonify(_router().calculate_route(start, end))

    # ── trips ────────────────────────────────────────────────────────────

    @travel_bp.route("/api/trips", methods=["GET", "POST"])
    def api_trips():
        if request.method == "GET":
            return jsonify([trip.to_dict() for trip in repository.list()])
        data = _body()
        trip = ItineraryService.create_trip(data.get("title"), _date(data, "startDate"), _date(data, "endDate"))
        return _saved(trip, 201)

    @travel_bp.route("/api/trips/<trip_id>", methods=["GET", "DELETE"])
    def api_trip(trip_id):
        if request.method == "DELETE":
            if not repository.delete(trip_id):
                raise TripNotFoundError(f"Trip {trip_id} not found")
            return "", 204
        return jsonify(_load(trip_id).to_dict())

    @travel_bp.route("/api/trips/<trip_id>/dates", methods=["PATCH"])
    def api_trip_dates(trip_id):
        """Resize the trip; dropping days with stops needs ``confirm``."""
        trip = _load(trip_id)
        data = _body()
        start, end = _date(data, "startDate"), _date(data, "endDate")

        dropped = days_dropped_by_resize(trip, start, end)
        dropped_stops = sum(len(day.stops) for day in dropped)
        if dropped_stops and not data.get("confirm"):
            return jsonify({
                "error": f"This removes {len(dropped)} day(s) and {dropped_stops} stop(s)",
                "requiresConfirmation": True,
                "droppedDays": [day.id for day in dropped],
                "droppedStops": dropped_stops,
            }), 409

        return _saved(resize_trip_dates(trip, start, end))

    # ── days ─────────────────────────────────────────────────────────────

    @travel_bp.route("/api/trips/<trip_id>/days", methods=["POST"])
    def api_add_day(trip_id):
        trip = _load(trip_id)
        index = _body().get("index", len(trip.days))
        if not isinstance(index, int):
            raise ItineraryError("index must be an integer")
        return _saved(insert_day(trip, index), 201)

    @travel_bp.route("/api/trips/<trip_id>/days/<day_id>", methods=["PATCH", "DELETE"])
    def api_day(trip_id, day_id):
        trip = _load(trip_id)
        if request.method == "DELETE":
            return _saved(remove_day(trip, day_id))
        ItineraryService.update_day(trip, day_id, _body())
        return _saved(trip)

    # ── stops ────────────────────────────────────────────────────────────

    @travel_bp.route("/api/trips/<trip_id>/days/<day_id>/stops", methods=["POST", "PUT"])
    def api_stops(trip_id, day_id):
        trip = _load(trip_id)
        data = _body()
        if request.method == "PUT":
            ItineraryService.apply_update(trip, day_id, ReorderStops(list(data.get("stopIds") or [])))
            return _saved(trip)

        insert_index = data.pop("insertIndex", None)
        stop = ItineraryService.add_stop(trip, day_id, data, insert_index)
        repository.save(trip)
        return jsonify(stop.to_dict()), 201

    @travel_bp.route("/api/trips/<trip_id>/days/<day_id>/stops/<stop_id>", methods=["PATCH", "DELETE"])
    def api_stop(trip_id, day_id, stop_id):
        trip = _load(trip_id)
        if request.method == "DELETE":
            ItineraryService.delete_stop(trip, day_id, stop_id)
            return _saved(trip)
        ItineraryService.apply_update(trip, day_id, FieldPatch(stop_id, _body()))
        repository.save(trip)
        return jsonify(trip.find_day(day_id).find_stop(stop_id).to_dict())

    @travel_bp.route("/api/trips/<trip_id>/stops/<stop_id>/move", methods=["POST"])
    def api_move_stop(trip_id, stop_id):
        trip = _load(trip_id)
        data = _body()
        index = ItineraryService.move_stop(
            trip, data.get("fromDayId"), data.get("toDayId"), stop_id, data.get("targetIndex")
        )
        repository.save(trip)
        return jsonify({"index": index, "trip": trip.to_dict()})

    # ── enrichment / rendering ───────────────────────────────────────────

    @travel_bp.route("/api/trips/<trip_id>/geocode", methods=["POST"])
    def api_geocode_trip(trip_id):
        trip = _load(trip_id)
        MapService.resolve_missing_coordinates(trip, _geocoder(), _router())
        return _saved(trip)

    @travel_bp.route("/api/trips/<trip_id>/sun-times", methods=["POST"])
    def api_sun_times(trip_id):
        trip = _load(trip_id)
        augment_trip_sun_times(trip, sun_times, _body().get("timezone"))
        return _saved(trip)

    @travel_bp.route("/api/trips/<trip_id>/route")
    def api_trip_route(trip_id):
        trip = _load(trip_id)
        use_roads = request.args.get("roads", "1") not in ("0", "false", "no")
        geojson = MapService.route_geojson(trip, _router() if use_roads else None)
        geojson["bounds"] = MapService.calculate_bounds(trip)
        return jsonify(geojson)

    # ── favourites ───────────────────────────────────────────────────────

    @travel_bp.route("/api/favorites", methods=["GET", "POST"])
    def api_favorites():
        if request.method == "GET":
            return jsonify([place.to_dict() for place in favorites.list()])
        data = _body()
        if not data.get("id") or not data.get("name"):
            return jsonify({"error": "Favorite id and name are required"}), 400
        added = favorites.add(FavoritePlace.from_dict(data))
        return jsonify({"added": added}), 201 if added else 200

    @travel_bp.route("/api/favorites/<favorite_id>", methods=["DELETE"])
    def api_remove_favorite(favorite_id):
        favorites.remove(favorite_id)
        return "", 204

    return travel_bp


__all__ = ['create_travel_blueprint']
