# memomiles/routes/websocket.py
"""Socket.IO handlers: batch geocoding with live progress."""

import logging
import time
from typing import Optional

from flask import request
from flask_socketio import emit

from memomiles.api.errors import MemomilesError, TripNotFoundError
from memomiles.api.geocoding import GeocodeCache, get_geocode_cache
from memomiles.api.routing import RouteResolver, get_route_resolver
from memomiles.api.services.map_service import MapService
from memomiles.api.storage import TripRepository

logger = logging.getLogger(__name__)

NAMESPACE = "/travel/ws"


class BaseWebSocketHandler:
    """Base class for WebSocket handlers with common functionality."""

    def __init__(self, socketio, namespace=NAMESPACE):
        self.socketio = socketio
        self.namespace = namespace

    def emit_to_client(self, event, data, room=None):
        """Emit event to a specific client or room."""
        if room:
            self.socketio.emit(event, data, to=room, namespace=self.namespace)
        else:
            emit(event, data, namespace=self.namespace)

    def log_event(self, event_name, data=None):
        """Log WebSocket events consistently."""
        if data:
            logger.info(f"[WS] {event_name} - Client: {request.sid}, Data: {data}")
        else:
            logger.info(f"[WS] {event_name} - Client: {request.sid}")

    def handle_error(self, error, event_name=""):
        """Handle and log errors consistently."""
        logger.error(f"[WS] Error in {event_name} - Client: {request.sid}, Error: {error}")
        self.emit_to_client('error', {'message': str(error), 'event': event_name})


class GeocodeHandler(BaseWebSocketHandler):
    """Resolves a trip's missing coordinates and streams progress."""

    def __init__(self, socketio, repository: TripRepository, geocoder: Optional[GeocodeCache] = None,
                 router: Optional[RouteResolver] = None, namespace=NAMESPACE):
        super().__init__(socketio, namespace)
        self.repository = repository
        self.geocoder = geocoder
        self.router = router

    def register_handlers(self):
        """Register connection and geocoding event handlers."""

        @self.socketio.on('connect', namespace=self.namespace)
        def handle_connect(auth=None):
            self.log_event('connect')
            self.emit_to_client('connected', {'sid': request.sid, 'status': 'connected'})

        @self.socketio.on('disconnect', namespace=self.namespace)
        def handle_disconnect(*args):
            self.log_event('disconnect')

        @self.socketio.on('ping', namespace=self.namespace)
        def handle_ping():
            self.emit_to_client('pong', {'timestamp': time.time()})

        @self.socketio.on('resolve_coordinates', namespace=self.namespace)
        def handle_resolve_coordinates(data):
            """Geocode every stop of ``data['trip_id']`` lacking coordinates."""
            trip_id = (data or {}).get('trip_id')
            sid = request.sid
            self.log_event('resolve_coordinates', {'trip_id': trip_id})

            try:
                trip = self.repository.get(trip_id) if trip_id else None
                if trip is None:
                    raise TripNotFoundError(f"Trip {trip_id} not found")

                def _on_progress(completed, total):
                    self.emit_to_client('geocode_progress', {
                        'trip_id': trip_id,
                        'completed': completed,
                        'total': total,
                    }, room=sid)

                MapService.resolve_missing_coordinates(
                    trip,
                    self.geocoder if self.geocoder is not None else get_geocode_cache(),
                    self.router if self.router is not None else get_route_resolver(),
                    on_progress=_on_progress,
                )
                self.repository.save(trip)
                self.emit_to_client('trip_updated', trip.to_dict(), room=sid)
            except MemomilesError as e:
                self.handle_error(e, 'resolve_coordinates')


def register_websocket_handlers(socketio, repository: TripRepository, geocoder: Optional[GeocodeCache] = None,
                                router: Optional[RouteResolver] = None):
    """Register all WebSocket event handlers with SocketIO.

    Args:
        socketio: Flask-SocketIO instance
        repository: Trip store shared with the HTTP routes
        geocoder: Geocode cache (defaults to the process-wide one)
        router: Route resolver (defaults to the process-wide one)
    """
    logger.info(f"Registering WebSocket handlers for namespace: {NAMESPACE}")
    GeocodeHandler(socketio, repository, geocoder, router).register_handlers()


__all__ = ['register_websocket_handlers', 'NAMESPACE']
