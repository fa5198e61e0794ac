"""
MEMOmiles – itinerary service entry point

* Flask app exposing the itinerary core under ``/travel``.
* Socket.IO (threading mode) streams batch-geocoding progress on the
  ``/travel/ws`` namespace.
* ``create_app()`` builds a fully wired app; collaborators can be swapped
  out (tests pass fakes for the geocoder, router and sun-time client).
"""

import os
import logging

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from dotenv import load_dotenv

from memomiles.api.config import get_cors_origins, get_log_level, get_port, get_websocket_config
from memomiles.api.storage import InMemoryTripRepository
from memomiles.routes.travel import create_travel_blueprint
from memomiles.routes.websocket import NAMESPACE, register_websocket_handlers

# --------------------------------------------------------------------------- #
# Environment & logging
# --------------------------------------------------------------------------- #
load_dotenv()

logging.basicConfig(
    level=get_log_level(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(repository=None, geocoder=None, router=None, sun_client=None, favorites_store=None):
    """Build the Flask app and its Socket.IO server.

    Returns:
        ``(app, socketio)``
    """
    app = Flask(__name__)

    flask_secret_key = os.getenv("FLASK_SECRET_KEY") or os.urandom(32).hex()
    if "FLASK_SECRET_KEY" not in os.environ:
        logger.warning("No FLASK_SECRET_KEY found. Generated a temporary key.")
    app.secret_key = flask_secret_key

    app.config.update(
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        PERMANENT_SESSION_LIFETIME=86400,
    )

    # CORS for local dev / cross‑origin front‑end requests
    CORS(app, origins=get_cors_origins(), supports_credentials=True)

    repository = repository or InMemoryTripRepository()
    app.extensions["trip_repository"] = repository

    ws_config = get_websocket_config()
    socketio = SocketIO(
        app,
        cors_allowed_origins=ws_config["cors_allowed_origins"],
        async_mode="threading",
        ping_interval=ws_config["ping_interval"],
        ping_timeout=ws_config["ping_timeout"],
        logger=False,
        engineio_logger=False,
    )
    logger.info("Socket.IO initialised (async_mode=threading)")

    app.register_blueprint(create_travel_blueprint(
        repository,
        geocoder=geocoder,
        router=router,
        sun_client=sun_client,
        favorites_store=favorites_store,
    ))
    register_websocket_handlers(socketio, repository, geocoder=geocoder, router=router)

    @app.route("/debug")
    def debug():
        """Simple JSON health endpoint."""
        return {
            "status": "ok",
            "socketio_initialized": True,
            "endpoints": {
                "health": "/travel/health",
                "websocket_namespace": NAMESPACE,
            },
        }

    return app, socketio


# --------------------------------------------------------------------------- #
# Local development runner ( `python main.py` )
# --------------------------------------------------------------------------- #
if __name__ == "__main__":
    app, socketio = create_app()
    port = get_port()
    logger.info(f"Starting itinerary service on http://localhost:{port}")
    socketio.run(app, host="0.0.0.0", port=port, debug=False, allow_unsafe_werkzeug=True)
