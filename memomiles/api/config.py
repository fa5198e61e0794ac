# memomiles/api/config.py
"""Configuration management for the itinerary API."""
import os
from dotenv import load_dotenv

load_dotenv()


def get_google_maps_config():
    """Get Google Maps configuration."""
    return {
        "api_key": os.getenv("GOOGLE_MAPS_API_KEY", ""),
        "language": os.getenv("GEOCODE_LANGUAGE", "en"),
        "timeout": get_http_timeout(),
    }


def get_geocode_request_delay():
    """Seconds to wait between upstream geocoding requests in a batch."""
    return float(os.getenv("GEOCODE_REQUEST_DELAY", "0.1"))


def get_http_timeout():
    """Timeout (seconds) applied to every outbound provider request."""
    return float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))


def get_sun_times_config():
    """Get sunrise/sunset provider configuration."""
    return {
        "url": os.getenv("SUN_TIMES_URL", "https://api.sunrise-sunset.org/json"),
        "timeout": get_http_timeout(),
    }


def get_display_timezone():
    """Timezone used to render sunrise/sunset strings."""
    return os.getenv("DISPLAY_TIMEZONE", "UTC")


def get_port():
    """Get port configuration."""
    return int(os.getenv("PORT", 5000))


def get_log_level():
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_cors_origins():
    origins = os.getenv("CORS_ORIGINS", "*")
    if origins == "*":
        return "*"
    return [origin.strip() for origin in origins.split(",") if origin.strip()]


def get_websocket_config():
    """Get WebSocket configuration."""
    return {
        "ping_interval": int(os.getenv("WEBSOCKET_PING_INTERVAL", "25")),
        "ping_timeout": int(os.getenv("WEBSOCKET_PING_TIMEOUT", "60")),
        "cors_allowed_origins": os.getenv("WEBSOCKET_CORS_ORIGINS", "*").split(","),
    }
