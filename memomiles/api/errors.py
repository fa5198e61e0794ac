# memomiles/api/errors.py
"""Error taxonomy shared by the itinerary core and the HTTP layer.

Every error carries the HTTP status the blueprint answers with, so route
handlers can simply let them propagate.
"""


class MemomilesError(Exception):
    """Base class for all recoverable errors raised by the core."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self) -> dict:
        return {"error": self.message, "type": self.__class__.__name__}


# ─── enrichment / providers ────────────────────────────────────────────────

class LocationNotFoundError(MemomilesError):
    """Location not found. Try adding a country."""

    status_code = 404


class GeocodingUnavailableError(MemomilesError):
    """The geocoding provider could not be reached."""

    status_code = 502


class SunTimesUnavailableError(MemomilesError):
    """The sunrise/sunset provider could not be reached."""

    status_code = 502


class DriveFormatError(MemomilesError, ValueError):
    """Drive locations must look like '<start> to <end>'."""

    status_code = 422


# ─── itinerary ─────────────────────────────────────────────────────────────

class ItineraryError(MemomilesError):
    """The itinerary change was rejected."""

    status_code = 400


class TripNotFoundError(ItineraryError):
    """Trip not found."""

    status_code = 404


class DayNotFoundError(ItineraryError):
    """Day not found."""

    status_code = 404


class StopNotFoundError(ItineraryError):
    """Stop not found."""

    status_code = 404


class TimeConflictError(ItineraryError):
    """Another stop is already scheduled at that time."""

    status_code = 409

    def __init__(self, message: str = "", time: str = None):
        super().__init__(message)
        self.time = time


class TimeOrderError(ItineraryError):
    """Timed stops must stay in chronological order."""

    status_code = 409


class InvalidStopError(ItineraryError):
    """Invalid stop data."""

    status_code = 422


class InvalidReorderError(ItineraryError):
    """A reorder must list exactly the day's current stops."""

    status_code = 422


class InvalidMoveError(ItineraryError):
    """Invalid move."""

    status_code = 422


class InvalidDayIndexError(ItineraryError):
    """Day index out of range."""

    status_code = 422


class InvalidRangeError(ItineraryError):
    """End date must be on or after the start date."""

    status_code = 422


class LastDayError(ItineraryError):
    """A trip must keep at least one day."""

    status_code = 409
