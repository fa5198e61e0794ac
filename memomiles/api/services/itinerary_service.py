# memomiles/api/services/itinerary_service.py
"""Service layer for itinerary editing.

Every operation works on an explicit Trip passed in by the caller and
either completes or raises before anything is changed. Timed stops within
a day always stay in non-decreasing time order; untimed stops may sit
anywhere.
"""

import logging
from datetime import time as dt_time
from typing import Any, Dict, List, Optional

from memomiles.api.errors import (
    DayNotFoundError,
    DriveFormatError,
    InvalidMoveError,
    InvalidReorderError,
    InvalidStopError,
    ItineraryError,
    StopNotFoundError,
    TimeConflictError,
    TimeOrderError,
)
from memomiles.api.models import (
    ActivityIcon,
    Day,
    FieldPatch,
    LngLat,
    ReorderStops,
    Stop,
    StopType,
    Trip,
    UpdateIntent,
    normalize_time,
    parse_date,
    parse_time,
)
from memomiles.api.routing import compose_drive_location, split_drive_location
from memomiles.api.services.date_reflow import build_days

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 100

# Accommodation booked for the evening is planned as next morning's check-in.
ACCOMMODATION_CUTOFF = dt_time(18, 0)
ACCOMMODATION_CHECKIN = "08:00"

STOP_FIELDS = {
    "type", "time", "location", "startLocation", "endLocation", "activityIcon",
    "notes", "coordinates", "startCoordinates", "endCoordinates", "drivingTime", "distance",
}
LOCATION_FIELDS = {"type", "location", "startLocation", "endLocation"}
DAY_FIELDS = {"drivingTime": "driving_time", "activities": "activities", "notes": "notes"}


def timed_stops_in_order(stops: List[Stop]) -> bool:
    """True if the timed stops in ``stops`` are in non-decreasing order."""
    times = [stop.sort_time for stop in stops if stop.is_timed]
    return all(a <= b for a, b in zip(times, times[1:]))


def chronological_index(stops: List[Stop], at: dt_time, after_equal: bool = False) -> int:
    """Index at which a stop timed ``at`` belongs in ``stops``.

    Scans forward and stops at the first timed stop that is not earlier
    (or, with ``after_equal``, not earlier-or-equal); every stop passed on
    the way, timed or not, moves the index one further.
    """
    index = 0
    for position, stop in enumerate(stops):
        if stop.is_timed:
            later = stop.sort_time > at if after_equal else stop.sort_time >= at
            if later:
                break
        index = position + 1
    return index


def _require_day(trip: Trip, day_id: str) -> Day:
    day = trip.find_day(day_id)
    if day is None:
        raise DayNotFoundError(f"Day {day_id} not found")
    return day


def _stop_type(value: Any) -> StopType:
    try:
        return StopType(value or StopType.ACTIVITY.value)
    except ValueError:
        raise InvalidStopError(f"Unknown stop type {value!r}") from None


def _stop_time(value: Any, stop_type: StopType) -> Optional[str]:
    try:
        normalized = normalize_time(value)
    except ValueError:
        raise InvalidStopError(f"Invalid time {value!r}, expected HH:MM") from None
    if normalized and stop_type is StopType.ACCOMMODATION and parse_time(normalized) >= ACCOMMODATION_CUTOFF:
        logger.debug(f"Accommodation at {normalized} planned as {ACCOMMODATION_CHECKIN} check-in")
        return ACCOMMODATION_CHECKIN
    return normalized


def _stop_location(stop_type: StopType, data: Dict[str, Any]) -> str:
    if stop_type is StopType.DRIVE:
        try:
            if data.get("startLocation") is not None or data.get("endLocation") is not None:
                return compose_drive_location(data.get("startLocation"), data.get("endLocation"))
            start, end = split_drive_location(data.get("location") or "")
            return compose_drive_location(start, end)
        except DriveFormatError as e:
            raise InvalidStopError(str(e)) from e

    location = str(data.get("location") or "").strip()
    if not location:
        raise InvalidStopError("Location is required")
    return location


def _activity_icon(value: Any, stop_type: StopType) -> Optional[ActivityIcon]:
    if stop_type is not StopType.ACTIVITY or not value:
        return None
    try:
        return ActivityIcon(value)
    except ValueError:
        raise InvalidStopError(f"Unknown activity icon {value!r}") from None


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _coordinates(value: Any) -> Optional[LngLat]:
    try:
        return LngLat.from_value(value)
    except (TypeError, ValueError, KeyError):
        raise InvalidStopError(f"Invalid coordinates {value!r}") from None


def _build_stop(data: Dict[str, Any], stop_id: Optional[str] = None, location: Optional[str] = None) -> Stop:
    """Validate wire-format stop data into a Stop.

    A given ``location`` is kept as is instead of being re-validated.
    """
    unknown = set(data) - STOP_FIELDS - {"id"}
    if unknown:
        raise InvalidStopError(f"Unknown stop field(s): {', '.join(sorted(unknown))}")

    stop_type = _stop_type(data.get("type"))
    stop = Stop(
        location=location if location is not None else _stop_location(stop_type, data),
        type=stop_type,
        time=_stop_time(data.get("time"), stop_type),
        activity_icon=_activity_icon(data.get("activityIcon"), stop_type),
        notes=data.get("notes") or None,
        coordinates=_coordinates(data.get("coordinates")),
    )
    if stop_id:
        stop.id = stop_id
    if stop_type is StopType.DRIVE:
        stop.start_coordinates = _coordinates(data.get("startCoordinates"))
        stop.end_coordinates = _coordinates(data.get("endCoordinates"))
        stop.driving_time = data.get("drivingTime") or None
        stop.distance = data.get("distance") or None
    return stop


class ItineraryService:
    """Invariant-preserving edits of a trip's days and stops."""

    @staticmethod
    def create_trip(title: str, start_date, end_date, trip_id: Optional[str] = None) -> Trip:
        """Create a trip with one empty day per date.

        Raises:
            ItineraryError: missing or overlong title, unparseable dates
            InvalidRangeError: end date before start date
        """
        title = (title or "").strip()
        if not title:
            raise ItineraryError("Trip name is required")
        if len(title) > MAX_TITLE_LENGTH:
            raise ItineraryError("Trip name too long")
        try:
            start, end = parse_date(start_date), parse_date(end_date)
        except ValueError as e:
            raise ItineraryError(str(e)) from e

        trip = Trip(title=title, start_date=start, end_date=end, days=build_days(start, end))
        if trip_id:
            trip.id = trip_id
        logger.info(f"Created trip {trip.id} '{title}' with {len(trip.days)} days")
        return trip

    @staticmethod
    def add_stop(trip: Trip, day_id: str, stop_data: Dict[str, Any], insert_index: Optional[int] = None) -> Stop:
        """Add a stop to a day.

        Args:
            trip: Trip to modify
            day_id: Target day
            stop_data: Wire-format stop fields; drive stops may give
                ``startLocation``/``endLocation`` instead of ``location``
            insert_index: Explicit position; otherwise timed stops are
                placed chronologically and untimed stops appended

        Returns:
            The new Stop

        Raises:
            DayNotFoundError, InvalidStopError, TimeOrderError
        """
        day = _require_day(trip, day_id)
        stop = _build_stop(stop_data)

        if insert_index is not None:
            if not _is_index(insert_index) or insert_index < 0:
                raise InvalidStopError(f"Invalid insert index {insert_index}")
            candidate = list(day.stops)
            candidate.insert(insert_index, stop)
            if not timed_stops_in_order(candidate):
                raise TimeOrderError(f"A stop at {stop.time} cannot go at position {insert_index}")
            index = min(insert_index, len(day.stops))
        elif stop.is_timed:
            index = chronological_index(day.stops, stop.sort_time, after_equal=True)
        else:
            index = len(day.stops)

        day.stops.insert(index, stop)
        logger.info(f"Added {stop.type.value} stop {stop.id} to day {day.date} at {index}")
        return stop

    @staticmethod
    def update_stop(trip: Trip, day_id: str, stop_id: str, patch: Dict[str, Any]) -> Stop:
        """Update a stop's fields in place, keeping its id and position.

        Coordinates survive unless the patch sets them. For drive stops a
        patch may change just one of ``startLocation``/``endLocation``.

        Raises:
            DayNotFoundError, StopNotFoundError, InvalidStopError, TimeOrderError
        """
        day = _require_day(trip, day_id)
        index = day.stop_index(stop_id)
        if index is None:
            raise StopNotFoundError(f"Stop {stop_id} not found on day {day.date}")
        current = day.stops[index]

        merged = current.to_dict()
        merged.update(patch)
        if "startLocation" in patch or "endLocation" in patch:
            try:
                old_start, old_end = split_drive_location(current.location)
            except DriveFormatError:
                old_start, old_end = None, None
            merged.setdefault("startLocation", old_start)
            merged.setdefault("endLocation", old_end)
            merged.pop("location", None)

        kept_location = None if LOCATION_FIELDS & set(patch) else current.location
        updated = _build_stop(merged, stop_id=current.id, location=kept_location)
        candidate = list(day.stops)
        candidate[index] = updated
        if not timed_stops_in_order(candidate):
            raise TimeOrderError(f"Moving stop {stop_id} to {updated.time} breaks the day's order")

        day.stops[index] = updated
        logger.debug(f"Updated stop {stop_id} on day {day.date}")
        return updated

    @staticmethod
    def delete_stop(trip: Trip, day_id: str, stop_id: str) -> bool:
        """Remove a stop; deleting a stop that is already gone is fine.

        Returns:
            True if a stop was removed
        """
        day = _require_day(trip, day_id)
        index = day.stop_index(stop_id)
        if index is None:
            logger.debug(f"Stop {stop_id} already absent from day {day.date}")
            return False
        day.stops.pop(index)
        logger.info(f"Deleted stop {stop_id} from day {day.date}")
        return True

    @staticmethod
    def reorder_stops(trip: Trip, day_id: str, stop_ids: List[str]) -> Day:
        """Replace a day's stop order with a permutation of its stop ids.

        Raises:
            InvalidReorderError: ids dropped, added or duplicated
            TimeOrderError: the new order puts timed stops out of sequence
        """
        day = _require_day(trip, day_id)
        stop_ids = list(stop_ids)
        if len(stop_ids) != len(set(stop_ids)) or set(stop_ids) != set(day.stop_ids):
            raise InvalidReorderError()

        by_id = {stop.id: stop for stop in day.stops}
        candidate = [by_id[stop_id] for stop_id in stop_ids]
        if not timed_stops_in_order(candidate):
            raise TimeOrderError()

        day.stops = candidate
        logger.debug(f"Reordered {len(candidate)} stops on day {day.date}")
        return day

    @staticmethod
    def move_stop(
        trip: Trip,
        from_day_id: str,
        to_day_id: str,
        stop_id: str,
        target_index: Optional[int] = None,
    ) -> int:
        """Move a stop to another day.

        Untimed stops go to ``target_index`` (or the end). Timed stops go
        right after the last stop scheduled strictly earlier, and
        ``target_index`` is ignored.

        Returns:
            The stop's index in the target day

        Raises:
            TimeConflictError: the target day has a stop at the same time
            InvalidMoveError: same day, or ``target_index`` not an integer in range
        """
        if target_index is not None and not _is_index(target_index):
            raise InvalidMoveError(f"Target index must be an integer, got {target_index!r}")
        if from_day_id == to_day_id:
            raise InvalidMoveError("Use reorder to move a stop within its own day")
        source = _require_day(trip, from_day_id)
        target = _require_day(trip, to_day_id)
        source_index = source.stop_index(stop_id)
        if source_index is None:
            raise StopNotFoundError(f"Stop {stop_id} not found on day {source.date}")
        stop = source.stops[source_index]

        if stop.is_timed:
            at = stop.sort_time
            if any(other.is_timed and other.sort_time == at for other in target.stops):
                raise TimeConflictError(f"{target.date} already has a stop at {stop.time}", time=stop.time)
            index = chronological_index(target.stops, at)
        elif target_index is None:
            index = len(target.stops)
        elif 0 <= target_index <= len(target.stops):
            index = target_index
        else:
            raise InvalidMoveError(f"Target index {target_index} out of range")

        source.stops.pop(source_index)
        target.stops.insert(index, stop)
        logger.info(f"Moved stop {stop_id} from {source.date} to {target.date} at {index}")
        return index

    @staticmethod
    def apply_update(trip: Trip, day_id: str, intent: UpdateIntent) -> Day:
        """Apply a field patch or a reorder to one day."""
        if isinstance(intent, ReorderStops):
            return ItineraryService.reorder_stops(trip, day_id, intent.stop_ids)
        if isinstance(intent, FieldPatch):
            ItineraryService.update_stop(trip, day_id, intent.stop_id, intent.fields)
            return _require_day(trip, day_id)
        raise TypeError(f"Unsupported update intent: {intent!r}")

    @staticmethod
    def update_day(trip: Trip, day_id: str, fields: Dict[str, Any]) -> Day:
        """Edit a day's free-text summary (driving time, activities, notes)."""
        day = _require_day(trip, day_id)
        unknown = set(fields) - set(DAY_FIELDS)
        if unknown:
            raise ItineraryError(f"Unknown day field(s): {', '.join(sorted(unknown))}")
        for key, value in fields.items():
            setattr(day, DAY_FIELDS[key], "" if value is None else str(value))
        return day
