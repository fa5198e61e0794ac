"""Shared data structures for trip itineraries.

Every type round-trips through ``to_dict()`` / ``from_dict()`` using the
camelCase shape stored in the ``trip_data`` column of a trip row, so the
same objects can be handed to the store, the HTTP layer and the map
renderer.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time as dt_time
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Union

TIME_FORMAT = "%H:%M"
DATE_FORMATS = ("%Y-%m-%d", "%b %d, %Y", "%B %d, %Y")


class StopType(str, Enum):
    DRIVE = "drive"
    ACTIVITY = "activity"
    ACCOMMODATION = "accommodation"
    STOP = "stop"


class ActivityIcon(str, Enum):
    HIKING = "hiking"
    FOOD = "food"
    SIGHTSEEING = "sightseeing"
    CAMERA = "camera"
    COFFEE = "coffee"


class LngLat(NamedTuple):
    """A coordinate pair in GeoJSON order."""

    lng: float
    lat: float

    @classmethod
    def from_value(cls, value: Any) -> Optional["LngLat"]:
        """Accept ``[lng, lat]``, ``{"lng": .., "lat": ..}`` or None."""
        if value is None:
            return None
        if isinstance(value, dict):
            return cls(float(value["lng"]), float(value["lat"]))
        lng, lat = value
        return cls(float(lng), float(lat))

    def to_list(self) -> List[float]:
        return [self.lng, self.lat]


def new_id() -> str:
    return str(uuid.uuid4())


def normalize_time(value: Optional[str]) -> Optional[str]:
    """Return ``value`` as zero-padded ``HH:MM`` or None when it is blank.

    Raises ValueError for anything that is not a 24h clock time.
    """
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    return datetime.strptime(value, TIME_FORMAT).strftime(TIME_FORMAT)


def parse_time(value: str) -> dt_time:
    return datetime.strptime(value, TIME_FORMAT).time()


def parse_date(value: Any) -> date:
    """Parse ISO dates (``2024-06-15``) and display dates (``Jun 15, 2024``)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognised date: {value!r}")


def _coords_to_list(value: Optional[LngLat]) -> Optional[List[float]]:
    return value.to_list() if value is not None else None


@dataclass
class Stop:
    """A single stop on a day's schedule."""

    location: str
    type: StopType = StopType.ACTIVITY
    time: Optional[str] = None  # "HH:MM", None means unscheduled
    id: str = field(default_factory=new_id)
    activity_icon: Optional[ActivityIcon] = None
    notes: Optional[str] = None
    coordinates: Optional[LngLat] = None
    # drive stops only
    start_coordinates: Optional[LngLat] = None
    end_coordinates: Optional[LngLat] = None
    driving_time: Optional[str] = None
    distance: Optional[str] = None

    @property
    def is_timed(self) -> bool:
        return bool(self.time)

    @property
    def sort_time(self) -> Optional[dt_time]:
        return parse_time(self.time) if self.time else None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "time": self.time,
            "location": self.location,
            "type": self.type.value,
        }
        optional = {
            "activityIcon": self.activity_icon.value if self.activity_icon else None,
            "notes": self.notes,
            "coordinates": _coords_to_list(self.coordinates),
            "startCoordinates": _coords_to_list(self.start_coordinates),
            "endCoordinates": _coords_to_list(self.end_coordinates),
            "drivingTime": self.driving_time,
            "distance": self.distance,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Stop":
        icon = data.get("activityIcon")
        return cls(
            id=data.get("id") or new_id(),
            time=normalize_time(data.get("time")),
            location=data.get("location", ""),
            type=StopType(data.get("type", StopType.ACTIVITY.value)),
            activity_icon=ActivityIcon(icon) if icon else None,
            notes=data.get("notes"),
            coordinates=LngLat.from_value(data.get("coordinates")),
            start_coordinates=LngLat.from_value(data.get("startCoordinates")),
            end_coordinates=LngLat.from_value(data.get("endCoordinates")),
            driving_time=data.get("drivingTime"),
            distance=data.get("distance"),
        )


@dataclass
class Day:
    """One calendar day of a trip and its ordered stops."""

    date: date
    id: str = field(default_factory=new_id)
    driving_time: str = ""
    activities: str = ""
    notes: str = ""
    stops: List[Stop] = field(default_factory=list)
    sunrise: Optional[str] = None
    sunset: Optional[str] = None

    def stop_index(self, stop_id: str) -> Optional[int]:
        for index, stop in enumerate(self.stops):
            if stop.id == stop_id:
                return index
        return None

    def find_stop(self, stop_id: str) -> Optional[Stop]:
        index = self.stop_index(stop_id)
        return self.stops[index] if index is not None else None

    @property
    def stop_ids(self) -> List[str]:
        return [stop.id for stop in self.stops]

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "date": self.date.isoformat(),
            "drivingTime": self.driving_time,
            "activities": self.activities,
            "notes": self.notes,
            "stops": [stop.to_dict() for stop in self.stops],
        }
        if self.sunrise is not None:
            data["sunrise"] = self.sunrise
        if self.sunset is not None:
            data["sunset"] = self.sunset
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Day":
        return cls(
            id=data.get("id") or new_id(),
            date=parse_date(data["date"]),
            driving_time=data.get("drivingTime") or "",
            activities=data.get("activities") or "",
            notes=data.get("notes") or "",
            stops=[Stop.from_dict(stop) for stop in data.get("stops", [])],
            sunrise=data.get("sunrise"),
            sunset=data.get("sunset"),
        )


@dataclass
class Trip:
    """A trip: a title plus a contiguous run of days."""

    title: str
    start_date: date
    end_date: date
    days: List[Day] = field(default_factory=list)
    id: str = field(default_factory=new_id)

    def day_index(self, day_id: str) -> Optional[int]:
        for index, day in enumerate(self.days):
            if day.id == day_id:
                return index
        return None

    def find_day(self, day_id: str) -> Optional[Day]:
        index = self.day_index(day_id)
        return self.days[index] if index is not None else None

    def sync_dates(self) -> None:
        """Re-derive start/end from the first and last day."""
        if self.days:
            self.start_date = self.days[0].date
            self.end_date = self.days[-1].date

    def iter_stops(self):
        for day in self.days:
            for stop in day.stops:
                yield day, stop

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "days": [day.to_dict() for day in self.days],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Trip":
        return cls(
            id=data.get("id") or new_id(),
            title=data.get("title", ""),
            start_date=parse_date(data["startDate"]),
            end_date=parse_date(data["endDate"]),
            days=[Day.from_dict(day) for day in data.get("days", [])],
        )


def midpoint(a: LngLat, b: LngLat) -> LngLat:
    """Arithmetic mean of two coordinates (fine at city-to-city scale)."""
    return LngLat((a.lng + b.lng) / 2, (a.lat + b.lat) / 2)


@dataclass(frozen=True)
class GeocodeResult:
    """Top geocoder match for a free-text query."""

    coordinates: LngLat
    place_name: str
    query: str
    country_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "coordinates": self.coordinates.to_list(),
            "placeName": self.place_name,
            "query": self.query,
            "countryCode": self.country_code,
        }


@dataclass
class DriveRouteResult:
    """Resolved endpoints of a drive stop; either side may be missing."""

    start: Optional[GeocodeResult]
    end: Optional[GeocodeResult]

    @property
    def complete(self) -> bool:
        return self.start is not None and self.end is not None

    @property
    def midpoint(self) -> Optional[LngLat]:
        if not self.complete:
            return None
        return midpoint(self.start.coordinates, self.end.coordinates)

    def to_dict(self) -> Dict[str, Any]:
        mid = self.midpoint
        return {
            "start": self.start.to_dict() if self.start else None,
            "end": self.end.to_dict() if self.end else None,
            "midpoint": mid.to_list() if mid else None,
        }


@dataclass
class RouteGeometry:
    """A drawable path between two coordinates."""

    coordinates: List[LngLat]
    distance_m: Optional[float] = None
    duration_s: Optional[float] = None
    fallback: bool = False  # straight line substituted for a road path

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": "LineString",
            "coordinates": [point.to_list() for point in self.coordinates],
        }


@dataclass(frozen=True)
class DriveSummary:
    driving_time: str
    distance: str


@dataclass(frozen=True)
class FieldPatch:
    """Update some fields of a stop in place."""

    stop_id: str
    fields: Dict[str, Any]


@dataclass(frozen=True)
class ReorderStops:
    """Replace a day's stop order with a permutation of its stop ids."""

    stop_ids: List[str]


UpdateIntent = Union[FieldPatch, ReorderStops]
