# memomiles/api/storage.py
"""Trip persistence.

Trips are stored one row per trip:
``{id, title, start_date, end_date, trip_data: {days: [...]}}``. Every
write carries the whole ``days`` array and both dates; the store never
sees partial updates.
"""

import copy
import logging
import threading
from typing import Any, Dict, List, Optional

from memomiles.api.models import Day, Trip, parse_date
from memomiles.api.services.date_reflow import build_days

logger = logging.getLogger(__name__)


def trip_to_row(trip: Trip) -> Dict[str, Any]:
    return {
        "id": trip.id,
        "title": trip.title,
        "start_date": trip.start_date.isoformat(),
        "end_date": trip.end_date.isoformat(),
        "trip_data": {"days": [day.to_dict() for day in trip.days]},
    }


def trip_from_row(row: Dict[str, Any]) -> Trip:
    """Build a Trip from a stored row.

    Rows written at trip creation hold an empty ``days`` list; those get one
    empty day per date in their range.
    """
    start, end = parse_date(row["start_date"]), parse_date(row["end_date"])
    raw_days = (row.get("trip_data") or {}).get("days") or []
    days = [Day.from_dict(day) for day in raw_days] if raw_days else build_days(start, end)
    trip = Trip(id=row["id"], title=row.get("title", ""), start_date=start, end_date=end, days=days)
    trip.sync_dates()
    return trip


class TripRepository:
    """Interface to the row-based trip store."""

    def get(self, trip_id: str) -> Optional[Trip]:
        raise NotImplementedError

    def save(self, trip: Trip) -> None:
        raise NotImplementedError

    def delete(self, trip_id: str) -> bool:
        raise NotImplementedError

    def list(self) -> List[Trip]:
        raise NotImplementedError


class InMemoryTripRepository(TripRepository):
    """Keeps rows in a dict. Reads return fresh Trip objects."""

    def __init__(self):
        self._rows: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, trip_id: str) -> Optional[Trip]:
        with self._lock:
            row = self._rows.get(trip_id)
            row = copy.deepcopy(row) if row is not None else None
        return trip_from_row(row) if row is not None else None

    def save(self, trip: Trip) -> None:
        row = trip_to_row(trip)
        with self._lock:
            self._rows[trip.id] = row
        logger.debug(f"Saved trip {trip.id} ({len(trip.days)} days)")

    def save_row(self, row: Dict[str, Any]) -> None:
        with self._lock:
            self._rows[row["id"]] = copy.deepcopy(row)

    def delete(self, trip_id: str) -> bool:
        with self._lock:
            return self._rows.pop(trip_id, None) is not None

    def list(self) -> List[Trip]:
        with self._lock:
            rows = copy.deepcopy(list(self._rows.values()))
        return [trip_from_row(row) for row in rows]
