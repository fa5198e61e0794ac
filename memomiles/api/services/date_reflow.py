# memomiles/api/services/date_reflow.py
"""Keeps day dates contiguous when days are added, removed or the trip resized.

A trip's days always cover consecutive calendar dates, one Day per date,
with ``trip.start_date``/``trip.end_date`` equal to the first and last day.
Each function validates its input before touching the trip, so a rejected
call leaves the trip exactly as it was.
"""

import logging
from datetime import date, timedelta
from typing import List

from memomiles.api.errors import DayNotFoundError, InvalidDayIndexError, InvalidRangeError, LastDayError
from memomiles.api.models import Day, Trip

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def date_range_length(start: date, end: date) -> int:
    """Number of days in the inclusive range ``[start, end]``."""
    if end < start:
        raise InvalidRangeError(f"End date {end} is before start date {start}")
    return (end - start).days + 1


def build_days(start: date, end: date) -> List[Day]:
    """One empty Day per date in ``[start, end]``."""
    return [Day(date=start + ONE_DAY * offset) for offset in range(date_range_length(start, end))]


def _relabel(days: List[Day], start: date) -> None:
    for offset, day in enumerate(days):
        day.date = start + ONE_DAY * offset


def days_dropped_by_resize(trip: Trip, new_start: date, new_end: date) -> List[Day]:
    """Days ``resize_trip_dates`` would discard for this range."""
    new_length = date_range_length(new_start, new_end)
    return list(trip.days[new_length:])


def resize_trip_dates(trip: Trip, new_start: date, new_end: date) -> Trip:
    """Move the trip to a new date range.

    Existing days keep their stops and are relabelled in order. Extra
    empty days are appended when the range grows; trailing days (and their
    stops) are discarded when it shrinks.

    Raises:
        InvalidRangeError: ``new_end`` is before ``new_start``
    """
    new_length = date_range_length(new_start, new_end)
    old_length = len(trip.days)

    dropped = trip.days[new_length:]
    if dropped:
        lost_stops = sum(len(day.stops) for day in dropped)
        logger.warning(f"Trip {trip.id}: dropping {len(dropped)} day(s) with {lost_stops} stop(s)")

    days = trip.days[:new_length]
    days.extend(Day(date=new_start) for _ in range(new_length - len(days)))
    _relabel(days, new_start)

    trip.days = days
    trip.sync_dates()
    logger.info(f"Trip {trip.id} resized from {old_length} to {new_length} days ({new_start} - {new_end})")
    return trip


def insert_day(trip: Trip, index: int) -> Trip:
    """Insert an empty day at ``index`` (0 .. len(days)).

    At the front the new day takes the date before the first day; at the
    end, the date after the last day. In between, it takes the date that
    was at ``index`` and every later day moves forward one day.

    Raises:
        InvalidDayIndexError: ``index`` is outside ``0 .. len(days)``
    """
    count = len(trip.days)
    if not 0 <= index <= count:
        raise InvalidDayIndexError(f"Day index {index} out of range 0..{count}")

    if count == 0:
        new_day = Day(date=trip.start_date)
    elif index == 0:
        new_day = Day(date=trip.days[0].date - ONE_DAY)
    elif index == count:
        new_day = Day(date=trip.days[-1].date + ONE_DAY)
    else:
        new_day = Day(date=trip.days[index].date)
        for day in trip.days[index:]:
            day.date += ONE_DAY

    trip.days.insert(index, new_day)
    trip.sync_dates()
    logger.info(f"Trip {trip.id}: inserted day {new_day.date} at index {index}")
    return trip


def remove_day(trip: Trip, day_id: str) -> Trip:
    """Remove a day and its stops, pulling every later day back one day.

    Raises:
        DayNotFoundError: no day with ``day_id``
        LastDayError: it is the only day left
    """
    index = trip.day_index(day_id)
    if index is None:
        raise DayNotFoundError(f"Day {day_id} not found")
    if len(trip.days) <= 1:
        raise LastDayError()

    removed = trip.days.pop(index)
    for day in trip.days[index:]:
        day.date -= ONE_DAY

    trip.sync_dates()
    logger.info(f"Trip {trip.id}: removed day {removed.date} ({len(removed.stops)} stops discarded)")
    return trip
