# memomiles/api/services/favorites_service.py
"""Favourite places, kept in an injected key-value store."""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from flask import session

from memomiles.api.models import LngLat, Stop

logger = logging.getLogger(__name__)

FAVORITES_SCOPE = "favorite-places"


class KeyValueStore:
    """Minimal scoped key-value store interface."""

    def get(self, scope: str, default: Any = None) -> Any:
        raise NotImplementedError

    def set(self, scope: str, value: Any) -> None:
        raise NotImplementedError

    def scopes(self) -> List[str]:
        raise NotImplementedError


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store, used in tests and single-process deployments."""

    def __init__(self):
        self._data: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, scope: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(scope, default)

    def set(self, scope: str, value: Any) -> None:
        with self._lock:
            self._data[scope] = value

    def scopes(self) -> List[str]:
        with self._lock:
            return list(self._data)


class SessionKeyValueStore(KeyValueStore):
    """Store backed by the Flask session of the current request."""

    def get(self, scope: str, default: Any = None) -> Any:
        return session.get(scope, default)

    def set(self, scope: str, value: Any) -> None:
        session[scope] = value
        session.modified = True

    def scopes(self) -> List[str]:
        return [key for key in session.keys() if not key.startswith("_")]


@dataclass
class FavoritePlace:
    id: str
    name: str
    description: str = ""
    trip_title: str = ""
    coordinates: Optional[LngLat] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "tripTitle": self.trip_title,
            "coordinates": self.coordinates.to_list() if self.coordinates else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FavoritePlace":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            description=data.get("description") or "",
            trip_title=data.get("tripTitle") or "",
            coordinates=LngLat.from_value(data.get("coordinates")),
        )


def favorite_from_stop(stop: Stop, trip_title: str) -> FavoritePlace:
    """Turn a trip stop into a favourite, keyed by the stop id."""
    return FavoritePlace(
        id=stop.id,
        name=stop.location,
        description=stop.notes or "",
        trip_title=trip_title,
        coordinates=stop.coordinates,
    )


class FavoritesService:
    """List, add and remove favourite places in one store scope."""

    def __init__(self, store: KeyValueStore, scope: str = FAVORITES_SCOPE):
        self.store = store
        self.scope = scope

    def _load(self) -> List[Dict[str, Any]]:
        return list(self.store.get(self.scope, []) or [])

    def list(self) -> List[FavoritePlace]:
        favorites = []
        for raw in self._load():
            try:
                favorites.append(FavoritePlace.from_dict(raw))
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Error loading favorite {raw!r}: {e}")
        return favorites

    def is_favorite(self, favorite_id: str) -> bool:
        return any(raw.get("id") == favorite_id for raw in self._load())

    def add(self, place: FavoritePlace) -> bool:
        """Add ``place`` unless a favourite with its id exists.

        Returns:
            True if it was added
        """
        stored = self._load()
        if any(raw.get("id") == place.id for raw in stored):
            return False
        stored.append(place.to_dict())
        self.store.set(self.scope, stored)
        logger.debug(f"Saved favorite {place.id} ({place.name})")
        return True

    def remove(self, favorite_id: str) -> bool:
        stored = self._load()
        remaining = [raw for raw in stored if raw.get("id") != favorite_id]
        if len(remaining) == len(stored):
            return False
        self.store.set(self.scope, remaining)
        return True
