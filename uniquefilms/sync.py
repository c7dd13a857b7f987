"""
Favorites/archive synchronization.

A user's saved movies live in two places that must agree:

- ``users/{uid}/collections/favorites`` holds ``{"movies": {movieId: true}}``
- ``archives/{uid}/movies/{movieId}`` holds one ArchiveEntry per saved movie

Each toggle issues exactly two independent writes: the archive create or
delete, then a merge-write of the favorites map. Nothing rolls the first
write back if the second one fails, and the decision to add or remove is
taken from the map the caller holds, so two toggles computed from the same
stale map race. Callers adopt the returned map as their new local state.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from .errors import Unauthenticated
from .models import ArchiveEntry, utc_now_iso
from .store import DocumentStore, collection_path, document_path

FAVORITES_FIELD = "movies"


def favorites_path(user_id: str) -> str:
    return document_path("users", user_id, "collections", "favorites")


def archive_collection(user_id: str) -> str:
    return collection_path("archives", user_id, "movies")


def archive_path(user_id: str, movie_id: str) -> str:
    return document_path("archives", user_id, "movies", movie_id)


def _movie_id(movie: Any) -> str:
    value = movie.get("id") if isinstance(movie, Mapping) else getattr(movie, "id", None)
    if value is None or str(value) == "":
        raise ValueError("movie record has no id")
    return str(value)


def _movie_title(movie: Any) -> str:
    if isinstance(movie, Mapping):
        return movie.get("title") or "Untitled"
    return getattr(movie, "title", None) or "Untitled"


class FavoritesSynchronizer:
    """Keeps the favorites map and the archive collection in step."""

    def __init__(self, store: DocumentStore, clock: Callable[[], str] | None = None):
        self.store = store
        self._clock = clock or utc_now_iso
        self.logger = logging.getLogger(__name__)

    @staticmethod
    def _require_user(user_id: str | None) -> str:
        if not user_id:
            raise Unauthenticated("You must be logged in to favorite movies")
        return str(user_id)

    def load_favorites(self, user_id: str | None) -> dict[str, bool]:
        """Read the stored favorites map; an absent document is an empty map."""
        uid = self._require_user(user_id)
        data = self.store.get(favorites_path(uid)) or {}
        movies = data.get(FAVORITES_FIELD) or {}
        return {str(k): True for k, v in movies.items() if v}

    @staticmethod
    def is_saved(favorites: Mapping[str, Any], movie_id: Any) -> bool:
        return bool(favorites.get(str(movie_id)))

    def toggle_saved(self, movie: Any, current_favorites: Mapping[str, Any], user_id: str | None) -> dict[str, bool]:
        """
        Add ``movie`` to the archive if it is not in ``current_favorites``,
        remove it otherwise. Returns the updated map; the input is not mutated.
        """
        uid = self._require_user(user_id)
        movie_id = _movie_id(movie)
        updated = dict(current_favorites or {})

        if self.is_saved(updated, movie_id):
            self.store.delete(archive_path(uid, movie_id))
            updated.pop(movie_id, None)
            self.logger.info(f'"{_movie_title(movie)}" ({movie_id}) removed from archive of {uid}')
        else:
            entry = ArchiveEntry.from_movie(movie, added_at=self._clock())
            self.store.set(archive_path(uid, movie_id), entry.to_dict())
            updated[movie_id] = True
            self.logger.info(f'"{entry.title}" ({movie_id}) added to archive of {uid}')

        self.store.set(favorites_path(uid), {FAVORITES_FIELD: updated}, merge=True)
        return updated

    def remove_from_archive(self, movie: Any, current_favorites: Mapping[str, Any], user_id: str | None) -> dict[str, bool]:
        """Unconditional removal used from the archive list itself."""
        uid = self._require_user(user_id)
        movie_id = _movie_id(movie)
        updated = dict(current_favorites or {})
        updated.pop(movie_id, None)

        self.store.delete(archive_path(uid, movie_id))
        self.store.set(favorites_path(uid), {FAVORITES_FIELD: updated}, merge=True)
        self.logger.info(f'"{_movie_title(movie)}" ({movie_id}) removed from archive of {uid}')
        return updated
