from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from .errors import NotFound, Unauthenticated, ValidationError
from .models import GENRES, Genre, UserProfile, utc_now_iso
from .store import DocumentSnapshot, DocumentStore, ListenerRegistration, document_path

logger = logging.getLogger(__name__)


def user_path(user_id: str) -> str:
    return document_path("users", user_id)


def find_genre(genre: Any) -> Genre:
    """Resolve a genre id, name or {id, name} mapping against the onboarding list."""
    if genre is None or genre == "":
        raise ValidationError("Please select a genre")
    if isinstance(genre, Mapping):
        genre = genre.get("id", genre.get("name"))
    for item in GENRES:
        if str(item["id"]) == str(genre) or item["name"].lower() == str(genre).strip().lower():
            return Genre.from_dict(item)
    raise ValidationError(f"Unknown genre: {genre}")


class ProfileService:
    """User documents: creation at sign-up, onboarding and display name."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def create_profile(self, user_id: str, email: str) -> UserProfile:
        if not user_id:
            raise Unauthenticated("No user ID available. Please try signing in again.")
        data = {"email": email, "createdAt": utc_now_iso(), "isOnboarded": False}
        self.store.set(user_path(user_id), data)
        logger.info(f"Created profile for {user_id}")
        return UserProfile.from_dict(user_id, data)

    def get_profile(self, user_id: str | None) -> UserProfile:
        if not user_id:
            raise Unauthenticated("User not authenticated")
        data = self.store.get(user_path(user_id))
        if data is None:
            raise NotFound("No user document found")
        return UserProfile.from_dict(user_id, data)

    def complete_onboarding(self, user_id: str | None, genre: Any) -> UserProfile:
        """Store the preferred genre and flip the onboarded flag (merge-write)."""
        if not user_id:
            raise Unauthenticated("No user ID available. Please try signing in again.")
        selected = find_genre(genre)
        self.store.set(
            user_path(user_id),
            {
                "preferredGenre": selected.to_dict(),
                "isOnboarded": True,
                "onboardedAt": utc_now_iso(),
            },
            merge=True,
        )
        logger.info(f"Onboarding completed for {user_id} with genre {selected.name}")
        return self.get_profile(user_id)

    def update_display_name(self, user_id: str | None, display_name: str) -> UserProfile:
        if not user_id:
            raise Unauthenticated("User not authenticated")
        name = (display_name or "").strip()
        if not name:
            raise ValidationError("Username cannot be empty")
        self.store.set(user_path(user_id), {"displayName": name}, merge=True)
        return self.get_profile(user_id)

    def watch_onboarding(
        self,
        user_id: str,
        on_change: Callable[[bool], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> ListenerRegistration:
        """Report the onboarded flag now and whenever the user document changes.

        A missing document or a listener failure both count as not onboarded.
        """

        def handle(snapshot: DocumentSnapshot) -> None:
            on_change(snapshot.exists and snapshot.get("isOnboarded") is True)

        def handle_error(error: Exception) -> None:
            logger.error(f"User document listener for {user_id} failed: {error}")
            on_change(False)
            if on_error is not None:
                on_error(error)

        return self.store.subscribe_document(user_path(user_id), handle, handle_error)
