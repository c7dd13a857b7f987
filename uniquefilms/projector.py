from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Iterable

from .errors import StoreError, Unauthenticated
from .models import ArchiveEntry, parse_timestamp
from .store import DocumentSnapshot, DocumentStore, ListenerRegistration
from .sync import archive_collection

logger = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def order_archive(snapshots: Iterable[DocumentSnapshot]) -> list[ArchiveEntry]:
    """Materialize archive documents, newest ``addedAt`` first.

    ``addedAt`` is client time, so entries written from devices with skewed
    clocks keep whatever order their clocks give them.
    """
    entries = [ArchiveEntry.from_dict(s.data or {}, doc_id=s.id) for s in snapshots]
    entries.sort(key=lambda e: (parse_timestamp(e.added_at) or _OLDEST, e.id), reverse=True)
    return entries


class Subscription:
    """Cancellation handle returned by ArchiveProjector.subscribe."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        self._registration: ListenerRegistration | None = None
        self._lock = threading.RLock()
        self._closed = False

    @property
    def active(self) -> bool:
        return not self._closed and self._registration is not None and self._registration.active

    def unsubscribe(self) -> None:
        with self._lock:
            self._closed = True
            registration = self._registration
        if registration is not None:
            registration.unsubscribe()

    close = unsubscribe

    def __call__(self) -> None:
        self.unsubscribe()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.unsubscribe()


class ArchiveProjector:
    """Republishes a user's archive collection as an ordered list on every change."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def subscribe(
        self,
        user_id: str | None,
        on_update: Callable[[list[ArchiveEntry]], None],
        on_error: Callable[[str], None] | None = None,
    ) -> Subscription:
        if not user_id:
            raise Unauthenticated("Please sign in to view your archive")

        subscription = Subscription(str(user_id))
        reported = False

        def handle_snapshot(snapshots: list[DocumentSnapshot]) -> None:
            if subscription._closed:
                return
            on_update(order_archive(snapshots))

        def handle_error(error: Exception) -> None:
            nonlocal reported
            with subscription._lock:
                if subscription._closed or reported:
                    return
                reported = True
                subscription._closed = True
            reason = error.message if isinstance(error, StoreError) else str(error)
            logger.error(f"Archive listener for {user_id} failed: {reason}")
            if on_error is not None:
                on_error(reason)

        subscription._registration = self.store.subscribe(
            archive_collection(str(user_id)), handle_snapshot, handle_error
        )
        return subscription

    def latest(self, user_id: str | None) -> list[ArchiveEntry]:
        """One-shot ordered read of the archive."""
        if not user_id:
            raise Unauthenticated("Please sign in to view your archive")
        return order_archive(self.store.list_collection(archive_collection(str(user_id))))
