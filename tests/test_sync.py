from __future__ import annotations

import itertools

import pytest

from conftest import MOVIE_42
from uniquefilms.errors import StoreError, Unauthenticated
from uniquefilms.models import MovieSummary
from uniquefilms.store import DocumentStore
from uniquefilms.sync import FavoritesSynchronizer, archive_collection, archive_path, favorites_path

UID = "user-1"


@pytest.fixture()
def sync(store: DocumentStore) -> FavoritesSynchronizer:
    ticks = (f"2024-06-01T00:00:{n:02d}.000Z" for n in itertools.count())
    return FavoritesSynchronizer(store, clock=lambda: next(ticks))


def test_toggle_into_empty_map(sync, store):
    result = sync.toggle_saved(MOVIE_42, {}, UID)

    assert result == {"42": True}
    docs = store.list_collection(archive_collection(UID))
    assert [d.id for d in docs] == ["42"]
    entry = docs[0].data
    assert entry["id"] == "42"
    assert entry["title"] == "X"
    assert entry["vote_average"] == 7.5
    assert entry["addedAt"] == "2024-06-01T00:00:00.000Z"
    assert store.get(favorites_path(UID)) == {"movies": {"42": True}}


def test_toggle_out_of_map(sync, store):
    store.set(archive_path(UID, "42"), {"id": "42", "title": "X", "addedAt": "2024-01-01T00:00:00Z"})
    store.set(favorites_path(UID), {"movies": {"42": True}})

    result = sync.toggle_saved(MOVIE_42, {"42": True}, UID)

    assert result == {}
    assert store.get(archive_path(UID, "42")) is None
    assert store.get(favorites_path(UID)) == {"movies": {}}


def test_round_trip_over_two_calls(sync, store):
    added = sync.toggle_saved(MOVIE_42, {}, UID)
    removed = sync.toggle_saved(MOVIE_42, added, UID)

    assert removed == {}
    assert store.list_collection(archive_collection(UID)) == []
    assert sync.load_favorites(UID) == {}


def test_readding_creates_new_entry_with_new_timestamp(sync, store):
    first = sync.toggle_saved(MOVIE_42, {}, UID)
    first_added = store.get(archive_path(UID, "42"))["addedAt"]
    sync.toggle_saved(MOVIE_42, first, UID)
    sync.toggle_saved(MOVIE_42, {}, UID)
    assert store.get(archive_path(UID, "42"))["addedAt"] != first_added


def test_numeric_ids_are_stringified(sync, store):
    movie = MovieSummary.from_tmdb({"id": 550, "title": "Fight Club", "vote_average": 8.4})
    result = sync.toggle_saved(movie, {}, UID)
    assert result == {"550": True}
    assert sync.is_saved(result, 550)
    assert store.get(archive_path(UID, "550"))["title"] == "Fight Club"


def test_caller_map_is_not_mutated(sync):
    current = {"7": True}
    result = sync.toggle_saved(MOVIE_42, current, UID)
    assert current == {"7": True}
    assert result == {"7": True, "42": True}


def test_favorites_merge_keeps_other_fields(sync, store):
    store.set(favorites_path(UID), {"movies": {}, "updatedBy": "web"})
    sync.toggle_saved(MOVIE_42, {}, UID)
    assert store.get(favorites_path(UID)) == {"movies": {"42": True}, "updatedBy": "web"}


@pytest.mark.parametrize("missing", [None, ""])
def test_unauthenticated_performs_no_writes(sync, store, missing):
    with pytest.raises(Unauthenticated):
        sync.toggle_saved(MOVIE_42, {}, missing)
    assert store.list_collection(archive_collection(UID)) == []
    assert store.get(favorites_path(UID)) is None


def test_false_valued_key_counts_as_absent(sync, store):
    result = sync.toggle_saved(MOVIE_42, {"42": False}, UID)
    assert result == {"42": True}
    assert store.get(archive_path(UID, "42")) is not None


def test_double_toggle_from_stale_map_is_not_guarded(sync, store):
    # Both toggles are computed from the same snapshot; neither sees the
    # other's write, so the pair does not cancel out. The final state is
    # whatever the last writer left and is not specified.
    stale = {}
    first = sync.toggle_saved(MOVIE_42, stale, UID)
    second = sync.toggle_saved(MOVIE_42, stale, UID)

    assert first == second == {"42": True}
    assert sync.load_favorites(UID).get("42") in (True, None)


def test_failed_favorites_write_leaves_partial_state(sync, store, monkeypatch):
    real_set = store.set

    def flaky_set(path, data, merge=False):
        if path == favorites_path(UID):
            raise StoreError("permission denied")
        return real_set(path, data, merge=merge)

    monkeypatch.setattr(store, "set", flaky_set)
    with pytest.raises(StoreError):
        sync.toggle_saved(MOVIE_42, {}, UID)

    # Archive write landed, favorites write did not; nothing rolls it back
    assert store.get(archive_path(UID, "42")) is not None
    assert store.get(favorites_path(UID)) is None


def test_load_favorites_missing_document(sync):
    assert sync.load_favorites(UID) == {}


def test_remove_from_archive(sync, store):
    favorites = sync.toggle_saved(MOVIE_42, {}, UID)
    result = sync.remove_from_archive({"id": 42, "title": "X"}, favorites, UID)
    assert result == {}
    assert store.get(archive_path(UID, "42")) is None
    # Removing again is harmless
    assert sync.remove_from_archive({"id": "42"}, result, UID) == {}
