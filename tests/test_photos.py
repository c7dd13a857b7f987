from __future__ import annotations

import pytest

from uniquefilms.errors import NotFound, Unauthenticated, ValidationError
from uniquefilms.photos import BlobStorage, PhotoReviewService


@pytest.fixture()
def blobs(tmp_path) -> BlobStorage:
    return BlobStorage(tmp_path / "photos")


@pytest.fixture()
def photos(store, blobs) -> PhotoReviewService:
    return PhotoReviewService(store, blobs)


def test_upload_returns_durable_url(photos, blobs):
    photo = photos.upload("u1", b"\x89PNG fake", "shot.png")
    assert photo.type == "review"
    assert photo.user_id == "u1"
    assert photo.image_url.startswith("/api/images/")
    assert blobs.resolve(photo.image_url.rsplit("/", 1)[-1]).read_bytes() == b"\x89PNG fake"


def test_upload_validation(photos):
    with pytest.raises(ValidationError):
        photos.upload("u1", b"", "shot.png")
    with pytest.raises(ValidationError):
        photos.upload("u1", b"data", "notes.txt")
    with pytest.raises(Unauthenticated):
        photos.upload(None, b"data", "shot.png")


def test_list_and_delete(photos, blobs):
    first = photos.upload("u1", b"one", "a.jpg")
    photos.upload("u2", b"two", "b.jpg")

    assert [p.id for p in photos.list_photos("u1")] == [first.id]
    photos.delete("u1", first.id)
    assert photos.list_photos("u1") == []
    with pytest.raises(NotFound):
        blobs.resolve(first.image_url.rsplit("/", 1)[-1])
    with pytest.raises(NotFound):
        photos.delete("u1", first.id)


def test_resolve_refuses_traversal(blobs):
    with pytest.raises(NotFound):
        blobs.resolve("../../etc/passwd")
