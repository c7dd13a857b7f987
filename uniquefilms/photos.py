from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable
from uuid import uuid4

from werkzeug.utils import secure_filename

from .errors import NotFound, StoreError, Unauthenticated, ValidationError
from .models import PhotoReview
from .store import SERVER_TIMESTAMP, DocumentStore, collection_path, document_path

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}


def photos_collection(user_id: str) -> str:
    return collection_path("users", user_id, "photos")


class BlobStorage:
    """Stores uploaded binaries under one directory and hands back a durable URL."""

    def __init__(self, upload_dir: str | Path, base_url: str = "/api/images", allowed_extensions: Iterable[str] | None = None):
        self.upload_dir = Path(upload_dir)
        self.base_url = base_url.rstrip("/")
        self.allowed_extensions = {e.lower() for e in (allowed_extensions or ALLOWED_EXTENSIONS)}
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def allowed(self, filename: str) -> bool:
        return "." in filename and filename.rsplit(".", 1)[1].lower() in self.allowed_extensions

    def upload(self, data: bytes, filename: str) -> str:
        if not data:
            raise ValidationError("Please take a photo first")
        if not self.allowed(filename):
            raise ValidationError(f"File type not allowed. Allowed: {', '.join(sorted(self.allowed_extensions))}")
        ext = filename.rsplit(".", 1)[1].lower()
        # Unique name so concurrent uploads never collide
        name = f"{uuid4().hex}.{ext}"
        try:
            (self.upload_dir / name).write_bytes(data)
        except OSError as exc:
            raise StoreError(f"Failed to save image: {exc}") from exc
        return f"{self.base_url}/{name}"

    def resolve(self, name: str) -> Path:
        """Map a stored blob name back to its file, refusing anything outside the upload dir."""
        safe = secure_filename(Path(name).name)
        path = self.upload_dir / safe
        if not safe or not path.is_file():
            raise NotFound(f"Image not found: {name}")
        return path

    def remove(self, url: str) -> bool:
        name = url.rsplit("/", 1)[-1]
        try:
            path = self.resolve(name)
        except NotFound:
            return False
        path.unlink()
        return True


class PhotoReviewService:
    """Photo reviews: one document per captured photo under the owning user."""

    def __init__(self, store: DocumentStore, blobs: BlobStorage):
        self.store = store
        self.blobs = blobs
        self.logger = logging.getLogger(__name__)

    def upload(self, user_id: str | None, data: bytes, filename: str) -> PhotoReview:
        if not user_id:
            raise Unauthenticated("You must be logged in to upload photos")
        url = self.blobs.upload(data, filename)
        photo_id = self.store.add(
            photos_collection(user_id),
            {"imageUrl": url, "userId": user_id, "createdAt": SERVER_TIMESTAMP, "type": "review"},
        )
        self.logger.info(f"Photo review {photo_id} uploaded by {user_id}")
        return PhotoReview.from_dict(photo_id, self.store.get(document_path(photos_collection(user_id), photo_id)) or {})

    def list_photos(self, user_id: str | None) -> list[PhotoReview]:
        if not user_id:
            raise Unauthenticated("User not authenticated")
        docs = self.store.query(photos_collection(user_id), order_by="createdAt", descending=True)
        return [PhotoReview.from_dict(d.id, d.data or {}) for d in docs]

    def delete(self, user_id: str | None, photo_id: str) -> None:
        if not user_id:
            raise Unauthenticated("User not authenticated")
        path = document_path(photos_collection(user_id), photo_id)
        data = self.store.get(path)
        if data is None:
            raise NotFound("Photo not found")
        self.store.delete(path)
        if data.get("imageUrl"):
            self.blobs.remove(data["imageUrl"])
        self.logger.info(f"Photo review {photo_id} deleted by {user_id}")
