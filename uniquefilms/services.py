from __future__ import annotations

import logging
from dataclasses import dataclass

from .auth import AuthService
from .photos import BlobStorage, PhotoReviewService
from .projector import ArchiveProjector
from .reviews import ReviewService
from .store import DocumentStore
from .sync import FavoritesSynchronizer
from .tmdb import CatalogClient
from .users import ProfileService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Every collaborator the HTTP layer needs, wired to one store."""

    store: DocumentStore
    catalog: CatalogClient | None
    auth: AuthService
    profiles: ProfileService
    favorites: FavoritesSynchronizer
    projector: ArchiveProjector
    reviews: ReviewService
    photos: PhotoReviewService
    blobs: BlobStorage


def build_services(
    config: dict,
    store: DocumentStore | None = None,
    catalog: CatalogClient | None = None,
    blobs: BlobStorage | None = None,
) -> Services:
    """Create the service graph from config; any collaborator can be passed in instead."""
    if store is None:
        store = DocumentStore(config["database"]["path"])
    if catalog is None:
        if config.get("catalog", {}).get("api_key"):
            catalog = CatalogClient.from_config(config)
        else:
            logger.warning("TMDB_API_KEY is not set; catalog endpoints will fail")
    if blobs is None:
        storage = config.get("storage", {})
        blobs = BlobStorage(
            storage["upload_dir"],
            base_url=storage.get("base_url", "/api/images"),
            allowed_extensions=storage.get("allowed_extensions"),
        )
    return Services(
        store=store,
        catalog=catalog,
        auth=AuthService(store),
        profiles=ProfileService(store),
        favorites=FavoritesSynchronizer(store),
        projector=ArchiveProjector(store),
        reviews=ReviewService(store, catalog),
        photos=PhotoReviewService(store, blobs),
        blobs=blobs,
    )
