"""UniqueFilms: movie discovery, saved-movie archive and reviews over TMDb."""
from .errors import NetworkError, NotFound, StoreError, Unauthenticated, UniqueFilmsError, ValidationError
from .projector import ArchiveProjector
from .store import SERVER_TIMESTAMP, DocumentStore
from .sync import FavoritesSynchronizer
from .tmdb import CatalogClient

__all__ = [
    "ArchiveProjector",
    "CatalogClient",
    "DocumentStore",
    "FavoritesSynchronizer",
    "NetworkError",
    "NotFound",
    "SERVER_TIMESTAMP",
    "StoreError",
    "Unauthenticated",
    "UniqueFilmsError",
    "ValidationError",
]
