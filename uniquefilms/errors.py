from __future__ import annotations


class UniqueFilmsError(Exception):
    """Base class for every error a service raises to its caller."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class Unauthenticated(UniqueFilmsError):
    """No session is present for a user-scoped operation."""

    status_code = 401


class NetworkError(UniqueFilmsError):
    """Catalog fetch failed or returned a non-2xx status."""

    status_code = 502

    def __init__(self, message: str = "", status: int | None = None):
        super().__init__(message)
        self.status = status


class StoreError(UniqueFilmsError):
    """Document read, write or listener failure."""

    status_code = 500


class PermissionDenied(StoreError):
    status_code = 403


class ValidationError(UniqueFilmsError):
    status_code = 400


class NotFound(UniqueFilmsError):
    status_code = 404
