# /server/routes.py
from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request, send_from_directory

from uniquefilms.auth import AuthUser
from uniquefilms.errors import NetworkError, NotFound, Unauthenticated, UniqueFilmsError, ValidationError
from uniquefilms.models import GENRES
from uniquefilms.services import Services

bp = Blueprint("api", __name__, url_prefix="/api")
logger = logging.getLogger("uniquefilms.server")


def _services() -> Services:
    return current_app.services


def _catalog():
    catalog = _services().catalog
    if catalog is None:
        raise NetworkError("Catalog API key is not configured")
    return catalog


def _get_current_user() -> AuthUser | None:
    """
    Resolve the caller from the Authorization header.
    Expects "Bearer uid:email"; returns None when absent or unknown.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[7:]
    if ":" not in token:
        return None
    uid, email = token.split(":", 1)
    return _services().auth.verify(uid.strip(), email.strip())


def _require_user() -> AuthUser:
    user = _get_current_user()
    if user is None:
        raise Unauthenticated("Authentication required")
    return user


def _token(user: AuthUser) -> str:
    return f"{user.uid}:{user.email}"


def _payload() -> dict:
    return request.get_json(force=True, silent=True) or {}


def _parse_genres(raw: str | None) -> list[int]:
    if not raw:
        return []
    try:
        return [int(part) for part in raw.replace("|", ",").split(",") if part.strip()]
    except ValueError:
        raise ValidationError("genres must be a comma-separated list of integers")


@bp.app_errorhandler(UniqueFilmsError)
def handle_error(exc: UniqueFilmsError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.path} rejected: {exc.message}")
    return jsonify({"ok": False, "error": exc.message}), exc.status_code


@bp.get("/health")
def health():
    # Touch the store so a broken database shows up as a failure here
    _services().store.get("health/ping")
    return jsonify({"ok": True, "status": "healthy"})


@bp.get("/genres")
def genres():
    return jsonify({"ok": True, "genres": GENRES})


# ----- accounts -----
@bp.post("/signup")
def signup():
    data = _payload()
    services = _services()
    user = services.auth.create_account(data.get("email", ""), data.get("password", ""))
    services.profiles.create_profile(user.uid, user.email)
    display_name = (data.get("displayName") or "").strip()
    if display_name:
        services.profiles.update_display_name(user.uid, display_name)
        user = services.auth.update_display_name(user, display_name)
    return jsonify({"ok": True, "user": user.to_dict(), "token": _token(user), "isOnboarded": False}), 201


@bp.post("/login")
def login():
    data = _payload()
    services = _services()
    user = services.auth.authenticate(data.get("email", ""), data.get("password", ""))
    try:
        onboarded = services.profiles.get_profile(user.uid).is_onboarded
    except NotFound:
        onboarded = False
    return jsonify({"ok": True, "user": user.to_dict(), "token": _token(user), "isOnboarded": onboarded})


@bp.post("/logout")
def logout():
    """
    No-op kept for client symmetry. The API is stateless: bearer tokens are
    checked per request and nothing server-side is cleared here.
    """
    return jsonify({"ok": True})


@bp.get("/user/profile")
def get_profile():
    user = _require_user()
    services = _services()
    profile = services.profiles.get_profile(user.uid)
    favorites = services.favorites.load_favorites(user.uid)
    return jsonify({"ok": True, "profile": profile.to_dict(), "savedCount": len(favorites)})


@bp.put("/user/profile")
def update_profile():
    user = _require_user()
    services = _services()
    name = _payload().get("displayName", "")
    profile = services.profiles.update_display_name(user.uid, name)
    services.auth.update_display_name(user, name)
    return jsonify({"ok": True, "profile": profile.to_dict()})


@bp.post("/onboarding")
def onboarding():
    user = _require_user()
    profile = _services().profiles.complete_onboarding(user.uid, _payload().get("genre"))
    return jsonify({"ok": True, "profile": profile.to_dict()})


# ----- catalog -----
@bp.get("/discover")
def discover():
    """Top-rated movies for the requested genres, or the caller's preferred genre."""
    services = _services()
    user = _get_current_user()
    genre_ids = _parse_genres(request.args.get("genres"))
    if not genre_ids and user is not None:
        try:
            preferred = services.profiles.get_profile(user.uid).preferred_genre
        except NotFound:
            preferred = None
        if preferred is not None:
            genre_ids = [preferred.id]
    if not genre_ids:
        raise ValidationError("No genre preferences found")

    movies = _catalog().discover(genre_ids)
    saved = services.favorites.load_favorites(user.uid) if user else {}
    return jsonify({
        "ok": True,
        "genres": genre_ids,
        "results": [m.to_dict() | {"saved": bool(saved.get(m.id))} for m in movies],
    })


@bp.get("/movies/<int:movie_id>")
def movie_detail(movie_id: int):
    services = _services()
    user = _get_current_user()
    detail = _catalog().get_details(movie_id)
    saved = services.favorites.load_favorites(user.uid) if user else {}
    return jsonify({"ok": True, "movie": detail.to_dict(), "saved": bool(saved.get(detail.id))})


# ----- favorites / archive -----
@bp.get("/favorites")
def get_favorites():
    user = _require_user()
    return jsonify({"ok": True, "favorites": _services().favorites.load_favorites(user.uid)})


@bp.post("/favorites/toggle")
def toggle_favorite():
    """
    Toggle a movie in or out of the caller's archive.
    Body: { movie: {id, title, overview, poster_path, vote_average, release_date}, favorites?: {...} }
    When `favorites` is omitted the stored map is used as the current state.
    """
    user = _require_user()
    data = _payload()
    movie = data.get("movie") or {}
    if not isinstance(movie, dict):
        raise ValidationError("movie must be an object")
    if movie.get("id") is None:
        raise ValidationError("movie.id is required")
    sync = _services().favorites
    current = data.get("favorites")
    if not isinstance(current, dict):
        current = sync.load_favorites(user.uid)
    updated = sync.toggle_saved(movie, current, user.uid)
    return jsonify({"ok": True, "saved": sync.is_saved(updated, movie["id"]), "favorites": updated})


@bp.get("/archive")
def get_archive():
    user = _require_user()
    entries = _services().projector.latest(user.uid)
    return jsonify({"ok": True, "movies": [e.to_dict() for e in entries], "count": len(entries)})


@bp.delete("/archive/<movie_id>")
def remove_archive(movie_id: str):
    user = _require_user()
    sync = _services().favorites
    updated = sync.remove_from_archive({"id": movie_id}, sync.load_favorites(user.uid), user.uid)
    return jsonify({"ok": True, "favorites": updated})


# ----- reviews -----
@bp.get("/reviews")
def get_reviews():
    """Reviews for `movie_id`, or the caller's own reviews when no movie is given."""
    reviews = _services().reviews
    movie_id = request.args.get("movie_id")
    if movie_id:
        items = reviews.list_movie_reviews(movie_id)
    else:
        items = reviews.list_user_reviews(_require_user().uid)
    return jsonify({"ok": True, "reviews": [r.to_dict() for r in items], "count": len(items)})


@bp.post("/reviews")
def create_review():
    user = _require_user()
    services = _services()
    data = _payload()
    movie = data.get("movie")
    if movie and not isinstance(movie, dict):
        raise ValidationError("movie must be an object")
    if not movie and data.get("movie_id") is not None:
        movie = {"id": str(data["movie_id"])}
        if services.catalog is not None:
            movie = services.catalog.get_details(data["movie_id"])
    try:
        user_name = services.profiles.get_profile(user.uid).display_name
    except NotFound:
        user_name = None
    review = services.reviews.submit_review(
        user.uid, movie, data.get("rating"), data.get("review", ""), user_name=user_name or user.display_name
    )
    return jsonify({"ok": True, "review": review.to_dict()}), 201


@bp.delete("/reviews/<review_id>")
def delete_review(review_id: str):
    user = _require_user()
    _services().reviews.delete_review(review_id, user.uid)
    return jsonify({"ok": True, "message": "Review deleted successfully"})


@bp.post("/reviews/<review_id>/helpful")
def vote_review(review_id: str):
    _require_user()
    helpful = _payload().get("helpful", True) is not False
    review = _services().reviews.vote(review_id, helpful=helpful)
    return jsonify({"ok": True, "review": review.to_dict()})


# ----- photo reviews -----
@bp.get("/photos")
def list_photos():
    user = _require_user()
    photos = _services().photos.list_photos(user.uid)
    return jsonify({"ok": True, "photos": [p.to_dict() for p in photos]})


@bp.post("/photos")
def upload_photo():
    user = _require_user()
    if "file" not in request.files:
        raise ValidationError("No file provided")
    file = request.files["file"]
    if not file.filename:
        raise ValidationError("No file selected")
    photo = _services().photos.upload(user.uid, file.read(), file.filename)
    return jsonify({"ok": True, "photo": photo.to_dict()}), 201


@bp.delete("/photos/<photo_id>")
def delete_photo(photo_id: str):
    user = _require_user()
    _services().photos.delete(user.uid, photo_id)
    return jsonify({"ok": True, "message": "Photo deleted successfully"})


@bp.get("/images/<path:filename>")
def serve_image(filename: str):
    path = _services().blobs.resolve(filename)
    return send_from_directory(str(path.parent), path.name)


@bp.get("/__routes")
def list_routes():
    """Debug helper: list all registered URL rules."""
    rules = [r.rule for r in current_app.url_map.iter_rules()]
    return jsonify(sorted(rules))
