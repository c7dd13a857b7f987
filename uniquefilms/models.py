"""
Record types shared by the catalog client and the document-backed services.

Documents are stored with the field names the mobile client used
(`poster_path`, `addedAt`, `isOnboarded`, ...), so every record converts
to and from that document shape with `to_dict` / `from_dict`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

# TMDb genre ids offered during onboarding
GENRES: list[dict[str, Any]] = [
    {"id": 28, "name": "Action"},
    {"id": 12, "name": "Adventure"},
    {"id": 16, "name": "Animation"},
    {"id": 35, "name": "Comedy"},
    {"id": 80, "name": "Crime"},
    {"id": 99, "name": "Documentary"},
    {"id": 18, "name": "Drama"},
    {"id": 14, "name": "Fantasy"},
    {"id": 27, "name": "Horror"},
    {"id": 9648, "name": "Mystery"},
    {"id": 10749, "name": "Romance"},
    {"id": 878, "name": "Science Fiction"},
    {"id": 53, "name": "Thriller"},
]


def utc_now_iso() -> str:
    """Client-side ISO-8601 timestamp, millisecond precision, `Z` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (with or without `Z`) into an aware datetime."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _float(value: Any) -> float:
    try:
        return float(value or 0.0)
    except (TypeError, ValueError):
        return 0.0


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


@dataclass
class Genre:
    id: int
    name: str

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Genre":
        return cls(id=int(data["id"]), name=str(data.get("name") or ""))


@dataclass
class MovieSummary:
    id: str
    title: str
    overview: str = ""
    poster_path: str | None = None
    backdrop_path: str | None = None
    vote_average: float = 0.0
    vote_count: int = 0
    release_date: str | None = None
    genre_ids: list[int] = field(default_factory=list)

    @classmethod
    def from_tmdb(cls, item: Mapping[str, Any]) -> "MovieSummary":
        return cls(
            id=str(item.get("id")),
            title=item.get("title") or item.get("name") or "Untitled",
            overview=item.get("overview") or "",
            poster_path=item.get("poster_path"),
            backdrop_path=item.get("backdrop_path"),
            vote_average=_float(item.get("vote_average")),
            vote_count=_int(item.get("vote_count")),
            release_date=item.get("release_date") or None,
            genre_ids=[int(g) for g in item.get("genre_ids") or []],
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "overview": self.overview,
            "poster_path": self.poster_path,
            "backdrop_path": self.backdrop_path,
            "vote_average": self.vote_average,
            "vote_count": self.vote_count,
            "release_date": self.release_date,
            "genre_ids": list(self.genre_ids),
        }


@dataclass
class MovieDetail(MovieSummary):
    runtime: int | None = None
    tagline: str | None = None
    genres: list[Genre] = field(default_factory=list)

    @classmethod
    def from_tmdb(cls, item: Mapping[str, Any]) -> "MovieDetail":
        base = MovieSummary.from_tmdb(item)
        genres = [Genre.from_dict(g) for g in item.get("genres") or [] if g.get("id") is not None]
        runtime = item.get("runtime")
        return cls(
            **vars(base),
            runtime=int(runtime) if runtime else None,
            tagline=item.get("tagline") or None,
            genres=genres,
        )

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update(
            {
                "runtime": self.runtime,
                "tagline": self.tagline,
                "genres": [g.to_dict() for g in self.genres],
            }
        )
        return data


@dataclass
class ArchiveEntry:
    """Denormalized snapshot of a saved movie, one document per (user, movie)."""

    id: str
    title: str
    overview: str
    poster_path: str | None
    vote_average: float
    release_date: str | None
    added_at: str

    @classmethod
    def from_movie(cls, movie: Any, added_at: str | None = None) -> "ArchiveEntry":
        """Snapshot a movie record (mapping or MovieSummary) with a client timestamp."""
        data = movie.to_dict() if hasattr(movie, "to_dict") else dict(movie)
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "Untitled",
            overview=data.get("overview") or "",
            poster_path=data.get("poster_path"),
            vote_average=_float(data.get("vote_average")),
            release_date=data.get("release_date"),
            added_at=added_at or utc_now_iso(),
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], doc_id: str | None = None) -> "ArchiveEntry":
        return cls(
            id=str(data.get("id") or doc_id),
            title=data.get("title") or "Untitled",
            overview=data.get("overview") or "",
            poster_path=data.get("poster_path"),
            vote_average=_float(data.get("vote_average")),
            release_date=data.get("release_date"),
            added_at=data.get("addedAt") or "",
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "overview": self.overview,
            "poster_path": self.poster_path,
            "vote_average": self.vote_average,
            "release_date": self.release_date,
            "addedAt": self.added_at,
        }


@dataclass
class UserProfile:
    uid: str
    email: str
    display_name: str | None = None
    preferred_genre: Genre | None = None
    is_onboarded: bool = False
    created_at: str | None = None
    onboarded_at: str | None = None

    @classmethod
    def from_dict(cls, uid: str, data: Mapping[str, Any]) -> "UserProfile":
        genre = data.get("preferredGenre")
        return cls(
            uid=uid,
            email=data.get("email") or "",
            display_name=data.get("displayName"),
            preferred_genre=Genre.from_dict(genre) if genre else None,
            is_onboarded=data.get("isOnboarded") is True,
            created_at=data.get("createdAt"),
            onboarded_at=data.get("onboardedAt"),
        )

    def to_dict(self) -> dict:
        return {
            "uid": self.uid,
            "email": self.email,
            "displayName": self.display_name,
            "preferredGenre": self.preferred_genre.to_dict() if self.preferred_genre else None,
            "isOnboarded": self.is_onboarded,
            "createdAt": self.created_at,
            "onboardedAt": self.onboarded_at,
        }


@dataclass
class TextReview:
    id: str
    user_id: str
    user_name: str
    movie_id: str
    rating: int
    review: str
    movie_title: str | None = None
    movie_poster: str | None = None
    helpful: int = 0
    unhelpful: int = 0
    created_at: str | None = None

    @classmethod
    def from_dict(cls, doc_id: str, data: Mapping[str, Any]) -> "TextReview":
        return cls(
            id=doc_id,
            user_id=data.get("userId") or "",
            user_name=data.get("userName") or "Anonymous User",
            movie_id=str(data.get("movieId") or ""),
            rating=_int(data.get("rating")),
            review=data.get("review") or "",
            movie_title=data.get("movieTitle"),
            movie_poster=data.get("moviePoster"),
            helpful=_int(data.get("helpful")),
            unhelpful=_int(data.get("unhelpful")),
            created_at=data.get("createdAt"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "userName": self.user_name,
            "movieId": self.movie_id,
            "movieTitle": self.movie_title,
            "moviePoster": self.movie_poster,
            "rating": self.rating,
            "review": self.review,
            "helpful": self.helpful,
            "unhelpful": self.unhelpful,
            "createdAt": self.created_at,
        }


@dataclass
class PhotoReview:
    id: str
    user_id: str
    image_url: str
    created_at: str | None = None
    type: str = "review"

    @classmethod
    def from_dict(cls, doc_id: str, data: Mapping[str, Any]) -> "PhotoReview":
        return cls(
            id=doc_id,
            user_id=data.get("userId") or "",
            image_url=data.get("imageUrl") or "",
            created_at=data.get("createdAt"),
            type=data.get("type") or "review",
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "imageUrl": self.image_url,
            "createdAt": self.created_at,
            "type": self.type,
        }
