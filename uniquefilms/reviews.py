from __future__ import annotations

import logging
from typing import Any, Mapping

from .errors import NetworkError, NotFound, PermissionDenied, Unauthenticated, ValidationError
from .models import TextReview
from .store import SERVER_TIMESTAMP, DocumentStore, document_path
from .tmdb import CatalogClient

REVIEWS_COLLECTION = "reviews"


def review_path(review_id: str) -> str:
    return document_path(REVIEWS_COLLECTION, review_id)


def _field(movie: Any, name: str) -> Any:
    if isinstance(movie, Mapping):
        return movie.get(name)
    return getattr(movie, name, None)


class ReviewService:
    """Text reviews with a 1-5 star rating, stored in the shared `reviews` collection."""

    def __init__(self, store: DocumentStore, catalog: CatalogClient | None = None):
        self.store = store
        self.catalog = catalog
        self.logger = logging.getLogger(__name__)

    def _load(self, review_id: str) -> TextReview:
        data = self.store.get(review_path(review_id))
        if data is None:
            raise NotFound("Review not found")
        return TextReview.from_dict(review_id, data)

    def submit_review(
        self,
        user_id: str | None,
        movie: Any,
        rating: Any,
        text: str,
        user_name: str | None = None,
    ) -> TextReview:
        if not user_id:
            raise Unauthenticated("You must be logged in to leave a review")
        if not movie or _field(movie, "id") is None:
            raise ValidationError("No movie selected for review")
        if rating is None or (isinstance(rating, str) and not rating.strip()):
            raise ValidationError("Please select a rating")
        if isinstance(rating, bool):
            raise ValidationError("Rating must be a whole number from 1 to 5")
        try:
            number = float(str(rating).strip())
        except ValueError:
            raise ValidationError("Rating must be a whole number from 1 to 5")
        if not number.is_integer():
            raise ValidationError("Rating must be a whole number from 1 to 5")
        rating_value = int(number)
        if not 1 <= rating_value <= 5:
            raise ValidationError("Rating must be a whole number from 1 to 5")
        body = (text or "").strip()
        if not body:
            raise ValidationError("Review text cannot be empty")

        review_id = self.store.add(
            REVIEWS_COLLECTION,
            {
                "userId": user_id,
                "userName": user_name or "Anonymous User",
                "movieId": str(_field(movie, "id")),
                "movieTitle": _field(movie, "title"),
                "moviePoster": _field(movie, "poster_path"),
                "rating": rating_value,
                "review": body,
                "helpful": 0,
                "unhelpful": 0,
                "createdAt": SERVER_TIMESTAMP,
            },
        )
        self.logger.info(f"Review {review_id} submitted by {user_id} for movie {_field(movie, 'id')}")
        return self._load(review_id)

    def list_movie_reviews(self, movie_id: Any) -> list[TextReview]:
        docs = self.store.query(
            REVIEWS_COLLECTION, where={"movieId": str(movie_id)}, order_by="createdAt", descending=True
        )
        return [TextReview.from_dict(d.id, d.data or {}) for d in docs]

    def list_user_reviews(self, user_id: str | None) -> list[TextReview]:
        """A user's reviews, newest first, with missing movie title/poster filled from the catalog."""
        if not user_id:
            raise Unauthenticated("You must be logged in to view your reviews")
        docs = self.store.query(
            REVIEWS_COLLECTION, where={"userId": user_id}, order_by="createdAt", descending=True
        )
        reviews = [TextReview.from_dict(d.id, d.data or {}) for d in docs]
        if self.catalog is None:
            return reviews
        for review in reviews:
            if review.movie_title and review.movie_poster:
                continue
            try:
                detail = self.catalog.get_details(review.movie_id)
            except NetworkError as exc:
                self.logger.warning(f"Could not fetch movie {review.movie_id} for review {review.id}: {exc}")
                continue
            review.movie_title = review.movie_title or detail.title
            review.movie_poster = review.movie_poster or detail.poster_path
        return reviews

    def delete_review(self, review_id: str, user_id: str | None) -> None:
        if not user_id:
            raise Unauthenticated("You must be logged in to delete a review")
        review = self._load(review_id)
        if review.user_id != user_id:
            raise PermissionDenied("You can only delete your own reviews")
        self.store.delete(review_path(review_id))
        self.logger.info(f"Review {review_id} deleted by {user_id}")

    def vote(self, review_id: str, helpful: bool = True) -> TextReview:
        """Count a helpful/unhelpful vote with the store's atomic increment."""
        field = "helpful" if helpful else "unhelpful"
        self.store.increment(review_path(review_id), field)
        return self._load(review_id)
