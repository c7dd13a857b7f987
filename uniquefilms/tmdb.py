from __future__ import annotations

import logging
import os
from typing import Any, Dict, Iterable, List

import requests

from .errors import NetworkError
from .models import MovieDetail, MovieSummary

TMDB_BASE = "https://api.themoviedb.org/3"
IMAGE_BASE = "https://image.tmdb.org/t/p"

DISCOVER_POLICY: Dict[str, Any] = {
    "sort_by": "vote_average.desc",
    "vote_count_gte": 50,
    "vote_count_lte": 1000,
    "page": 1,
}

logger = logging.getLogger(__name__)


class CatalogClient:
    """
    Read-only client for the TMDb catalog.

    Every call goes to the network: there is no cache, no retry and no
    pagination past the first page. Any transport failure or non-2xx
    response is raised as NetworkError.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = TMDB_BASE,
        image_base: str = IMAGE_BASE,
        language: str | None = "en-US",
        timeout: float = 20,
        discover_policy: Dict[str, Any] | None = None,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key or os.getenv("TMDB_API_KEY")
        if not self.api_key:
            raise RuntimeError("TMDB_API_KEY is required. Put it in your environment or .env file.")
        self.base_url = base_url.rstrip("/")
        self.image_base = image_base.rstrip("/")
        self.language = language
        self.timeout = timeout
        self.discover_policy = {**DISCOVER_POLICY, **(discover_policy or {})}
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: dict, session: requests.Session | None = None) -> "CatalogClient":
        catalog = config.get("catalog", {})
        return cls(
            api_key=catalog.get("api_key"),
            base_url=catalog.get("base_url", TMDB_BASE),
            image_base=catalog.get("image_base", IMAGE_BASE),
            language=catalog.get("language"),
            timeout=catalog.get("timeout", 20),
            discover_policy=catalog.get("discover"),
            session=session,
        )

    def _get(self, path: str, params: Dict[str, Any] | None = None) -> Dict[str, Any]:
        params = {**(params or {}), "api_key": self.api_key}
        if self.language:
            params.setdefault("language", self.language)
        url = f"{self.base_url}{path}"
        try:
            r = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            logger.warning(f"Catalog request to {path} failed: {exc}")
            raise NetworkError(f"Catalog request failed: {exc}") from exc
        if not r.ok:
            logger.warning(f"Catalog request to {path} returned HTTP {r.status_code}")
            raise NetworkError(f"Catalog returned HTTP {r.status_code}", status=r.status_code)
        try:
            return r.json()
        except ValueError as exc:
            raise NetworkError(f"Catalog returned invalid JSON for {path}") from exc

    # ----- public helpers -----
    def discover(self, genre_ids: Iterable[int], filters: Dict[str, Any] | None = None) -> List[MovieSummary]:
        """Highest-rated movies in any of ``genre_ids``, first page only."""
        policy = {**self.discover_policy, **(filters or {})}
        params: Dict[str, Any] = {
            "sort_by": policy["sort_by"],
            "vote_count.gte": policy["vote_count_gte"],
            "vote_count.lte": policy["vote_count_lte"],
            "page": policy.get("page", 1),
        }
        genres = sorted({int(g) for g in genre_ids or []})
        if genres:
            # TMDb treats a pipe as OR; the mobile client asked for any matching genre
            params["with_genres"] = "|".join(str(g) for g in genres)
        data = self._get("/discover/movie", params)
        return [self.normalize(r) for r in data.get("results", [])]

    def get_details(self, movie_id: int | str) -> MovieDetail:
        data = self._get(f"/movie/{movie_id}")
        return MovieDetail.from_tmdb(data)

    def poster_url(self, poster_path: str | None, size: str = "w500") -> str | None:
        if not poster_path:
            return None
        return f"{self.image_base}/{size}{poster_path}"

    @staticmethod
    def normalize(item: Dict[str, Any]) -> MovieSummary:
        return MovieSummary.from_tmdb(item)
