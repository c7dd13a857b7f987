# UniqueFilms test fixtures
from __future__ import annotations

import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from uniquefilms.errors import NetworkError
from uniquefilms.models import MovieDetail, MovieSummary
from uniquefilms.photos import BlobStorage
from uniquefilms.services import build_services
from uniquefilms.store import DocumentStore

MOVIE_42 = {
    "id": "42",
    "title": "X",
    "overview": "A film about the answer.",
    "poster_path": "/x.jpg",
    "vote_average": 7.5,
    "release_date": "2001-01-01",
}


class FakeCatalog:
    """Stands in for CatalogClient; records calls and can be told to fail."""

    def __init__(self, movies: list[dict] | None = None):
        self.movies = [MovieSummary.from_tmdb(m) for m in (movies or [MOVIE_42])]
        self.fail = False
        self.discover_calls: list[list[int]] = []
        self.detail_calls: list[str] = []

    def discover(self, genre_ids, filters=None):
        self.discover_calls.append(sorted(genre_ids))
        if self.fail:
            raise NetworkError("Catalog returned HTTP 500", status=500)
        return list(self.movies)

    def get_details(self, movie_id):
        self.detail_calls.append(str(movie_id))
        if self.fail:
            raise NetworkError("Catalog returned HTTP 500", status=500)
        for m in self.movies:
            if m.id == str(movie_id):
                return MovieDetail(**vars(m), runtime=101)
        raise NetworkError("Catalog returned HTTP 404", status=404)


@pytest.fixture()
def store(tmp_path: Path) -> DocumentStore:
    s = DocumentStore(str(tmp_path / "test.db"))
    yield s
    s.close()


@pytest.fixture()
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture()
def config(tmp_path: Path) -> dict:
    return {
        "catalog": {"api_key": None},
        "database": {"path": str(tmp_path / "app.db")},
        "storage": {"upload_dir": str(tmp_path / "photos"), "base_url": "/api/images"},
        "logging": {"level": "WARNING", "file": None},
    }


@pytest.fixture()
def services(config: dict, store: DocumentStore, catalog: FakeCatalog, tmp_path: Path):
    blobs = BlobStorage(tmp_path / "photos")
    return build_services(config, store=store, catalog=catalog, blobs=blobs)


@pytest.fixture()
def app(config: dict, services):
    from server import create_app

    flask_app = create_app(config, services=services)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def signed_up(client) -> dict:
    resp = client.post("/api/signup", json={"email": "ana@example.com", "password": "secret1", "displayName": "Ana"})
    assert resp.status_code == 201
    body = resp.get_json()
    return {"uid": body["user"]["uid"], "headers": {"Authorization": f"Bearer {body['token']}"}}
