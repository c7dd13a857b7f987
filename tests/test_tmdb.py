from __future__ import annotations

from unittest.mock import MagicMock, Mock

import pytest
import requests

from uniquefilms.errors import NetworkError
from uniquefilms.tmdb import CatalogClient


def _response(status: int = 200, payload: dict | None = None) -> Mock:
    resp = Mock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.json.return_value = payload or {}
    return resp


def _client(resp: Mock | None = None, exc: Exception | None = None) -> tuple[CatalogClient, MagicMock]:
    session = MagicMock()
    if exc is not None:
        session.get.side_effect = exc
    else:
        session.get.return_value = resp
    return CatalogClient(api_key="test-key", session=session), session


def test_discover_sends_fixed_policy():
    client, session = _client(_response(payload={"results": [
        {"id": 11, "title": "Star Wars", "vote_average": 8.2, "vote_count": 900, "genre_ids": [28, 12]},
        {"id": 12, "title": "Finding Nemo", "vote_average": 7.8},
    ]}))

    movies = client.discover({28})

    assert [m.id for m in movies] == ["11", "12"]
    assert movies[0].vote_average == 8.2
    assert movies[0].genre_ids == [28, 12]
    url = session.get.call_args.args[0]
    params = session.get.call_args.kwargs["params"]
    assert url == "https://api.themoviedb.org/3/discover/movie"
    assert params["api_key"] == "test-key"
    assert params["with_genres"] == "28"
    assert params["sort_by"] == "vote_average.desc"
    assert params["vote_count.gte"] == 50
    assert params["vote_count.lte"] == 1000
    assert params["page"] == 1


def test_discover_joins_several_genres():
    client, session = _client(_response(payload={"results": []}))
    assert client.discover([16, 12, 12]) == []
    assert session.get.call_args.kwargs["params"]["with_genres"] == "12|16"


def test_discover_non_200_raises_network_error():
    client, _ = _client(_response(status=401))
    movies = []
    with pytest.raises(NetworkError) as info:
        movies = client.discover({28})
    assert info.value.status == 401
    assert movies == []


def test_transport_failure_raises_network_error():
    client, _ = _client(exc=requests.exceptions.ConnectionError("offline"))
    with pytest.raises(NetworkError):
        client.get_details(42)


def test_every_call_hits_the_network():
    client, session = _client(_response(payload={"results": []}))
    client.discover({28})
    client.discover({28})
    assert session.get.call_count == 2


def test_get_details():
    client, session = _client(_response(payload={
        "id": 42,
        "title": "X",
        "overview": "Full overview",
        "runtime": 123,
        "vote_average": 7.5,
        "vote_count": 320,
        "genres": [{"id": 18, "name": "Drama"}],
    }))
    detail = client.get_details(42)
    assert session.get.call_args.args[0].endswith("/movie/42")
    assert detail.id == "42"
    assert detail.runtime == 123
    assert detail.vote_count == 320
    assert [g.name for g in detail.genres] == ["Drama"]


def test_api_key_required(monkeypatch):
    monkeypatch.delenv("TMDB_API_KEY", raising=False)
    with pytest.raises(RuntimeError):
        CatalogClient(api_key=None)


def test_poster_url():
    client, _ = _client(_response())
    assert client.poster_url("/x.jpg") == "https://image.tmdb.org/t/p/w500/x.jpg"
    assert client.poster_url(None) is None
