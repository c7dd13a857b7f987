from __future__ import annotations

import pytest

from uniquefilms.config import load_config


def test_defaults_and_env_override(tmp_path, monkeypatch):
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text("catalog:\n  timeout: 5\n  discover:\n    vote_count_gte: 10\n")
    monkeypatch.setenv("TMDB_API_KEY", "from-env")
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "x.db"))

    config = load_config(cfg_file)

    assert config["catalog"]["timeout"] == 5
    assert config["catalog"]["api_key"] == "from-env"
    assert config["catalog"]["discover"]["vote_count_gte"] == 10
    assert config["catalog"]["discover"]["vote_count_lte"] == 1000
    assert config["database"]["path"] == str(tmp_path / "x.db")


def test_missing_explicit_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")
