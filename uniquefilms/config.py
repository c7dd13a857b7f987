"""
Configuration loading for the UniqueFilms service.

Values come from a YAML file, are filled in from DEFAULTS for anything the
file leaves out, and finally overridden by environment variables (a local
.env file is honoured).
"""
from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config.yaml"

DEFAULTS: dict[str, Any] = {
    "catalog": {
        "base_url": "https://api.themoviedb.org/3",
        "image_base": "https://image.tmdb.org/t/p",
        "language": "en-US",
        "timeout": 20,
        "api_key": None,
        "discover": {
            "sort_by": "vote_average.desc",
            "vote_count_gte": 50,
            "vote_count_lte": 1000,
            "page": 1,
        },
    },
    "database": {"path": "uniquefilms.db"},
    "storage": {
        "upload_dir": "photos",
        "base_url": "/api/images",
        "allowed_extensions": ["png", "jpg", "jpeg", "gif", "webp"],
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "max_bytes": 10485760,
        "backup_count": 5,
    },
}

ENV_OVERRIDES = {
    "TMDB_API_KEY": ("catalog", "api_key"),
    "DATABASE_PATH": ("database", "path"),
    "UPLOAD_DIR": ("storage", "upload_dir"),
    "LOG_LEVEL": ("logging", "level"),
}


def _merge(base: dict, override: dict) -> dict:
    out = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def _resolve(path_value: str | None) -> str | None:
    """Make relative paths relative to the project root."""
    if not path_value or path_value == ":memory:" or os.path.isabs(path_value):
        return path_value
    return str(PROJECT_ROOT / path_value)


def load_config(config_path: str | os.PathLike | None = None) -> dict:
    """Load configuration from YAML, apply defaults and environment overrides."""
    load_dotenv()

    config_file = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    data: dict = {}
    if config_file.exists():
        with open(config_file, "r") as f:
            data = yaml.safe_load(f) or {}
    elif config_path:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    config = _merge(DEFAULTS, data)

    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            config[section][key] = value

    config["database"]["path"] = _resolve(config["database"]["path"])
    config["storage"]["upload_dir"] = _resolve(config["storage"]["upload_dir"])
    if config["logging"].get("file"):
        config["logging"]["file"] = _resolve(config["logging"]["file"])
    return config
