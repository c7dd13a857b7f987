# Flask application factory for the UniqueFilms HTTP API. `run_server.py`
# and the tests build the app through `create_app`, optionally injecting a
# prepared service graph (store, catalog, blob storage) instead of the one
# described by config.yaml.
from __future__ import annotations

from flask import Flask

from uniquefilms.config import load_config
from uniquefilms.logging_setup import setup_logging
from uniquefilms.services import Services, build_services

from .routes import bp


def create_app(config: dict | None = None, services: Services | None = None) -> Flask:
    config = config or load_config()
    setup_logging(config)

    app = Flask(__name__)
    app.config["UNIQUEFILMS"] = config
    app.services = services or build_services(config)
    app.register_blueprint(bp)
    return app
