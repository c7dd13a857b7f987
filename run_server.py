import logging
import os
import sys

ROOT = os.path.dirname(os.path.abspath(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from server import create_app  # noqa: E402

app = create_app()
logger = logging.getLogger("uniquefilms.server")

if __name__ == "__main__":
    host = os.getenv("APP_HOST", "127.0.0.1")
    port = int(os.getenv("APP_PORT", "5000"))
    logger.info(f"Starting UniqueFilms API on {host}:{port}")
    # One process only: listeners and the sqlite connection are per-process
    app.run(host=host, port=port, debug=False, use_reloader=False)
