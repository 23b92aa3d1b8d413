"""Flask application factory for the media backend."""

from __future__ import annotations

import atexit
import logging
import sys

from flask import Flask
from flask_cors import CORS

from .config import Config
from .routes import requests_bp
from .services import RuntimeHost

logger = logging.getLogger(__name__)


def create_app(config: Config | None = None) -> Flask:
    """Create and configure the Flask application."""
    if config is None:
        config = Config.load()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    app = Flask(__name__)
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    host = RuntimeHost(config)
    host.start()
    atexit.register(host.shutdown)

    app.config["runtime_host"] = host
    app.config["MAX_CONTENT_LENGTH"] = config.max_upload_bytes

    app.register_blueprint(requests_bp)

    @app.get("/health")
    def health():
        return {"status": "ok" if host.running else "down"}

    logger.info("Media backend initialized")
    return app


def main() -> None:
    """Entry point for running the development server."""
    app = create_app()
    app.run(host="0.0.0.0", port=5001, debug=True, use_reloader=False)


if __name__ == "__main__":
    main()
