from __future__ import annotations

import logging
import time
from pathlib import Path

from flask import Flask, g, jsonify, request, send_from_directory
from flask_cors import CORS

from backend.src import config
from backend.src.config import ConfigError
from backend.src.db import MongoStore, init_store
from backend.src.routes import collections_bp, lessons_bp, orders_bp

logger = logging.getLogger(__name__)
access_logger = logging.getLogger("backend.access")


def _register_access_log(app: Flask) -> None:
    @app.before_request
    def _start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def _log_request(response):
        started = g.get("request_started")
        elapsed_ms = (time.perf_counter() - started) * 1000 if started else 0.0
        access_logger.info(
            "%s %s %s %s %s - %.3f ms",
            request.remote_addr or "-",
            request.method,
            request.full_path.rstrip("?"),
            response.status_code,
            response.content_length or "-",
            elapsed_ms,
        )
        return response


def _register_static_routes(app: Flask, static_dir: Path) -> None:
    @app.get("/")
    def root():
        return send_from_directory(str(static_dir), "index.html")

    @app.get("/images", defaults={"filename": ""})
    @app.get("/images/<path:filename>")
    def images(filename: str):
        return send_from_directory(str(static_dir / "images"), filename)


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(404)
    @app.errorhandler(405)
    def not_found(exc):
        if request.path.split("/")[1] == "images":
            return jsonify({"error": "Image file not found"}), 404
        return "File not found!", 404, {"Content-Type": "text/plain; charset=utf-8"}


def create_app(store: MongoStore | None = None, static_dir: Path | None = None) -> Flask:
    """Build the Flask app around a store handle.

    Without an explicit store, one is built from the environment and its
    connection is opened in the background; requests that need the database
    are rejected until it is up.
    """

    static_dir = Path(static_dir or config.get_static_dir())
    app = Flask(__name__, static_folder=str(static_dir), static_url_path="/static")
    app.json.compact = False
    CORS(app)

    if store is None:
        store = MongoStore()
        store.connect_async()
    init_store(app, store)

    _register_access_log(app)
    _register_static_routes(app, static_dir)
    _register_error_handlers(app)

    app.register_blueprint(lessons_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(collections_bp)

    return app


if __name__ == "__main__":
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    try:
        port = config.get_port()
    except ConfigError as exc:
        logger.error("%s", exc)
        raise SystemExit(1)

    application = create_app()
    logger.info("App started on port: %s", port)
    application.run(host="0.0.0.0", port=port)
