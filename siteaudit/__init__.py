# siteaudit/__init__.py
"""
App factory for the SiteAudit service.

    - CORS origins read from CORS_ORIGINS env var (localhost in dev)
    - One AuditRegistry (cache + circuit breakers) per app
    - JSON error bodies: tracebacks never reach the caller
"""

from __future__ import annotations

import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .audit import audit_bp
from .extensions import init_extensions

error_logger = logging.getLogger("siteaudit.errors")

DEV_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


def _configure_logging(app: Flask, production: bool) -> None:
    level = logging.INFO if production else logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)-7s [%(name)s] %(message)s")
    app.logger.setLevel(level)
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def create_app() -> Flask:
    app = Flask(__name__)

    cors_env = os.getenv("CORS_ORIGINS", "")
    origins = [o.strip() for o in cors_env.split(",") if o.strip()] or DEV_ORIGINS
    # Production deployments are the ones that whitelist https origins
    _configure_logging(app, production=cors_env.startswith("https://"))

    CORS(app, resources={r"/*": {"origins": origins, "methods": ["GET", "POST", "OPTIONS"]}})
    init_extensions(app)
    app.register_blueprint(audit_bp)

    @app.errorhandler(HTTPException)
    def http_error(e: HTTPException):
        if e.code and e.code >= 500:
            error_logger.error("%s %s", e.code, e.name, exc_info=getattr(e, "original_exception", None))
            return jsonify(error="Internal server error", message="An unexpected error occurred."), e.code
        return jsonify(error=e.name.capitalize(), message=e.description), e.code

    @app.get("/health")
    def health():
        return jsonify(status="up and running"), 200

    return app
