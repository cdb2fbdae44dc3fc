"""
Invoice / Payment Reconciliation Service
Flask application: upload two ledgers, get matched and unmatched records back.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from flask import Flask, request, jsonify
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from config import (
    ALLOWED_ORIGINS,
    CORS_ENABLED,
    DEFAULT_RATE_LIMIT,
    FLASK_DEBUG,
    FLASK_HOST,
    FLASK_PORT,
    MAX_FILE_SIZE_BYTES,
    RATE_LIMITS,
    RECONCILE_TIME_WINDOW_HOURS,
)
from api.reconciliation_api import register_reconciliation_api
from utils.error_handlers import register_error_handlers
from utils.logger import StructuredLogger, configure_logging
from utils.monitoring import register_monitoring_routes
from utils.request_logging import register_request_logging

logger = StructuredLogger("invoice_payment_recon")


def _add_security_headers(response):
    """Add security headers and CORS support."""
    if CORS_ENABLED:
        origin = request.headers.get("Origin")
        if origin and (origin in ALLOWED_ORIGINS or "*" in ALLOWED_ORIGINS):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


def create_app(config_overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """
    Build the Flask application.

    Args:
        config_overrides: Flask config values applied before extensions initialise
            (e.g. {"TESTING": True, "RATELIMIT_ENABLED": False})
    """
    configure_logging()

    app = Flask(__name__)
    # Invoices and payments are uploaded together
    app.config["MAX_CONTENT_LENGTH"] = 2 * MAX_FILE_SIZE_BYTES
    if config_overrides:
        app.config.update(config_overrides)

    # Attach a rate limiter to the app (protects all routes by default)
    limiter = Limiter(
        get_remote_address,
        app=app,
        default_limits=[DEFAULT_RATE_LIMIT],
    )
    # Route decorators hold the limiter weakly; the app keeps it alive
    app.limiter = limiter

    register_error_handlers(app)
    register_request_logging(app)
    register_monitoring_routes(app)
    app.after_request(_add_security_headers)

    @app.route("/api/health", methods=["GET"])
    @limiter.limit(RATE_LIMITS.get("/api/health", "120 per minute"))
    def api_health():
        """Health check endpoint"""
        return jsonify({
            "status": "ok",
            "message": "Server is running",
            "timestamp": datetime.now().isoformat(),
            "time_window_hours": RECONCILE_TIME_WINDOW_HOURS,
        })

    register_reconciliation_api(app, limiter)

    logger.info("Application initialised", context={"routes": len(list(app.url_map.iter_rules()))})
    return app


if __name__ == "__main__":
    create_app().run(host=FLASK_HOST, port=FLASK_PORT, debug=FLASK_DEBUG)
