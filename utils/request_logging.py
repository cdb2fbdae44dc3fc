"""
Request Logging Middleware
Logs all API requests with performance tracking
"""

import time
import logging
from flask import request, g

from utils.monitoring import track_request

logger = logging.getLogger(__name__)


def log_request_info():
    """Log incoming request information"""
    g.start_time = time.time()

    logger.info(
        f"Request received: {request.method} {request.path}",
        extra={
            "method": request.method,
            "path": request.path,
            "remote_addr": request.remote_addr,
            "content_type": request.content_type,
            "content_length": request.content_length
        }
    )


def log_response_info(response):
    """Log response information, record metrics and add the timing header"""
    if hasattr(g, 'start_time'):
        duration = time.time() - g.start_time

        logger.info(
            f"Request completed: {request.method} {request.path} -> {response.status_code}",
            extra={
                "method": request.method,
                "path": request.path,
                "status_code": response.status_code,
                "duration_ms": round(duration * 1000, 2),
            }
        )

        endpoint = request.url_rule.rule if request.url_rule else request.path
        track_request(request.method, endpoint, response.status_code, duration)
        response.headers["X-Response-Time"] = f"{duration:.3f}s"

    return response


def register_request_logging(app):
    """Register request logging middleware with Flask app"""
    app.before_request(log_request_info)
    app.after_request(log_response_info)
