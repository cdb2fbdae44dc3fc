"""
Error Handling
Structured JSON error responses for the reconciliation API
"""

from flask import jsonify
from typing import Dict, Any, Optional
import logging

from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception class for API errors"""
    status_code = 500
    message = "An error occurred"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None,
                 error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.status_code = status_code or self.status_code
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response"""
        return {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details
        }


class ValidationError(APIError):
    """Validation error (400)"""
    status_code = 400
    message = "Validation error"


class PayloadTooLargeError(APIError):
    """Upload exceeds the configured size (413)"""
    status_code = 413
    message = "Uploaded file is too large"


class ServiceUnavailableError(APIError):
    """Background worker or broker unreachable (503)"""
    status_code = 503
    message = "Service temporarily unavailable"


def _error_body(error_code: str, message: str, status_code: int) -> Dict[str, Any]:
    return {
        "error": True,
        "error_code": error_code,
        "message": message,
        "status_code": status_code,
    }


def register_error_handlers(app):
    """Register error handlers with Flask app"""

    @app.errorhandler(APIError)
    def handle_api_error(error: APIError):
        """Handle custom API errors"""
        logger.warning(
            f"API Error: {error.error_code}: {error.message}",
            extra={
                "error_code": error.error_code,
                "status_code": error.status_code,
                "details": error.details
            }
        )
        response = jsonify(error.to_dict())
        response.status_code = error.status_code
        return response

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        """Handle werkzeug errors (404, 405, 413, 429, ...)"""
        error_code = (error.name or "HTTP_ERROR").upper().replace(" ", "_")
        return jsonify(_error_body(error_code, error.description, error.code)), error.code

    @app.errorhandler(Exception)
    def handle_generic_exception(error: Exception):
        """Handle all other exceptions"""
        logger.error(f"Unhandled exception: {str(error)}", exc_info=True)
        body = _error_body("INTERNAL_SERVER_ERROR", "An unexpected error occurred", 500)
        body["details"] = {"exception_type": type(error).__name__}
        return jsonify(body), 500
