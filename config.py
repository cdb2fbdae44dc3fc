"""
Configuration Management
Centralized configuration for the reconciliation service
"""

import os
from dotenv import load_dotenv

load_dotenv()

# === Matching Configuration ===
# Maximum distance between invoice timestamp and payment date for an exact match
RECONCILE_TIME_WINDOW_HOURS = float(os.environ.get("RECONCILE_TIME_WINDOW_HOURS", "6"))

# === Upload Limits ===
MAX_CSV_ROWS = int(os.environ.get("MAX_CSV_ROWS", "50000"))
MAX_EXCEL_ROWS = int(os.environ.get("MAX_EXCEL_ROWS", "50000"))

MAX_FILE_SIZE_MB = int(os.environ.get("MAX_FILE_SIZE_MB", "100"))  # 100 MB default
MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024

# === File Type Validation ===
ALLOWED_EXTENSIONS = {".csv", ".xlsx"}

# === Export Configuration ===
PDF_MAX_ROWS = int(os.environ.get("PDF_MAX_ROWS", "500"))

# === Rate Limiting ===
DEFAULT_RATE_LIMIT = os.environ.get("RATE_LIMIT", "30 per minute")

RATE_LIMITS = {
    "/api/reconcile": "10 per minute",
    "/api/reconcile/export": "20 per minute",
    "/api/reconcile/async": "10 per minute",
    "/api/tasks/<task_id>": "60 per minute",
    "/api/health": "120 per minute",
}

# === Security Configuration ===
ALLOWED_ORIGINS = os.environ.get("ALLOWED_ORIGINS", "*").split(",")
CORS_ENABLED = os.environ.get("CORS_ENABLED", "1") == "1"

# === Logging ===
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# === Flask Configuration ===
FLASK_DEBUG = os.environ.get("FLASK_DEBUG", "0") == "1"
FLASK_HOST = os.environ.get("FLASK_HOST", "0.0.0.0")
FLASK_PORT = int(os.environ.get("FLASK_PORT", "5001"))

# === Redis Configuration (for Celery) ===
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
