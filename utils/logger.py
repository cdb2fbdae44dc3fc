"""
Structured Logging
Console logging with a pipe-separated format and optional context payloads
"""

import json
import logging
import sys
from typing import Any, Dict, Optional

from config import LOG_LEVEL

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Attach the console handler to the root logger once"""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))

    # Prevent duplicate handlers
    if any(getattr(handler, "_recon_console", False) for handler in root.handlers):
        return

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    console_handler._recon_console = True
    root.addHandler(console_handler)


class StructuredLogger:
    """
    Logger wrapper that appends a JSON context and error details to each message.
    """

    def __init__(self, name: str = "invoice_payment_recon"):
        self.logger = logging.getLogger(name)

    def _log(self, level: int, message: str, context: Optional[Dict[str, Any]] = None,
             error: Optional[Exception] = None):
        context_str = f" | Context: {json.dumps(context, default=str)}" if context else ""
        error_str = f" | Error: {type(error).__name__}: {str(error)}" if error else ""
        self.logger.log(level, f"{message}{context_str}{error_str}")

    def debug(self, message: str, context: Optional[Dict[str, Any]] = None):
        self._log(logging.DEBUG, message, context)

    def info(self, message: str, context: Optional[Dict[str, Any]] = None):
        self._log(logging.INFO, message, context)

    def warning(self, message: str, context: Optional[Dict[str, Any]] = None,
                error: Optional[Exception] = None):
        self._log(logging.WARNING, message, context, error)

    def error(self, message: str, context: Optional[Dict[str, Any]] = None,
              error: Optional[Exception] = None):
        self._log(logging.ERROR, message, context, error)
