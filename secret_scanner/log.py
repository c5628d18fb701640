"""
Logging setup: plain text or one-JSON-object-per-line output.
"""
import json
import logging
import sys
from datetime import datetime, timezone

PACKAGE_LOGGER = "secret_scanner"


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Fields passed through extra=
        if hasattr(record, 'scan_root'):
            log_data["scan_root"] = str(record.scan_root)
        if hasattr(record, 'file_path'):
            log_data["file_path"] = str(record.file_path)
        if hasattr(record, 'finding_count'):
            log_data["finding_count"] = record.finding_count

        return json.dumps(log_data)


def setup_logging(log_format: str = "text", verbose: bool = False) -> logging.Logger:
    """
    Configure the package logger with either text or JSON output.

    Args:
        log_format: "text" or "json"
        verbose: Enable DEBUG level output

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)

    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))

    logger.addHandler(handler)
    logger.propagate = False
    return logger
