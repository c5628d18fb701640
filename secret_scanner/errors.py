"""
Exception taxonomy for the secret scanner.

Per-file failures (FileReadError, ParseError, TimeoutExceeded) are absorbed
at the single-file boundary. Catalog, configuration and scan-root failures
propagate to the caller.
"""
from typing import Optional


class ScannerError(Exception):
    """Base class for all scanner errors."""


class InvalidSignature(ScannerError, ValueError):
    """A signature failed validation during registration."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConfigurationError(ScannerError, ValueError):
    """Scan configuration is malformed or cannot be loaded."""


class ScanPathNotFound(ScannerError, FileNotFoundError):
    """The scan root does not exist."""

    def __init__(self, path):
        super().__init__(f"Path does not exist: {path}")
        self.path = path


class FileReadError(ScannerError, OSError):
    """A single file could not be stat'ed or read."""

    def __init__(self, path, cause: Optional[BaseException] = None):
        super().__init__(f"Cannot read {path}: {cause}")
        self.path = path
        self.cause = cause


class ParseError(ScannerError):
    """Source text could not be parsed into a usable syntax tree."""


class TimeoutExceeded(ScannerError, TimeoutError):
    """Analysis of a single file did not finish before its deadline."""

    def __init__(self, path, timeout: float):
        super().__init__(f"Analysis of {path} exceeded {timeout:.2f}s")
        self.path = path
        self.timeout = timeout
