"""
Semantic credential scanner.

Detects hardcoded credentials in JavaScript/TypeScript codebases by
combining syntax-tree inspection, a categorized signature catalog and
entropy heuristics, and renders findings as console text, JSON, Markdown
or SARIF.

This scanner NEVER attempts to use discovered credentials; detection is
format-based only.
"""
__version__ = "1.0.0"

from secret_scanner.analyzer import FileKind, analyze, file_kind  # noqa: E402
from secret_scanner.config import ScanConfiguration, load_config_file  # noqa: E402
from secret_scanner.entropy import shannon_entropy  # noqa: E402
from secret_scanner.errors import (  # noqa: E402
    ConfigurationError,
    FileReadError,
    InvalidSignature,
    ParseError,
    ScannerError,
    ScanPathNotFound,
    TimeoutExceeded,
)
from secret_scanner.models import Finding, ScanStats, ScanSummary, Signature, build_summary  # noqa: E402
from secret_scanner.patterns import SignatureCatalog, get_default_catalog, load_custom_signatures  # noqa: E402
from secret_scanner.report import format_report, write_report  # noqa: E402
from secret_scanner.walker import scan_path, scan_path_sync  # noqa: E402

__all__ = [
    "__version__",
    "ConfigurationError",
    "FileKind",
    "FileReadError",
    "Finding",
    "InvalidSignature",
    "ParseError",
    "ScanConfiguration",
    "ScanPathNotFound",
    "ScanStats",
    "ScanSummary",
    "ScannerError",
    "Signature",
    "SignatureCatalog",
    "TimeoutExceeded",
    "analyze",
    "build_summary",
    "file_kind",
    "format_report",
    "get_default_catalog",
    "load_config_file",
    "load_custom_signatures",
    "scan_path",
    "scan_path_sync",
    "shannon_entropy",
    "write_report",
]
