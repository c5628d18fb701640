"""
Scan configuration.

A ScanConfiguration is built once per invocation (from defaults, the
environment, a `.secret-scanner.json` file and CLI overrides) and is
read-only while the scan runs.
"""
import dataclasses
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Tuple

from secret_scanner.errors import ConfigurationError

logger = logging.getLogger(__name__)

# ===================================================================
# CONFIGURATION & CONSTANTS
# ===================================================================

# Environment-driven defaults
MAX_CONCURRENT_FILES = int(os.environ.get("MAX_CONCURRENT_FILES", "5"))
SCAN_TIMEOUT_MS = int(os.environ.get("SCAN_TIMEOUT_MS", "5000"))
MAX_FILE_SIZE_MB = int(os.environ.get("MAX_FILE_SIZE_MB", "10"))
MIN_ENTROPY_THRESHOLD = float(os.environ.get("MIN_ENTROPY_THRESHOLD", "3.5"))
ENABLE_STRUCTURAL_ANALYSIS = os.environ.get("ENABLE_STRUCTURAL_ANALYSIS", "true").lower() == "true"
LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # text|json
OUTPUT_FORMAT = os.environ.get("OUTPUT_FORMAT", "console")  # console|json|markdown|sarif

MAX_FILE_SIZE_BYTES = MAX_FILE_SIZE_MB * 1024 * 1024

CONFIG_FILE_NAME = ".secret-scanner.json"

DEFAULT_INCLUDE = (
    "**/*.js", "**/*.jsx", "**/*.ts", "**/*.tsx",
    "**/*.mjs", "**/*.cjs", "**/*.json",
)

# Dependency trees, VCS/cache state, our own source (its pattern strings
# would match themselves), scanner state, archives, tests and docs.
DEFAULT_EXCLUDE = (
    "node_modules/**", "**/node_modules/**",
    "vendor/**", "**/vendor/**",
    ".venv/**", "venv/**", "**/__pycache__/**",
    ".git/**", "**/.git/**", ".cache/**",
    "dist/**", "build/**", "coverage/**",
    "secret_scanner/**",
    ".secret-scanner*/**", "**/.secret-scanner*",
    ".archive/**", "tests/**", "docs/**",
    "**/*.min.js", "**/*.bundle.js",
    "**/package-lock.json", "**/yarn.lock", "**/pnpm-lock.yaml",
)


@dataclass(frozen=True)
class ScanConfiguration:
    include: Tuple[str, ...] = DEFAULT_INCLUDE
    exclude: Tuple[str, ...] = DEFAULT_EXCLUDE
    enable_structural_analysis: bool = ENABLE_STRUCTURAL_ANALYSIS
    minimum_entropy_threshold: float = MIN_ENTROPY_THRESHOLD
    max_file_size: int = MAX_FILE_SIZE_BYTES
    timeout: float = SCAN_TIMEOUT_MS / 1000.0  # seconds
    concurrency: int = MAX_CONCURRENT_FILES
    show_progress: bool = False
    # Category-disable flags consumed by report consumers; the core does
    # no context-aware suppression.
    crypto_filter: bool = True
    ui_filter: bool = True
    i18n_filter: bool = True
    config_filter: bool = True

    def validate(self) -> "ScanConfiguration":
        """
        Check value ranges.

        Returns:
            self, so construction can be chained

        Raises:
            ConfigurationError: a field is out of range
        """
        if not isinstance(self.concurrency, int) or self.concurrency < 1:
            raise ConfigurationError(f"concurrency must be a positive integer, got {self.concurrency!r}")
        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be positive, got {self.timeout!r}")
        if self.max_file_size <= 0:
            raise ConfigurationError(f"max_file_size must be positive, got {self.max_file_size!r}")
        if self.minimum_entropy_threshold < 0:
            raise ConfigurationError(
                f"minimum_entropy_threshold must be >= 0, got {self.minimum_entropy_threshold!r}"
            )
        if not self.include:
            raise ConfigurationError("include must name at least one glob pattern")
        return self

    def with_overrides(self, **overrides: Any) -> "ScanConfiguration":
        """Copy with some fields replaced; None values are ignored."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        for key in ("include", "exclude"):
            if key in changes:
                changes[key] = tuple(changes[key])
        try:
            return dataclasses.replace(self, **changes)
        except TypeError as e:
            raise ConfigurationError(f"Unknown configuration field: {e}") from e

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ScanConfiguration":
        """
        Build a configuration from the `.secret-scanner.json` shape.

        Missing sections fall back to defaults. `scanner.timeout` is in
        milliseconds.

        Raises:
            ConfigurationError: a section has the wrong type
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError("Configuration must be a JSON object")

        files = _section(data, "files")
        scanner = _section(data, "scanner")
        filters = _section(data, "filters")

        overrides: Dict[str, Any] = {}
        if "include" in files:
            overrides["include"] = _globs(files["include"], "files.include")
        if "exclude" in files:
            overrides["exclude"] = _globs(files["exclude"], "files.exclude")

        structural = scanner.get("enableStructuralAnalysis", scanner.get("enableAstAnalysis"))
        if structural is not None:
            overrides["enable_structural_analysis"] = bool(structural)
        if "minimumEntropyThreshold" in scanner:
            overrides["minimum_entropy_threshold"] = _number(
                scanner["minimumEntropyThreshold"], "scanner.minimumEntropyThreshold")
        if "maxFileSize" in scanner:
            overrides["max_file_size"] = int(_number(scanner["maxFileSize"], "scanner.maxFileSize"))
        if "timeout" in scanner:
            overrides["timeout"] = _number(scanner["timeout"], "scanner.timeout") / 1000.0
        if "concurrency" in scanner:
            overrides["concurrency"] = int(_number(scanner["concurrency"], "scanner.concurrency"))

        for key in ("crypto", "ui", "i18n", "config"):
            if key in filters:
                overrides[f"{key}_filter"] = bool(filters[key])

        return cls().with_overrides(**overrides).validate()

    def to_mapping(self) -> Dict[str, Any]:
        """Inverse of from_mapping (timeout back in milliseconds)."""
        return {
            "files": {
                "include": list(self.include),
                "exclude": list(self.exclude),
            },
            "scanner": {
                "enableStructuralAnalysis": self.enable_structural_analysis,
                "minimumEntropyThreshold": self.minimum_entropy_threshold,
                "maxFileSize": self.max_file_size,
                "timeout": int(round(self.timeout * 1000)),
                "concurrency": self.concurrency,
            },
            "filters": {
                "crypto": self.crypto_filter,
                "ui": self.ui_filter,
                "i18n": self.i18n_filter,
                "config": self.config_filter,
            },
        }


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"'{name}' must be an object")
    return value


def _globs(value: Any, where: str) -> Tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigurationError(f"'{where}' must be a list of glob strings")
    return tuple(value)


def _number(value: Any, where: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"'{where}' must be a number, got {value!r}")
    return float(value)


def load_config_file(path: Path) -> ScanConfiguration:
    """
    Load and validate a `.secret-scanner.json` file.

    Raises:
        ConfigurationError: unreadable file, invalid JSON or bad values
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in configuration file {path}: {e}") from e

    config = ScanConfiguration.from_mapping(data)
    logger.debug(f"Loaded configuration from {path}")
    return config


def write_default_config(path: Path, force: bool = False) -> Path:
    """
    Write a default configuration file.

    Raises:
        ConfigurationError: the file exists and force is not set
    """
    path = Path(path)
    if path.exists() and not force:
        raise ConfigurationError(f"{path} already exists (use --force to overwrite)")
    path.write_text(json.dumps(ScanConfiguration().to_mapping(), indent=2) + "\n", encoding='utf-8')
    logger.info(f"Wrote default configuration to {path}")
    return path
