"""
Data model: signatures, findings and scan summaries.

All records are frozen dataclasses. Findings are created once inside the
analyzer and never mutated afterwards.
"""
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

# ===================================================================
# SEVERITY
# ===================================================================

SEVERITY_LEVELS = ("low", "medium", "high", "critical")
SEVERITY_RANK = {level: rank for rank, level in enumerate(SEVERITY_LEVELS)}

VALIDATION_TAGS = ("hex", "base64", "entropy")

# Reports never carry more of a matched secret than this
MAX_MATCH_LENGTH = 120
MAX_LINE_CONTENT_LENGTH = 200


def severity_rank(level: str) -> int:
    """Position of a severity level in the total order (low=0 .. critical=3)."""
    return SEVERITY_RANK[level]


def filter_by_severity(findings: Iterable["Finding"], minimum: str) -> List["Finding"]:
    """Keep findings whose severity is at least `minimum`."""
    floor = severity_rank(minimum)
    return [f for f in findings if severity_rank(f.severity) >= floor]


def severity_breakdown(findings: Iterable["Finding"]) -> Dict[str, int]:
    breakdown = {level: 0 for level in SEVERITY_LEVELS}
    for finding in findings:
        breakdown[finding.severity] = breakdown.get(finding.severity, 0) + 1
    return breakdown


# ===================================================================
# SIGNATURE
# ===================================================================

@dataclass(frozen=True)
class Signature:
    """A named detection rule: compiled pattern plus reporting metadata."""
    name: str
    pattern: re.Pattern
    severity: str
    description: str
    min_entropy: float = 0.0
    validation: Optional[str] = None
    custom: bool = False
    category: str = "custom"


# ===================================================================
# FINDING
# ===================================================================

def _new_finding_id() -> str:
    return f"finding_{uuid.uuid4().hex[:16]}"


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def bound_text(text: str, limit: int = MAX_MATCH_LENGTH) -> str:
    """Truncate text for reporting, marking the cut with '...'."""
    return text[:limit] + ("..." if len(text) > limit else "")


@dataclass(frozen=True)
class Finding:
    """Evidence of one potential credential occurrence."""
    signature_name: str
    severity: str
    description: str
    matched_text: str
    file_path: str
    line: int
    line_content: Optional[str] = None
    entropy: Optional[float] = None
    id: str = field(default_factory=_new_finding_id)
    timestamp: str = field(default_factory=_utc_timestamp)

    def to_dict(self) -> Dict[str, object]:
        """Serialize with a fixed key order."""
        return {
            "id": self.id,
            "signature_name": self.signature_name,
            "severity": self.severity,
            "description": self.description,
            "matched_text": self.matched_text,
            "file_path": self.file_path,
            "line": self.line,
            "line_content": self.line_content,
            "entropy": self.entropy,
            "timestamp": self.timestamp,
        }

    def content_key(self) -> tuple:
        """Identity of a finding ignoring its id and timestamp."""
        return (
            self.signature_name, self.severity, self.description,
            self.matched_text, self.file_path, self.line,
            self.line_content, self.entropy,
        )


# ===================================================================
# SCAN STATISTICS & SUMMARY
# ===================================================================

@dataclass
class ScanStats:
    """Counters filled in by the walker during one scan invocation."""
    files_scanned: int = 0
    files_skipped_size: int = 0
    files_skipped_binary: int = 0
    files_timed_out: int = 0
    files_failed: int = 0
    duration: float = 0.0


@dataclass(frozen=True)
class ScanSummary:
    total_findings: int
    files_scanned: int
    duration: float
    severity_breakdown: Dict[str, int]
    files_skipped_size: int = 0
    files_skipped_binary: int = 0
    files_timed_out: int = 0
    files_failed: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_findings": self.total_findings,
            "files_scanned": self.files_scanned,
            "duration": round(self.duration, 3),
            "severity_breakdown": dict(self.severity_breakdown),
            "files_skipped_size": self.files_skipped_size,
            "files_skipped_binary": self.files_skipped_binary,
            "files_timed_out": self.files_timed_out,
            "files_failed": self.files_failed,
        }


def build_summary(findings: List[Finding], stats: Optional[ScanStats] = None) -> ScanSummary:
    """
    Summarize a scan: totals, severity breakdown and skip counters.

    Args:
        findings: All findings of the scan
        stats: Walker counters; an empty ScanStats is assumed when omitted

    Returns:
        ScanSummary for the invocation
    """
    stats = stats or ScanStats()
    return ScanSummary(
        total_findings=len(findings),
        files_scanned=stats.files_scanned,
        duration=stats.duration,
        severity_breakdown=severity_breakdown(findings),
        files_skipped_size=stats.files_skipped_size,
        files_skipped_binary=stats.files_skipped_binary,
        files_timed_out=stats.files_timed_out,
        files_failed=stats.files_failed,
    )
