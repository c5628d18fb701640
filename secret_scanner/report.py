"""
Report rendering: console, JSON, Markdown and SARIF 2.1.0.

All formatters are pure: they read Findings and return text, never
mutating their input.
"""
import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from secret_scanner import __version__
from secret_scanner.errors import ConfigurationError
from secret_scanner.models import SEVERITY_LEVELS, Finding, ScanSummary

logger = logging.getLogger(__name__)

REPORT_MODES = ("console", "json", "markdown", "sarif")

TOOL_NAME = "semantic-secret-scanner"
TOOL_URI = "https://github.com/semantic-secret-scanner/semantic-secret-scanner"
SARIF_SCHEMA = "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/Schemata/sarif-schema-2.1.0.json"

SARIF_LEVELS = {
    "low": "note",
    "medium": "warning",
    "high": "error",
    "critical": "error",
}

NO_FINDINGS = "No credentials detected"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def rule_id(signature_name: str) -> str:
    """Slug of a signature name: lowercase, non-alphanumeric runs become '-'."""
    return re.sub(r"[^a-z0-9]+", "-", signature_name.lower()).strip("-")


def sarif_level(severity: str) -> str:
    return SARIF_LEVELS.get(severity, "warning")


# ===================================================================
# CONSOLE
# ===================================================================

def format_console(findings: Sequence[Finding], summary: Optional[ScanSummary] = None) -> str:
    """Human-readable report grouped by severity, most severe first."""
    lines = ["Credential Scan Results", "=" * 50]
    if summary is not None:
        lines.append(
            f"Files scanned: {summary.files_scanned} | "
            f"Findings: {summary.total_findings} | "
            f"Duration: {summary.duration:.2f}s"
        )
        skipped = summary.files_skipped_size + summary.files_skipped_binary
        if skipped or summary.files_timed_out or summary.files_failed:
            lines.append(
                f"Skipped: {skipped} | Timed out: {summary.files_timed_out} | "
                f"Unreadable: {summary.files_failed}"
            )
    lines.append("")

    if not findings:
        lines.append(NO_FINDINGS)
        return "\n".join(lines) + "\n"

    index = 0
    for severity in reversed(SEVERITY_LEVELS):
        group = [f for f in findings if f.severity == severity]
        if not group:
            continue
        lines.append(f"[{severity.upper()}] {len(group)} finding(s)")
        lines.append("-" * 50)
        for finding in group:
            index += 1
            lines.append(f"{index}. {finding.signature_name}")
            lines.append(f"   File: {finding.file_path}:{finding.line}")
            lines.append(f"   Severity: {finding.severity.upper()}")
            lines.append(f"   Description: {finding.description}")
            if finding.line_content:
                lines.append(f"   Context: {finding.line_content}")
            lines.append("")

    return "\n".join(lines)


# ===================================================================
# JSON / MARKDOWN
# ===================================================================

def format_json(findings: Sequence[Finding]) -> str:
    """JSON array of findings with a stable field order."""
    return json.dumps([finding.to_dict() for finding in findings], indent=2)


def format_markdown(findings: Sequence[Finding], summary: Optional[ScanSummary] = None) -> str:
    lines = [
        "# Credential Scan Report",
        "",
        f"**Scan Date:** {_now()}",
        f"**Total Findings:** {len(findings)}",
    ]
    if summary is not None:
        lines.append(f"**Files Scanned:** {summary.files_scanned}")
        lines.append(f"**Duration:** {summary.duration:.2f}s")
        lines.append("")
        lines.append("| Severity | Count |")
        lines.append("|----------|-------|")
        for severity in reversed(SEVERITY_LEVELS):
            lines.append(f"| {severity} | {summary.severity_breakdown.get(severity, 0)} |")
    lines.append("")

    if not findings:
        lines.append(NO_FINDINGS)
        return "\n".join(lines) + "\n"

    lines.append("## Findings")
    lines.append("")
    for index, finding in enumerate(findings, start=1):
        lines.append(f"### {index}. {finding.signature_name}")
        lines.append("")
        lines.append(f"- **File:** `{finding.file_path}:{finding.line}`")
        lines.append(f"- **Severity:** {finding.severity.upper()}")
        lines.append(f"- **Description:** {finding.description}")
        if finding.line_content:
            lines.append(f"- **Context:** `{finding.line_content}`")
        lines.append("")

    return "\n".join(lines)


# ===================================================================
# SARIF
# ===================================================================

def _sarif_rules(findings: Sequence[Finding]) -> List[Dict[str, Any]]:
    """One rule per distinct rule id, at the highest severity seen for it."""
    rules: Dict[str, Dict[str, Any]] = {}
    for finding in findings:
        rid = rule_id(finding.signature_name)
        rule = rules.get(rid)
        if rule is None:
            rules[rid] = {
                "id": rid,
                "name": finding.signature_name,
                "shortDescription": {"text": finding.description},
                "defaultConfiguration": {"level": sarif_level(finding.severity)},
                "properties": {
                    "tags": ["security", "secrets"],
                    "severity": finding.severity,
                },
            }
        elif SEVERITY_LEVELS.index(finding.severity) > SEVERITY_LEVELS.index(rule["properties"]["severity"]):
            rule["defaultConfiguration"]["level"] = sarif_level(finding.severity)
            rule["properties"]["severity"] = finding.severity
    return [rules[rid] for rid in sorted(rules)]


def build_sarif(findings: Sequence[Finding]) -> Dict[str, Any]:
    """SARIF 2.1.0 document with a single run."""
    results = []
    for finding in findings:
        region: Dict[str, Any] = {"startLine": finding.line}
        if finding.line_content:
            region["snippet"] = {"text": finding.line_content}

        results.append({
            "ruleId": rule_id(finding.signature_name),
            "level": sarif_level(finding.severity),
            "message": {"text": finding.description},
            "locations": [{
                "physicalLocation": {
                    "artifactLocation": {"uri": Path(finding.file_path).as_posix()},
                    "region": region,
                }
            }],
            "properties": {
                "severity": finding.severity,
                "entropy": finding.entropy,
                "findingId": finding.id,
            },
        })

    return {
        "$schema": SARIF_SCHEMA,
        "version": "2.1.0",
        "runs": [{
            "tool": {
                "driver": {
                    "name": TOOL_NAME,
                    "version": __version__,
                    "informationUri": TOOL_URI,
                    "rules": _sarif_rules(findings),
                }
            },
            "results": results,
            "invocations": [{
                "executionSuccessful": True,
                "endTimeUtc": _now(),
            }],
        }],
    }


def format_sarif(findings: Sequence[Finding]) -> str:
    return json.dumps(build_sarif(findings), indent=2)


# ===================================================================
# DISPATCH & OUTPUT
# ===================================================================

def format_report(
    findings: Sequence[Finding],
    mode: str = "console",
    summary: Optional[ScanSummary] = None,
) -> str:
    """
    Render findings in one of the report modes.

    Args:
        findings: Findings to render
        mode: "console", "json", "markdown" or "sarif"
        summary: Optional scan summary for the console/markdown headers

    Returns:
        The report text

    Raises:
        ConfigurationError: unknown mode
    """
    if mode == "console":
        return format_console(findings, summary)
    if mode == "json":
        return format_json(findings)
    if mode == "markdown":
        return format_markdown(findings, summary)
    if mode == "sarif":
        return format_sarif(findings)
    raise ConfigurationError(f"Unknown report format: {mode!r} (expected one of {', '.join(REPORT_MODES)})")


def write_report(text: str, output_path: Path) -> Path:
    """Write report text to a file, creating parent directories."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(text if text.endswith("\n") else text + "\n", encoding='utf-8')
    logger.info(f"Report written to {output_path}")
    return output_path
