"""Human-readable reports for validation findings and rewrite passes."""
from __future__ import annotations

from typing import Dict, List, Optional

from .models import ValidationIssue
from .rewrite import RewriteReport
from .validation import SectionStats


def render_report(issues: List[ValidationIssue], stats: Optional[Dict[str, SectionStats]] = None) -> str:
    """Return a human-readable report summarizing section checks and reference issues."""

    header_lines = ["Manuscript Check Report"]
    for name, section_stats in (stats or {}).items():
        header_lines.append(
            f"{name}: {section_stats.words} words, {section_stats.sentences} sentences, "
            f"{section_stats.citations}/{section_stats.expected_citations} citations"
        )

    all_issues = list(issues)
    for section_stats in (stats or {}).values():
        all_issues.extend(section_stats.warnings)

    if not all_issues:
        header_lines.append("No issues detected.")
        return "\n".join(header_lines)

    lines = header_lines + ["Issues:"]
    for issue in all_issues:
        line = f"[{issue.severity.upper()}] {issue.code}: {issue.message}"
        if issue.context:
            line += f" -> {issue.context}"
        lines.append(line)
    return "\n".join(lines)


def render_rewrite_report(report: RewriteReport) -> str:
    accepted = sum(1 for result in report.results if result.accepted)
    lines = [
        "Rewrite Report",
        f"Sections processed: {len(report.results)} (accepted {accepted}, failed {len(report.failed_ids)})",
    ]
    for result in report.results:
        name = result.job.section_name or result.job.section_id
        line = f"[{result.status.upper()}] {name}"
        if result.reason:
            line += f": {result.reason}"
        if result.cadence_applied:
            line += " (cadence pass applied)"
        lines.append(line)
    if report.cancelled:
        skipped = ", ".join(job.section_name or job.section_id for job in report.pending)
        lines.append(f"Cancelled; not started: {skipped or 'none'}")
    return "\n".join(lines)


__all__ = ["render_report", "render_rewrite_report"]
