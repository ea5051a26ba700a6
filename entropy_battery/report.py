"""Markdown reports for battery runs."""

from __future__ import annotations

import platform
from datetime import datetime
from pathlib import Path
from typing import Iterable

from entropy_battery.results import BatteryReport, Status, TestResult

_STATUS_ICON = {Status.PASS: "✅", Status.FAIL: "❌", Status.SKIP: "⏭️"}


def grade_from_p(p: float | None) -> str:
    """Letter grade for a p-value; ``-`` when the test did not run."""
    if p is None:
        return "-"
    if p >= 0.1:
        return "A"
    if p >= 0.01:
        return "B"
    if p >= 0.001:
        return "C"
    if p >= 0.0001:
        return "D"
    return "F"


def _details(result: TestResult, limit: int = 4) -> str:
    if result.skip_reason:
        return result.skip_reason
    parts = []
    for key, value in result.diagnostics.items():
        if isinstance(value, float):
            parts.append(f"{key}={value:.4g}")
        else:
            parts.append(f"{key}={value}")
        if len(parts) == limit:
            break
    return ", ".join(parts)


def _verdict(report: BatteryReport) -> str:
    if report.passed is None:
        return "n/a"
    return "PASS" if report.passed else "FAIL"


def render_battery(report: BatteryReport) -> str:
    """Markdown section for one battery."""
    flag = " | ⚠️ **expanded input**" if report.expanded else ""
    lines = [
        f"### {report.battery.upper()}",
        f"**Score: {report.overall_score}/100** | **Verdict: {_verdict(report)}** "
        f"| **Passed: {report.passed_tests}/{report.executed_tests}** "
        f"| **Skipped: {report.skipped_tests}** | **Bits: {report.bit_count:,}**{flag}\n",
        "| Test | Result | Grade | P-Value | Statistic | Details |",
        "|------|--------|-------|---------|-----------|---------|",
    ]
    for r in report.results:
        p_str = f"{r.p_value:.6f}" if r.p_value is not None else "N/A"
        stat = f"{r.statistic:.4f}" if r.statistic is not None else "-"
        lines.append(
            f"| {r.name} | {_STATUS_ICON[r.status]} {r.status.value} | {grade_from_p(r.p_value)} "
            f"| {p_str} | {stat} | {_details(r)} |"
        )
    lines.append("")
    return "\n".join(lines)


def render_markdown(reports: Iterable[BatteryReport], title: str = "Randomness Test Report") -> str:
    """Complete report: summary table followed by one section per battery."""
    reports = list(reports)
    now = datetime.now()
    lines = [
        f"# {title}",
        "",
        f"**Generated:** {now.strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Python:** {platform.python_version()}",
        f"**Significance level:** {reports[0].alpha if reports else 0.01}",
        "",
        "## Summary",
        "",
        "| Battery | Score | Verdict | Passed | Failed | Skipped | Bits |",
        "|---------|-------|---------|--------|--------|---------|------|",
    ]
    for report in reports:
        lines.append(
            f"| {report.battery} | {report.overall_score} | {_verdict(report)} | {report.passed_tests} "
            f"| {report.failed_tests} | {report.skipped_tests} | {report.bit_count:,} |"
        )
    lines += ["", "---", "", "## Detailed Results", ""]
    for report in reports:
        lines.append(render_battery(report))
        lines.append("---\n")
    return "\n".join(lines)


def write_markdown(reports: Iterable[BatteryReport], output_path: str | Path, **kwargs) -> str:
    text = render_markdown(reports, **kwargs)
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return text
