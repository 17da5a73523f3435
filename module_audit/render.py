"""
Output rendering and formatting of audit reports.
"""

from __future__ import annotations

import json
import os
import re
import sys
from typing import TextIO

from wcwidth import wcswidth

from .auditor import AuditReport
from .models import PARAMETER_N_A, VERSION_NOT_FOUND, ModuleRecord, ModuleStatus


# Environment options
USE_EMOJI = os.environ.get("MODULE_AUDIT_EMOJI", "1") == "1"
USE_COLOR = os.environ.get("MODULE_AUDIT_COLOR", "1") == "1"

# ANSI color codes
GREEN = "\033[32m"
YELLOW = "\033[33m"
RED = "\033[31m"
GREY = "\033[90m"
RESET = "\033[0m"

HEADERS = ("", "Module", "Package", "Installed", "Latest", "Type", "Status")

# CSI sequences (colors) take no space on screen
CSI_RE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]")


def display_width(text: str) -> int:
    """Terminal width of text, ignoring color codes; emoji count as two columns."""
    plain = CSI_RE.sub("", text)
    width = wcswidth(plain)
    return width if width >= 0 else len(plain)


def pad(text: str, width: int) -> str:
    return text + " " * max(0, width - display_width(text))


def is_unknown(record: ModuleRecord) -> bool:
    """Whether the update state of a module cannot be determined."""
    return record.latest_version == PARAMETER_N_A or record.installed_version == VERSION_NOT_FOUND


def status_icon(record: ModuleRecord) -> str:
    """Get the update icon of a module.

    Args:
        record: Populated module record

    Returns:
        Up-to-date, outdated or unknown icon
    """
    if record.update_available:
        return "⬆" if USE_EMOJI else "↑"
    if is_unknown(record):
        return "❓" if USE_EMOJI else "?"
    return "✅" if USE_EMOJI else "✓"


def colorize(text: str, color: str) -> str:
    """Apply color to text.

    Args:
        text: Text to colorize
        color: ANSI color code

    Returns:
        Colored text or plain text if colors disabled
    """
    if not USE_COLOR or not text:
        return text
    return f"{color}{text}{RESET}"


def status_color(status: ModuleStatus) -> str:
    if status == ModuleStatus.DISABLED:
        return GREY
    if status == ModuleStatus.UNKNOWN:
        return YELLOW
    return ""


def record_row(record: ModuleRecord) -> tuple[str, ...]:
    return (
        status_icon(record),
        record.name,
        record.package_name,
        record.installed_version,
        record.display_latest_version,
        record.installation_type.label,
        record.status_caption,
    )


def render_table(records: list[ModuleRecord], out: TextIO | None = None) -> None:
    """Render modules as a pipe-delimited table.

    Args:
        records: Populated module records
        out: Output stream (default: stdout)
    """
    out = out or sys.stdout
    rows = [record_row(r) for r in records]
    widths = [max(display_width(cell) for cell in column) for column in zip(HEADERS, *rows)]

    def line(cells: tuple[str, ...]) -> str:
        return " | ".join(pad(cell, width) for cell, width in zip(cells, widths)).rstrip()

    print(line(HEADERS), file=out)
    print("-+-".join("-" * width for width in widths), file=out)
    for record, row in zip(records, rows):
        text = line(row)
        if record.update_available:
            text = colorize(text, GREEN)
        else:
            color = status_color(record.status)
            if color:
                text = colorize(text, color)
        print(text, file=out)


def print_failures(report: AuditReport, out: TextIO | None = None) -> None:
    """Print modules that could not be audited."""
    out = out or sys.stderr
    for failure in report.failures:
        print(colorize(f"✗ {failure.module}: {failure.error}", RED), file=out)


def print_summary(report: AuditReport, out: TextIO | None = None) -> None:
    """Print audit summary counts.

    Args:
        report: Audit report
        out: Output stream (default: stderr)
    """
    out = out or sys.stderr
    total = len(report.records)
    outdated = len(report.outdated)
    unknown = sum(
        1 for r in report.records
        if not r.update_available and is_unknown(r)
    )
    print("", file=out)
    print(
        f"# {total} modules audited: {total - outdated - unknown} up to date, "
        f"{outdated} outdated, {unknown} unknown, {len(report.failures)} failed "
        f"({report.duration_seconds:.1f}s)",
        file=out,
    )


def report_to_json(report: AuditReport) -> str:
    """Serialize a report to JSON."""
    return json.dumps(report.to_dict(), indent=2, ensure_ascii=False)
