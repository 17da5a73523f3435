"""
Version normalization and comparison.

Installed and published versions often differ only in precision ("1.2" vs
"1.2.0.0"). The helpers here align the latest version to the precision of the
installed one for display, and compare versions on their numeric prefix only.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from packaging.version import Version

from .models import PARAMETER_N_A, SETUP_VERSION_MARKER, VERSION_NOT_FOUND

# Dotted digit groups, optionally followed by a pre-release/build suffix
NUMERIC_VERSION_RE = re.compile(r"(\d+(?:\.\d+)*)([-+A-Za-z].*)?")


@dataclass(frozen=True)
class NumericVersion:
    """Numeric prefix of a version string and whatever follows it."""

    segments: tuple[str, ...]
    suffix: str = ""

    def as_version(self) -> Version:
        return Version(".".join(str(int(s)) for s in self.segments))


def strip_decorations(version: str) -> str:
    """Remove a leading "v" and a trailing " (setup_version)" marker.

    Args:
        version: Raw version (e.g., "v1.2.3", "2.0.0 (setup_version)")

    Returns:
        Bare version (e.g., "1.2.3", "2.0.0")
    """
    version = version.strip()
    if version.endswith(SETUP_VERSION_MARKER.strip()):
        version = version[: -len(SETUP_VERSION_MARKER.strip())].rstrip()
    if version.startswith("v"):
        version = version[1:]
    return version


def parse_numeric_prefix(version: str) -> NumericVersion | None:
    """Split a version into numeric segments and suffix.

    Args:
        version: Version string (e.g., "2.4.6-p3")

    Returns:
        NumericVersion (e.g., segments ("2", "4", "6"), suffix "-p3"),
        or None if the string has no numeric prefix
    """
    match = NUMERIC_VERSION_RE.search(version)
    if not match:
        return None
    return NumericVersion(tuple(match.group(1).split(".")), match.group(2) or "")


def align_precision(current: tuple[str, ...], latest: tuple[str, ...]) -> tuple[str, ...]:
    """Align the segment count of latest to that of current.

    Extra trailing zero segments of latest are dropped (never below the length
    of current, stopping at the first non-zero one); a shorter latest is padded
    with "0".

    Args:
        current: Segments of the installed version
        latest: Segments of the latest version

    Returns:
        Aligned segments of latest
    """
    aligned = list(latest)
    if len(aligned) > len(current):
        while len(aligned) > len(current) and int(aligned[-1]) == 0:
            aligned.pop()
    elif len(aligned) < len(current):
        aligned.extend(["0"] * (len(current) - len(aligned)))
    return tuple(aligned)


def compute_display_latest(current: str, latest: str) -> str:
    """Render latest with the precision of current.

    Args:
        current: Installed version (may carry the setup_version marker)
        latest: Latest version or N/A

    Returns:
        Aligned latest version, or latest unchanged when it cannot be aligned
    """
    if latest == PARAMETER_N_A:
        return latest

    current_parsed = parse_numeric_prefix(strip_decorations(current))
    latest_parsed = parse_numeric_prefix(latest)
    if current_parsed is None or latest_parsed is None:
        return latest

    aligned = align_precision(current_parsed.segments, latest_parsed.segments)
    return ".".join(aligned) + latest_parsed.suffix


def is_newer(current: str, latest: str) -> bool:
    """Check whether latest is a newer release than current.

    Only numeric prefixes are compared; suffixes never order versions.

    Args:
        current: Installed version
        latest: Latest version

    Returns:
        True if an update is available
    """
    if current == VERSION_NOT_FOUND or latest == PARAMETER_N_A:
        return False

    current_parsed = parse_numeric_prefix(strip_decorations(current))
    latest_parsed = parse_numeric_prefix(strip_decorations(latest))
    if current_parsed is None or latest_parsed is None:
        return False

    return current_parsed.as_version() < latest_parsed.as_version()


def version_key(version: str) -> tuple[int, Version]:
    """Sort key ordering versions by numeric prefix.

    Versions without a numeric prefix sort below every numeric one.
    """
    parsed = parse_numeric_prefix(strip_decorations(version))
    if parsed is None:
        return (0, Version("0"))
    return (1, parsed.as_version())
