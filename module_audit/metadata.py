"""
Readers for module metadata files.

Three sources are supported: the package manifest (composer.json), the
installation lock file (composer.lock) and the module descriptor
(etc/module.xml). Each reader reports absence and malformed content through a
ReadResult instead of raising, so the resolver can decide what is fatal.
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)

COMPOSER_JSON = "composer.json"
COMPOSER_LOCK = "composer.lock"
MODULE_XML = Path("etc") / "module.xml"


class Filesystem(Protocol):
    """Minimal filesystem access used by the readers."""

    def exists(self, path: Path) -> bool: ...

    def read_file(self, path: Path) -> bytes: ...


class LocalFilesystem:
    """Filesystem backed by the local disk."""

    def exists(self, path: Path) -> bool:
        return Path(path).is_file()

    def read_file(self, path: Path) -> bytes:
        return Path(path).read_bytes()


@dataclass(frozen=True)
class ReadResult:
    """Outcome of reading one metadata file.

    Attributes:
        path: File that was looked up
        value: Parsed content (None when absent or unparsable)
        found: Whether the file exists
        malformed: Whether the file exists but content is not usable
        reason: Why the content is malformed
    """

    path: Path
    value: Any = None
    found: bool = False
    malformed: bool = False
    reason: str = ""


def _read_text(fs: Filesystem, path: Path) -> tuple[str | None, str]:
    try:
        return fs.read_file(path).decode("utf-8"), ""
    except (OSError, UnicodeDecodeError) as e:
        return None, f"cannot read file: {e}"


def _read_json(fs: Filesystem, path: Path) -> ReadResult:
    if not fs.exists(path):
        return ReadResult(path)

    content, reason = _read_text(fs, path)
    if content is None:
        return ReadResult(path, found=True, malformed=True, reason=reason)
    if not content.strip():
        return ReadResult(path, found=True, malformed=True, reason="file is empty")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        return ReadResult(path, found=True, malformed=True, reason=f"invalid JSON: {e}")

    if not isinstance(data, dict):
        return ReadResult(path, found=True, malformed=True, reason="expected a JSON object")
    return ReadResult(path, value=data, found=True)


def read_package_manifest(fs: Filesystem, module_dir: Path) -> ReadResult:
    """Read composer.json of a module.

    Args:
        fs: Filesystem reader
        module_dir: Module directory

    Returns:
        ReadResult whose value is the manifest object. A manifest without a
        "name" is reported as malformed but still carries its parsed value.
    """
    result = _read_json(fs, Path(module_dir) / COMPOSER_JSON)
    if result.value is not None and not isinstance(result.value.get("name"), str):
        return ReadResult(
            result.path,
            value=result.value,
            found=True,
            malformed=True,
            reason="missing 'name'",
        )
    return result


def read_lock_file(fs: Filesystem, root_dir: Path) -> ReadResult:
    """Read composer.lock of the installation.

    Args:
        fs: Filesystem reader
        root_dir: Installation root

    Returns:
        ReadResult whose value is a list of {"name", "version"} entries
    """
    result = _read_json(fs, Path(root_dir) / COMPOSER_LOCK)
    if result.value is None:
        return result

    packages = result.value.get("packages")
    if not isinstance(packages, list):
        return ReadResult(result.path, found=True, malformed=True, reason="missing 'packages' list")

    entries = []
    for package in packages + list(result.value.get("packages-dev") or []):
        if isinstance(package, dict) and isinstance(package.get("name"), str):
            entries.append({"name": package["name"], "version": package.get("version")})
    return ReadResult(result.path, value=entries, found=True)


def read_module_descriptor(fs: Filesystem, module_dir: Path) -> ReadResult:
    """Read etc/module.xml of a module.

    Args:
        fs: Filesystem reader
        module_dir: Module directory

    Returns:
        ReadResult whose value has optional "name" and "setup_version" keys
    """
    path = Path(module_dir) / MODULE_XML
    if not fs.exists(path):
        return ReadResult(path)

    content, reason = _read_text(fs, path)
    if content is None:
        return ReadResult(path, found=True, malformed=True, reason=reason)

    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        return ReadResult(path, found=True, malformed=True, reason=f"invalid XML: {e}")

    module = root if root.tag == "module" else root.find("module")
    value: dict[str, str] = {}
    if module is not None:
        for attr in ("name", "setup_version"):
            if module.get(attr):
                value[attr] = module.get(attr)
    else:
        logger.debug(f"No <module> element in {path}")
    return ReadResult(path, value=value, found=True)
