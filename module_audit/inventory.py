"""
Module inventory and directory lookup.

Modules are discovered the way the platform registers them: a
registration.php calling ComponentRegistrar::register() for a MODULE, or
failing that an etc/module.xml declaring the module name. Local code lives in
app/code/<Vendor>/<Module>, packages in vendor/<vendor>/<package>.
"""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path

from .errors import AuditError, ErrorKind
from .metadata import LocalFilesystem, read_module_descriptor

logger = logging.getLogger(__name__)

REGISTRATION_FILE = "registration.php"
REGISTRATION_RE = re.compile(
    r"ComponentRegistrar::register\(\s*ComponentRegistrar::MODULE\s*,\s*['\"]([^'\"]+)['\"]"
)


def parse_registration(content: str) -> str | None:
    """Extract the module name from registration.php content.

    Args:
        content: PHP source of registration.php

    Returns:
        Registered module name, or None if it registers no module
    """
    match = REGISTRATION_RE.search(content)
    return match.group(1) if match else None


class ModuleRegistry:
    """Maps module names to their directories.

    Args:
        root_dir: Installation root
        local_code_dir: Local code directory relative to root
        vendor_dir: Package directory relative to root
        overrides: Explicit module name -> directory mapping (relative paths
            resolve against root_dir); takes precedence over discovery
    """

    def __init__(
        self,
        root_dir: Path,
        local_code_dir: str = "app/code",
        vendor_dir: str = "vendor",
        overrides: dict[str, str] | None = None,
    ):
        self.root_dir = Path(root_dir)
        self.search_dirs = (self.root_dir / local_code_dir, self.root_dir / vendor_dir)
        self.overrides = {
            name: self.root_dir / path for name, path in (overrides or {}).items()
        }
        self._dirs: dict[str, Path] | None = None
        self._lock = threading.Lock()
        self._fs = LocalFilesystem()

    def _scan(self) -> dict[str, Path]:
        found: dict[str, Path] = {}
        for base in self.search_dirs:
            if not base.is_dir():
                logger.debug(f"Skipping missing module directory {base}")
                continue
            for candidate in sorted(base.glob("*/*")):
                if not candidate.is_dir():
                    continue
                name = self._module_name(candidate)
                if name is None:
                    continue
                if name in found:
                    logger.warning(f"Module {name} registered twice: {found[name]} and {candidate}")
                    continue
                found[name] = candidate
        logger.debug(f"Discovered {len(found)} modules under {self.root_dir}")
        return found

    def _module_name(self, directory: Path) -> str | None:
        registration = directory / REGISTRATION_FILE
        if registration.is_file():
            try:
                name = parse_registration(registration.read_text(encoding="utf-8", errors="replace"))
            except OSError as e:
                logger.warning(f"Cannot read {registration}: {e}")
                name = None
            if name:
                return name

        descriptor = read_module_descriptor(self._fs, directory)
        if descriptor.value:
            return descriptor.value.get("name")
        return None

    def _modules(self) -> dict[str, Path]:
        if self._dirs is None:
            with self._lock:
                if self._dirs is None:
                    scanned = self._scan()
                    scanned.update(self.overrides)
                    self._dirs = scanned
        return self._dirs

    def dir_for(self, module_name: str) -> Path:
        """Get the directory of a registered module.

        Raises:
            AuditError: NOT_REGISTERED if the module is unknown
        """
        try:
            return self._modules()[module_name]
        except KeyError:
            raise AuditError(ErrorKind.NOT_REGISTERED, module=module_name) from None

    def all_names(self) -> list[str]:
        """All registered module names, sorted."""
        return sorted(self._modules())
