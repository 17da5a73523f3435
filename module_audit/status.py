"""
Module status from the deployment configuration.

Statuses come from app/etc/config.php ('modules' => ['Vendor_Foo' => 1, ...]),
or from a YAML/JSON file with a top-level "modules" mapping. They are loaded
once per StatusCache and shared by every audited module.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from pathlib import Path
from typing import Any, Protocol

import yaml

from .errors import AuditError, ErrorKind
from .models import ModuleStatus

logger = logging.getLogger(__name__)

MODULES_KEY = "modules"
MODULES_BLOCK_RE = re.compile(r"""['"]modules['"]\s*=>\s*(?:\[|array\s*\()""")
MODULE_ENTRY_RE = re.compile(r"""\s*['"]([^'"]+)['"]\s*=>\s*(\w+)\s*,?""")


class StatusSource(Protocol):
    def load_statuses(self) -> dict[str, ModuleStatus]: ...


def parse_php_modules(content: str) -> dict[str, Any] | None:
    """Extract the modules array from a PHP deployment config.

    Args:
        content: PHP source of config.php

    Returns:
        Mapping of module name -> raw flag, or None if there is no modules key
    """
    block = MODULES_BLOCK_RE.search(content)
    if block is None:
        return None

    modules: dict[str, Any] = {}
    pos = block.end()
    while True:
        entry = MODULE_ENTRY_RE.match(content, pos)
        if entry is None:
            break
        modules[entry.group(1)] = entry.group(2)
        pos = entry.end()
    return modules


class DeploymentConfigStatusSource:
    """Reads module statuses from a deployment config file.

    Args:
        path: config.php, or a .yml/.yaml/.json file
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read_modules(self, content: str) -> Any:
        suffix = self.path.suffix.lower()
        if suffix == ".php":
            return parse_php_modules(content)

        try:
            data = json.loads(content) if suffix == ".json" else yaml.safe_load(content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise AuditError(ErrorKind.MALFORMED_METADATA, file=self.path, reason=str(e)) from e
        if not isinstance(data, dict):
            return None
        return data.get(MODULES_KEY)

    def load_statuses(self) -> dict[str, ModuleStatus]:
        """Load module statuses.

        Raises:
            AuditError: CONFIG_SOURCE_MISSING if the file or its modules key is missing
        """
        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise AuditError(
                ErrorKind.CONFIG_SOURCE_MISSING, key=MODULES_KEY, file=self.path, reason=str(e)
            ) from e

        modules = self._read_modules(content)
        if not isinstance(modules, dict):
            raise AuditError(ErrorKind.CONFIG_SOURCE_MISSING, key=MODULES_KEY, file=self.path)

        return {str(name): ModuleStatus.from_flag(flag) for name, flag in modules.items()}


class StatusCache:
    """Statuses loaded on first use and reused afterwards.

    Args:
        source: Status source, read at most once
    """

    def __init__(self, source: StatusSource):
        self.source = source
        self._statuses: dict[str, ModuleStatus] | None = None
        self._lock = threading.Lock()

    def _load(self) -> dict[str, ModuleStatus]:
        if self._statuses is None:
            with self._lock:
                if self._statuses is None:
                    self._statuses = self.source.load_statuses()
                    logger.debug(f"Loaded status of {len(self._statuses)} modules")
        return self._statuses

    def status_of(self, module_name: str) -> ModuleStatus:
        """Status of a module; UNKNOWN when the config does not list it."""
        return self._load().get(module_name, ModuleStatus.UNKNOWN)
