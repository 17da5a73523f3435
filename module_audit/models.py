"""
Audit data model.

A ModuleRecord is created empty, filled in by ModuleAuditor.populate() and
then only read by reports.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

# Sentinels
PARAMETER_N_A = "N/A"
VERSION_NOT_FOUND = "Version not found"
SETUP_VERSION_MARKER = " (setup_version)"


class InstallationType(str, Enum):
    """Where a module's code lives."""

    APP_LOCAL = "app/code"
    PACKAGE_MANAGED = "Composer"
    UNKNOWN = "N/A"

    @property
    def label(self) -> str:
        return self.value


class ModuleStatus(str, Enum):
    """Module status from the deployment configuration."""

    ENABLED = "enabled"
    DISABLED = "disabled"
    UNKNOWN = "unknown"

    @property
    def caption(self) -> str:
        return self.value.capitalize()

    @classmethod
    def from_flag(cls, flag: Any) -> "ModuleStatus":
        """Map a deployment config flag (1/0, true/false) to a status."""
        if isinstance(flag, str):
            flag = flag.strip().lower()
            if flag in ("1", "true", "enabled"):
                return cls.ENABLED
            if flag in ("0", "false", "disabled"):
                return cls.DISABLED
            return cls.UNKNOWN
        if flag is True or flag == 1:
            return cls.ENABLED
        if flag is False or flag == 0:
            return cls.DISABLED
        return cls.UNKNOWN


@dataclass
class ModuleRecord:
    """One audited module.

    Attributes:
        name: Internal module identifier (e.g. "Vendor_Foo")
        package_name: Repository package name (e.g. "vendor/foo") or N/A
        installed_version: Installed version, "<v> (setup_version)" or VERSION_NOT_FOUND
        latest_version: Latest stable version from the repositories or N/A
        installation_type: Local code or package managed
        status: Enabled/disabled state from the deployment configuration
    """

    name: str = ""
    package_name: str = ""
    installed_version: str = ""
    latest_version: str = ""
    installation_type: InstallationType = InstallationType.UNKNOWN
    status: ModuleStatus = ModuleStatus.UNKNOWN

    @property
    def is_populated(self) -> bool:
        return bool(self.name)

    def _require_populated(self) -> None:
        if not self.is_populated:
            raise ValueError("Module record has not been populated")

    @property
    def display_latest_version(self) -> str:
        """Latest version aligned to the precision of the installed version."""
        from .versioning import compute_display_latest

        self._require_populated()
        return compute_display_latest(self.installed_version, self.latest_version)

    @property
    def update_available(self) -> bool:
        from .versioning import is_newer

        self._require_populated()
        return is_newer(self.installed_version, self.display_latest_version)

    @property
    def status_caption(self) -> str:
        self._require_populated()
        return self.status.caption

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        self._require_populated()
        return {
            "name": self.name,
            "package_name": self.package_name,
            "installed_version": self.installed_version,
            "latest_version": self.latest_version,
            "display_latest_version": self.display_latest_version,
            "installation_type": self.installation_type.label,
            "status": self.status.value,
            "update_available": self.update_available,
        }
