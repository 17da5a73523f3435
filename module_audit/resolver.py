"""
Package name and installed version resolution.

The installed version comes from the first source that yields one:
the module manifest, the installation lock file (package-managed modules
only), then the setup_version of the module descriptor.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from .errors import AuditError, ErrorKind
from .metadata import (
    Filesystem,
    LocalFilesystem,
    ReadResult,
    read_lock_file,
    read_module_descriptor,
    read_package_manifest,
)
from .models import (
    PARAMETER_N_A,
    SETUP_VERSION_MARKER,
    VERSION_NOT_FOUND,
    InstallationType,
)

logger = logging.getLogger(__name__)


class ModuleDirectory(Protocol):
    """Locates module directories by module name."""

    def dir_for(self, module_name: str) -> Path: ...


def _malformed(result: ReadResult) -> AuditError:
    return AuditError(ErrorKind.MALFORMED_METADATA, file=result.path, reason=result.reason)


def classify_installation(module_dir: Path, root_dir: Path, local_code_dir: str = "app/code") -> InstallationType:
    """Classify a module as local code or package managed.

    Args:
        module_dir: Module directory
        root_dir: Installation root
        local_code_dir: Local code directory relative to root

    Returns:
        APP_LOCAL if the module lives under the local code directory,
        PACKAGE_MANAGED otherwise
    """
    local_root = (Path(root_dir) / local_code_dir).resolve()
    if Path(module_dir).resolve().is_relative_to(local_root):
        return InstallationType.APP_LOCAL
    return InstallationType.PACKAGE_MANAGED


class VersionResolver:
    """Resolves package names and installed versions of modules.

    Args:
        directories: Module directory lookup
        root_dir: Installation root (holds composer.lock)
        fs: Filesystem reader
        local_code_dir: Local code directory relative to root
    """

    def __init__(
        self,
        directories: ModuleDirectory,
        root_dir: Path,
        fs: Filesystem | None = None,
        local_code_dir: str = "app/code",
    ):
        self.directories = directories
        self.root_dir = Path(root_dir)
        self.fs = fs or LocalFilesystem()
        self.local_code_dir = local_code_dir

    def module_dir(self, module_name: str) -> Path:
        return self.directories.dir_for(module_name)

    def resolve_module_name(self, module_name: str) -> str:
        """Resolve the repository package name of a module.

        Args:
            module_name: Internal module name

        Returns:
            Package name from composer.json, else the module.xml name,
            else N/A when neither file exists

        Raises:
            AuditError: NOT_REGISTERED, MISSING_PROPERTY or MALFORMED_METADATA
        """
        module_dir = self.module_dir(module_name)

        manifest = read_package_manifest(self.fs, module_dir)
        if manifest.found:
            if manifest.value is None:
                raise _malformed(manifest)
            if not manifest.malformed:
                return manifest.value["name"]
            raise AuditError(ErrorKind.MISSING_PROPERTY, field="name", file=manifest.path)

        descriptor = read_module_descriptor(self.fs, module_dir)
        if descriptor.found:
            if descriptor.malformed:
                raise _malformed(descriptor)
            if "name" not in descriptor.value:
                raise AuditError(ErrorKind.MISSING_PROPERTY, field="name", file=descriptor.path)
            return descriptor.value["name"]

        logger.debug(f"{module_name}: no composer.json or module.xml, package name unknown")
        return PARAMETER_N_A

    def resolve_installed_version(
        self,
        module_dir: Path,
        package_name: str,
        installation_type: InstallationType,
    ) -> str:
        """Resolve the installed version of a module.

        Args:
            module_dir: Module directory
            package_name: Resolved package name
            installation_type: Installation type of the module

        Returns:
            Installed version, "<setup_version> (setup_version)" or VERSION_NOT_FOUND

        Raises:
            AuditError: MALFORMED_METADATA for an empty or unreadable
                composer.json or composer.lock
        """
        manifest = read_package_manifest(self.fs, module_dir)
        if manifest.found:
            if manifest.value is None:
                raise _malformed(manifest)
            version = manifest.value.get("version")
            if version:
                return str(version)

        if installation_type == InstallationType.PACKAGE_MANAGED:
            lock = read_lock_file(self.fs, self.root_dir)
            if lock.found:
                if lock.malformed:
                    raise _malformed(lock)
                for entry in lock.value:
                    if entry["name"] == package_name:
                        if entry["version"]:
                            return str(entry["version"])
                        break

        descriptor = read_module_descriptor(self.fs, module_dir)
        if descriptor.found:
            if descriptor.malformed:
                raise _malformed(descriptor)
            setup_version = descriptor.value.get("setup_version")
            if setup_version:
                return f"{setup_version}{SETUP_VERSION_MARKER}"

        return VERSION_NOT_FOUND

    def resolve(self, module_name: str, package_name: str) -> tuple[str, InstallationType]:
        """Resolve installed version and installation type of a module."""
        module_dir = self.module_dir(module_name)
        installation_type = classify_installation(module_dir, self.root_dir, self.local_code_dir)
        version = self.resolve_installed_version(module_dir, package_name, installation_type)
        logger.debug(f"{module_name}: installed {version} ({installation_type.label})")
        return version, installation_type
