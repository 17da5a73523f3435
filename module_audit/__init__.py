"""
Module Audit - installed module version auditing.

Core Modules:
- Resolution: package name and installed version from composer.json,
  composer.lock and etc/module.xml
- Repositories: latest stable version from Composer repositories
- Versioning: precision alignment and numeric version comparison
- Orchestration: per-module audit records and whole-installation reports
"""

__version__ = "1.0.0"
__author__ = "Module Audit Contributors"

VERSION = __version__

from .errors import AuditError, ErrorKind
from .models import (
    PARAMETER_N_A,
    VERSION_NOT_FOUND,
    InstallationType,
    ModuleRecord,
    ModuleStatus,
)
from .versioning import (
    align_precision,
    compute_display_latest,
    is_newer,
    parse_numeric_prefix,
    strip_decorations,
)
from .metadata import LocalFilesystem, ReadResult, read_lock_file, read_module_descriptor, read_package_manifest
from .resolver import VersionResolver, classify_installation
from .repositories import (
    ArtifactRepository,
    ComposerRepository,
    PackageCandidate,
    PackageRepository,
    Repository,
    RepositoryError,
    RepositoryManager,
    load_repositories,
    parse_stability,
)
from .locator import find_latest_stable_version
from .inventory import ModuleRegistry
from .status import DeploymentConfigStatusSource, StatusCache
from .config import AuditConfig, load_config, load_config_file, validate_config
from .auditor import AuditContext, AuditFailure, AuditReport, ModuleAuditor, filter_in_scope

__all__ = [
    "__version__",
    "VERSION",
    "AuditError",
    "ErrorKind",
    "PARAMETER_N_A",
    "VERSION_NOT_FOUND",
    "InstallationType",
    "ModuleRecord",
    "ModuleStatus",
    "align_precision",
    "compute_display_latest",
    "is_newer",
    "parse_numeric_prefix",
    "strip_decorations",
    "LocalFilesystem",
    "ReadResult",
    "read_lock_file",
    "read_module_descriptor",
    "read_package_manifest",
    "VersionResolver",
    "classify_installation",
    "ArtifactRepository",
    "ComposerRepository",
    "PackageCandidate",
    "PackageRepository",
    "Repository",
    "RepositoryError",
    "RepositoryManager",
    "load_repositories",
    "parse_stability",
    "find_latest_stable_version",
    "ModuleRegistry",
    "DeploymentConfigStatusSource",
    "StatusCache",
    "AuditConfig",
    "load_config",
    "load_config_file",
    "validate_config",
    "AuditContext",
    "AuditFailure",
    "AuditReport",
    "ModuleAuditor",
    "filter_in_scope",
]
