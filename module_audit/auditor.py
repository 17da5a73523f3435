"""
Module audit orchestration.

Combines the version resolver, the repository locator and the status cache
into fully populated ModuleRecords, one module at a time or for the whole
inventory.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, Sequence

from .config import AuditConfig
from .errors import AuditError
from .inventory import ModuleRegistry
from .locator import find_latest_stable_version
from .models import PARAMETER_N_A, ModuleRecord
from .repositories import Repository, load_repositories
from .resolver import VersionResolver
from .status import DeploymentConfigStatusSource, StatusCache

logger = logging.getLogger(__name__)


class ModuleInventory(Protocol):
    def all_names(self) -> list[str]: ...


class RepositorySource(Protocol):
    def repositories(self) -> list[Repository]: ...


def _contains_marker(module_name: str, marker: str) -> bool:
    return bool(marker) and marker in module_name


def filter_in_scope(
    module_names: Iterable[str],
    platform_prefix: str = "Magento_",
    self_prefix: str = "Freento_Audit",
) -> list[str]:
    """Drop platform modules and this tool's own modules.

    Platform modules are excluded first, then own modules; duplicates are
    removed and the original order is kept.

    Args:
        module_names: Candidate module names
        platform_prefix: Marker of platform vendor modules
        self_prefix: Marker of this tool's own modules

    Returns:
        In-scope module names
    """
    names = [n for n in module_names if not _contains_marker(n, platform_prefix)]
    names = [n for n in names if not _contains_marker(n, self_prefix)]
    return list(dict.fromkeys(names))


@dataclass
class AuditContext:
    """Collaborators shared by every module audit of one run.

    Attributes:
        resolver: Package name and installed version resolution
        repositories: Source of the ordered repository list
        statuses: Module statuses, loaded once
        inventory: Full list of module names
        platform_prefix: Marker of platform vendor modules
        self_prefix: Marker of this tool's own modules
    """

    resolver: VersionResolver
    repositories: RepositorySource
    statuses: StatusCache
    inventory: ModuleInventory
    platform_prefix: str = "Magento_"
    self_prefix: str = "Freento_Audit"

    @classmethod
    def from_config(cls, config: AuditConfig) -> "AuditContext":
        """Build the collaborators of an installation from configuration.

        Raises:
            AuditError: MALFORMED_METADATA if the root composer.json is invalid
        """
        root = config.root_path
        registry = ModuleRegistry(
            root,
            local_code_dir=config.local_code_dir,
            vendor_dir=config.vendor_dir,
            overrides=config.modules,
        )
        return cls(
            resolver=VersionResolver(registry, root, local_code_dir=config.local_code_dir),
            repositories=load_repositories(root, config),
            statuses=StatusCache(DeploymentConfigStatusSource(config.status_path)),
            inventory=registry,
            platform_prefix=config.platform_prefix,
            self_prefix=config.self_prefix,
        )


@dataclass(frozen=True)
class AuditFailure:
    """A module whose audit failed."""

    module: str
    error: AuditError

    def to_dict(self) -> dict[str, Any]:
        return {"module": self.module, **self.error.to_dict()}


@dataclass
class AuditReport:
    """Result of auditing several modules."""

    records: list[ModuleRecord] = field(default_factory=list)
    failures: list[AuditFailure] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def outdated(self) -> list[ModuleRecord]:
        return [r for r in self.records if r.update_available]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "modules": [r.to_dict() for r in self.records],
            "failures": [f.to_dict() for f in self.failures],
            "duration_seconds": self.duration_seconds,
        }


class ModuleAuditor:
    """Audits modules of one installation.

    Args:
        context: Shared collaborators
        max_workers: Modules audited in parallel by audit_all()
    """

    def __init__(self, context: AuditContext, max_workers: int = 1):
        self.context = context
        self.max_workers = max(1, max_workers)

    def in_scope_names(self) -> list[str]:
        """All in-scope module names of the inventory."""
        return filter_in_scope(
            self.context.inventory.all_names(),
            self.context.platform_prefix,
            self.context.self_prefix,
        )

    def populate(self, record: ModuleRecord, module_name: str) -> None:
        """Fill in every field of a record.

        Nothing is written to the record unless all lookups succeed.

        Args:
            record: Record to populate
            module_name: Internal module name

        Raises:
            AuditError: Any resolution, repository or status failure
        """
        resolver = self.context.resolver

        package_name = resolver.resolve_module_name(module_name)
        if package_name == PARAMETER_N_A:
            latest_version = PARAMETER_N_A
        else:
            latest_version = find_latest_stable_version(
                package_name, self.context.repositories.repositories()
            )
        installed_version, installation_type = resolver.resolve(module_name, package_name)
        status = self.context.statuses.status_of(module_name)

        record.name = module_name
        record.package_name = package_name
        record.installed_version = installed_version
        record.latest_version = latest_version
        record.installation_type = installation_type
        record.status = status
        logger.debug(f"{module_name}: {package_name} {installed_version} -> {latest_version}")

    def get_module(self, module_name: str) -> ModuleRecord:
        """Audit a single module.

        Raises:
            AuditError: If the module cannot be audited
        """
        record = ModuleRecord()
        self.populate(record, module_name)
        return record

    def audit_all(self, module_names: Sequence[str] | None = None) -> AuditReport:
        """Audit several modules, recording failures and continuing.

        Args:
            module_names: Modules to audit (default: every in-scope module)

        Returns:
            AuditReport with records and failures in input order
        """
        start = time.time()
        names = list(module_names) if module_names is not None else self.in_scope_names()
        results: dict[int, ModuleRecord | AuditFailure] = {}

        def audit_one(name: str) -> ModuleRecord | AuditFailure:
            try:
                return self.get_module(name)
            except AuditError as e:
                logger.warning(f"{name}: {e}")
                return AuditFailure(name, e)

        if self.max_workers == 1 or len(names) <= 1:
            for index, name in enumerate(names):
                results[index] = audit_one(name)
        else:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(names))) as executor:
                future_to_index = {
                    executor.submit(audit_one, name): index for index, name in enumerate(names)
                }
                for future in as_completed(future_to_index):
                    results[future_to_index[future]] = future.result()

        report = AuditReport()
        for index in sorted(results):
            result = results[index]
            if isinstance(result, AuditFailure):
                report.failures.append(result)
            else:
                report.records.append(result)
        report.duration_seconds = time.time() - start
        logger.info(
            f"Audited {len(report.records)} modules ({len(report.failures)} failed) "
            f"in {report.duration_seconds:.1f}s"
        )
        return report
