"""
Shared fixtures: a throwaway installation tree and in-memory repositories.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from module_audit.auditor import AuditContext, ModuleAuditor
from module_audit.inventory import ModuleRegistry
from module_audit.repositories import PackageCandidate, Repository, RepositoryManager
from module_audit.resolver import VersionResolver
from module_audit.status import DeploymentConfigStatusSource, StatusCache

_SAME = object()


class Installation:
    """Builds an installation layout (app/code, vendor, composer.lock, config.php)."""

    def __init__(self, root: Path):
        self.root = root

    def add_module(
        self,
        name: str,
        *,
        vendor: bool = False,
        composer: Any = None,
        descriptor: bool = True,
        descriptor_name: Any = _SAME,
        setup_version: str | None = None,
        raw_descriptor: str | None = None,
        registration: bool = True,
        package_dir: str | None = None,
    ) -> Path:
        vendor_name, module = name.split("_", 1)
        base = self.root / ("vendor" if vendor else "app/code")
        module_dir = base / (package_dir or f"{vendor_name}/{module}")
        (module_dir / "etc").mkdir(parents=True, exist_ok=True)

        if registration:
            (module_dir / "registration.php").write_text(
                "<?php\n"
                "use Magento\\Framework\\Component\\ComponentRegistrar;\n\n"
                f"ComponentRegistrar::register(ComponentRegistrar::MODULE, '{name}', __DIR__);\n"
            )

        if composer is not None:
            content = composer if isinstance(composer, str) else json.dumps(composer)
            (module_dir / "composer.json").write_text(content)

        if raw_descriptor is not None:
            (module_dir / "etc" / "module.xml").write_text(raw_descriptor)
        elif descriptor:
            attrs = []
            module_name = name if descriptor_name is _SAME else descriptor_name
            if module_name:
                attrs.append(f'name="{module_name}"')
            if setup_version:
                attrs.append(f'setup_version="{setup_version}"')
            (module_dir / "etc" / "module.xml").write_text(
                '<?xml version="1.0"?>\n'
                '<config xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">\n'
                f"    <module {' '.join(attrs)}/>\n"
                "</config>\n"
            )
        return module_dir

    def write_lock(self, packages: Any) -> Path:
        path = self.root / "composer.lock"
        if isinstance(packages, str):
            path.write_text(packages)
        else:
            path.write_text(json.dumps({"packages": packages, "packages-dev": []}))
        return path

    def write_status(self, modules: dict[str, int]) -> Path:
        path = self.root / "app" / "etc" / "config.php"
        path.parent.mkdir(parents=True, exist_ok=True)
        entries = "".join(f"        '{name}' => {flag},\n" for name, flag in modules.items())
        path.write_text(
            "<?php\n"
            "return [\n"
            "    'modules' => [\n"
            f"{entries}"
            "    ],\n"
            "    'scopes' => [],\n"
            "];\n"
        )
        return path

    def write_root_composer(self, data: dict[str, Any]) -> Path:
        path = self.root / "composer.json"
        path.write_text(json.dumps(data))
        return path

    def registry(self) -> ModuleRegistry:
        return ModuleRegistry(self.root)

    def resolver(self) -> VersionResolver:
        return VersionResolver(self.registry(), self.root)


class StaticRepository(Repository):
    """Repository serving a fixed candidate list, recording every lookup."""

    def __init__(self, name: str, candidates: list[PackageCandidate] | None = None, error: Exception | None = None):
        self._name = name
        self.candidates = candidates or []
        self.error = error
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    def find_packages(self, package_name: str) -> list[PackageCandidate]:
        self.calls.append(package_name)
        if self.error is not None:
            raise self.error
        return [c for c in self.candidates if c.name == package_name]


@pytest.fixture
def installation(tmp_path: Path) -> Installation:
    return Installation(tmp_path)


@pytest.fixture
def make_repo():
    """Factory: make_repo("name", [("vendor/foo", "1.0.0", "stable"), ...], error=None)."""

    def factory(name: str, packages=(), error: Exception | None = None) -> StaticRepository:
        candidates = [PackageCandidate(n, v, s) for n, v, s in packages]
        return StaticRepository(name, candidates, error)

    return factory


@pytest.fixture
def make_auditor(installation: Installation):
    """Factory building a ModuleAuditor over the installation fixture."""

    def factory(repositories: list[Repository], max_workers: int = 1) -> ModuleAuditor:
        registry = installation.registry()
        context = AuditContext(
            resolver=VersionResolver(registry, installation.root),
            repositories=RepositoryManager(repositories),
            statuses=StatusCache(
                DeploymentConfigStatusSource(installation.root / "app" / "etc" / "config.php")
            ),
            inventory=registry,
        )
        return ModuleAuditor(context, max_workers=max_workers)

    return factory
