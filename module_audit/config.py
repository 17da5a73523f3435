"""
Configuration file parsing and management.

Supports YAML configuration files (JSON for .json files).
Merges configurations from multiple sources (project → user → system → defaults).
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .common import vlog
from .repositories import is_packagist_toggle, repository_entries


# Configuration file locations (in priority order)
CONFIG_LOCATIONS = [
    ".module-audit.yml",                                     # Project root (highest priority)
    ".module-audit.yaml",                                    # Alternative extension
    os.path.expanduser("~/.config/module-audit/config.yml"),  # User global
    os.path.expanduser("~/.config/module-audit/config.yaml"),
    "/etc/module-audit/config.yml",                          # System global
    "/etc/module-audit/config.yaml",
]

# Keys read from configuration files
CONFIG_KEYS = frozenset({
    "root_dir", "platform_prefix", "self_prefix", "local_code_dir", "vendor_dir",
    "status_file", "use_packagist", "timeout_seconds", "max_workers", "repositories",
    "modules",
})


@dataclass(frozen=True)
class AuditConfig:
    """
    Complete configuration for the module audit.

    Attributes:
        root_dir: Installation root (holds composer.json, composer.lock, app/, vendor/)
        platform_prefix: Module name prefix of platform modules, excluded from the audit
        self_prefix: Module name prefix of this tool's own modules, excluded from the audit
        local_code_dir: Local code directory relative to root
        vendor_dir: Composer vendor directory relative to root
        status_file: Deployment config with module statuses, relative to root
        use_packagist: Query Packagist after the declared repositories
        timeout_seconds: Timeout for repository requests
        max_workers: Number of modules audited in parallel
        repositories: Extra repository definitions (composer.json format)
        modules: Explicit module name -> directory mapping
        source: Path to the configuration file that was loaded
        explicit: Keys set by the configuration file, even when equal to the default
    """
    root_dir: str = "."
    platform_prefix: str = "Magento_"
    self_prefix: str = "Freento_Audit"
    local_code_dir: str = "app/code"
    vendor_dir: str = "vendor"
    status_file: str = "app/etc/config.php"
    use_packagist: bool = True
    timeout_seconds: int = 10
    max_workers: int = 8
    repositories: tuple[dict[str, Any], ...] = ()
    modules: dict[str, str] = field(default_factory=dict)
    source: str = ""
    explicit: frozenset[str] = field(default_factory=frozenset, compare=False)

    def __post_init__(self):
        """Validate config after initialization."""
        if self.timeout_seconds < 1 or self.timeout_seconds > 120:
            raise ValueError(
                f"Invalid timeout_seconds: {self.timeout_seconds}. "
                "Must be between 1 and 120"
            )

        if self.max_workers < 1 or self.max_workers > 32:
            raise ValueError(
                f"Invalid max_workers: {self.max_workers}. "
                "Must be between 1 and 32"
            )

        for repo in self.repositories:
            if not isinstance(repo, dict):
                raise ValueError(f"Invalid repository definition: {repo!r}. Must be a mapping")

    @property
    def root_path(self) -> Path:
        return Path(self.root_dir).expanduser()

    @property
    def status_path(self) -> Path:
        path = Path(self.status_file)
        return path if path.is_absolute() else self.root_path / path

    @staticmethod
    def from_dict(data: dict[str, Any], source: str = "") -> AuditConfig:
        """Create AuditConfig from dictionary."""
        defaults = AuditConfig()
        return AuditConfig(
            root_dir=str(data.get("root_dir", defaults.root_dir)),
            platform_prefix=data.get("platform_prefix", defaults.platform_prefix),
            self_prefix=data.get("self_prefix", defaults.self_prefix),
            local_code_dir=data.get("local_code_dir", defaults.local_code_dir),
            vendor_dir=data.get("vendor_dir", defaults.vendor_dir),
            status_file=data.get("status_file", defaults.status_file),
            use_packagist=bool(data.get("use_packagist", defaults.use_packagist)),
            timeout_seconds=int(data.get("timeout_seconds", defaults.timeout_seconds)),
            max_workers=int(data.get("max_workers", defaults.max_workers)),
            repositories=tuple(repository_entries(data.get("repositories"))),
            modules=dict(data.get("modules") or {}),
            source=source,
            explicit=frozenset(key for key in data if key in CONFIG_KEYS),
        )

    def merge_with(self, other: AuditConfig) -> AuditConfig:
        """
        Merge this config with another, preferring values from this config.

        Values this config does not set explicitly and that equal the defaults
        are taken from the other config.

        Args:
            other: Other config to merge (lower priority)

        Returns:
            New merged AuditConfig object
        """
        defaults = AuditConfig()
        merged: dict[str, Any] = {}
        for f in fields(self):
            mine = getattr(self, f.name)
            if f.name in self.explicit or mine != getattr(defaults, f.name):
                merged[f.name] = mine
            else:
                merged[f.name] = getattr(other, f.name)

        # Collections accumulate (this config first)
        merged["repositories"] = self.repositories + other.repositories
        merged["modules"] = {**other.modules, **self.modules}
        merged["explicit"] = self.explicit | other.explicit
        return AuditConfig(**merged)

    def with_overrides(self, **overrides: Any) -> AuditConfig:
        """Return a copy with the given non-None values replaced."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        set_keys = {key for key, value in overrides.items() if value is not None}
        values.update({key: overrides[key] for key in set_keys})
        values["explicit"] = self.explicit | set_keys
        return AuditConfig(**values)


def _load_yaml(file_path: str) -> dict[str, Any] | None:
    """
    Load YAML configuration file.

    Args:
        file_path: Path to YAML file

    Returns:
        Parsed configuration dictionary, or None if file invalid
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return None


def _load_json(file_path: str) -> dict[str, Any] | None:
    """
    Load JSON configuration file.

    Args:
        file_path: Path to JSON file

    Returns:
        Parsed configuration dictionary, or None if file invalid
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = json.load(f)
            return data if isinstance(data, dict) else {}
    except (OSError, json.JSONDecodeError):
        return None


def load_config_file(file_path: str, verbose: bool = False) -> AuditConfig | None:
    """
    Load configuration from a single file.

    Args:
        file_path: Path to configuration file (.yml, .yaml or .json)
        verbose: Enable verbose logging

    Returns:
        AuditConfig object, or None if file cannot be loaded
    """
    if not os.path.exists(file_path):
        return None

    vlog(f"Loading config from: {file_path}", verbose)

    if file_path.endswith(".json"):
        data = _load_json(file_path)
    else:
        data = _load_yaml(file_path)

    if data is None:
        vlog(f"Invalid config file: {file_path}", verbose)
        return None

    try:
        config = AuditConfig.from_dict(data, source=file_path)
        vlog(f"Loaded config successfully: {file_path}", verbose)
        return config
    except (ValueError, TypeError) as e:
        vlog(f"Config validation failed for {file_path}: {e}", verbose)
        return None


def load_config(
    custom_path: str | None = None,
    verbose: bool = False,
) -> AuditConfig:
    """
    Load and merge configuration from all sources.

    Configuration precedence (highest to lowest):
    1. Custom path (if provided)
    2. Project .module-audit.yml
    3. User ~/.config/module-audit/config.yml
    4. System /etc/module-audit/config.yml
    5. Default configuration

    Args:
        custom_path: Optional path to custom configuration file
        verbose: Enable verbose logging

    Returns:
        Merged AuditConfig object (never None, returns defaults if no config found)

    Raises:
        ValueError: If custom_path is provided but file cannot be loaded
    """
    configs: list[AuditConfig] = []

    if custom_path:
        config = load_config_file(custom_path, verbose)
        if config is None:
            raise ValueError(f"Could not load config from specified path: {custom_path}")
        configs.append(config)
        vlog(f"Using custom config: {custom_path}", verbose)

    for location in CONFIG_LOCATIONS:
        config = load_config_file(location, verbose)
        if config is not None:
            configs.append(config)
            vlog(f"Found config at: {location}", verbose)

    if not configs:
        vlog("No config files found, using defaults", verbose)
        return AuditConfig()

    # Merge configs (first config has highest priority)
    merged = configs[0]
    for config in configs[1:]:
        merged = merged.merge_with(config)

    vlog(f"Merged {len(configs)} config files", verbose)
    return merged


def validate_config(config: AuditConfig) -> list[str]:
    """
    Validate configuration and return list of warnings.

    Args:
        config: AuditConfig object to validate

    Returns:
        List of validation warning messages (empty if valid)
    """
    warnings = []

    if not config.root_path.is_dir():
        warnings.append(f"Installation root does not exist: {config.root_dir}")

    if not config.platform_prefix:
        warnings.append("Empty platform_prefix: platform modules will be audited")

    for repo in config.repositories:
        if "type" not in repo and not is_packagist_toggle(repo):
            warnings.append(f"Repository without type will be skipped: {repo}")

    if not config.repositories and not config.use_packagist and not (config.root_path / "composer.json").is_file():
        warnings.append("No repositories configured: latest versions cannot be resolved")

    return warnings
