"""
Composer package repositories.

Repositories are built from the root composer.json the same way Composer's
repository manager does it: declared repositories first, Packagist last
unless disabled. Each repository lists the published versions of a package
together with the stability derived from the version string.
"""

from __future__ import annotations

import base64
import json
import logging
import re
import threading
import urllib.error
import urllib.request
import zipfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import urljoin, urlparse

from .errors import AuditError, ErrorKind
from .metadata import COMPOSER_JSON

if TYPE_CHECKING:
    from .config import AuditConfig

logger = logging.getLogger(__name__)

USER_AGENT = "module-audit/1.0"
PACKAGIST_URL = "https://repo.packagist.org"
AUTH_FILES = ("auth.json", "var/composer_home/auth.json")

# Composer's stability modifier: [._-]?(stable|beta|b|RC|alpha|a|patch|pl|p)(N)?([.-]?dev)?
STABILITY_RE = re.compile(
    r"[._-]?(?:(stable|beta|b|rc|alpha|a|patch|pl|p)((?:[.-]?\d+)*)?)?([.-]?dev)?(?:\+.*)?$"
)


class RepositoryError(Exception):
    """Raised when a repository cannot be queried."""
    pass


class NetworkError(RepositoryError):
    """Raised when network requests fail."""
    pass


class ParseError(RepositoryError):
    """Raised when repository content cannot be parsed."""
    pass


def http_get(
    url: str,
    timeout: int = 10,
    headers: dict[str, str] | None = None,
    allow_missing: bool = False,
) -> bytes | None:
    """Perform HTTP GET request.

    Args:
        url: URL to fetch
        timeout: Timeout in seconds
        headers: Optional HTTP headers
        allow_missing: Return None instead of raising on 404

    Returns:
        Response body as bytes, or None for a missing resource when allowed

    Raises:
        NetworkError: If request fails
    """
    default_headers = {"User-Agent": USER_AGENT}
    if headers:
        default_headers.update(headers)

    req = urllib.request.Request(url, headers=default_headers)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            return response.read()
    except urllib.error.HTTPError as e:
        if allow_missing and e.code == 404:
            return None
        raise NetworkError(f"Failed to fetch {url}: HTTP {e.code}") from e
    except Exception as e:
        raise NetworkError(f"Failed to fetch {url}: {e}") from e


def _get_json(url: str, timeout: int, headers: dict[str, str], allow_missing: bool = False) -> Any:
    body = http_get(url, timeout=timeout, headers=headers, allow_missing=allow_missing)
    if body is None:
        return None
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(f"Invalid JSON from {url}: {e}") from e


def parse_stability(version: str) -> str:
    """Derive the stability of a version string.

    Args:
        version: Package version (e.g., "2.4.6", "3.0.0-beta2", "dev-main")

    Returns:
        One of "stable", "RC", "beta", "alpha", "dev"
    """
    version = re.sub(r"#.+$", "", version.strip()).lower()
    if version.startswith("dev-") or version.endswith("-dev"):
        return "dev"

    match = STABILITY_RE.search(version)
    if match is None:
        return "stable"
    if match.group(3):
        return "dev"
    modifier = match.group(1)
    if modifier in ("beta", "b"):
        return "beta"
    if modifier in ("alpha", "a"):
        return "alpha"
    if modifier == "rc":
        return "RC"
    return "stable"


@dataclass(frozen=True)
class PackageCandidate:
    """A published version of a package."""

    name: str
    version: str
    stability: str

    @classmethod
    def from_version(cls, name: str, version: str) -> "PackageCandidate":
        return cls(name=name, version=version, stability=parse_stability(version))


class Repository(ABC):
    """A source of published package versions."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable repository name."""

    @abstractmethod
    def find_packages(self, package_name: str) -> list[PackageCandidate]:
        """List published versions of a package.

        Raises:
            RepositoryError: If the repository cannot be queried
        """


def _candidates(package_name: str, entries: Any) -> list[PackageCandidate]:
    if isinstance(entries, dict):
        entries = list(entries.values())
    if not isinstance(entries, list):
        return []
    found = []
    for entry in entries:
        if isinstance(entry, dict) and entry.get("version"):
            found.append(PackageCandidate.from_version(package_name, str(entry["version"])))
    return found


class ComposerRepository(Repository):
    """Composer repository served over HTTP (e.g. Packagist).

    Args:
        url: Repository base URL
        timeout: Request timeout in seconds
        headers: Extra request headers (authorization)
    """

    def __init__(self, url: str, timeout: int = 10, headers: dict[str, str] | None = None):
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.headers = headers or {}
        self._root: dict[str, Any] | None = None
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return f"composer repo ({self.url})"

    def _root_metadata(self) -> dict[str, Any]:
        if self._root is None:
            with self._lock:
                if self._root is None:
                    data = _get_json(f"{self.url}/packages.json", self.timeout, self.headers)
                    if not isinstance(data, dict):
                        raise ParseError(f"Invalid packages.json from {self.url}")
                    self._root = data
        return self._root

    def find_packages(self, package_name: str) -> list[PackageCandidate]:
        root = self._root_metadata()

        metadata_url = root.get("metadata-url")
        if metadata_url is not None and not isinstance(metadata_url, str):
            raise ParseError(f"Invalid metadata-url in packages.json from {self.url}")
        if metadata_url:
            url = urljoin(self.url + "/", metadata_url.replace("%package%", package_name))
            logger.debug(f"Fetching {package_name} metadata from {url}")
            data = _get_json(url, self.timeout, self.headers, allow_missing=True)
            packages = data.get("packages") if isinstance(data, dict) else None
            # Empty package maps are serialized as []
            if not isinstance(packages, dict):
                return []
            return _candidates(package_name, packages.get(package_name))

        packages = root.get("packages")
        if isinstance(packages, dict):
            return _candidates(package_name, packages.get(package_name))

        logger.debug(f"{self.name}: no metadata-url or inline packages")
        return []


class ArtifactRepository(Repository):
    """Directory of package zip archives.

    Args:
        path: Directory holding the archives
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    @property
    def name(self) -> str:
        return f"artifact repo ({self.path})"

    @staticmethod
    def _read_manifest(archive: Path) -> dict[str, Any] | None:
        try:
            with zipfile.ZipFile(archive) as zf:
                members = [m for m in zf.namelist() if m.rsplit("/", 1)[-1] == COMPOSER_JSON]
                if not members:
                    return None
                data = json.loads(zf.read(min(members, key=lambda m: m.count("/"))))
        except (OSError, zipfile.BadZipFile, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping unreadable artifact {archive}: {e}")
            return None
        return data if isinstance(data, dict) else None

    def find_packages(self, package_name: str) -> list[PackageCandidate]:
        if not self.path.is_dir():
            raise NetworkError(f"Artifact directory not found: {self.path}")

        found = []
        for archive in sorted(self.path.glob("*.zip")):
            manifest = self._read_manifest(archive)
            if manifest and manifest.get("name") == package_name and manifest.get("version"):
                found.append(PackageCandidate.from_version(package_name, str(manifest["version"])))
        return found


class PackageRepository(Repository):
    """Packages declared inline in composer.json."""

    def __init__(self, packages: list[dict[str, Any]]):
        self.packages = packages

    @property
    def name(self) -> str:
        return "package repo"

    def find_packages(self, package_name: str) -> list[PackageCandidate]:
        return _candidates(
            package_name,
            [p for p in self.packages if isinstance(p, dict) and p.get("name") == package_name],
        )


class RepositoryManager:
    """Ordered collection of repositories."""

    def __init__(self, repositories: list[Repository] | None = None):
        self._repositories = list(repositories or [])

    def add(self, repository: Repository) -> None:
        self._repositories.append(repository)

    def repositories(self) -> list[Repository]:
        return list(self._repositories)


def load_auth_headers(root_dir: Path) -> dict[str, dict[str, str]]:
    """Load HTTP basic credentials from Composer auth.json files.

    Args:
        root_dir: Installation root

    Returns:
        Mapping of host -> request headers
    """
    headers: dict[str, dict[str, str]] = {}
    for relative in AUTH_FILES:
        path = Path(root_dir) / relative
        if not path.is_file():
            continue
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable auth file {path}: {e}")
            continue
        for host, creds in (data.get("http-basic") or {}).items():
            if host in headers or not isinstance(creds, dict):
                continue
            token = f"{creds.get('username', '')}:{creds.get('password', '')}"
            encoded = base64.b64encode(token.encode("utf-8")).decode("ascii")
            headers[host] = {"Authorization": f"Basic {encoded}"}
    return headers


def repository_entries(declared: Any) -> list[Any]:
    """Normalize composer.json repositories given as a list or a name-keyed mapping."""
    if isinstance(declared, dict):
        return [{key: value} if value is False else value for key, value in declared.items()]
    if isinstance(declared, list):
        return declared
    return []


def is_packagist_toggle(entry: dict[str, Any]) -> bool:
    return len(entry) == 1 and next(iter(entry)) in ("packagist", "packagist.org")


def build_repository(
    entry: dict[str, Any],
    root_dir: Path,
    timeout: int,
    auth: dict[str, dict[str, str]],
) -> Repository | None:
    """Build a repository from a composer.json repository definition.

    Returns:
        Repository, or None for unsupported repository types
    """
    repo_type = entry.get("type")
    if repo_type == "composer" and entry.get("url"):
        url = entry["url"]
        return ComposerRepository(url, timeout=timeout, headers=auth.get(urlparse(url).hostname or "", {}))
    if repo_type == "artifact" and entry.get("url"):
        path = Path(entry["url"])
        return ArtifactRepository(path if path.is_absolute() else Path(root_dir) / path)
    if repo_type == "package" and entry.get("package"):
        packages = entry["package"]
        return PackageRepository(packages if isinstance(packages, list) else [packages])

    logger.warning(f"Unsupported repository skipped: {entry}")
    return None


def load_repositories(root_dir: Path, config: "AuditConfig | None" = None) -> RepositoryManager:
    """Build the repository list of an installation.

    Args:
        root_dir: Installation root holding composer.json
        config: Audit configuration (extra repositories, Packagist toggle, timeout)

    Returns:
        RepositoryManager with repositories in lookup order

    Raises:
        AuditError: MALFORMED_METADATA if the root composer.json cannot be parsed
    """
    timeout = config.timeout_seconds if config else 10
    use_packagist = config.use_packagist if config else True
    declared: list[Any] = []

    manifest_path = Path(root_dir) / COMPOSER_JSON
    if manifest_path.is_file():
        try:
            manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise AuditError(ErrorKind.MALFORMED_METADATA, file=manifest_path, reason=str(e)) from e
        if not isinstance(manifest, dict):
            raise AuditError(ErrorKind.MALFORMED_METADATA, file=manifest_path, reason="expected a JSON object")
        declared.extend(repository_entries(manifest.get("repositories")))

    if config:
        declared.extend(config.repositories)

    auth = load_auth_headers(root_dir)
    manager = RepositoryManager()
    for entry in declared:
        if not isinstance(entry, dict):
            continue
        if is_packagist_toggle(entry):
            if next(iter(entry.values())) is False:
                use_packagist = False
            continue
        repository = build_repository(entry, root_dir, timeout, auth)
        if repository is not None:
            manager.add(repository)

    if use_packagist:
        manager.add(
            ComposerRepository(PACKAGIST_URL, timeout=timeout, headers=auth.get("repo.packagist.org", {}))
        )

    logger.debug(f"Loaded {len(manager.repositories())} repositories for {root_dir}")
    return manager
