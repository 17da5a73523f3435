"""
Latest stable version lookup across package repositories.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .errors import AuditError, ErrorKind
from .models import PARAMETER_N_A
from .repositories import Repository, RepositoryError
from .versioning import version_key

logger = logging.getLogger(__name__)

STABLE = "stable"


def find_latest_stable_version(package_name: str, repositories: Sequence[Repository]) -> str:
    """Find the highest stable published version of a package.

    Repositories are queried in order and the first one that knows the
    package decides the result; candidates from later repositories are never
    merged in.

    Args:
        package_name: Repository package name (e.g., "vendor/foo")
        repositories: Repositories in lookup order

    Returns:
        Latest stable version, or N/A when no stable version is published

    Raises:
        AuditError: NO_REPOSITORIES_CONFIGURED or REPOSITORY_UNREACHABLE
    """
    if not repositories:
        raise AuditError(ErrorKind.NO_REPOSITORIES_CONFIGURED)

    candidates = []
    for repository in repositories:
        try:
            candidates = repository.find_packages(package_name)
        except RepositoryError as e:
            raise AuditError(
                ErrorKind.REPOSITORY_UNREACHABLE, repository=repository.name, reason=str(e)
            ) from e
        if candidates:
            logger.debug(f"{package_name}: {len(candidates)} versions in {repository.name}")
            break

    stable = [c for c in candidates if c.stability == STABLE]
    if not stable:
        logger.debug(f"{package_name}: no stable versions published")
        return PARAMETER_N_A

    return max(stable, key=lambda c: version_key(c.version)).version
