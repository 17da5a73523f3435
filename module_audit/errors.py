"""
Audit error taxonomy.

Every hard failure of the audit engine is raised as an AuditError tagged with
an ErrorKind. The structured details (module, file, field, repository, reason)
travel with the exception so callers can report them without parsing prose.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Kinds of audit failures."""

    NOT_REGISTERED = "not_registered"
    MISSING_PROPERTY = "missing_property"
    MALFORMED_METADATA = "malformed_metadata"
    NO_REPOSITORIES_CONFIGURED = "no_repositories_configured"
    REPOSITORY_UNREACHABLE = "repository_unreachable"
    CONFIG_SOURCE_MISSING = "config_source_missing"


_MESSAGES = {
    ErrorKind.NOT_REGISTERED: "Module with name {module} not found or not registered",
    ErrorKind.MISSING_PROPERTY: "Property {field} not found in {file}",
    ErrorKind.MALFORMED_METADATA: "Wrong metadata file {file}",
    ErrorKind.NO_REPOSITORIES_CONFIGURED: "No repositories found",
    ErrorKind.REPOSITORY_UNREACHABLE: "Wrong repository link: {repository}",
    ErrorKind.CONFIG_SOURCE_MISSING: "Key '{key}' not found in deployment config {file}",
}


class AuditError(Exception):
    """Raised when a module cannot be audited.

    Attributes:
        kind: Failure kind
        details: Structured payload used to format the message
    """

    def __init__(self, kind: ErrorKind, **details: Any):
        self.kind = kind
        self.details = details
        message = _MESSAGES[kind].format_map(_Defaulting(details))
        reason = details.get("reason")
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": self.kind.value,
            "message": str(self),
            **{key: str(value) for key, value in self.details.items()},
        }


class _Defaulting(dict):
    def __missing__(self, key: str) -> str:
        return "?"
