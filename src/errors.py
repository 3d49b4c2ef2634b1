"""Exception hierarchy for the mosaic client.

Every failure raised by the resolver, the registry client, the lock store or
the document patcher derives from MosaicError. The CLI maps the ``code`` of
each class onto an exit code; nothing below is recovered from silently.
"""

from __future__ import annotations

from typing import List, Optional

from constants import ExitCodes


class MosaicError(Exception):
    """Base class for all client errors."""

    code: str = "UNKNOWN"
    exit_code: ExitCodes = ExitCodes.FILE_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ResolutionError(MosaicError):
    """Raised when a package query cannot be resolved and installed."""

    code = "RESOLUTION_ERROR"
    exit_code = ExitCodes.RESOLUTION_ERROR


class InvalidQueryError(ResolutionError):
    """Malformed ``name`` / ``name@version`` query."""

    code = "INVALID_QUERY"

    def __init__(self, query: str, reason: str) -> None:
        super().__init__(f"Invalid package query '{query}': {reason}")
        self.query = query


class PackageNotFoundError(ResolutionError):
    """The registry has no package with this name."""

    code = "PACKAGE_NOT_FOUND"

    def __init__(self, name: str) -> None:
        super().__init__(f"Package '{name}' not found in registry")
        self.name = name


class VersionNotFoundError(ResolutionError):
    """The package exists but the requested version does not."""

    code = "VERSION_NOT_FOUND"

    def __init__(self, name: str, version: str) -> None:
        super().__init__(f"Version {version} not found for package {name}")
        self.name = name
        self.version = version


class CircularDependencyError(ResolutionError):
    """A package depends on itself through its dependency chain."""

    code = "CIRCULAR_DEPENDENCY"

    def __init__(self, chain: List[str]) -> None:
        self.chain = list(chain)
        super().__init__(f"Circular dependency detected: {self.path}")

    @property
    def path(self) -> str:
        return " -> ".join(self.chain)


class SecurityError(ResolutionError):
    """Downloaded content does not match the digest recorded in the lockfile."""

    code = "INTEGRITY_MISMATCH"
    exit_code = ExitCodes.INTEGRITY_ERROR

    def __init__(self, name: str, version: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Integrity check failed for {name}@{version}: "
            f"lockfile has {expected}, downloaded content hashes to {actual}. "
            "The package may have been tampered with."
        )
        self.name = name
        self.version = version
        self.expected = expected
        self.actual = actual


class MissingSourceFileError(ResolutionError):
    """No installable source file (or no project document) was found."""

    code = "MISSING_SOURCE_FILE"
    exit_code = ExitCodes.FILE_ERROR


class ProjectDocumentNotFoundError(MissingSourceFileError):
    """The project directory has no place document to inject into."""

    def __init__(self, directory: str, suffix: str) -> None:
        super().__init__(f"No {suffix} file found in {directory}")
        self.directory = directory


class DocumentParseError(MosaicError):
    """The project document is not well-formed markup."""

    code = "PARSE_ERROR"

    def __init__(self, message: str, offset: Optional[int] = None) -> None:
        if offset is not None:
            message = f"{message} (at byte {offset})"
        super().__init__(message)
        self.offset = offset


class LockfileError(MosaicError):
    """The lockfile exists but cannot be read or written."""

    code = "FILE_ERROR"


class ManifestError(MosaicError):
    """The project manifest is missing or invalid."""

    code = "FILE_ERROR"


class RegistryError(MosaicError):
    """Transport failure or unexpected response from the registry."""

    code = "IO_ERROR"
    exit_code = ExitCodes.CONNECTION_ERROR

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.url = url
