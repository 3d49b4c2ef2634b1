"""Data models for package queries and resolution."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class ResolutionMode(Enum):
    """Resolution strategy derived from the query."""
    EXACT = "exact"
    LATEST = "latest"


@dataclass(frozen=True)
class PackageQuery:
    """Parsed ``name`` or ``name@version`` query."""
    name: str
    version: Optional[str]
    raw: str

    @property
    def mode(self) -> ResolutionMode:
        return ResolutionMode.LATEST if self.version is None else ResolutionMode.EXACT

    def __str__(self) -> str:
        return self.name if self.version is None else f"{self.name}@{self.version}"


@dataclass(frozen=True)
class ResolvedPackage:
    """Concrete name/version selected for a query."""
    name: str
    version: str

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass(frozen=True)
class DependencyEdge:
    """A declared dependency of one package version."""
    name: str
    requirement: str

    def as_query(self) -> str:
        return f"{self.name}@{self.requirement}"


@dataclass
class PackageInfo:
    """Package-level metadata returned by the registry."""
    name: str
    version: str
    deprecated: bool = False
    deprecation_reason: Optional[str] = None
    description: str = ""
    author: str = ""


@dataclass
class VersionInfo:
    """One published version of a package."""
    version: str
    lua_source_url: Optional[str]
    dependencies: Dict[str, str] = field(default_factory=dict)

    def dependency_edges(self) -> List[DependencyEdge]:
        """Declared dependencies in registry response order."""
        return [DependencyEdge(name, str(req)) for name, req in self.dependencies.items()]
