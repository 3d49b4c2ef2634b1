"""Traversal state for one top-level install or update."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from errors import CircularDependencyError
from lockfile.store import LockStore
from project.document import ProjectFile
from versioning.models import DependencyEdge, ResolvedPackage, VersionInfo


@dataclass
class InstallSession:
    """State shared by every frame of one DFS; discarded afterwards.

    ``visited`` maps names fully installed in this session to the version
    that was installed. ``recursion_stack`` holds the names on the active
    DFS path, in order.
    """

    lock: LockStore
    project: ProjectFile
    visited: Dict[str, str] = field(default_factory=dict)
    recursion_stack: List[str] = field(default_factory=list)
    installed: List[ResolvedPackage] = field(default_factory=list)

    def check_cycle(self, name: str) -> None:
        """Raise when ``name`` is already on the active path."""
        if name in self.recursion_stack:
            raise CircularDependencyError(self.recursion_stack + [name])

    def memoized(self, name: str) -> Optional[ResolvedPackage]:
        version = self.visited.get(name)
        if version is None:
            return None
        return ResolvedPackage(name, version)

    def enter(self, name: str) -> None:
        self.recursion_stack.append(name)

    def leave(self, package: ResolvedPackage) -> None:
        popped = self.recursion_stack.pop()
        assert popped == package.name, f"traversal stack out of order: {popped} != {package.name}"
        self.visited[package.name] = package.version
        self.installed.append(package)


@dataclass
class Frame:
    """A package whose dependencies are being installed."""

    package: ResolvedPackage
    metadata: VersionInfo
    pending: List[DependencyEdge]
    resolved_dependencies: Dict[str, str] = field(default_factory=dict)

    def next_dependency(self) -> Optional[DependencyEdge]:
        if not self.pending:
            return None
        return self.pending.pop(0)
