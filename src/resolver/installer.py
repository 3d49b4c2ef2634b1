"""Dependency resolution and installation.

An install session walks the dependency graph depth-first. Every package's
dependencies are installed before its own archive is downloaded, so a module
can assume the modules it requires are already in the project document.

The walk keeps an explicit stack of frames instead of recursing, so the depth
of a dependency chain is not bounded by the interpreter's recursion limit.
Cycle and memo checks use the session's ``recursion_stack`` and ``visited``.

The lockfile is the session's single commit point: it is written only after
every package resolved. Document writes happen per package and are not rolled
back when a later package fails.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from cli_config import ClientConfig
from common.logging_utils import extra_context, is_debug_enabled
from errors import MissingSourceFileError, PackageNotFoundError, RegistryError
from lockfile.integrity import digest, verify
from lockfile.models import LockedPackage
from lockfile.store import LockStore
from project.document import ProjectFile
from registry.archive import extract_source
from registry.client import RegistryClient
from versioning.models import PackageInfo, PackageQuery, ResolvedPackage
from versioning.parser import parse_query

from .session import Frame, InstallSession

logger = logging.getLogger(__name__)


class Installer:
    """Resolves package queries and materializes them into the project."""

    def __init__(self, config: ClientConfig, registry: Optional[RegistryClient] = None):
        """Initialize the installer.

        Args:
            config: Client configuration (project directory, file locations).
            registry: Registry client used for metadata and downloads. Only
                install and update need it; remove and installed work offline.
        """
        self.config = config
        self.registry = registry

    # -- sessions ----------------------------------------------------------

    def open_session(self) -> InstallSession:
        """Locate the project document and load the lockfile.

        Raises:
            ValueError: the installer was built without a registry client.
            ProjectDocumentNotFoundError: no ``*.poly`` file in the project.
            LockfileError: the lockfile exists but is unreadable.
        """
        if self.registry is None:
            raise ValueError("Installer needs a registry client to install packages")
        project = ProjectFile.locate(self.config.project_dir)
        lock = LockStore.load(self.config.lockfile_path)
        return InstallSession(lock=lock, project=project)

    async def install(self, query: str) -> ResolvedPackage:
        """Install one query and its dependency graph, then save the lockfile."""
        session = self.open_session()
        result = await self.resolve_and_install(query, session)
        session.lock.save()
        logger.info("Installed %s (%d package(s) processed)", result, len(session.installed))
        return result

    async def install_all(self, dependencies: Mapping[str, str]) -> Dict[str, ResolvedPackage]:
        """Install every ``name -> requirement`` pair in one session."""
        session = self.open_session()
        results: Dict[str, ResolvedPackage] = {}
        for name, requirement in dependencies.items():
            logger.info("Installing dependency: %s (%s)", name, requirement)
            results[name] = await self.resolve_and_install(f"{name}@{requirement}", session)
        session.lock.save()
        return results

    async def update_all(self, names: Iterable[str]) -> Dict[str, ResolvedPackage]:
        """Re-resolve each name at its latest version in one session."""
        session = self.open_session()
        results: Dict[str, ResolvedPackage] = {}
        for name in names:
            previous = session.lock.get(name)
            resolved = await self.resolve_and_install(name, session)
            if previous is not None and previous.version != resolved.version:
                logger.info("Updated %s: %s -> %s", name, previous.version, resolved.version)
            results[name] = resolved
        session.lock.save()
        return results

    def remove(self, name: str) -> bool:
        """Remove a module from the document and its lock entry.

        Returns True when anything was removed; removing an unknown package
        is not an error.
        """
        project = ProjectFile.locate(self.config.project_dir)
        lock = LockStore.load(self.config.lockfile_path)
        removed_module = project.remove(name)
        removed_lock = lock.remove(name)
        if removed_lock:
            lock.save()
        if not (removed_module or removed_lock):
            logger.info("%s is not installed", name)
        return removed_module or removed_lock

    def installed(self) -> List[Tuple[str, LockedPackage]]:
        return list(LockStore.load(self.config.lockfile_path).items())

    # -- traversal ---------------------------------------------------------

    async def resolve_and_install(self, query: str, session: InstallSession) -> ResolvedPackage:
        """Resolve ``query`` and install it with all of its dependencies.

        Raises:
            ResolutionError: malformed query, unknown package or version,
                dependency cycle, integrity mismatch or missing source file.
            RegistryError: registry transport failure.
            DocumentParseError: the project document is malformed.
        """
        root = await self._open(query, session)
        if isinstance(root, ResolvedPackage):
            return root

        stack: List[Frame] = [root]
        while stack:
            frame = stack[-1]
            edge = frame.next_dependency()
            if edge is not None:
                child = await self._open(edge.as_query(), session)
                if isinstance(child, Frame):
                    stack.append(child)
                else:
                    frame.resolved_dependencies[child.name] = child.version
                continue

            await self._complete(frame, session)
            stack.pop()
            if stack:
                stack[-1].resolved_dependencies[frame.package.name] = frame.package.version
        return root.package

    async def _open(self, query: str, session: InstallSession) -> Union[Frame, ResolvedPackage]:
        """Start a package: returns a memoized result or a new frame."""
        parsed = parse_query(query)
        session.check_cycle(parsed.name)

        memo = session.memoized(parsed.name)
        if memo is not None:
            if parsed.version is not None and parsed.version != memo.version:
                logger.warning(
                    "%s requested at %s but %s is already installed in this run; keeping %s",
                    parsed.name,
                    parsed.version,
                    memo.version,
                    memo.version,
                )
            logger.debug("Already installed in this run: %s", memo)
            return memo

        package = await self._resolve(parsed)
        session.enter(package.name)
        metadata = await self.registry.get_version(package.name, package.version)
        if is_debug_enabled(logger):
            logger.debug(
                "Resolved package",
                extra=extra_context(
                    event="resolve",
                    component="installer",
                    package=str(package),
                    depth=len(session.recursion_stack),
                    dependency_count=len(metadata.dependencies),
                ),
            )
        return Frame(package=package, metadata=metadata, pending=metadata.dependency_edges())

    async def _resolve(self, query: PackageQuery) -> ResolvedPackage:
        if query.version is None:
            info = await self.registry.get_package(query.name)
            self._warn_deprecated(info)
            return ResolvedPackage(query.name, info.version)

        try:
            info = await self.registry.get_package(query.name)
        except (PackageNotFoundError, RegistryError) as exc:
            # Only the deprecation notice depends on this lookup.
            logger.debug("Skipping deprecation check for %s: %s", query.name, exc)
        else:
            self._warn_deprecated(info)
        return ResolvedPackage(query.name, query.version)

    @staticmethod
    def _warn_deprecated(info: PackageInfo) -> None:
        if info.deprecated:
            reason = info.deprecation_reason or "no reason given"
            logger.warning("Package %s is deprecated: %s", info.name, reason)

    async def _complete(self, frame: Frame, session: InstallSession) -> None:
        """Download, verify, lock and inject a package whose deps are done."""
        package = frame.package
        source_url = frame.metadata.lua_source_url
        if not source_url:
            raise MissingSourceFileError(f"Source URL missing for package {package}")

        blob = await self.registry.download(source_url, package=str(package))
        computed = digest(blob)
        verify(package.name, session.lock.get(package.name), package.version, computed)

        session.lock.insert(
            package.name,
            LockedPackage(
                version=package.version,
                integrity=computed,
                dependencies=dict(sorted(frame.resolved_dependencies.items())),
            ),
        )

        source = extract_source(blob, package.name, package.version)
        session.project.inject(package.name, source)
        session.leave(package)
        logger.info("Installed %s into %s", package, session.project.path.name)
