"""Tests for dependency resolution and installation."""

import asyncio
import logging

import pytest

from cli_config import ClientConfig
from errors import (
    CircularDependencyError,
    MissingSourceFileError,
    PackageNotFoundError,
    ProjectDocumentNotFoundError,
    SecurityError,
    VersionNotFoundError,
)
from fakes import EMPTY_PLACE, FakeRegistry, make_archive
from lockfile.integrity import digest
from lockfile.models import LockedPackage
from lockfile.store import LockStore
from project.document import ProjectFile, module_names
from resolver.installer import Installer
from resolver.session import InstallSession


@pytest.fixture
def project(tmp_path):
    (tmp_path / "game.poly").write_bytes(EMPTY_PLACE)
    return tmp_path


@pytest.fixture
def registry():
    return FakeRegistry()


def _installer(project_dir, registry):
    return Installer(ClientConfig(project_dir=project_dir), registry)


def _modules(project_dir):
    return module_names((project_dir / "game.poly").read_bytes())


def _lock(project_dir):
    return LockStore.load(project_dir / "mosaic.lock")


class TestInstall:

    def test_exact_version_install(self, project, registry):
        blob = registry.publish("logger", "1.2.0", source="return { log = print }")
        registry.publish("logger", "1.0.0", latest=False)

        resolved = asyncio.run(_installer(project, registry).install("logger@1.2.0"))

        assert str(resolved) == "logger@1.2.0"
        entry = _lock(project).get("logger")
        assert entry == LockedPackage(version="1.2.0", integrity=digest(blob), dependencies={})
        assert _modules(project) == ["logger"]
        assert b"return { log = print }" in (project / "game.poly").read_bytes()

    def test_bare_name_installs_latest(self, project, registry):
        registry.publish("logger", "1.0.0")
        registry.publish("logger", "1.2.0")

        resolved = asyncio.run(_installer(project, registry).install("logger"))
        assert resolved.version == "1.2.0"
        assert _lock(project).get("logger").version == "1.2.0"

    def test_dependencies_installed_first(self, project, registry):
        registry.publish("util", "1.0.0")
        registry.publish("app", "2.0.0", dependencies={"util": "1.0.0"})

        asyncio.run(_installer(project, registry).install("app"))

        assert registry.downloads == ["util@1.0.0", "app@2.0.0"]
        assert _modules(project) == ["util", "app"]
        assert _lock(project).get("app").dependencies == {"util": "1.0.0"}

    def test_latest_dependency_recorded_as_resolved_version(self, project, registry):
        registry.publish("util", "3.1.0")
        registry.publish("app", "1.0.0", dependencies={"util": "latest"})

        asyncio.run(_installer(project, registry).install("app@1.0.0"))
        assert _lock(project).get("app").dependencies == {"util": "3.1.0"}

    def test_reinstall_is_stable(self, project, registry):
        registry.publish("logger", "1.2.0")
        installer = _installer(project, registry)

        asyncio.run(installer.install("logger@1.2.0"))
        lock_before = (project / "mosaic.lock").read_bytes()
        place_before = (project / "game.poly").read_bytes()

        asyncio.run(installer.install("logger@1.2.0"))
        assert (project / "mosaic.lock").read_bytes() == lock_before
        assert (project / "game.poly").read_bytes() == place_before

    def test_deprecation_warning(self, project, registry, caplog):
        registry.publish("oldlib", "0.9.0")
        registry.deprecate("oldlib", "use newlib")

        asyncio.run(_installer(project, registry).install("oldlib"))
        assert "deprecated: use newlib" in caplog.text


class TestGraph:

    def test_cycle_detected(self, project, registry):
        registry.publish("A", "1.0.0", dependencies={"B": "1.0.0"})
        registry.publish("B", "1.0.0", dependencies={"C": "1.0.0"})
        registry.publish("C", "1.0.0", dependencies={"A": "1.0.0"})

        with pytest.raises(CircularDependencyError) as exc:
            asyncio.run(_installer(project, registry).install("A"))

        assert exc.value.path == "A -> B -> C -> A"
        assert str(exc.value) == "Circular dependency detected: A -> B -> C -> A"
        assert registry.downloads == []
        assert not (project / "mosaic.lock").exists()

    def test_self_dependency(self, project, registry):
        registry.publish("A", "1.0.0", dependencies={"A": "1.0.0"})
        with pytest.raises(CircularDependencyError) as exc:
            asyncio.run(_installer(project, registry).install("A"))
        assert exc.value.path == "A -> A"

    def test_diamond_installs_shared_dependency_once(self, project, registry):
        registry.publish("D", "1.0.0")
        registry.publish("B", "1.0.0", dependencies={"D": "1.0.0"})
        registry.publish("C", "1.0.0", dependencies={"D": "1.0.0"})
        registry.publish("A", "1.0.0", dependencies={"B": "1.0.0", "C": "1.0.0"})

        asyncio.run(_installer(project, registry).install("A"))

        assert registry.downloads.count("D@1.0.0") == 1
        assert _lock(project).names() == ["A", "B", "C", "D"]
        assert _modules(project) == ["D", "B", "C", "A"]
        assert _lock(project).get("C").dependencies == {"D": "1.0.0"}

    def test_conflicting_versions_keep_first(self, project, registry, caplog):
        registry.publish("D", "1.0.0", latest=False)
        registry.publish("D", "2.0.0")
        registry.publish("B", "1.0.0", dependencies={"D": "1.0.0"})
        registry.publish("C", "1.0.0", dependencies={"D": "2.0.0"})
        registry.publish("A", "1.0.0", dependencies={"B": "1.0.0", "C": "1.0.0"})

        caplog.set_level(logging.WARNING)
        asyncio.run(_installer(project, registry).install("A"))

        assert _lock(project).get("D").version == "1.0.0"
        assert _lock(project).get("C").dependencies == {"D": "1.0.0"}
        assert "keeping 1.0.0" in caplog.text

    def test_deep_chain_does_not_recurse(self, project, registry, monkeypatch):
        # Longer than the default recursion limit.
        monkeypatch.setattr(ProjectFile, "inject", lambda self, name, source: None)
        depth = 1200
        registry.publish("pkg0", "1.0.0")
        for i in range(1, depth):
            registry.publish(f"pkg{i}", "1.0.0", dependencies={f"pkg{i - 1}": "1.0.0"})

        asyncio.run(_installer(project, registry).install(f"pkg{depth - 1}"))
        assert len(_lock(project)) == depth


class TestIntegrity:

    def test_tampered_archive_rejected(self, project, registry):
        registry.publish("logger", "1.2.0")
        store = LockStore(project / "mosaic.lock")
        store.insert("logger", LockedPackage(version="1.2.0", integrity="0" * 64))
        store.save()
        lock_before = (project / "mosaic.lock").read_bytes()

        with pytest.raises(SecurityError):
            asyncio.run(_installer(project, registry).install("logger@1.2.0"))

        assert (project / "mosaic.lock").read_bytes() == lock_before
        assert (project / "game.poly").read_bytes() == EMPTY_PLACE

    def test_upgrade_replaces_digest(self, project, registry):
        blob = registry.publish("logger", "1.2.0")
        store = LockStore(project / "mosaic.lock")
        store.insert("logger", LockedPackage(version="1.0.0", integrity="0" * 64))
        store.save()

        asyncio.run(_installer(project, registry).install("logger@1.2.0"))

        entry = _lock(project).get("logger")
        assert entry.version == "1.2.0"
        assert entry.integrity == digest(blob)


class TestFailures:

    def test_unknown_package(self, project, registry):
        with pytest.raises(PackageNotFoundError):
            asyncio.run(_installer(project, registry).install("ghost"))

    def test_unknown_version(self, project, registry):
        registry.publish("logger", "1.2.0")
        with pytest.raises(VersionNotFoundError) as exc:
            asyncio.run(_installer(project, registry).install("logger@9.9.9"))
        assert str(exc.value) == "Version 9.9.9 not found for package logger"

    def test_archive_without_lua(self, project, registry):
        registry.publish("docs", "1.0.0", archive=make_archive({"README.md": "nothing"}))
        with pytest.raises(MissingSourceFileError):
            asyncio.run(_installer(project, registry).install("docs"))
        assert not (project / "mosaic.lock").exists()

    def test_missing_place_document(self, tmp_path, registry):
        registry.publish("logger", "1.2.0")
        with pytest.raises(ProjectDocumentNotFoundError):
            asyncio.run(_installer(tmp_path, registry).install("logger"))
        assert registry.lookups == []


class TestSessionOperations:

    def test_install_all_and_update_all(self, project, registry):
        registry.publish("logger", "1.0.0")
        registry.publish("util", "0.5.0")
        installer = _installer(project, registry)

        results = asyncio.run(installer.install_all({"logger": "1.0.0", "util": "latest"}))
        assert {n: r.version for n, r in results.items()} == {"logger": "1.0.0", "util": "0.5.0"}

        registry.publish("logger", "1.1.0")
        updated = asyncio.run(installer.update_all(["logger", "util"]))
        assert updated["logger"].version == "1.1.0"
        assert _lock(project).get("logger").version == "1.1.0"
        assert _modules(project) == ["logger", "util"]

    def test_remove(self, project, registry):
        registry.publish("logger", "1.2.0")
        installer = _installer(project, registry)
        asyncio.run(installer.install("logger"))

        assert installer.remove("logger") is True
        assert _lock(project).get("logger") is None
        assert _modules(project) == []
        assert installer.remove("logger") is False

    def test_remove_and_installed_without_registry(self, project, registry):
        registry.publish("logger", "1.2.0")
        asyncio.run(_installer(project, registry).install("logger"))

        offline = Installer(ClientConfig(project_dir=project))
        assert [name for name, _ in offline.installed()] == ["logger"]
        assert offline.remove("logger") is True
        assert offline.installed() == []

    def test_install_without_registry_rejected(self, project):
        with pytest.raises(ValueError):
            asyncio.run(Installer(ClientConfig(project_dir=project)).install("logger"))

    def test_installed_lists_lock_entries(self, project, registry):
        registry.publish("b", "1.0.0")
        registry.publish("a", "1.0.0")
        installer = _installer(project, registry)
        asyncio.run(installer.install_all({"b": "1.0.0", "a": "1.0.0"}))

        assert [name for name, _ in installer.installed()] == ["a", "b"]


def test_session_cycle_chain(project):
    session = InstallSession(lock=LockStore(project / "mosaic.lock"), project=None)
    session.enter("A")
    session.enter("B")
    with pytest.raises(CircularDependencyError) as exc:
        session.check_cycle("A")
    assert exc.value.chain == ["A", "B", "A"]
    session.check_cycle("C")
