"""Tests for mosaic.toml handling."""

import pytest

from errors import ManifestError
from project.manifest import ProjectManifest


def test_default_manifest_round_trip(tmp_path):
    path = tmp_path / "mosaic.toml"
    ProjectManifest.default(path, "my-game").save()

    loaded = ProjectManifest.load(path)
    assert loaded.name == "my-game"
    assert loaded.version == "0.1.0"
    assert loaded.dependencies == {}


def test_dependencies_sorted_on_save(tmp_path):
    path = tmp_path / "mosaic.toml"
    manifest = ProjectManifest.default(path, "my-game")
    manifest.add_dependency("zlib", "1.0.0")
    manifest.add_dependency("logger", "1.2.0")
    manifest.save()

    text = path.read_text(encoding="utf-8")
    assert text.index("logger") < text.index("zlib")
    assert ProjectManifest.load(path).dependencies == {"logger": "1.2.0", "zlib": "1.0.0"}


def test_remove_dependency():
    manifest = ProjectManifest.default("mosaic.toml", "g")
    manifest.add_dependency("logger", "1.2.0")
    assert manifest.remove_dependency("logger") is True
    assert manifest.remove_dependency("logger") is False


def test_missing_manifest(tmp_path):
    with pytest.raises(ManifestError):
        ProjectManifest.load(tmp_path / "mosaic.toml")


def test_manifest_without_package_table(tmp_path):
    path = tmp_path / "mosaic.toml"
    path.write_text('[dependencies]\nlogger = "1.0.0"\n', encoding="utf-8")
    with pytest.raises(ManifestError):
        ProjectManifest.load(path)


def test_manifest_invalid_toml(tmp_path):
    path = tmp_path / "mosaic.toml"
    path.write_text("[package\n", encoding="utf-8")
    with pytest.raises(ManifestError):
        ProjectManifest.load(path)
