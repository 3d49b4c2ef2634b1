"""Project manifest (``mosaic.toml``) persistence.

The manifest declares the project and its direct dependencies as
``name = "version"`` pairs. The resolver only reads it; the CLI records
new installs and removals here after the resolver succeeds.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

import toml

from common.fs_utils import atomic_write
from constants import Constants
from errors import ManifestError

logger = logging.getLogger(__name__)


@dataclass
class ProjectManifest:
    """Parsed ``mosaic.toml``."""

    path: Path
    name: str
    version: str = Constants.DEFAULT_PROJECT_VERSION
    dependencies: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def default(cls, path: Path, name: str) -> "ProjectManifest":
        return cls(path=Path(path), name=name)

    @classmethod
    def load(cls, path: Path) -> "ProjectManifest":
        """Read the manifest.

        Raises:
            ManifestError: the file is missing or invalid.
        """
        path = Path(path)
        if not path.exists():
            raise ManifestError(f"Could not find {path.name} in {path.parent}")
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ManifestError(f"Failed to read {path}: {exc}") from exc

        package = data.get("package")
        if not isinstance(package, dict) or not package.get("name"):
            raise ManifestError(f"{path}: [package] table with a name is required")
        deps = data.get("dependencies") or {}
        if not isinstance(deps, dict):
            raise ManifestError(f"{path}: [dependencies] must be a table")

        return cls(
            path=path,
            name=str(package["name"]),
            version=str(package.get("version", Constants.DEFAULT_PROJECT_VERSION)),
            dependencies={str(k): str(v) for k, v in deps.items()},
        )

    def add_dependency(self, name: str, version: str) -> None:
        self.dependencies[name] = version

    def remove_dependency(self, name: str) -> bool:
        return self.dependencies.pop(name, None) is not None

    def dumps(self) -> str:
        data = {
            "package": {"name": self.name, "version": self.version},
            "dependencies": {k: self.dependencies[k] for k in sorted(self.dependencies)},
        }
        return toml.dumps(data)

    def save(self) -> None:
        try:
            atomic_write(self.path, self.dumps())
        except OSError as exc:
            raise ManifestError(f"Failed to write {self.path}: {exc}") from exc
        logger.debug("Saved manifest %s", self.path)
