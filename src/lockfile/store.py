"""Lock store backed by ``mosaic.lock``.

The store is an in-memory map of package name to LockedPackage. It is loaded
once when an install session starts, mutated only by the resolver, and written
back once when the session completes. Serialization sorts every key so that
saving unchanged content produces byte-identical output.
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

import toml

from common.fs_utils import atomic_write
from common.logging_utils import extra_context, is_debug_enabled
from errors import LockfileError

from .models import LockedPackage

logger = logging.getLogger(__name__)


class LockStore:
    """Package name -> LockedPackage, persisted as TOML."""

    def __init__(self, path: Path, packages: Optional[Dict[str, LockedPackage]] = None):
        """Initialize the store.

        Args:
            path: Location of the lockfile on disk.
            packages: Initial entries; empty when omitted.
        """
        self.path = Path(path)
        self._packages: Dict[str, LockedPackage] = dict(packages or {})

    @classmethod
    def load(cls, path: Path) -> "LockStore":
        """Load the lockfile; a missing file yields an empty store.

        Raises:
            LockfileError: the file exists but is not a valid lockfile.
        """
        path = Path(path)
        if not path.exists():
            logger.debug("No lockfile at %s, starting empty", path)
            return cls(path)

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise LockfileError(f"Failed to read lockfile {path}: {exc}") from exc

        raw_packages = data.get("packages") or {}
        if not isinstance(raw_packages, dict):
            raise LockfileError(f"Lockfile {path}: 'packages' must be a table")

        packages: Dict[str, LockedPackage] = {}
        for name, entry in raw_packages.items():
            if not isinstance(entry, dict):
                raise LockfileError(f"Lockfile {path}: entry for '{name}' must be a table")
            try:
                packages[name] = LockedPackage.from_dict(entry)
            except KeyError as exc:
                raise LockfileError(
                    f"Lockfile {path}: entry for '{name}' is missing {exc}"
                ) from exc
            except (TypeError, AttributeError, ValueError) as exc:
                raise LockfileError(
                    f"Lockfile {path}: entry for '{name}' is malformed: {exc}"
                ) from exc

        if is_debug_enabled(logger):
            logger.debug(
                "Loaded lockfile",
                extra=extra_context(
                    event="lockfile_load",
                    component="lock_store",
                    target=str(path),
                    count=len(packages),
                ),
            )
        return cls(path, packages)

    def get(self, name: str) -> Optional[LockedPackage]:
        return self._packages.get(name)

    def insert(self, name: str, entry: LockedPackage) -> None:
        """Upsert the entry for ``name``; the last writer wins."""
        self._packages[name] = entry

    def remove(self, name: str) -> bool:
        """Drop the entry for ``name``. Returns False when there was none."""
        return self._packages.pop(name, None) is not None

    def names(self) -> List[str]:
        return sorted(self._packages)

    def items(self) -> Iterator[Tuple[str, LockedPackage]]:
        for name in self.names():
            yield name, self._packages[name]

    def __contains__(self, name: object) -> bool:
        return name in self._packages

    def __len__(self) -> int:
        return len(self._packages)

    def dumps(self) -> str:
        """Render the lockfile with stable key ordering."""
        data = {
            "packages": {
                name: self._packages[name].to_dict() for name in sorted(self._packages)
            }
        }
        return toml.dumps(data)

    def save(self) -> None:
        """Write the lockfile atomically.

        Raises:
            LockfileError: the file could not be written.
        """
        try:
            atomic_write(self.path, self.dumps())
        except OSError as exc:
            raise LockfileError(f"Failed to write lockfile {self.path}: {exc}") from exc
        logger.debug("Saved %d lock entries to %s", len(self._packages), self.path)
