"""Lockfile typed model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class LockedPackage:
    """Recorded version, archive digest and resolved dependency versions."""

    version: str
    integrity: str
    dependencies: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LockedPackage":
        """Build an entry from a lockfile table.

        Raises:
            KeyError: ``version`` or ``integrity`` is missing.
            ValueError: ``dependencies`` is present but not a table.
        """
        deps = data.get("dependencies") or {}
        if not isinstance(deps, dict):
            raise ValueError("'dependencies' must be a table")
        return cls(
            version=str(data["version"]),
            integrity=str(data["integrity"]),
            dependencies={str(k): str(v) for k, v in deps.items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "integrity": self.integrity,
            "dependencies": {k: self.dependencies[k] for k in sorted(self.dependencies)},
        }
