"""Project-local files.

- document.py: streaming patcher for the ``*.poly`` place document
- manifest.py: ``mosaic.toml`` read/write
"""

from .document import ProjectFile, inject, module_names, remove, update
from .manifest import ProjectManifest

__all__ = [
    "ProjectFile",
    "ProjectManifest",
    "inject",
    "module_names",
    "remove",
    "update",
]
