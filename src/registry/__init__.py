"""Mosaic registry access.

- client.py: async HTTP client for package metadata, versions and archives
- archive.py: extraction of the Lua source from a downloaded archive
"""

from .archive import extract_source
from .client import RegistryClient

__all__ = ["RegistryClient", "extract_source"]
