"""Dependency resolver.

- session.py: per-operation traversal state (visited, recursion stack)
- installer.py: Installer session operations and the DFS itself
"""

from .installer import Installer
from .session import Frame, InstallSession

__all__ = ["Frame", "InstallSession", "Installer"]
