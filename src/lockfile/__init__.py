"""Lockfile package.

- models.py: LockedPackage entry
- store.py: LockStore load/get/insert/save for mosaic.lock
- integrity.py: archive digest and lock comparison
"""

from .integrity import digest, verify
from .models import LockedPackage
from .store import LockStore

__all__ = ["LockStore", "LockedPackage", "digest", "verify"]
