"""Content verification for downloaded package archives.

The digest is a plain sha256 over the exact archive bytes. It is a
content-addressing check against the lockfile, so there is no salt and no
truncation.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Optional

from errors import SecurityError

from .models import LockedPackage

logger = logging.getLogger(__name__)


def digest(data: bytes) -> str:
    """Return the lower-case hex sha256 of ``data``."""
    return hashlib.sha256(data).hexdigest()


def verify(
    name: str,
    locked: Optional[LockedPackage],
    resolved_version: str,
    computed: str,
) -> None:
    """Compare a freshly computed digest against the lock entry.

    Only a lock entry for the same version is authoritative. A missing entry
    is a first install and a different locked version is an upgrade; neither
    is compared, the new digest simply replaces the old one.

    Raises:
        SecurityError: locked version matches but the digests differ.
    """
    if locked is None:
        logger.debug("No lock entry for %s, recording digest for %s", name, resolved_version)
        return
    if locked.version != resolved_version:
        logger.info(
            "%s changes from %s to %s; new digest is trusted without comparison",
            name,
            locked.version,
            resolved_version,
        )
        return
    expected = locked.integrity.lower().encode("utf-8")
    if not hmac.compare_digest(expected, computed.lower().encode("utf-8")):
        raise SecurityError(name, resolved_version, locked.integrity, computed)
    logger.debug("Integrity verified for %s@%s", name, resolved_version)
