"""Filesystem helpers shared by the lockfile, manifest and project writers."""
from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


def atomic_write(path: Path, content: Union[str, bytes]) -> None:
    """Write ``content`` to ``path`` via a sibling temp file and os.replace.

    Readers see either the previous file or the complete new one, never a
    partial write. Text is encoded as UTF-8; bytes are written unchanged.
    """
    data = content.encode("utf-8") if isinstance(content, str) else content
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, str(path))
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            logger.debug("Could not remove temp file %s", tmp)
        raise
