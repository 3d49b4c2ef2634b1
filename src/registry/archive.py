"""Extraction of the installable Lua source from a package archive."""

from __future__ import annotations

import io
import logging
import zipfile
from pathlib import PurePosixPath

from constants import Constants
from errors import MissingSourceFileError

logger = logging.getLogger(__name__)


def extract_source(data: bytes, name: str, version: str) -> str:
    """Return the text of the archive's Lua source file.

    Packages ship one ``.lua`` file plus optional docs. ``init.lua`` is
    preferred when an archive carries several; otherwise the first in archive
    order is used.

    Raises:
        MissingSourceFileError: not a zip, no ``.lua`` entry, or not UTF-8.
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as exc:
        raise MissingSourceFileError(
            f"Archive for {name}@{version} is not a valid zip file"
        ) from exc

    with archive:
        candidates = [
            info for info in archive.infolist()
            if not info.is_dir() and info.filename.lower().endswith(Constants.SOURCE_FILE_SUFFIX)
        ]
        if not candidates:
            raise MissingSourceFileError(
                f"No {Constants.SOURCE_FILE_SUFFIX} file found in package archive for {name}@{version}"
            )
        preferred = [
            info for info in candidates
            if PurePosixPath(info.filename).name == Constants.PREFERRED_SOURCE_FILE
        ]
        entry = (preferred or candidates)[0]
        if len(candidates) > 1:
            logger.debug("%s@%s has %d Lua files, using %s", name, version, len(candidates), entry.filename)
        raw = archive.read(entry)

    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MissingSourceFileError(
            f"{entry.filename} in {name}@{version} is not valid UTF-8"
        ) from exc
