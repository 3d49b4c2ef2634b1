"""Centralized logging helpers.

Provides a single configure_logging() entry point plus small utilities used
throughout the client for structured DEBUG traces: extra_context() builds the
``extra=`` payload, is_debug_enabled() guards expensive formatting, safe_url()
and redact() keep credentials out of log output, and Timer measures durations.
"""
from __future__ import annotations

import logging
import os
import re
import sys
import time
import urllib.parse
from typing import Any, Dict, Optional

from constants import Constants

_SENSITIVE_PARAMS = {"token", "access_token", "api_key", "apikey", "key", "password", "secret"}
_BEARER_RE = re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE)

REDACTED = "[REDACTED]"


class _ContextFormatter(logging.Formatter):
    """Formatter that appends structured context fields at DEBUG level."""

    _RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if record.levelno > logging.DEBUG:
            return base
        fields = {
            k: v for k, v in vars(record).items()
            if k not in self._RESERVED and not k.startswith("_")
        }
        if not fields:
            return base
        rendered = " ".join(f"{k}={v}" for k, v in sorted(fields.items()))
        return f"{base} [{rendered}]"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once for CLI use.

    Level precedence: explicit argument, then the MOSAIC_LOG_LEVEL environment
    variable, then INFO. Existing handlers are replaced so repeated calls do
    not duplicate output.
    """
    level_name = (level or os.environ.get(Constants.ENV_LOG_LEVEL) or "INFO").upper()
    level_value = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_ContextFormatter(Constants.LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level_value)


def add_file_handler(path: str) -> None:
    """Mirror log output to a file."""
    file_handler = logging.FileHandler(path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(Constants.LOG_FILE_FORMAT))
    logging.getLogger().addHandler(file_handler)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records from this logger would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build an ``extra=`` mapping, dropping empty values."""
    return {k: v for k, v in fields.items() if v is not None}


def redact(text: str) -> str:
    """Mask bearer tokens embedded in free text."""
    if not text:
        return text
    return _BEARER_RE.sub(r"\1" + REDACTED, text)


def safe_url(url: str) -> str:
    """Strip credentials and sensitive query parameters from a URL."""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return redact(url)
    netloc = parts.netloc
    if "@" in netloc:
        netloc = f"{REDACTED}@{netloc.rsplit('@', 1)[1]}"
    query = urllib.parse.parse_qsl(parts.query, keep_blank_values=True)
    cleaned = [
        (k, REDACTED if k.lower() in _SENSITIVE_PARAMS else v)
        for k, v in query
    ]
    return urllib.parse.urlunsplit(
        (parts.scheme, netloc, parts.path, urllib.parse.urlencode(cleaned, safe="[]"), parts.fragment)
    )


class Timer:
    """Context manager measuring elapsed wall time."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc: Any) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)
