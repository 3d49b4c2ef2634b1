"""Token parsing utilities for package queries."""

from typing import Optional, Tuple

from constants import Constants
from errors import InvalidQueryError

from .models import PackageQuery


def tokenize_rightmost_at(s: str) -> Tuple[str, Optional[str]]:
    """Return (name, spec or None) split on the rightmost '@'."""
    s = s.strip()
    if '@' not in s:
        return s, None
    name, spec = s.rsplit('@', 1)
    return name.strip(), spec.strip()


def _is_latest(spec: Optional[str]) -> bool:
    return spec is None or spec == '' or spec.lower() in Constants.LATEST_ALIASES


def _looks_like_range(spec: str) -> bool:
    return any(op in spec for op in Constants.RANGE_OPERATORS)


def parse_query(token: str) -> PackageQuery:
    """Parse ``name`` or ``name@version`` into a PackageQuery.

    ``latest``, ``*`` or an empty spec after '@' mean "resolve to latest".
    Range requirements are rejected: the registry only answers exact or
    latest lookups.
    """
    if token is None or not token.strip():
        raise InvalidQueryError(str(token), "package name is empty")

    raw = token.strip()
    if raw.count('@') > 1:
        raise InvalidQueryError(raw, "expected at most one '@' separating name and version")

    name, spec = tokenize_rightmost_at(raw)
    if not name:
        raise InvalidQueryError(raw, "package name is empty")
    if any(ch.isspace() for ch in name):
        raise InvalidQueryError(raw, "package name must not contain whitespace")

    if _is_latest(spec):
        return PackageQuery(name=name, version=None, raw=raw)

    assert spec is not None
    if _looks_like_range(spec):
        raise InvalidQueryError(raw, f"version ranges are not supported ('{spec}')")
    return PackageQuery(name=name, version=spec, raw=raw)
