"""Package query parsing and resolution models."""

from .models import (
    DependencyEdge,
    PackageInfo,
    PackageQuery,
    ResolutionMode,
    ResolvedPackage,
    VersionInfo,
)
from .parser import parse_query, tokenize_rightmost_at

__all__ = [
    "DependencyEdge",
    "PackageInfo",
    "PackageQuery",
    "ResolutionMode",
    "ResolvedPackage",
    "VersionInfo",
    "parse_query",
    "tokenize_rightmost_at",
]
