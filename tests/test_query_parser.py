"""Tests for package query parsing."""

import pytest

from errors import InvalidQueryError, ResolutionError
from versioning.models import ResolutionMode
from versioning.parser import parse_query, tokenize_rightmost_at


def test_tokenize_rightmost_at():
    assert tokenize_rightmost_at("logger") == ("logger", None)
    assert tokenize_rightmost_at("logger@1.2.0") == ("logger", "1.2.0")
    assert tokenize_rightmost_at(" logger @ 1.2.0 ") == ("logger", "1.2.0")


def test_bare_name_resolves_latest():
    q = parse_query("logger")
    assert q.name == "logger"
    assert q.version is None
    assert q.mode == ResolutionMode.LATEST
    assert str(q) == "logger"


def test_exact_version():
    q = parse_query("logger@1.2.0")
    assert q.version == "1.2.0"
    assert q.mode == ResolutionMode.EXACT
    assert str(q) == "logger@1.2.0"


@pytest.mark.parametrize("token", ["logger@latest", "logger@LATEST", "logger@*", "logger@"])
def test_latest_aliases(token):
    q = parse_query(token)
    assert q.name == "logger"
    assert q.version is None


@pytest.mark.parametrize("token", ["logger@^1.0.0", "logger@~1.2", "logger@>=1.0", "logger@1.0 || 2.0"])
def test_ranges_rejected(token):
    with pytest.raises(InvalidQueryError) as exc:
        parse_query(token)
    assert "ranges are not supported" in str(exc.value)


@pytest.mark.parametrize("token", ["", "   ", "@1.0.0", "a@b@c", "my logger@1.0.0"])
def test_malformed_queries(token):
    with pytest.raises(InvalidQueryError):
        parse_query(token)


def test_invalid_query_is_resolution_error():
    with pytest.raises(ResolutionError):
        parse_query("a@1@2")
