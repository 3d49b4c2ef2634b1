"""Tests for Lua source extraction from package archives."""

import pytest

from errors import MissingSourceFileError
from fakes import make_archive
from registry.archive import extract_source


def test_single_lua_file():
    blob = make_archive({"logger.lua": "return {}", "README.md": "# logger"})
    assert extract_source(blob, "logger", "1.0.0") == "return {}"


def test_init_lua_preferred():
    blob = make_archive({"src/helpers.lua": "return 1", "src/init.lua": "return 2"})
    assert extract_source(blob, "logger", "1.0.0") == "return 2"


def test_first_lua_in_archive_order():
    blob = make_archive({"b.lua": "return 'b'", "a.lua": "return 'a'"})
    assert extract_source(blob, "logger", "1.0.0") == "return 'b'"


def test_no_lua_file():
    blob = make_archive({"README.md": "docs only"})
    with pytest.raises(MissingSourceFileError) as exc:
        extract_source(blob, "logger", "1.0.0")
    assert "logger@1.0.0" in str(exc.value)


def test_not_a_zip():
    with pytest.raises(MissingSourceFileError):
        extract_source(b"definitely not a zip", "logger", "1.0.0")


def test_invalid_utf8():
    blob = make_archive({"init.lua": b"\xff\xfe\x00"})
    with pytest.raises(MissingSourceFileError):
        extract_source(blob, "logger", "1.0.0")
