"""Tests for argument parsing and runtime configuration."""

import argparse
from pathlib import Path

import pytest

from args import parse_args
from cli_config import ClientConfig, load_config_file
from constants import Constants
from errors import ManifestError


def _ns(**kwargs):
    defaults = {"CONFIG": None, "API_URL": None, "LOG_LEVEL": None, "LOG_FILE": None, "PROJECT_DIR": None}
    defaults.update(kwargs)
    return argparse.Namespace(**defaults)


class TestArgs:

    def test_install_with_query(self):
        args = parse_args(["install", "logger@1.2.0"])
        assert args.COMMAND == "install"
        assert args.PACKAGE == "logger@1.2.0"

    def test_install_without_query(self):
        assert parse_args(["install"]).PACKAGE is None

    def test_global_options(self):
        args = parse_args(["--api-url", "http://localhost:3000", "--loglevel", "debug", "-C", "proj", "list"])
        assert args.API_URL == "http://localhost:3000"
        assert args.LOG_LEVEL == "DEBUG"
        assert args.PROJECT_DIR == "proj"
        assert args.COMMAND == "list"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])

    def test_remove_requires_name(self):
        with pytest.raises(SystemExit):
            parse_args(["remove"])


class TestClientConfig:

    def test_defaults(self):
        config = ClientConfig.from_args(_ns(), environ={})
        assert config.registry_url == Constants.REGISTRY_URL
        assert config.timeout == Constants.REQUEST_TIMEOUT
        assert config.log_level == "INFO"

    def test_paths_follow_project_dir(self, tmp_path):
        config = ClientConfig.from_args(_ns(PROJECT_DIR=str(tmp_path)), environ={})
        assert config.manifest_path == Path(tmp_path) / "mosaic.toml"
        assert config.lockfile_path == Path(tmp_path) / "mosaic.lock"

    def test_precedence(self, tmp_path):
        cfg = tmp_path / "mosaic.yml"
        cfg.write_text(
            "mosaic:\n  registry_url: http://from-file\n  timeout: 5\n  log_level: warning\n",
            encoding="utf-8",
        )

        from_file = ClientConfig.from_args(_ns(CONFIG=str(cfg)), environ={})
        assert from_file.registry_url == "http://from-file"
        assert from_file.timeout == 5
        assert from_file.log_level == "WARNING"

        env = {"MOSAIC_REGISTRY_URL": "http://from-env/"}
        from_env = ClientConfig.from_args(_ns(CONFIG=str(cfg)), environ=env)
        assert from_env.registry_url == "http://from-env"

        from_cli = ClientConfig.from_args(_ns(CONFIG=str(cfg), API_URL="http://from-cli"), environ=env)
        assert from_cli.registry_url == "http://from-cli"

    def test_config_without_section(self, tmp_path):
        cfg = tmp_path / "mosaic.yml"
        cfg.write_text("registry_url: http://plain\n", encoding="utf-8")
        assert load_config_file(str(cfg)) == {"registry_url": "http://plain"}

    def test_missing_config_file(self, tmp_path):
        assert load_config_file(str(tmp_path / "absent.yml")) == {}

    def test_invalid_yaml(self, tmp_path):
        cfg = tmp_path / "mosaic.yml"
        cfg.write_text("mosaic: [unclosed\n", encoding="utf-8")
        with pytest.raises(ManifestError):
            load_config_file(str(cfg))
