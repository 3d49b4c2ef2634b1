"""Runtime configuration for the CLI.

Settings are resolved once at startup into a ClientConfig and passed
explicitly to the registry client and installer. Precedence, highest first:
CLI flags, environment variables, the YAML config file, built-in defaults.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from constants import Constants
from errors import ManifestError

logger = logging.getLogger(__name__)


def load_config_file(config_path: Optional[str]) -> Dict[str, Any]:
    """Load settings from a YAML file.

    A top-level ``mosaic:`` section is used when present, otherwise the whole
    mapping. A missing path yields an empty dict.

    Raises:
        ManifestError: the file exists but is not valid YAML.
    """
    if not config_path:
        return {}
    if not os.path.isfile(config_path):
        logger.warning("Config file not found: %s", config_path)
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ManifestError(f"Failed to load config {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        return {}
    section = data.get(Constants.CONFIG_SECTION, data)
    return section if isinstance(section, dict) else {}


@dataclass
class ClientConfig:
    """Configuration threaded through the client."""

    registry_url: str = Constants.REGISTRY_URL
    project_dir: Path = field(default_factory=Path.cwd)
    timeout: int = Constants.REQUEST_TIMEOUT
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @property
    def manifest_path(self) -> Path:
        return self.project_dir / Constants.MANIFEST_FILE

    @property
    def lockfile_path(self) -> Path:
        return self.project_dir / Constants.LOCK_FILE

    @classmethod
    def from_args(cls, args: Any, environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        """Create config from CLI arguments, environment and config file.

        Args:
            args: Parsed CLI arguments namespace.
            environ: Environment mapping; defaults to ``os.environ``.

        Returns:
            ClientConfig instance.
        """
        env = os.environ if environ is None else environ
        file_cfg = load_config_file(getattr(args, "CONFIG", None))
        config = cls()

        if file_cfg.get("registry_url"):
            config.registry_url = str(file_cfg["registry_url"])
        if file_cfg.get("timeout") is not None:
            config.timeout = int(file_cfg["timeout"])
        if file_cfg.get("log_level"):
            config.log_level = str(file_cfg["log_level"]).upper()
        if file_cfg.get("log_file"):
            config.log_file = str(file_cfg["log_file"])

        if env.get(Constants.ENV_REGISTRY_URL):
            config.registry_url = env[Constants.ENV_REGISTRY_URL]
        if env.get(Constants.ENV_LOG_LEVEL):
            config.log_level = env[Constants.ENV_LOG_LEVEL].upper()

        if getattr(args, "API_URL", None):
            config.registry_url = args.API_URL
        if getattr(args, "LOG_LEVEL", None):
            config.log_level = str(args.LOG_LEVEL).upper()
        if getattr(args, "LOG_FILE", None):
            config.log_file = args.LOG_FILE
        if getattr(args, "PROJECT_DIR", None):
            config.project_dir = Path(args.PROJECT_DIR)

        config.registry_url = config.registry_url.rstrip("/")
        return config
