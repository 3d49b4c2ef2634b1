"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    RESOLUTION_ERROR = 3
    INTEGRITY_ERROR = 4


class ProjectMarkers(Enum):
    """Structural markers recognized in the project document.

    Args:
        Enum (string): Tag, attribute and property names of the place file.
    """

    ITEM_TAG = "Item"
    CLASS_ATTR = "class"
    CONTAINER_CLASS = "ScriptService"
    MODULE_CLASS = "ModuleScript"
    PROPERTIES_TAG = "Properties"
    STRING_TAG = "string"
    NAME_ATTR = "name"
    NAME_PROPERTY = "Name"
    SOURCE_PROPERTY = "Source"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL = "https://api.getmosaic.run"
    MANIFEST_FILE = "mosaic.toml"
    LOCK_FILE = "mosaic.lock"
    PROJECT_FILE_SUFFIX = ".poly"
    SOURCE_FILE_SUFFIX = ".lua"
    PREFERRED_SOURCE_FILE = "init.lua"
    DEFAULT_PROJECT_VERSION = "0.1.0"
    DEFAULT_PROJECT_NAME = "my-mosaic-project"
    LATEST_ALIASES = ["latest", "*"]
    RANGE_OPERATORS = ["^", "~", "<", ">", "=", "*", ",", "|", " "]
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    USER_AGENT = "mosaic-package-manager"
    CONFIG_SECTION = "mosaic"

    # Environment variables
    ENV_REGISTRY_URL = "MOSAIC_REGISTRY_URL"
    ENV_LOG_LEVEL = "MOSAIC_LOG_LEVEL"
