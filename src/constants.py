"""Constants used in the project."""

import logging
import os
from enum import Enum

import yaml


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    INSTALL_ERROR = 1
    CONNECTION_ERROR = 2
    CATALOG_EMPTY = 3
    NOT_INSTALLED = 4
    ACTIVATION_ERROR = 5
    INVALID_VERSION = 6


class SymbolicTargets(Enum):
    """Version requests that are resolved against the remote catalog.

    Args:
        Enum (string): Symbolic target names accepted on the command line.
    """

    LATEST = "latest"
    STABLE = "stable"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    PREFIX = "/usr/local"
    LISTING_URL = "https://dl.mongodb.org/dl/src/"
    SOURCE_URL_TEMPLATE = "https://fastdl.mongodb.org/src/mongodb-src-r{version}.tar.gz"
    BUILD_COMMAND = ["scons"]
    ENTRY_POINT = "mongod"
    VERSION_FLAG = "--version"
    CONFIG_FILE_NAME = "build.conf"
    BIN_DIR_NAME = "bin"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for connect/first byte of HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    STREAM_CHUNK_SIZE = 64 * 1024
    PROBE_TIMEOUT = 10
    DEFAULT_CONFIG_PATH = os.path.join("~", ".config", "mvm", "config.yml")

    # Environment variables
    ENV_CONFIG = "MVM_CONFIG"
    ENV_PREFIX = "MVM_PREFIX"
    ENV_LISTING_URL = "MVM_LISTING_URL"
    ENV_SOURCE_URL = "MVM_SOURCE_URL"
    ENV_BUILD_COMMAND = "MVM_BUILD_COMMAND"
    ENV_LOG_LEVEL = "MVM_LOG_LEVEL"


def store_root() -> str:
    """Directory holding one subdirectory per installed version."""
    return os.path.join(Constants.PREFIX, "mvm", "versions")


def bin_dir() -> str:
    """System binary directory that activation rewrites."""
    return os.path.join(Constants.PREFIX, Constants.BIN_DIR_NAME)


def log_dir() -> str:
    """Directory for build logs, kept outside the version store."""
    return os.path.join(Constants.PREFIX, "mvm", "logs")


def _load_yaml_config(path=None):
    """Load a YAML config file and apply recognised keys onto Constants.

    Missing files are ignored. Returns the parsed mapping (empty when nothing
    was loaded).
    """
    cfg_path = path or os.environ.get(Constants.ENV_CONFIG) or Constants.DEFAULT_CONFIG_PATH
    cfg_path = os.path.expanduser(cfg_path)
    if not os.path.isfile(cfg_path):
        return {}
    with open(cfg_path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        logging.getLogger(__name__).warning("Ignoring config %s: top level is not a mapping", cfg_path)
        return {}

    if data.get("prefix"):
        Constants.PREFIX = str(data["prefix"])
    if data.get("listing_url"):
        Constants.LISTING_URL = str(data["listing_url"])
    if data.get("source_url_template"):
        Constants.SOURCE_URL_TEMPLATE = str(data["source_url_template"])
    build_cmd = data.get("build_command")
    if isinstance(build_cmd, str) and build_cmd.strip():
        Constants.BUILD_COMMAND = build_cmd.split()
    elif isinstance(build_cmd, list) and build_cmd:
        Constants.BUILD_COMMAND = [str(x) for x in build_cmd]
    http = data.get("http")
    if isinstance(http, dict):
        if http.get("timeout") is not None:
            Constants.REQUEST_TIMEOUT = int(http["timeout"])
        if http.get("retries") is not None:
            Constants.HTTP_RETRY_MAX = max(1, int(http["retries"]))
    return data
