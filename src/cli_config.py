"""Runtime configuration: YAML file, environment, then CLI flags.

Each layer overwrites attributes on ``Constants``; the CLI has the highest
precedence.
"""

from __future__ import annotations

import logging
import os

import yaml

from constants import Constants, _load_yaml_config

logger = logging.getLogger(__name__)


def apply_env_overrides(environ=None) -> None:
    """Apply ``MVM_*`` environment variables onto Constants."""
    env = os.environ if environ is None else environ
    if env.get(Constants.ENV_PREFIX):
        Constants.PREFIX = env[Constants.ENV_PREFIX]
    if env.get(Constants.ENV_LISTING_URL):
        Constants.LISTING_URL = env[Constants.ENV_LISTING_URL]
    if env.get(Constants.ENV_SOURCE_URL):
        Constants.SOURCE_URL_TEMPLATE = env[Constants.ENV_SOURCE_URL]
    build_cmd = env.get(Constants.ENV_BUILD_COMMAND, "").split()
    if build_cmd:
        Constants.BUILD_COMMAND = build_cmd


def apply_cli_overrides(args) -> None:
    """Apply CLI flags onto Constants."""
    if getattr(args, "PREFIX", None):
        Constants.PREFIX = os.path.abspath(os.path.expanduser(args.PREFIX))


def load_configuration(args, environ=None) -> None:
    """Load every configuration layer in precedence order.

    A malformed YAML file is reported and skipped rather than aborting the
    command; an explicitly requested file that does not exist is a warning.
    """
    cfg_path = getattr(args, "CONFIG", None)
    if cfg_path and not os.path.isfile(os.path.expanduser(cfg_path)):
        logger.warning("Config file %s not found, using defaults", cfg_path)
    try:
        data = _load_yaml_config(cfg_path)
        if data:
            logger.debug("Loaded configuration keys: %s", sorted(data))
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.warning("Could not read config file: %s", exc)
    apply_env_overrides(environ)
    apply_cli_overrides(args)
