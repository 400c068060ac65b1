"""
Configuration Loader for Service Check

Reads the JSON service configuration. A missing, unreadable or invalid
file is not fatal: a warning is logged and the bundled default
configuration is used instead.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from config.constants import DEFAULT_CONFIG_RESOURCE
from config.settings import ServiceCheckConfig
from exceptions import ConfigurationError, InvalidConfigError
from utils.logger import get_logger


logger = get_logger("Config")

DEFAULT_CONFIG_PATH = Path(__file__).with_name(DEFAULT_CONFIG_RESOURCE)


def parse_config(text: str, source: str = "<string>") -> ServiceCheckConfig:
    """
    Parse and validate a JSON configuration document.

    Raises:
        InvalidConfigError: the text is not JSON or not a valid configuration
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidConfigError(
            f"{source} is not valid JSON: {e}",
            source=source,
            cause=e,
        ) from e

    try:
        return ServiceCheckConfig.model_validate(data)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        ]
        raise InvalidConfigError(
            f"{source} is not a valid configuration ({len(errors)} error(s))",
            errors=errors,
            source=source,
            cause=e,
        ) from e


def read_config_file(path: Union[str, Path]) -> ServiceCheckConfig:
    """
    Read and validate one configuration file.

    Raises:
        OSError: the file cannot be read
        InvalidConfigError: the contents are not a valid configuration
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise InvalidConfigError(
            f"{path} is not UTF-8 text", source=str(path), cause=e
        ) from e
    return parse_config(text, source=str(path))


def load_default_config() -> ServiceCheckConfig:
    """
    Load the configuration bundled with the package.

    Raises:
        ConfigurationError: the bundled file is missing or invalid
    """
    try:
        return read_config_file(DEFAULT_CONFIG_PATH)
    except (OSError, InvalidConfigError) as e:
        raise ConfigurationError(
            f"Default configuration {DEFAULT_CONFIG_PATH} is unusable: {e}",
            config_key=str(DEFAULT_CONFIG_PATH),
            cause=e,
        ) from e


def load_config(path: Union[str, Path]) -> ServiceCheckConfig:
    """
    Load the configuration from *path*, falling back to the bundled default.

    Args:
        path: Location of the JSON configuration file

    Returns:
        The immutable configuration for this process
    """
    logger.debug(f"Reading configuration from {path}")
    try:
        config = read_config_file(path)
    except OSError as e:
        logger.warning(
            f"Cannot read {path}: {e.strerror or e}. "
            f"Using {DEFAULT_CONFIG_RESOURCE} instead."
        )
        config = load_default_config()
    except InvalidConfigError as e:
        logger.warning(f"{e.message}. Using {DEFAULT_CONFIG_RESOURCE} instead.")
        for error in e.errors:
            logger.warning(f"  {error}")
        config = load_default_config()

    logger.debug(
        "Read the following configuration:\n"
        + json.dumps(config.to_dict(), indent=2)
    )
    return config
