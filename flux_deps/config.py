"""Configuration objects for flux-deps."""

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any

import aiofiles
from mashumaro import DataClassDictMixin, field_options
from mashumaro.exceptions import MissingField, InvalidFieldValue
import yaml

from .exceptions import InputException

__all__ = ["ExtractConfig", "load_config"]

_LOGGER = logging.getLogger(__name__)


@dataclass
class ExtractConfig(DataClassDictMixin):
    """Configuration for extracting dependencies.

    Keys other than the ones below are accepted and ignored so that a shared
    configuration file may be passed through unchanged.
    """

    registry_aliases: dict[str, str] = field(
        metadata=field_options(alias="registryAliases"), default_factory=dict
    )
    """Registry rewrites applied to image names e.g. `{"ghcr.io": "mirror/ghcr"}`."""


def parse_config(doc: Any) -> ExtractConfig:
    """Parse a configuration object from a raw document."""
    if doc is None:
        return ExtractConfig()
    if not isinstance(doc, dict):
        raise InputException(f"Invalid configuration, expected a mapping: {doc}")
    try:
        return ExtractConfig.from_dict(doc)
    except (MissingField, InvalidFieldValue) as err:
        raise InputException(f"Invalid configuration: {err}") from err


async def load_config(config_path: Path) -> ExtractConfig:
    """Return the contents of a configuration file."""
    try:
        async with aiofiles.open(str(config_path)) as config_file:
            content = await config_file.read()
    except OSError as err:
        raise InputException(
            f"Unable to read configuration {config_path}: {err}"
        ) from err
    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError as err:
        raise InputException(f"Invalid YAML in {config_path}: {err}") from err
    _LOGGER.debug("Loaded configuration from %s", config_path)
    return parse_config(doc)
