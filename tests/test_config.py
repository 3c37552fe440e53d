"""Tests for configuration loading."""

from pathlib import Path

import pytest

from flux_deps.config import ExtractConfig, load_config, parse_config
from flux_deps.exceptions import InputException


def test_parse_config() -> None:
    """Test parsing a configuration document."""
    config = parse_config(
        {"registryAliases": {"ghcr.io": "mirror.test/ghcr"}, "other": "ignored"}
    )
    assert config.registry_aliases == {"ghcr.io": "mirror.test/ghcr"}


def test_parse_empty_config() -> None:
    """Test an empty document is the default configuration."""
    assert parse_config(None) == ExtractConfig()
    assert parse_config({}) == ExtractConfig()


@pytest.mark.parametrize(
    "doc",
    [["a", "list"], {"registryAliases": ["a", "list"]}],
)
def test_parse_invalid_config(doc: object) -> None:
    """Test invalid configuration documents."""
    with pytest.raises(InputException, match="Invalid configuration"):
        parse_config(doc)


async def test_load_config(tmp_path: Path) -> None:
    """Test loading configuration from a file."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("registryAliases:\n  docker.io: mirror.test/docker\n")
    config = await load_config(config_file)
    assert config.registry_aliases == {"docker.io": "mirror.test/docker"}


async def test_load_config_missing(tmp_path: Path) -> None:
    """Test loading a configuration file that does not exist."""
    with pytest.raises(InputException, match="Unable to read configuration"):
        await load_config(tmp_path / "missing.yaml")


async def test_load_config_invalid_yaml(tmp_path: Path) -> None:
    """Test loading a configuration file that is not YAML."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text('"bad yaml')
    with pytest.raises(InputException, match="Invalid YAML"):
        await load_config(config_file)
