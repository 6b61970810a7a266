"""
Utility functions for common configuration patterns.
"""

from pathlib import Path
from typing import Union

from .builder import ConfigurationBuilder
from .models import ClutchSettings


def load_configuration_from_file(file_path: Union[str, Path], env_prefix: str = "CLUTCH_") -> ClutchSettings:
    """
    Load settings from a YAML file with environment variable overrides.

    Args:
        file_path: Path to the YAML configuration file
        env_prefix: Prefix of overriding environment variables
    """
    return (ConfigurationBuilder()
            .add_yaml_source(file_path, 100)
            .add_environment_source(env_prefix, 200)
            .build())


def load_default_configuration() -> ClutchSettings:
    """Load settings from CLUTCH_ environment variables only."""
    return ConfigurationBuilder().add_defaults().build()


def create_configuration_builder() -> ConfigurationBuilder:
    return ConfigurationBuilder()
