"""
Configuration builder for creating ClutchSettings instances.
"""

from pathlib import Path
from typing import Any, Dict, List, Union

from pydantic import ValidationError

from ...infrastructure.observability import get_logger
from .models import ClutchSettings
from .sources import (
    ConfigurationSource, DictConfigurationSource, YAMLConfigurationSource, EnvironmentConfigurationSource
)
from .validation import ConfigurationValidator, ConfigurationValidationError


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


class ConfigurationBuilder:
    """
    Builder for ClutchSettings from several prioritized sources.

    Sources are loaded in ascending priority and deep merged, so a value from
    the environment (200) overrides the same value from a YAML file (100).
    """

    def __init__(self):
        self._sources: List[ConfigurationSource] = []
        self.logger = get_logger("clutch.configuration")

    def add_yaml_source(self, path: Union[str, Path], priority: int = 100) -> 'ConfigurationBuilder':
        self._sources.append(YAMLConfigurationSource(path, priority))
        return self

    def add_environment_source(self, prefix: str = "CLUTCH_", priority: int = 200) -> 'ConfigurationBuilder':
        self._sources.append(EnvironmentConfigurationSource(prefix, priority))
        return self

    def add_dict_source(self, data: Dict[str, Any], priority: int = 50) -> 'ConfigurationBuilder':
        self._sources.append(DictConfigurationSource(data, priority))
        return self

    def add_source(self, source: ConfigurationSource) -> 'ConfigurationBuilder':
        self._sources.append(source)
        return self

    def add_defaults(self) -> 'ConfigurationBuilder':
        """Add the default source (environment variables with the CLUTCH_ prefix)."""
        return self.add_environment_source("CLUTCH_", 200)

    def load_raw(self) -> Dict[str, Any]:
        """Merge every source without validating."""
        merged: Dict[str, Any] = {}
        for source in sorted(self._sources, key=lambda s: s.get_priority()):
            merged = deep_merge(merged, source.load())
        return merged

    def build(self) -> ClutchSettings:
        """
        Build validated settings from all added sources.

        Raises:
            ConfigurationError: If a source cannot be read
            ConfigurationValidationError: If the merged data is invalid
        """
        if not self._sources:
            self.add_defaults()

        merged = self.load_raw()

        for warning in ConfigurationValidator.validate_configuration(merged):
            self.logger.warning("Configuration warning", extra={"warning": warning})

        try:
            settings = ClutchSettings(**{k: v for k, v in merged.items() if k in ('logging', 'loops')})
        except ValidationError as e:
            raise ConfigurationValidationError.from_pydantic("Configuration validation failed", e) from e

        self.logger.info("Configuration loaded", extra={
            "sources": [type(s).__name__ for s in self._sources],
            "loops": sorted(settings.loops)
        })
        return settings
