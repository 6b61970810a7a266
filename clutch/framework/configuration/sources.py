"""
Configuration sources for loading configuration data.
"""

import copy
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from ...infrastructure.exceptions import ConfigurationError


class ConfigurationSource(ABC):
    """Abstract base class for configuration sources."""

    @abstractmethod
    def load(self) -> Dict[str, Any]:
        """Load configuration data from the source."""
        pass

    @abstractmethod
    def get_priority(self) -> int:
        """Get the priority of this source (higher number = higher priority)."""
        pass


class DictConfigurationSource(ConfigurationSource):
    """In-memory configuration, mostly for defaults and tests."""

    def __init__(self, data: Dict[str, Any], priority: int = 50):
        self.data = data
        self.priority = priority

    def load(self) -> Dict[str, Any]:
        return copy.deepcopy(self.data)

    def get_priority(self) -> int:
        return self.priority


class YAMLConfigurationSource(ConfigurationSource):
    """YAML file configuration source."""

    def __init__(self, file_path: Union[str, Path], priority: int = 100):
        self.file_path = Path(file_path)
        self.priority = priority

    def load(self) -> Dict[str, Any]:
        if not self.file_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self.file_path}",
                config_path=str(self.file_path),
                error_code="CONFIG_FILE_NOT_FOUND"
            )

        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in configuration file: {self.file_path}",
                config_path=str(self.file_path),
                error_code="INVALID_YAML",
                cause=e
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration file must contain a mapping: {self.file_path}",
                config_path=str(self.file_path),
                error_code="INVALID_YAML"
            )
        return data

    def get_priority(self) -> int:
        return self.priority


class EnvironmentConfigurationSource(ConfigurationSource):
    """
    Environment variable configuration source.

    Nested keys are separated by a double underscore, so
    ``CLUTCH_LOOPS__CPU__SET_POINT=0.6`` becomes
    ``{"loops": {"cpu": {"set_point": 0.6}}}``.
    """

    SEPARATOR = "__"

    def __init__(self, prefix: str = "CLUTCH_", priority: int = 200):
        self.prefix = prefix.upper()
        self.priority = priority

    def load(self) -> Dict[str, Any]:
        config: Dict[str, Any] = {}

        for key, value in os.environ.items():
            if key.startswith(self.prefix):
                path = [part.lower() for part in key[len(self.prefix):].split(self.SEPARATOR) if part]
                if path:
                    self._set_nested_value(config, path, self._parse_value(value))

        return config

    def _set_nested_value(self, config: Dict[str, Any], path, value: Any) -> None:
        current = config
        for part in path[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[path[-1]] = value

    def _parse_value(self, value: str) -> Any:
        """Parse environment variable value to appropriate type."""
        if value.lower() in ('true', 'false'):
            return value.lower() == 'true'

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        if ',' in value:
            return [self._parse_value(item.strip()) for item in value.split(',')]

        return value

    def get_priority(self) -> int:
        return self.priority
