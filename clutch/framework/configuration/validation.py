"""
Configuration validation utilities.
"""

import os
from typing import Any, Dict, List

from pydantic import ValidationError

from ...infrastructure.exceptions import ConfigurationError
from .models import ClutchConfiguration, LoggingConfiguration


class ConfigurationValidationError(ConfigurationError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, validation_errors: List[Dict[str, Any]]):
        super().__init__(
            message,
            error_code="CONFIGURATION_VALIDATION_ERROR",
            context={"validation_errors": validation_errors}
        )
        self.validation_errors = validation_errors

    def get_detailed_message(self) -> str:
        """Get a detailed error message with all validation errors."""
        lines = [self.message, "Validation errors:"]

        for error in self.validation_errors:
            location = " -> ".join(str(loc) for loc in error.get('loc', []))
            lines.append(f"- {location}: {error.get('msg', 'Unknown error')}")

        return "\n".join(lines)

    @classmethod
    def from_pydantic(cls, message: str, error: ValidationError, prefix: List[Any] = None) -> "ConfigurationValidationError":
        return cls(message, _collect(error, prefix or []))


def _collect(error: ValidationError, prefix: List[Any]) -> List[Dict[str, Any]]:
    return [
        {'loc': prefix + list(e['loc']), 'msg': e['msg'], 'type': e['type']}
        for e in error.errors()
    ]


KNOWN_TOP_LEVEL_KEYS = {'logging', 'loops'}


class ConfigurationValidator:
    """Validates raw configuration data and reports located errors."""

    @staticmethod
    def validate_configuration(config_data: Dict[str, Any]) -> List[str]:
        """
        Validate configuration data and return list of warnings.

        Args:
            config_data: Merged raw configuration data

        Returns:
            List of warning messages for suspicious but usable configuration

        Raises:
            ConfigurationValidationError: If any section fails validation
        """
        errors: List[Dict[str, Any]] = []
        warnings: List[str] = []

        if 'logging' in config_data:
            try:
                LoggingConfiguration(**(config_data['logging'] or {}))
            except ValidationError as e:
                errors.extend(_collect(e, ['logging']))

        loops = config_data.get('loops') or {}
        if not isinstance(loops, dict):
            errors.append({'loc': ['loops'], 'msg': "loops must be a mapping of name to loop configuration", 'type': 'type_error'})
        else:
            for name, loop_config in loops.items():
                if not isinstance(loop_config, dict):
                    errors.append({'loc': ['loops', name], 'msg': "loop configuration must be a mapping", 'type': 'type_error'})
                    continue
                try:
                    ClutchConfiguration(**loop_config)
                except ValidationError as e:
                    errors.extend(_collect(e, ['loops', name]))

        for key in config_data:
            if key not in KNOWN_TOP_LEVEL_KEYS:
                warnings.append(f"Unknown configuration key: {key}")

        if errors:
            raise ConfigurationValidationError("Configuration validation failed", errors)

        return warnings

    @staticmethod
    def validate_environment_variables(prefix: str = "CLUTCH_") -> List[str]:
        """Return warnings for prefixed variables outside the known sections."""
        warnings = []
        prefix_upper = prefix.upper()
        for key in os.environ:
            if key.startswith(prefix_upper):
                section = key[len(prefix_upper):].split('__', 1)[0].lower()
                if section not in KNOWN_TOP_LEVEL_KEYS:
                    warnings.append(f"Unknown environment variable: {key}")
        return warnings
