"""
Configuration Management

Type-safe loop configuration with YAML and environment variable sources and
validation.
"""

from .models import (
    Rope,
    ClutchConfiguration,
    LoggingConfiguration,
    ClutchSettings
)

from .sources import (
    ConfigurationSource,
    DictConfigurationSource,
    YAMLConfigurationSource,
    EnvironmentConfigurationSource
)

from .validation import (
    ConfigurationValidator,
    ConfigurationValidationError
)

from .builder import ConfigurationBuilder, deep_merge

from .utils import (
    load_configuration_from_file,
    load_default_configuration,
    create_configuration_builder
)

__all__ = [
    # Models
    'Rope',
    'ClutchConfiguration',
    'LoggingConfiguration',
    'ClutchSettings',

    # Sources
    'ConfigurationSource',
    'DictConfigurationSource',
    'YAMLConfigurationSource',
    'EnvironmentConfigurationSource',

    # Validation
    'ConfigurationValidator',
    'ConfigurationValidationError',

    # Builder
    'ConfigurationBuilder',
    'deep_merge',

    # Utilities
    'load_configuration_from_file',
    'load_default_configuration',
    'create_configuration_builder'
]
