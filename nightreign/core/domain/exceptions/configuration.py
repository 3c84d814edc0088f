"""Configuration-related exceptions."""

from .base import NightreignError


class ConfigurationError(NightreignError):
    """Configuration or environment variable errors.

    Raised when required configuration is missing or invalid.
    """

    error_code = "NR_CFG_001"


class InvalidConfigurationError(ConfigurationError):
    """Configuration value is invalid."""

    error_code = "NR_CFG_002"
