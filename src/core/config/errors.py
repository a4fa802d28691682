"""
Configuration error hierarchy.

Exception Hierarchy
-------------------
ConfigError (base)
├── ConfigValidationError (schema/type validation failures)
└── ConfigInitializationError (balance file could not be loaded)
"""


class ConfigError(Exception):
    """
    Base exception for all configuration-related errors.

    Example
    -------
    >>> try:
    ...     load_balance_config(path)
    ... except ConfigError as e:
    ...     logger.error(f"Config operation failed: {e}")
    """


class ConfigValidationError(ConfigError):
    """
    Raised when configuration validation fails.

    This exception is raised when:
    - Schema validation fails (wrong type, invalid structure)
    - A balance value is out of range (negative rate, non-positive threshold)
    - An activity or stat name in the balance file is unknown
    """


class ConfigInitializationError(ConfigError):
    """
    Raised when the balance configuration cannot be loaded.

    This exception is raised when:
    - The YAML file exists but cannot be read or parsed
    - The YAML root is not a mapping
    """


__all__ = [
    "ConfigError",
    "ConfigValidationError",
    "ConfigInitializationError",
]
