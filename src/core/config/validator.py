"""
Configuration validation and schema management.

Purpose
-------
Provides recursive schema-based validation for the nested YAML balance
configuration. Ensures type safety and structural integrity of configuration
values before they are turned into typed balance objects.

Key Validation Rules
--------------------
1. All config values must be Mapping types (dict-like)
2. Known fields are validated against specified types or nested schemas
3. Type coercion: int values accepted where float expected
4. Missing fields are allowed (sparse configuration support)
5. Unknown fields allowed by default (set allow_extra=False to forbid)
6. Nested schemas validated recursively with path tracking
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from src.core.config.errors import ConfigValidationError


# Type alias for schema field definitions
SchemaField = Union[type, "ConfigSchema", "MappingOf"]


@dataclass(slots=True)
class MappingOf:
    """
    Schema for a mapping with arbitrary keys and uniformly typed values.

    Used where the keys are data (activity names, stat names) rather than
    a fixed set of fields.
    """

    value_type: SchemaField

    def validate(self, value: Any, path: str = "") -> Any:
        if not isinstance(value, Mapping):
            raise ConfigValidationError(
                f"Config value at '{path or '<root>'}' must be a mapping; "
                f"got {type(value).__name__}"
            )
        for key, raw in value.items():
            _validate_field(self.value_type, raw, f"{path}.{key}" if path else str(key))
        return value


@dataclass(slots=True)
class ConfigSchema:
    """
    Recursive schema for nested configuration validation.

    Attributes
    ----------
    fields:
        Mapping of field names to expected types or nested schemas.
    allow_extra:
        Whether to allow fields not defined in the schema.

    Examples
    --------
    >>> schema = ConfigSchema(fields={"base": float, "growth": float})
    >>> schema.validate({"base": 1000, "growth": 1.2})
    {'base': 1000, 'growth': 1.2}

    >>> try:
    ...     schema.validate({"base": "lots"})
    ... except ConfigValidationError as e:
    ...     print(e)
    Config value at 'base' must be float; got str
    """

    fields: Mapping[str, SchemaField]
    allow_extra: bool = True

    def validate(self, value: Any, path: str = "") -> Any:
        """
        Validate value against this schema with detailed error reporting.

        Raises
        ------
        ConfigValidationError
            If validation fails, with the dot-notation path of the bad value.
        """
        if not isinstance(value, Mapping):
            raise ConfigValidationError(
                f"Config value at '{path or '<root>'}' must be a mapping; "
                f"got {type(value).__name__}"
            )

        for key, expected in self.fields.items():
            if key not in value:
                continue
            full_path = f"{path}.{key}" if path else key
            _validate_field(expected, value[key], full_path)

        if not self.allow_extra:
            unknown_keys = set(value.keys()) - set(self.fields.keys())
            if unknown_keys:
                unknown_list = ", ".join(sorted(str(k) for k in unknown_keys))
                raise ConfigValidationError(
                    f"Unexpected config keys at '{path or '<root>'}': {unknown_list}"
                )

        return value


def _validate_field(expected: SchemaField, raw: Any, full_path: str) -> None:
    if isinstance(expected, (ConfigSchema, MappingOf)):
        expected.validate(raw, path=full_path)
        return

    # bool is an int subclass; never accept it for numeric fields
    if isinstance(raw, bool) and expected is not bool:
        raise ConfigValidationError(
            f"Config value at '{full_path}' must be {expected.__name__}; got bool"
        )

    if expected is float and isinstance(raw, int):
        return

    if not isinstance(raw, expected):
        raise ConfigValidationError(
            f"Config value at '{full_path}' must be {expected.__name__}; "
            f"got {type(raw).__name__}"
        )


# ============================================================================
# Schema Registry
# ============================================================================

_SCHEMAS: Dict[str, ConfigSchema] = {
    "experience": ConfigSchema(
        fields={
            "base_threshold": float,
            "growth_rate": float,
            "exp_per_minute": float,
            "fixed_exp": MappingOf(float),
        },
        allow_extra=False,
    ),
    "stat_gains": ConfigSchema(
        fields={
            "hourly_rates": MappingOf(MappingOf(float)),
            "fixed_gains": MappingOf(MappingOf(float)),
        },
        allow_extra=False,
    ),
    "decay": ConfigSchema(
        fields={
            "threshold_days": int,
            "per_period": float,
            "max_per_check": float,
            "affected_stats": MappingOf(list),
        },
        allow_extra=False,
    ),
    "validation": ConfigSchema(
        fields={
            "stat_floor": float,
            "large_stat_warning": float,
            "large_exp_reversal_warning": float,
            "export_stat_limit": float,
            "max_duration_minutes": int,
        },
        allow_extra=False,
    ),
}


def get_schema_for_top_key(top_key: str) -> Optional[ConfigSchema]:
    """Return the registered schema for a top-level balance key, if any."""
    return _SCHEMAS.get(top_key)


def validate_config_tree(tree: Mapping[str, Any]) -> Mapping[str, Any]:
    """
    Validate every registered top-level section present in `tree`.

    Raises
    ------
    ConfigValidationError
        On the first section that fails validation.
    """
    for top_key, section in tree.items():
        schema = get_schema_for_top_key(str(top_key))
        if schema is not None:
            schema.validate(section, path=str(top_key))
    return tree


__all__ = [
    "ConfigSchema",
    "MappingOf",
    "get_schema_for_top_key",
    "validate_config_tree",
]
