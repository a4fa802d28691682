"""
Configuration subsystem.

Architecture
------------
- **config.py**: Static configuration from environment variables (.env support)
- **validator.py**: Schema-based validation of the YAML balance tree
- **loader.py**: YAML balance file loading (import directly; it depends on logging)
- **errors.py**: Configuration exception hierarchy

Usage Examples
--------------
```python
from src.core.config import Config

if Config.is_production():
    ...

from src.core.config.loader import load_yaml_config

tree = load_yaml_config()
```
"""

from src.core.config.config import Config, Environment
from src.core.config.errors import (
    ConfigError,
    ConfigInitializationError,
    ConfigValidationError,
)
from src.core.config.validator import (
    ConfigSchema,
    MappingOf,
    get_schema_for_top_key,
    validate_config_tree,
)

__all__ = [
    "Config",
    "Environment",
    "ConfigError",
    "ConfigInitializationError",
    "ConfigValidationError",
    "ConfigSchema",
    "MappingOf",
    "get_schema_for_top_key",
    "validate_config_tree",
]
