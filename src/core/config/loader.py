"""
YAML balance file loading.

Reads the balance file (`config/progression.yaml` by default), validates the
known sections against the schema registry and returns the raw mapping.
A missing file is not an error: callers fall back to built-in defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from src.core.config.config import Config
from src.core.config.errors import ConfigInitializationError
from src.core.config.validator import validate_config_tree
from src.core.logging.logger import get_logger

logger = get_logger(__name__)


def load_yaml_config(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load and validate a YAML balance file.

    Parameters
    ----------
    path:
        File to read. Defaults to `Config.BALANCE_CONFIG_PATH`.

    Returns
    -------
    Dict[str, Any]
        The parsed mapping, or an empty dict when the file does not exist.

    Raises
    ------
    ConfigInitializationError
        If the file cannot be read or parsed, or its root is not a mapping.
    ConfigValidationError
        If a known section has the wrong shape.
    """
    config_path = Path(path) if path is not None else Path(Config.BALANCE_CONFIG_PATH)

    if not config_path.exists():
        logger.warning(
            "Balance config not found; using built-in defaults",
            extra={"config_path": str(config_path)},
        )
        return {}

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except (OSError, yaml.YAMLError) as exc:
        logger.error(
            "Failed to load balance config",
            extra={"config_path": str(config_path), "error": str(exc)},
            exc_info=True,
        )
        raise ConfigInitializationError(
            f"Could not load balance config {config_path}: {exc}"
        ) from exc

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigInitializationError(
            f"Balance config root must be a mapping; got {type(data).__name__}"
        )

    validate_config_tree(data)

    logger.info(
        "Balance config loaded",
        extra={"config_path": str(config_path), "sections": sorted(data.keys())},
    )
    return data
