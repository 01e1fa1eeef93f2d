"""Configuration loader with environment variable substitution"""

import json
import os
import re
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from riskcore.config.models import EngineConfig
from riskcore.config.validator import validate_config_constraints


def substitute_env_vars(data: Any) -> Any:
    """
    Recursively substitute environment variables in configuration data.

    Supports ${VAR_NAME} syntax in string values.
    """
    if isinstance(data, dict):
        return {key: substitute_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [substitute_env_vars(item) for item in data]
    elif isinstance(data, str):
        pattern = r'\$\{([^}]+)\}'
        matches = re.findall(pattern, data)
        result = data
        for var_name in matches:
            env_value = os.getenv(var_name)
            if env_value is None:
                raise ValueError(
                    f"Environment variable {var_name} not found but required in config"
                )
            result = result.replace(f"${{{var_name}}}", env_value)
        return result
    else:
        return data


def _validate_config_path(config_path: str) -> Path:
    """
    Validate a config path.

    Blocks path traversal segments and requires a .json extension.

    Raises:
        ValueError: If path appears to be a traversal attempt or invalid
    """
    normalized = config_path.replace("\\", "/")
    if ".." in normalized.split("/"):
        raise ValueError(
            f"Config path contains path traversal sequence: {config_path}"
        )

    config_file = Path(config_path)

    if config_file.suffix.lower() != ".json":
        raise ValueError(
            f"Config path must point to a .json file, got: {config_path}"
        )

    return config_file


def load_config(config_path: Optional[str] = None, load_env: bool = True) -> EngineConfig:
    """
    Load and validate engine configuration from a JSON file.

    Every section has defaults, so a missing path (None) yields the
    default configuration.

    Args:
        config_path: Path to config JSON file, or None for defaults
        load_env: Whether to load .env file first (default: True)

    Returns:
        Validated EngineConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config validation fails or path is unsafe
        json.JSONDecodeError: If config file is invalid JSON
    """
    if load_env:
        load_dotenv()

    if config_path is None:
        config = EngineConfig()
        validate_config_constraints(config)
        return config

    config_file = _validate_config_path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_file, 'r') as f:
        raw_config = json.load(f)

    config_data = substitute_env_vars(raw_config)

    try:
        config = EngineConfig(**config_data)
        validate_config_constraints(config)
    except Exception as e:
        raise ValueError(f"Config validation failed: {e}")

    return config
