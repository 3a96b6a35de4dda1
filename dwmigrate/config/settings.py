"""
File-based settings for the dwmigrate command line.

This module handles:
- Default settings for the warehouse connection and migration tables
- YAML loading with schema validation (jsonschema)
- Environment variable overrides for deployment-specific values
"""

import os
import logging
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from jsonschema import Draft7Validator, ValidationError

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, Any] = {
    'database': {
        'type': 'duckdb',                  # 'duckdb' or 'sqlalchemy'
        'path': ':memory:',                # DuckDB database file
        'url': None,                       # SQLAlchemy URL when type == 'sqlalchemy'
        'engine_args': {},
    },
    'migrations': {
        'dataset': None,                   # Required: dataset (schema) to migrate
        'dir': 'migrations',
        'table_name': 'schema_migrations',
        'lock_table_name': 'schema_migrations_lock',
        'lock_expiry_seconds': 30,
        'timezone': 'Etc/UTC',
        'raise_on_error': False,
    },
    'logging': {
        'level': 'INFO',
        'file': None,                      # Optional log file path
    },
}

SETTINGS_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["database", "migrations"],
    "properties": {
        "database": {
            "type": "object",
            "properties": {
                "type": {"type": "string", "enum": ["duckdb", "sqlalchemy"]},
                "path": {"type": "string"},
                "url": {"type": ["string", "null"]},
                "engine_args": {"type": "object"}
            }
        },
        "migrations": {
            "type": "object",
            "required": ["dataset"],
            "properties": {
                "dataset": {"type": "string", "pattern": "^[A-Za-z_][A-Za-z0-9_]*$"},
                "dir": {"type": "string"},
                "table_name": {"type": "string", "pattern": "^[A-Za-z_][A-Za-z0-9_]*$"},
                "lock_table_name": {"type": "string", "pattern": "^[A-Za-z_][A-Za-z0-9_]*$"},
                "lock_expiry_seconds": {"type": "integer", "minimum": 1},
                "timezone": {"type": "string"},
                "raise_on_error": {"type": "boolean"}
            }
        },
        "logging": {
            "type": "object",
            "properties": {
                "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR"]},
                "file": {"type": ["string", "null"]}
            }
        }
    }
}

# Environment variables that override file settings
ENV_MAPPINGS = {
    'migrations.dataset': 'DWMIGRATE_DATASET',
    'migrations.dir': 'DWMIGRATE_MIGRATIONS_DIR',
    'database.path': 'DWMIGRATE_DATABASE_PATH',
    'database.url': 'DWMIGRATE_DATABASE_URL',
    'logging.level': 'DWMIGRATE_LOG_LEVEL',
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, override wins."""
    result = deepcopy(base)

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = deepcopy(value)

    return result


def _set_nested_value(config: Dict[str, Any], path: str, value: Any) -> None:
    keys = path.split('.')
    current = config

    for key in keys[:-1]:
        current = current.setdefault(key, {})

    current[keys[-1]] = value


def apply_env_overrides(settings: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply DWMIGRATE_* environment variables on top of settings.

    Args:
        settings: Settings dictionary (not modified)

    Returns:
        New settings dictionary with overrides applied
    """
    result = deepcopy(settings)
    for config_path, env_var in ENV_MAPPINGS.items():
        env_value = os.environ.get(env_var)
        if env_value:
            _set_nested_value(result, config_path, env_value)
            logger.info(f"Applied environment override for {config_path}")

    # A URL implies the SQLAlchemy client
    if os.environ.get('DWMIGRATE_DATABASE_URL'):
        result['database']['type'] = 'sqlalchemy'

    return result


def validate_settings(settings: Dict[str, Any]) -> None:
    """
    Validate settings against SETTINGS_SCHEMA.

    Raises:
        ConfigurationError: If any value violates the schema
    """
    validator = Draft7Validator(SETTINGS_SCHEMA)
    errors = sorted(validator.iter_errors(settings), key=lambda e: list(e.path))
    if errors:
        first: ValidationError = errors[0]
        location = '.'.join(str(p) for p in first.path) or '<root>'
        raise ConfigurationError(f"Invalid settings at {location}: {first.message}")

    if settings['database'].get('type') == 'sqlalchemy' and not settings['database'].get('url'):
        raise ConfigurationError("database.url is required when database.type is 'sqlalchemy'")


def load_settings(path: Optional[Union[str, Path]] = None,
                  overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Load CLI settings: defaults, then YAML file, then environment
    variables, then explicit overrides. The result is validated.

    Args:
        path: Optional YAML settings file
        overrides: Optional nested dictionary applied last (command-line flags)

    Returns:
        Merged and validated settings
    """
    settings = deepcopy(DEFAULT_SETTINGS)

    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Settings file not found: {path}")
        try:
            with open(path, 'r') as f:
                file_settings = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse settings file {path}: {e}") from e

        if not isinstance(file_settings, dict):
            raise ConfigurationError(f"Settings file must contain a mapping, got {type(file_settings).__name__}")

        settings = _deep_merge(settings, file_settings)
        logger.debug(f"Loaded settings from {path}")

    settings = apply_env_overrides(settings)

    if overrides:
        settings = _deep_merge(settings, overrides)

    validate_settings(settings)
    return settings
