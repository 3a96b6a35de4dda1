"""
Configuration management.

This module handles engine and command-line configuration:
- Validated engine settings (MigrationConfig)
- YAML settings files with environment overrides
- Logging configuration for the dwmigrate logger hierarchy
"""

from .migration_config import MigrationConfig, build_config
from .settings import DEFAULT_SETTINGS, load_settings, validate_settings
from .logging_config import setup_migration_logging, get_logger, MigrationLoggerAdapter

__all__ = [
    'MigrationConfig',
    'build_config',
    'DEFAULT_SETTINGS',
    'load_settings',
    'validate_settings',
    'setup_migration_logging',
    'get_logger',
    'MigrationLoggerAdapter',
]
