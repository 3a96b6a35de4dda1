"""
Exception hierarchy for the migration engine.

Every error raised by dwmigrate derives from MigrationError so callers can
catch the whole family at once:
- DiscoveryError: the scripts directory cannot be read or is ambiguous
- LockAcquisitionError / LockReleaseError: lock protocol failures
- ScriptExecutionError: a migration's up/down failed
- BookkeepingError: a ledger or lock table statement failed
- ConfigurationError: invalid engine or CLI settings
"""

from typing import Optional


class MigrationError(Exception):
    """Base exception for migration engine errors."""
    pass


class ConfigurationError(MigrationError):
    """Raised when engine settings fail validation."""
    pass


class DiscoveryError(MigrationError):
    """Raised when the migration catalog cannot be read."""
    pass


class LockError(MigrationError):
    """Base exception for lock protocol failures."""
    pass


class LockAcquisitionError(LockError):
    """Raised when the lock is held by another run and has not expired."""
    pass


class LockReleaseError(LockError):
    """Raised when releasing the lock affected no rows."""
    pass


class BookkeepingError(MigrationError):
    """Raised when a ledger or lock table statement fails."""
    pass


class ScriptExecutionError(MigrationError):
    """Raised when a migration script's up or down procedure fails."""

    def __init__(self, migration_name: str, direction: str, message: Optional[str] = None):
        self.migration_name = migration_name
        self.direction = direction
        super().__init__(message or f"Migration {migration_name} failed during {direction}")
