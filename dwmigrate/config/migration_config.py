"""
Engine configuration model.

MigrationConfig holds the constructor-time settings of a MigrationEngine and
validates them once at startup, so a misconfigured engine never reaches the
lock table.
"""

import re
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..clients.base import WarehouseClient

IDENTIFIER_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')

DEFAULT_MIGRATION_TABLE = "schema_migrations"
DEFAULT_LOCK_TABLE = "schema_migrations_lock"
DEFAULT_LOCK_EXPIRY_SECONDS = 30
DEFAULT_TIMEZONE = "Etc/UTC"


class MigrationConfig(BaseModel):
    """
    Validated settings for a migration engine.

    The client is an arbitrary WarehouseClient instance; every other field is
    a plain value with the defaults used by the bookkeeping tables.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    client: WarehouseClient = Field(..., description="Warehouse client used for all statements")
    dataset_id: str = Field(..., description="Dataset (schema) holding the target and bookkeeping tables")
    migrations_dir: Path = Field(default=Path("migrations"), description="Directory holding migration scripts")
    migration_table_name: str = Field(default=DEFAULT_MIGRATION_TABLE, description="Ledger table name")
    migration_lock_table_name: str = Field(default=DEFAULT_LOCK_TABLE, description="Lock table name")
    lock_expiry_seconds: int = Field(default=DEFAULT_LOCK_EXPIRY_SECONDS, gt=0, description="Lease duration of the lock")
    timezone: str = Field(default=DEFAULT_TIMEZONE, description="IANA timezone for recorded timestamps")
    raise_on_error: bool = Field(default=False, description="Re-raise mid-run errors after the lock is released")

    @field_validator('dataset_id', 'migration_table_name', 'migration_lock_table_name')
    @classmethod
    def validate_identifier(cls, v):
        """Reject names that cannot be used unquoted as SQL identifiers."""
        if not IDENTIFIER_PATTERN.match(v):
            raise ValueError(f"'{v}' is not a valid identifier")
        return v

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v):
        """Timezone must resolve in the tz database."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone '{v}'") from e
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def summary(self) -> dict:
        """Settings without the client handle, suitable for logging."""
        return self.model_dump(exclude={'client'}, mode='json')


def build_config(**kwargs: Any) -> MigrationConfig:
    """Build a MigrationConfig, dropping None values so defaults apply."""
    return MigrationConfig(**{k: v for k, v in kwargs.items() if v is not None})
