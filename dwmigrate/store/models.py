"""
Bookkeeping data models.

Pydantic models for the rows of the ledger and lock tables, plus the logical
column layout both tables are created with.
"""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field, field_validator

from ..clients.base import ColumnSpec

LEDGER_COLUMNS: List[ColumnSpec] = [
    ColumnSpec('name', 'STRING'),
    ColumnSpec('batch', 'INT64'),
    ColumnSpec('migration_time', 'DATETIME'),
]

LOCK_COLUMNS: List[ColumnSpec] = [
    ColumnSpec('is_locked', 'BOOL'),
    ColumnSpec('locked_at', 'DATETIME'),
]


class MigrationRecord(BaseModel):
    """A ledger row: one successfully applied migration."""

    name: str = Field(..., description="Migration name (script filename stem)")
    batch: int = Field(..., ge=1, description="Batch the migration was applied in")
    migration_time: datetime = Field(..., description="When the batch was recorded")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError('Migration name must not be empty')
        return v


class LockRecord(BaseModel):
    """The single row of the lock table."""

    is_locked: bool = Field(..., description="Whether a run holds the lock")
    locked_at: datetime = Field(..., description="When the lock was last taken or the table seeded")

    def age_seconds(self, now: datetime) -> float:
        return (now - self.locked_at).total_seconds()

    def is_expired(self, now: datetime, expiry_seconds: int) -> bool:
        """True if a held lock is old enough to be taken over."""
        return self.age_seconds(now) >= expiry_seconds
