"""
Outcome models for engine operations.

run_migrations() and rollback_migrations() return a MigrationResult instead
of raising mid-run errors, so callers can tell a clean run from a partial one
without reading logs.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .store.models import LockRecord


class MigrationAction(str, Enum):
    """Engine operation enumeration."""
    RUN = "run"
    ROLLBACK = "rollback"


class ResultStatus(str, Enum):
    """Outcome of a run or rollback."""
    SUCCESS = "success"      # at least one script executed, no error
    NOOP = "noop"            # nothing to do, no error
    PARTIAL = "partial"      # some scripts executed before an error
    FAILED = "failed"        # error before any script executed


class MigrationResult(BaseModel):
    """Typed outcome of run_migrations() / rollback_migrations()."""

    action: MigrationAction = Field(..., description="Operation performed")
    batch: Optional[int] = Field(None, description="Batch written (run) or targeted (rollback)")
    executed: List[str] = Field(default_factory=list, description="Scripts executed, in order")
    recorded: bool = Field(default=False, description="Whether the ledger was updated")
    failed_migration: Optional[str] = Field(None, description="Script that failed, if any")
    error: Optional[str] = Field(None, description="Error message, if any")

    @property
    def status(self) -> ResultStatus:
        if self.error is None:
            return ResultStatus.SUCCESS if self.executed else ResultStatus.NOOP
        return ResultStatus.PARTIAL if self.executed else ResultStatus.FAILED

    @property
    def succeeded(self) -> bool:
        return self.error is None


class MigrationStatus(BaseModel):
    """Read-only report of a dataset's migration state."""

    dataset_id: str
    current_batch: int = Field(default=0, ge=0)
    applied: List[str] = Field(default_factory=list, description="Applied names ordered by batch, then name")
    pending: List[str] = Field(default_factory=list, description="Catalog names not yet applied")
    orphaned: List[str] = Field(default_factory=list, description="Applied names missing from the catalog")
    lock: Optional[LockRecord] = None

    @property
    def is_up_to_date(self) -> bool:
        return not self.pending
