"""
Lock repository: the single-row lock table.

Acquire and release are conditional updates whose affected-row count is the
only success signal; nothing here reads the lock before writing it.
"""

from datetime import datetime
from typing import Optional, Sequence

from ..clients.base import ColumnSpec
from .base_repository import BaseRepository
from .models import LOCK_COLUMNS, LockRecord


class LockRepository(BaseRepository):
    """Conditional writes on the lock table (is_locked, locked_at)."""

    @property
    def columns(self) -> Sequence[ColumnSpec]:
        return LOCK_COLUMNS

    def seed(self, created_at: datetime) -> int:
        """Insert the unlocked row unless a row already exists."""
        return self._execute(
            f"INSERT INTO {self.qualified_table} (is_locked, locked_at) "
            f"SELECT FALSE, :created_at "
            f"WHERE NOT EXISTS (SELECT 1 FROM {self.qualified_table})",
            {'created_at': created_at}
        )

    def try_lock(self, acquired_at: datetime, stale_before: datetime) -> int:
        """
        Take the lock if it is free or was taken at or before stale_before.

        Returns:
            Number of rows updated (1 on success, 0 if held and unexpired
            or if a concurrent acquire won the write conflict)
        """
        return self._execute(
            f"UPDATE {self.qualified_table} "
            f"SET is_locked = TRUE, locked_at = :acquired_at "
            f"WHERE is_locked = FALSE OR locked_at <= :stale_before",
            {'acquired_at': acquired_at, 'stale_before': stale_before},
            conflict_as_zero=True
        )

    def try_unlock(self) -> int:
        """Clear the lock flag; returns rows updated (0 if it was not held)."""
        return self._execute(
            f"UPDATE {self.qualified_table} SET is_locked = FALSE WHERE is_locked = TRUE"
        )

    def read(self) -> Optional[LockRecord]:
        """Current lock row, for status reporting only."""
        rows = self._query(f"SELECT is_locked, locked_at FROM {self.qualified_table}")
        if not rows:
            return None
        return LockRecord(**rows[0])
