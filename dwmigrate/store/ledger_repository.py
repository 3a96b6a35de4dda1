"""
Ledger repository: the applied-migrations table.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from ..clients.base import ColumnSpec
from .base_repository import BaseRepository
from .models import LEDGER_COLUMNS, MigrationRecord


class LedgerRepository(BaseRepository):
    """Reads and mutates the ledger table (name, batch, migration_time)."""

    @property
    def columns(self) -> Sequence[ColumnSpec]:
        return LEDGER_COLUMNS

    @staticmethod
    def _name_params(names: Sequence[str]) -> Tuple[List[str], Dict[str, Any]]:
        placeholders = [f":name_{i}" for i in range(len(names))]
        params = {f"name_{i}": name for i, name in enumerate(names)}
        return placeholders, params

    def names(self, batch: Optional[int] = None) -> List[str]:
        """
        Applied names ordered by batch, then by name within a batch. The
        ledger keeps no sequence column, so this can differ from catalog
        order when stems sort differently than full filenames.

        Args:
            batch: Only return names recorded in this batch
        """
        query = f"SELECT name FROM {self.qualified_table}"
        params = None
        if batch is not None:
            query += " WHERE batch = :batch"
            params = {'batch': batch}
        query += " ORDER BY batch, name"

        return [row['name'] for row in self._query(query, params)]

    def max_batch(self) -> int:
        """Highest batch number, 0 for an empty ledger."""
        rows = self._query(f"SELECT MAX(batch) AS max_batch FROM {self.qualified_table}")
        if not rows or rows[0]['max_batch'] is None:
            return 0
        return int(rows[0]['max_batch'])

    def insert(self, names: Sequence[str], batch: int, migration_time: datetime) -> int:
        """Insert one row per name in a single statement."""
        if not names:
            return 0

        placeholders, params = self._name_params(names)
        values = ', '.join(f"({p}, :batch, :migration_time)" for p in placeholders)
        params.update({'batch': batch, 'migration_time': migration_time})

        return self._execute(
            f"INSERT INTO {self.qualified_table} (name, batch, migration_time) VALUES {values}",
            params
        )

    def delete(self, names: Sequence[str], batch: int) -> int:
        """Delete the named rows of one batch in a single statement."""
        if not names:
            return 0

        placeholders, params = self._name_params(names)
        params['batch'] = batch

        return self._execute(
            f"DELETE FROM {self.qualified_table} "
            f"WHERE name IN ({', '.join(placeholders)}) AND batch = :batch",
            params
        )

    def records(self) -> List[MigrationRecord]:
        rows = self._query(
            f"SELECT name, batch, migration_time FROM {self.qualified_table} ORDER BY batch, name"
        )
        return [MigrationRecord(**row) for row in rows]

    def frame(self) -> pd.DataFrame:
        """Ledger rows as a DataFrame, for reporting and export."""
        records = self.records()
        return pd.DataFrame(
            [record.model_dump() for record in records],
            columns=[c.name for c in LEDGER_COLUMNS]
        )
