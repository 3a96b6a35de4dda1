"""
Base repository for the bookkeeping tables.

Wraps a WarehouseClient with table naming, provisioning, timing and error
translation. Every client failure is re-raised as BookkeepingError.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..clients.base import ColumnSpec, WarehouseClient
from ..config.logging_config import get_logger
from ..exceptions import BookkeepingError


class BaseRepository(ABC):
    """
    Abstract repository over one bookkeeping table.

    Subclasses declare the table's logical columns; the base class provides
    existence checks, creation and statement execution.
    """

    def __init__(self, client: WarehouseClient, dataset_id: str, table_name: str):
        self.client = client
        self.dataset_id = dataset_id
        self.table_name = table_name
        self.logger = get_logger(f'store.{self.__class__.__name__.lower()}', dataset_id)

        self.operation_stats = {
            'queries_executed': 0,
            'total_query_time': 0.0,
        }

    @property
    @abstractmethod
    def columns(self) -> Sequence[ColumnSpec]:
        """Return the logical column layout of the table."""

    @property
    def qualified_table(self) -> str:
        return self.client.qualified_name(self.dataset_id, self.table_name)

    def exists(self) -> bool:
        try:
            return self.client.table_exists(self.dataset_id, self.table_name)
        except Exception as e:
            raise BookkeepingError(f"Failed to check table {self.table_name}: {e}") from e

    def create(self) -> None:
        try:
            self.client.create_table(self.dataset_id, self.table_name, self.columns)
        except Exception as e:
            raise BookkeepingError(f"Failed to create table {self.table_name}: {e}") from e
        self.logger.info(f"Created {self.table_name} table.")

    def _query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        start_time = time.time()
        try:
            rows = self.client.query(sql, params)
        except Exception as e:
            raise BookkeepingError(f"Query on {self.table_name} failed: {e}") from e
        self._track_operation(sql, params, time.time() - start_time)
        return rows

    def _execute(self, sql: str, params: Optional[Dict[str, Any]] = None,
                 conflict_as_zero: bool = False) -> int:
        """
        Run one DML statement and return affected rows.

        Args:
            conflict_as_zero: Report a write conflict with a concurrent
                statement as 0 affected rows instead of raising
        """
        start_time = time.time()
        try:
            affected = self.client.execute_dml(sql, params)
        except self.client.conflict_errors as e:
            if not conflict_as_zero:
                raise BookkeepingError(f"Statement on {self.table_name} failed: {e}") from e
            self.logger.debug(f"Write conflict on {self.table_name}, treating as 0 rows: {e}")
            affected = 0
        except Exception as e:
            raise BookkeepingError(f"Statement on {self.table_name} failed: {e}") from e
        self._track_operation(sql, params, time.time() - start_time)
        return affected

    def _track_operation(self, sql: str, params: Optional[Dict[str, Any]], duration: float) -> None:
        self.operation_stats['queries_executed'] += 1
        self.operation_stats['total_query_time'] += duration
        self.logger.query(sql, params, duration)
