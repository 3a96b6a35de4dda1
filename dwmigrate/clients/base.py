"""
Warehouse client interface.

The migration engine talks to the warehouse only through this interface:
table provisioning, reads returning dictionaries, DML returning the number of
affected rows, and multi-statement scripts for SQL migrations. SQL passed to
query() and execute_dml() uses named ':param' placeholders; each client
translates them to its driver's style.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

# Logical column types of the bookkeeping tables
LOGICAL_TYPES = ('STRING', 'INT64', 'DATETIME', 'BOOL')


@dataclass(frozen=True)
class ColumnSpec:
    """A column definition expressed in logical warehouse types."""
    name: str
    type: str

    def __post_init__(self):
        if self.type not in LOGICAL_TYPES:
            raise ValueError(f"Unsupported logical type: {self.type}")


def split_statements(script: str) -> List[str]:
    """Split a SQL script on ';' and drop empty statements."""
    return [stmt.strip() for stmt in script.split(';') if stmt.strip()]


class WarehouseClient(ABC):
    """
    Abstract warehouse client.

    Implementations must guarantee that a single execute_dml() call is one
    atomic statement and that the returned count is the number of rows the
    statement changed. The lock protocol depends on both.
    """

    dialect = 'generic'

    # Driver errors meaning a concurrent writer won; the statement changed nothing
    conflict_errors: Tuple[Type[Exception], ...] = ()

    @abstractmethod
    def table_exists(self, dataset_id: str, table_name: str) -> bool:
        """Return True if the table exists in the dataset."""

    @abstractmethod
    def create_table(self, dataset_id: str, table_name: str,
                     columns: Sequence[ColumnSpec]) -> None:
        """Create a table from logical column definitions."""

    @abstractmethod
    def query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run a read query and return rows as dictionaries."""

    @abstractmethod
    def execute_dml(self, sql: str, params: Optional[Dict[str, Any]] = None) -> int:
        """Run one INSERT/UPDATE/DELETE statement and return affected rows."""

    @abstractmethod
    def execute_script(self, script: str) -> None:
        """Run a script of ';'-separated statements."""

    def qualified_name(self, dataset_id: str, table_name: str) -> str:
        """Return the quoted 'dataset.table' reference."""
        return f'"{dataset_id}"."{table_name}"'

    def close(self) -> None:
        """Release client resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
