"""
DuckDB warehouse client.

Runs bookkeeping statements and migrations against a DuckDB database. A
dataset maps to a DuckDB schema. Each call works on its own cursor of the
root connection, so one client can be shared by threads.
"""

import re
import time
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import duckdb

from .base import ColumnSpec, WarehouseClient, split_statements

logger = logging.getLogger(__name__)

# ':name' placeholders, ignoring '::' casts
_NAMED_PARAM = re.compile(r'(?<![:\w]):([A-Za-z_][A-Za-z0-9_]*)')


class DuckDBWarehouseClient(WarehouseClient):
    """
    Warehouse client backed by a native DuckDB connection.

    DuckDB reports the number of changed rows as the single result row of an
    INSERT, UPDATE or DELETE, which is what execute_dml() returns.
    """

    dialect = 'duckdb'

    # Write-write conflict between concurrent cursors
    conflict_errors = (duckdb.TransactionException,)

    TYPE_MAPPING = {
        'STRING': 'VARCHAR',
        'INT64': 'BIGINT',
        'DATETIME': 'TIMESTAMP',
        'BOOL': 'BOOLEAN',
    }

    def __init__(self, database: str = ':memory:',
                 connection: Optional[duckdb.DuckDBPyConnection] = None,
                 read_only: bool = False,
                 config: Optional[Dict[str, Any]] = None):
        """
        Initialize the client.

        Args:
            database: DuckDB database path (':memory:' for an in-memory database)
            connection: Existing connection to use instead of opening one
            read_only: Open the database read-only
            config: DuckDB configuration options passed to duckdb.connect
        """
        self.database = database
        self._owns_connection = connection is None
        if connection is None:
            if database != ':memory:':
                Path(database).parent.mkdir(parents=True, exist_ok=True)
            connection = duckdb.connect(database=database, read_only=read_only, config=config or {})
        self._connection = connection
        self.query_stats = {
            'total_queries': 0,
            'total_query_time': 0.0,
            'failed_queries': 0,
        }
        logger.debug(f"DuckDB client opened: {database}")

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        return self._connection

    @staticmethod
    def _translate(sql: str) -> str:
        return _NAMED_PARAM.sub(r'$\1', sql)

    def _execute(self, sql: str, params: Optional[Dict[str, Any]], fetch: str) -> Any:
        start_time = time.time()
        cursor = self._connection.cursor()
        try:
            if params:
                result = cursor.execute(self._translate(sql), params)
            else:
                result = cursor.execute(sql)

            if fetch == 'all':
                columns = [desc[0] for desc in result.description or []]
                rows = [dict(zip(columns, row)) for row in result.fetchall()]
            elif fetch == 'one':
                rows = result.fetchone()
            else:
                rows = None

            self.query_stats['total_queries'] += 1
            self.query_stats['total_query_time'] += time.time() - start_time
            return rows

        except Exception:
            self.query_stats['failed_queries'] += 1
            raise
        finally:
            cursor.close()

    def table_exists(self, dataset_id: str, table_name: str) -> bool:
        rows = self._execute(
            "SELECT COUNT(*) AS n FROM information_schema.tables "
            "WHERE table_schema = :dataset AND table_name = :table",
            {'dataset': dataset_id, 'table': table_name},
            fetch='all'
        )
        return bool(rows and rows[0]['n'])

    def create_table(self, dataset_id: str, table_name: str,
                     columns: Sequence[ColumnSpec]) -> None:
        column_sql = ', '.join(f'"{c.name}" {self.TYPE_MAPPING[c.type]}' for c in columns)
        self._execute(f'CREATE SCHEMA IF NOT EXISTS "{dataset_id}"', None, fetch='none')
        self._execute(
            f"CREATE TABLE {self.qualified_name(dataset_id, table_name)} ({column_sql})",
            None,
            fetch='none'
        )
        logger.debug(f"Created table {dataset_id}.{table_name}")

    def query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return self._execute(sql, params, fetch='all')

    def execute_dml(self, sql: str, params: Optional[Dict[str, Any]] = None) -> int:
        row = self._execute(sql, params, fetch='one')
        return int(row[0]) if row and row[0] is not None else 0

    def execute_script(self, script: str) -> None:
        start_time = time.time()
        statements = split_statements(script)
        for statement in statements:
            self._execute(statement, None, fetch='none')
        logger.debug(f"Executed script with {len(statements)} statements in {time.time() - start_time:.3f}s")

    def get_performance_stats(self) -> Dict[str, Any]:
        """Get query statistics for this client."""
        stats = self.query_stats.copy()
        if stats['total_queries'] > 0:
            stats['avg_query_time'] = stats['total_query_time'] / stats['total_queries']
        else:
            stats['avg_query_time'] = 0.0
        stats['database'] = self.database
        return stats

    def close(self) -> None:
        if self._owns_connection:
            self._connection.close()
            logger.debug(f"DuckDB client closed: {self.database}")
