"""
SQLAlchemy warehouse client.

Runs bookkeeping statements through a SQLAlchemy engine, so any backend whose
driver reports affected rows for DML (SQLite, PostgreSQL, ...) can host the
ledger and lock tables. A dataset maps to a database schema.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy import Column, MetaData, Table, bindparam, create_engine, inspect, text, types
from sqlalchemy.engine import Engine

from .base import ColumnSpec, WarehouseClient, split_statements

logger = logging.getLogger(__name__)


class SQLAlchemyWarehouseClient(WarehouseClient):
    """Warehouse client using SQLAlchemy Core."""

    dialect = 'sqlalchemy'

    TYPE_MAPPING = {
        'STRING': types.String,
        'INT64': types.BigInteger,
        'DATETIME': types.DateTime,
        'BOOL': types.Boolean,
    }

    def __init__(self, engine: Union[Engine, str], engine_args: Optional[Dict[str, Any]] = None):
        """
        Initialize the client.

        Args:
            engine: SQLAlchemy Engine or database URL
            engine_args: Extra create_engine() arguments when a URL is given
        """
        if isinstance(engine, str):
            engine_args = dict(engine_args or {})
            engine_args.setdefault('pool_pre_ping', True)
            engine_args.setdefault('echo', False)
            logger.info(f"Creating engine: {engine}")
            engine = create_engine(engine, **engine_args)
        self.engine = engine

    def _prepare(self, sql: str, params: Optional[Dict[str, Any]]):
        """Build a text() clause; datetime parameters get a DateTime type."""
        stmt = text(sql)
        if params:
            typed = [bindparam(k, type_=types.DateTime()) for k, v in params.items() if isinstance(v, datetime)]
            if typed:
                stmt = stmt.bindparams(*typed)
        return stmt

    def qualified_name(self, dataset_id: str, table_name: str) -> str:
        preparer = self.engine.dialect.identifier_preparer
        return f"{preparer.quote_schema(dataset_id)}.{preparer.quote(table_name)}"

    def table_exists(self, dataset_id: str, table_name: str) -> bool:
        return inspect(self.engine).has_table(table_name, schema=dataset_id)

    def create_table(self, dataset_id: str, table_name: str,
                     columns: Sequence[ColumnSpec]) -> None:
        metadata = MetaData()
        table = Table(
            table_name,
            metadata,
            *[Column(c.name, self.TYPE_MAPPING[c.type]()) for c in columns],
            schema=dataset_id
        )
        table.create(self.engine)
        logger.debug(f"Created table {dataset_id}.{table_name}")

    def query(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        with self.engine.connect() as conn:
            result = conn.execute(self._prepare(sql, params), params or {})
            return [dict(row._mapping) for row in result]

    def execute_dml(self, sql: str, params: Optional[Dict[str, Any]] = None) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(self._prepare(sql, params), params or {})
            rowcount = result.rowcount

        if rowcount is None or rowcount < 0:
            raise RuntimeError(
                f"Driver '{self.engine.dialect.name}' did not report affected rows; "
                "it cannot host the migration lock"
            )
        return rowcount

    def execute_script(self, script: str) -> None:
        statements = split_statements(script)
        with self.engine.begin() as conn:
            for statement in statements:
                conn.exec_driver_sql(statement)
        logger.debug(f"Executed script with {len(statements)} statements")

    def close(self) -> None:
        self.engine.dispose()
