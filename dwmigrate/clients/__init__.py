"""
Warehouse clients.

The engine executes every statement through a WarehouseClient:
- DuckDBWarehouseClient for DuckDB databases
- SQLAlchemyWarehouseClient for SQLAlchemy engines
- WarehouseClientFactory to build either from settings
"""

from .base import ColumnSpec, WarehouseClient, LOGICAL_TYPES
from .duckdb_client import DuckDBWarehouseClient
from .sqlalchemy_client import SQLAlchemyWarehouseClient
from .factory import WarehouseClientFactory

__all__ = [
    'ColumnSpec',
    'WarehouseClient',
    'LOGICAL_TYPES',
    'DuckDBWarehouseClient',
    'SQLAlchemyWarehouseClient',
    'WarehouseClientFactory',
]
