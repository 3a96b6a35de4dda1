"""
Warehouse client factory for building clients from settings.
"""

from typing import Any, Dict
import logging

from .base import WarehouseClient
from .duckdb_client import DuckDBWarehouseClient
from .sqlalchemy_client import SQLAlchemyWarehouseClient

logger = logging.getLogger(__name__)


class WarehouseClientFactory:
    """Factory for creating warehouse clients by type name."""

    @staticmethod
    def create_client(db_type: str, connection_params: Dict[str, Any]) -> WarehouseClient:
        """
        Create a warehouse client.

        Args:
            db_type: Client type ('duckdb' or 'sqlalchemy')
            connection_params: 'path' for DuckDB; 'url' and optional
                'engine_args' for SQLAlchemy

        Returns:
            WarehouseClient instance
        """
        if db_type == 'duckdb':
            client = DuckDBWarehouseClient(database=connection_params.get('path') or ':memory:')
        elif db_type == 'sqlalchemy':
            url = connection_params.get('url')
            if not url:
                raise ValueError("SQLAlchemy client requires a 'url'")
            client = SQLAlchemyWarehouseClient(url, connection_params.get('engine_args'))
        else:
            raise ValueError(f"Unsupported client type: {db_type}")

        logger.info(f"Created {db_type} warehouse client")
        return client

    @staticmethod
    def create_from_settings(settings: Dict[str, Any]) -> WarehouseClient:
        """Create a client from the 'database' section of CLI settings."""
        database = settings.get('database', {})
        db_type = database.get('type')
        if not db_type:
            raise ValueError("Settings must include 'database.type'")
        return WarehouseClientFactory.create_client(db_type, database)

    @staticmethod
    def get_supported_clients() -> list:
        return ['duckdb', 'sqlalchemy']
