"""
dwmigrate - batch schema migrations for analytical warehouses.

Applies and reverts ordered migration scripts against a dataset of a
warehouse without transactional DDL. Coordination relies only on two
bookkeeping tables:
- a ledger of applied migrations grouped into batches
- a single-row lease lock taken with a conditional UPDATE

Key components:
- MigrationEngine: run / rollback state machine
- LockCoordinator: lease-based mutual exclusion
- BookkeepingStore: ledger and lock table access
- MigrationCatalog: script discovery and loading
- Warehouse clients for DuckDB and SQLAlchemy engines
"""

from .clients import (
    ColumnSpec,
    WarehouseClient,
    DuckDBWarehouseClient,
    SQLAlchemyWarehouseClient,
    WarehouseClientFactory,
)
from .config import MigrationConfig, load_settings, setup_migration_logging
from .exceptions import (
    MigrationError,
    ConfigurationError,
    DiscoveryError,
    LockError,
    LockAcquisitionError,
    LockReleaseError,
    BookkeepingError,
    ScriptExecutionError,
)
from .catalog import MigrationCatalog, MigrationScript
from .store import BookkeepingStore, LockRecord, MigrationRecord
from .lock import LockCoordinator
from .results import MigrationAction, MigrationResult, MigrationStatus, ResultStatus
from .engine import MigrationEngine

__version__ = "1.0.0"
__all__ = [
    # Engine
    "MigrationEngine",
    "MigrationResult",
    "MigrationStatus",
    "MigrationAction",
    "ResultStatus",

    # Components
    "LockCoordinator",
    "BookkeepingStore",
    "MigrationCatalog",
    "MigrationScript",
    "MigrationRecord",
    "LockRecord",

    # Clients
    "ColumnSpec",
    "WarehouseClient",
    "DuckDBWarehouseClient",
    "SQLAlchemyWarehouseClient",
    "WarehouseClientFactory",

    # Configuration
    "MigrationConfig",
    "load_settings",
    "setup_migration_logging",

    # Errors
    "MigrationError",
    "ConfigurationError",
    "DiscoveryError",
    "LockError",
    "LockAcquisitionError",
    "LockReleaseError",
    "BookkeepingError",
    "ScriptExecutionError",
]
