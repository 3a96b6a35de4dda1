"""
Bookkeeping store.

Owns the two persisted coordination tables of a dataset:
- the ledger of applied migrations (name, batch, migration_time)
- the single-row lock record (is_locked, locked_at)

The store only offers typed reads and writes; deciding when to write is the
engine's job. Every mutation is one warehouse statement.
"""

from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence, Set
from zoneinfo import ZoneInfo

import pandas as pd

from ..clients.base import WarehouseClient
from ..config.logging_config import get_logger
from .ledger_repository import LedgerRepository
from .lock_repository import LockRepository
from .models import LockRecord, MigrationRecord


def zone_clock(timezone: str) -> Callable[[], datetime]:
    """Return a clock producing naive wall-clock datetimes in the timezone."""
    tz = ZoneInfo(timezone)

    def now() -> datetime:
        return datetime.now(tz).replace(tzinfo=None)

    return now


class BookkeepingStore:
    """Typed access to the ledger and lock tables of one dataset."""

    def __init__(self, client: WarehouseClient, dataset_id: str,
                 migration_table_name: str = "schema_migrations",
                 migration_lock_table_name: str = "schema_migrations_lock",
                 timezone: str = "Etc/UTC",
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize the store.

        Args:
            client: Warehouse client
            dataset_id: Dataset holding both tables
            migration_table_name: Ledger table name
            migration_lock_table_name: Lock table name
            timezone: IANA timezone for recorded timestamps
            clock: Optional replacement for the timezone clock
        """
        self.client = client
        self.dataset_id = dataset_id
        self.clock = clock or zone_clock(timezone)
        self.ledger = LedgerRepository(client, dataset_id, migration_table_name)
        self.lock = LockRepository(client, dataset_id, migration_lock_table_name)
        self.logger = get_logger('store', dataset_id)

    def now(self) -> datetime:
        return self.clock()

    # Provisioning

    def ensure_ledger_table(self) -> bool:
        """Create the ledger table if absent. Returns True if created."""
        if self.ledger.exists():
            return False
        self.ledger.create()
        return True

    def ensure_lock_table(self) -> bool:
        """Create and seed the lock table if absent. Returns True if created."""
        if self.lock.exists():
            return False
        self.lock.create()
        self.lock.seed(self.now())
        return True

    # Ledger

    def query_applied_names(self, batch: Optional[int] = None) -> Set[str]:
        return set(self.ledger.names(batch))

    def list_applied(self, batch: Optional[int] = None) -> List[str]:
        return self.ledger.names(batch)

    def current_batch(self) -> int:
        return self.ledger.max_batch()

    def insert_ledger_rows(self, names: Sequence[str], batch: int,
                           timestamp: Optional[datetime] = None) -> int:
        return self.ledger.insert(names, batch, timestamp or self.now())

    def delete_ledger_rows(self, names: Sequence[str], batch: int) -> int:
        return self.ledger.delete(names, batch)

    def ledger_records(self) -> List[MigrationRecord]:
        return self.ledger.records()

    def ledger_frame(self) -> pd.DataFrame:
        return self.ledger.frame()

    # Lock

    def try_lock(self, expiry_seconds: int) -> int:
        """Conditional lock update; returns affected rows."""
        now = self.now()
        return self.lock.try_lock(now, now - timedelta(seconds=expiry_seconds))

    def try_unlock(self) -> int:
        return self.lock.try_unlock()

    def read_lock(self) -> Optional[LockRecord]:
        return self.lock.read()
