"""
Bookkeeping store.

- BookkeepingStore: typed operations over the ledger and lock tables
- LedgerRepository / LockRepository: per-table statements
- MigrationRecord / LockRecord: row models
"""

from .bookkeeping import BookkeepingStore, zone_clock
from .ledger_repository import LedgerRepository
from .lock_repository import LockRepository
from .models import LEDGER_COLUMNS, LOCK_COLUMNS, LockRecord, MigrationRecord

__all__ = [
    'BookkeepingStore',
    'zone_clock',
    'LedgerRepository',
    'LockRepository',
    'LEDGER_COLUMNS',
    'LOCK_COLUMNS',
    'LockRecord',
    'MigrationRecord',
]
