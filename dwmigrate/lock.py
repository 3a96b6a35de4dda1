"""
Lease-based migration lock.

The lock is the single row of the lock table. Acquiring it is one
conditional UPDATE that succeeds only when the row is unlocked or its lease
is at least expiry_seconds old; the affected-row count of that UPDATE is the
only signal consulted. There is no separate read before the write.
"""

from contextlib import contextmanager
from typing import Optional

from .config.logging_config import get_logger
from .exceptions import BookkeepingError, LockAcquisitionError, LockReleaseError
from .store.bookkeeping import BookkeepingStore


class LockCoordinator:
    """Acquires and releases the migration lock of one dataset."""

    def __init__(self, store: BookkeepingStore, expiry_seconds: int = 30):
        self.store = store
        self.expiry_seconds = expiry_seconds
        self.logger = get_logger('lock', store.dataset_id)

    @property
    def table_name(self) -> str:
        return self.store.lock.table_name

    def acquire(self, expiry_seconds: Optional[int] = None) -> None:
        """
        Take the lock.

        Args:
            expiry_seconds: Lease duration; defaults to the configured value

        Raises:
            LockAcquisitionError: If another holder's lease has not expired
        """
        expiry = self.expiry_seconds if expiry_seconds is None else expiry_seconds
        affected = self.store.try_lock(expiry)

        if affected == 0:
            raise LockAcquisitionError(f"Failed to lock {self.table_name} table")

        self.logger.info("Received migration lock.")

    def release(self) -> None:
        """
        Release the lock.

        Raises:
            LockReleaseError: If the lock was not held
        """
        affected = self.store.try_unlock()

        if affected == 0:
            raise LockReleaseError(f"Failed to unlock {self.table_name} table")

        self.logger.info("Removed migration lock.")

    @contextmanager
    def held(self, expiry_seconds: Optional[int] = None):
        """
        Hold the lock for the duration of a with-block.

        If the block raises, a failure to release is logged so the block's
        own exception propagates.

        Usage:
            with coordinator.held():
                ...
        """
        self.acquire(expiry_seconds)
        try:
            yield self
        except BaseException:
            try:
                self.release()
            except (LockReleaseError, BookkeepingError) as e:
                self.logger.error(f"Error releasing migration lock: {e}")
            raise
        self.release()
