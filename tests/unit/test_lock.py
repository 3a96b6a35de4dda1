"""Unit tests for the lease-based migration lock."""

import threading
from unittest import mock

import duckdb
import pytest

from dwmigrate.exceptions import BookkeepingError, LockAcquisitionError, LockReleaseError
from dwmigrate.lock import LockCoordinator
from dwmigrate.store import BookkeepingStore

DATASET = "analytics"


@pytest.fixture
def store(client, clock):
    store = BookkeepingStore(client, DATASET, clock=clock)
    store.ensure_lock_table()
    return store


@pytest.fixture
def coordinator(store):
    return LockCoordinator(store, expiry_seconds=30)


class TestLockCoordinator:
    """Test acquire/release semantics."""

    def test_acquire_and_release(self, coordinator, store):
        coordinator.acquire()
        assert store.read_lock().is_locked

        coordinator.release()
        assert not store.read_lock().is_locked

    def test_second_acquire_fails(self, coordinator):
        coordinator.acquire()

        with pytest.raises(LockAcquisitionError, match="Failed to lock schema_migrations_lock table"):
            coordinator.acquire()

    def test_competing_coordinators(self, store):
        first = LockCoordinator(store)
        second = LockCoordinator(store)

        first.acquire()
        with pytest.raises(LockAcquisitionError):
            second.acquire()

        first.release()
        second.acquire()

    def test_release_not_held(self, coordinator):
        with pytest.raises(LockReleaseError, match="Failed to unlock schema_migrations_lock table"):
            coordinator.release()

    def test_double_release(self, coordinator):
        coordinator.acquire()
        coordinator.release()

        with pytest.raises(LockReleaseError):
            coordinator.release()

    def test_lock_not_expired_before_lease(self, coordinator, clock):
        coordinator.acquire()
        clock.advance(29)

        with pytest.raises(LockAcquisitionError):
            coordinator.acquire()

    def test_expired_lock_taken_over(self, coordinator, store, clock):
        coordinator.acquire()
        clock.advance(30)

        coordinator.acquire()

        assert store.read_lock().locked_at == clock()

    def test_expiry_override(self, coordinator, clock):
        coordinator.acquire()
        clock.advance(5)

        with pytest.raises(LockAcquisitionError):
            coordinator.acquire()
        coordinator.acquire(expiry_seconds=5)

    def test_held_releases_on_exit(self, coordinator, store):
        with coordinator.held():
            assert store.read_lock().is_locked
        assert not store.read_lock().is_locked

    def test_held_releases_on_error(self, coordinator, store):
        with pytest.raises(RuntimeError):
            with coordinator.held():
                raise RuntimeError("boom")
        assert not store.read_lock().is_locked

    def test_held_keeps_block_error_when_release_fails(self, coordinator, store):
        with mock.patch.object(store, 'try_unlock', return_value=0), \
                mock.patch.object(coordinator.logger, 'error') as log_error:
            with pytest.raises(RuntimeError, match="boom"):
                with coordinator.held():
                    raise RuntimeError("boom")

        assert "Failed to unlock" in log_error.call_args.args[0]

    def test_held_raises_release_error_after_clean_block(self, coordinator, store):
        with mock.patch.object(store, 'try_unlock', return_value=0):
            with pytest.raises(LockReleaseError):
                with coordinator.held():
                    pass


class TestConcurrentAcquire:
    """Two acquirers racing on the same lock row."""

    ROUNDS = 50

    def race(self, store):
        barrier = threading.Barrier(2)
        outcomes = []
        outcomes_lock = threading.Lock()

        def contender():
            coordinator = LockCoordinator(store)
            barrier.wait()
            try:
                coordinator.acquire()
                outcome = 'acquired'
            except LockAcquisitionError:
                outcome = 'refused'
            except Exception as e:
                outcome = f'{type(e).__name__}: {e}'
            with outcomes_lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=contender) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return sorted(outcomes)

    def test_exactly_one_winner(self, store):
        for _ in range(self.ROUNDS):
            assert self.race(store) == ['acquired', 'refused']
            assert store.read_lock().is_locked
            store.try_unlock()

    def test_conflict_reported_as_zero_rows(self, store):
        with mock.patch.object(store.client, 'execute_dml',
                               side_effect=duckdb.TransactionException("Conflict on update")):
            with pytest.raises(LockAcquisitionError):
                LockCoordinator(store).acquire()

    def test_conflict_elsewhere_still_raises(self, store):
        with mock.patch.object(store.client, 'execute_dml',
                               side_effect=duckdb.TransactionException("Conflict on update")):
            with pytest.raises(BookkeepingError):
                LockCoordinator(store).release()
