"""
Migration engine.

This module applies and reverts batches of migration scripts against a
warehouse dataset that has no transactional DDL:
- bookkeeping tables are provisioned idempotently
- a lease-based lock keeps runs mutually exclusive across processes
- pending scripts run strictly in catalog order and are recorded as one batch
- rollback reverts exactly the latest batch
- the lock is always released, even when a run fails part way
"""

import asyncio
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from .catalog import CoroutineRunner, MigrationCatalog, MigrationScript
from .clients.base import WarehouseClient
from .config.logging_config import get_logger
from .config.migration_config import MigrationConfig, build_config
from .exceptions import (
    BookkeepingError,
    ConfigurationError,
    DiscoveryError,
    LockReleaseError,
    MigrationError,
    ScriptExecutionError,
)
from .lock import LockCoordinator
from .results import MigrationAction, MigrationResult, MigrationStatus
from .store.bookkeeping import BookkeepingStore


class MigrationEngine:
    """
    Batch migration engine for one dataset.

    Usage:
        engine = MigrationEngine(client, "analytics", migrations_dir="migrations")
        result = engine.run_migrations()
        if not result.succeeded:
            ...
    """

    def __init__(self, client: WarehouseClient, dataset_id: str,
                 migrations_dir: Optional[Union[str, Path]] = None,
                 migration_table_name: Optional[str] = None,
                 migration_lock_table_name: Optional[str] = None,
                 lock_expiry_seconds: Optional[int] = None,
                 timezone: Optional[str] = None,
                 raise_on_error: Optional[bool] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize the engine. Omitted options take their defaults.

        Args:
            client: Warehouse client used for every statement
            dataset_id: Dataset holding the target and bookkeeping tables
            migrations_dir: Directory of NNN_name.py / NNN_name.sql scripts
            migration_table_name: Ledger table name
            migration_lock_table_name: Lock table name
            lock_expiry_seconds: Lease after which a held lock may be taken over
            timezone: IANA timezone for recorded timestamps
            raise_on_error: Re-raise mid-run errors after releasing the lock
            clock: Optional replacement for the timezone clock

        Raises:
            ConfigurationError: If any setting is invalid
        """
        try:
            config = build_config(
                client=client,
                dataset_id=dataset_id,
                migrations_dir=migrations_dir,
                migration_table_name=migration_table_name,
                migration_lock_table_name=migration_lock_table_name,
                lock_expiry_seconds=lock_expiry_seconds,
                timezone=timezone,
                raise_on_error=raise_on_error,
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid migration settings: {e}") from e

        self._setup(config, clock)

    @classmethod
    def from_config(cls, config: MigrationConfig,
                    clock: Optional[Callable[[], datetime]] = None) -> 'MigrationEngine':
        """Create an engine from an already validated MigrationConfig."""
        engine = cls.__new__(cls)
        engine._setup(config, clock)
        return engine

    @classmethod
    def from_settings(cls, settings: Dict[str, Any], client: WarehouseClient) -> 'MigrationEngine':
        """Create an engine from the 'migrations' section of CLI settings."""
        section = settings.get('migrations', {})
        return cls(
            client,
            section.get('dataset'),
            migrations_dir=section.get('dir'),
            migration_table_name=section.get('table_name'),
            migration_lock_table_name=section.get('lock_table_name'),
            lock_expiry_seconds=section.get('lock_expiry_seconds'),
            timezone=section.get('timezone'),
            raise_on_error=section.get('raise_on_error'),
        )

    def _setup(self, config: MigrationConfig, clock: Optional[Callable[[], datetime]]) -> None:
        self.config = config
        self.client = config.client
        self.dataset_id = config.dataset_id
        self.logger = get_logger('engine', config.dataset_id)

        self.store = BookkeepingStore(
            config.client,
            config.dataset_id,
            migration_table_name=config.migration_table_name,
            migration_lock_table_name=config.migration_lock_table_name,
            timezone=config.timezone,
            clock=clock,
        )
        self.lock = LockCoordinator(self.store, config.lock_expiry_seconds)
        self.catalog = MigrationCatalog(config.migrations_dir, config.dataset_id)

        self.logger.debug(f"🔧 MigrationEngine initialized: {config.summary()}")

    # Provisioning

    def create_migration_table(self) -> bool:
        """Create the ledger table if it does not exist."""
        return self.store.ensure_ledger_table()

    def create_migration_lock_table(self) -> bool:
        """Create the lock table, seeded with one unlocked row, if it does not exist."""
        return self.store.ensure_lock_table()

    # Lock

    def lock_migration(self) -> None:
        """Take the migration lock; raises LockAcquisitionError if held."""
        self.lock.acquire()

    def unlock_migration(self) -> None:
        """Release the migration lock; raises LockReleaseError if not held."""
        self.lock.release()

    # Catalog and ledger

    def get_migration_files(self) -> List[str]:
        """Sorted filenames of the migration catalog."""
        return self.catalog.list_files()

    def get_applied_migrations(self, batch: Optional[int] = None) -> List[str]:
        """
        Applied migration names ordered by batch, then by name within a batch.

        Args:
            batch: Only return names recorded in this batch
        """
        return self.store.list_applied(batch)

    # Run / rollback

    def run_migrations(self) -> MigrationResult:
        """
        Apply every pending migration as one new batch.

        Table provisioning failures, a missing scripts directory and a held
        lock are raised before anything else happens. Errors after the lock
        is taken are logged and reported in the result; they are re-raised
        only when raise_on_error is set, and always after the lock is released.
        """
        return self._locked_operation(MigrationAction.RUN, self._run_pending)

    def rollback_migrations(self) -> MigrationResult:
        """Revert the latest batch. Same error surfacing as run_migrations()."""
        return self._locked_operation(MigrationAction.ROLLBACK, self._rollback_latest)

    async def run_migrations_async(self) -> MigrationResult:
        """
        Async form of run_migrations().

        The invocation runs in a worker thread; coroutine procedures are
        awaited on the calling event loop, so loop-bound async handles can be
        shared by every script of the batch.
        """
        loop = asyncio.get_running_loop()
        return await asyncio.to_thread(self._locked_operation, MigrationAction.RUN, self._run_pending, loop)

    async def rollback_migrations_async(self) -> MigrationResult:
        """Async form of rollback_migrations(); see run_migrations_async()."""
        loop = asyncio.get_running_loop()
        return await asyncio.to_thread(self._locked_operation, MigrationAction.ROLLBACK,
                                       self._rollback_latest, loop)

    def _prepare(self) -> None:
        self.create_migration_table()
        self.create_migration_lock_table()

        if not self.catalog.exists():
            raise DiscoveryError(f"Migrations directory not found: {self.catalog.migrations_dir}")

    def _locked_operation(self, action: MigrationAction,
                          body: Callable[[MigrationResult, CoroutineRunner], None],
                          loop: Optional[asyncio.AbstractEventLoop] = None) -> MigrationResult:
        self._prepare()
        self.lock.acquire()

        result = MigrationResult(action=action)
        runner = CoroutineRunner(loop)
        error: Optional[MigrationError] = None
        start_time = time.time()

        try:
            body(result, runner)
        except MigrationError as e:
            error = e
            result.error = str(e)
            if isinstance(e, ScriptExecutionError):
                result.failed_migration = e.migration_name
            verb = "running migrations" if action == MigrationAction.RUN else "rolling back"
            self.logger.error(f"Error {verb}: {e}")
            self.logger.debug("Failure details", exc_info=True)
        finally:
            runner.close()
            self._release_lock()

        self.logger.debug(f"{action.value} finished with status {result.status.value} "
                          f"in {time.time() - start_time:.3f}s")

        if error is not None and self.config.raise_on_error:
            raise error
        return result

    def _release_lock(self) -> None:
        try:
            self.lock.release()
        except (LockReleaseError, BookkeepingError) as e:
            self.logger.error(f"Error releasing migration lock: {e}")

    def _run_pending(self, result: MigrationResult, runner: CoroutineRunner) -> None:
        applied = self.store.query_applied_names()
        scripts = self.catalog.list_scripts()
        pending = [s for s in scripts if s.name not in applied]

        self.logger.debug(f"Found {len(pending)} pending migrations: {[s.name for s in pending]}")

        failure = self._execute_scripts(pending, 'up', result, runner)

        if result.executed:
            batch = self.store.current_batch() + 1
            self.store.insert_ledger_rows(result.executed, batch, self.store.now())
            result.batch = batch
            result.recorded = True
            self.logger.info(f"Ran {len(result.executed)} migrations.")
        else:
            self.logger.info("No migrations to run.")

        if failure is not None:
            raise failure

    def _rollback_latest(self, result: MigrationResult, runner: CoroutineRunner) -> None:
        current_batch = self.store.current_batch()
        result.batch = current_batch or None

        latest = self.store.query_applied_names(current_batch) if current_batch else set()
        scripts = self.catalog.list_scripts()
        targets = [s for s in scripts if s.name in latest]

        missing = latest - {s.name for s in targets}
        if missing:
            self.logger.warning(f"Batch {current_batch} has migrations with no script file: {sorted(missing)}")

        failure = self._execute_scripts(targets, 'down', result, runner)

        if result.executed:
            self.store.delete_ledger_rows(result.executed, current_batch)
            result.recorded = True
            self.logger.info(f"Rolled back {len(result.executed)} migrations.")
        else:
            self.logger.info("Nothing to rollback.")

        if failure is not None:
            raise failure

    def _execute_scripts(self, scripts: Sequence[MigrationScript], direction: str,
                         result: MigrationResult,
                         runner: CoroutineRunner) -> Optional[ScriptExecutionError]:
        """
        Run scripts one at a time, stopping at the first failure.

        Returns:
            The failure to raise once the executed scripts are recorded, or None
        """
        for script in scripts:
            start_time = time.time()
            self.logger.info(f"Applying migration {script.name} ({direction})")
            try:
                script.run(direction, self.client, self.dataset_id, runner)
            except Exception as e:
                self.logger.script(script.name, direction, False, error=str(e))
                failure = ScriptExecutionError(
                    script.name, direction, f"Migration {script.name} failed during {direction}: {e}"
                )
                failure.__cause__ = e
                return failure

            self.logger.script(script.name, direction, True, duration=time.time() - start_time)
            result.executed.append(script.name)

        return None

    # Inspection

    def get_migration_status(self) -> MigrationStatus:
        """
        Report applied, pending and orphaned migrations plus the lock row.

        Read-only: missing bookkeeping tables are reported as empty.
        """
        scripts = self.catalog.list_scripts() if self.catalog.exists() else []
        catalog_names = [s.name for s in scripts]

        applied: List[str] = []
        current_batch = 0
        if self.store.ledger.exists():
            applied = self.store.list_applied()
            current_batch = self.store.current_batch()

        lock = self.store.read_lock() if self.store.lock.exists() else None
        applied_set = set(applied)

        return MigrationStatus(
            dataset_id=self.dataset_id,
            current_batch=current_batch,
            applied=applied,
            pending=[name for name in catalog_names if name not in applied_set],
            orphaned=[name for name in applied if name not in set(catalog_names)],
            lock=lock,
        )

    def validate_migrations(self) -> List[Dict[str, Any]]:
        """
        Check the ledger against the catalog.

        Returns:
            List of issues, each with 'type', 'name' and 'message'
        """
        issues = []

        try:
            status = self.get_migration_status()
        except DiscoveryError as e:
            return [{'type': 'discovery_error', 'name': None, 'message': str(e)}]

        for name in status.orphaned:
            issues.append({
                'type': 'missing_file',
                'name': name,
                'message': f"Migration {name} is applied but its script is missing"
            })

        latest_applied = max(status.applied, default=None)
        for name in status.pending:
            if latest_applied is not None and name < latest_applied:
                issues.append({
                    'type': 'out_of_order',
                    'name': name,
                    'message': f"Pending migration {name} sorts before applied migration {latest_applied}"
                })

        if issues:
            self.logger.warning(f"Found {len(issues)} migration validation issues")
        else:
            self.logger.info("All migrations validated successfully")

        return issues

    def create_migration_file(self, name: str, sql: bool = False) -> Path:
        """Scaffold the next numbered migration script."""
        return self.catalog.create_script(name, sql=sql)
