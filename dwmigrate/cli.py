"""
dwmigrate command line.

Usage:
    dwmigrate --config dwmigrate.yaml run          # apply pending migrations
    dwmigrate --config dwmigrate.yaml rollback     # revert the latest batch
    dwmigrate --config dwmigrate.yaml status       # applied / pending / lock
    dwmigrate --config dwmigrate.yaml create add_users_table
"""

import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from .clients.factory import WarehouseClientFactory
from .config.logging_config import setup_migration_logging
from .config.settings import load_settings
from .engine import MigrationEngine
from .exceptions import MigrationError
from .results import MigrationResult, ResultStatus

STATUS_STYLES = {
    ResultStatus.SUCCESS: "green",
    ResultStatus.NOOP: "cyan",
    ResultStatus.PARTIAL: "yellow",
    ResultStatus.FAILED: "red",
}


class MigrationManager:
    """Command dispatcher wiring settings, client and engine together."""

    def __init__(self, settings: Dict[str, Any], console: Optional[Console] = None):
        self.settings = settings
        self.console = console or Console()
        self.client = WarehouseClientFactory.create_from_settings(settings)
        self.engine = MigrationEngine.from_settings(settings, self.client)

    def close(self) -> None:
        self.client.close()

    def dispatch(self, args: argparse.Namespace) -> int:
        handler = getattr(self, f"cmd_{args.command}")
        return handler(args)

    def cmd_run(self, args: argparse.Namespace) -> int:
        return self._show_result(self.engine.run_migrations())

    def cmd_rollback(self, args: argparse.Namespace) -> int:
        return self._show_result(self.engine.rollback_migrations())

    def cmd_status(self, args: argparse.Namespace) -> int:
        status = self.engine.get_migration_status()

        self.console.print(f"\n[bold cyan]Dataset:[/bold cyan] {status.dataset_id}")
        self.console.print(f"[bold cyan]Current batch:[/bold cyan] {status.current_batch}")
        if status.lock is None:
            self.console.print("[bold cyan]Lock:[/bold cyan] table not created")
        else:
            state = "[red]locked[/red]" if status.lock.is_locked else "[green]unlocked[/green]"
            self.console.print(f"[bold cyan]Lock:[/bold cyan] {state} (since {status.lock.locked_at})")

        table = Table(title="Migrations", show_header=True, header_style="bold magenta")
        table.add_column("Name", style="bold yellow")
        table.add_column("State")
        for name in status.applied:
            state = "[red]applied, script missing[/red]" if name in status.orphaned else "[green]applied[/green]"
            table.add_row(name, state)
        for name in status.pending:
            table.add_row(name, "[yellow]pending[/yellow]")
        self.console.print(table)
        return 0

    def cmd_list(self, args: argparse.Namespace) -> int:
        for filename in self.engine.get_migration_files():
            self.console.print(filename)
        return 0

    def cmd_applied(self, args: argparse.Namespace) -> int:
        for name in self.engine.get_applied_migrations(args.batch):
            self.console.print(name)
        return 0

    def cmd_history(self, args: argparse.Namespace) -> int:
        frame = self.engine.store.ledger_frame()
        if args.csv:
            frame.to_csv(args.csv, index=False)
            self.console.print(f"Wrote {len(frame)} ledger rows to {args.csv}")
            return 0

        table = Table(title="Ledger", show_header=True, header_style="bold magenta")
        for column in frame.columns:
            table.add_column(column)
        for row in frame.itertuples(index=False):
            table.add_row(*[str(value) for value in row])
        self.console.print(table)
        return 0

    def cmd_create(self, args: argparse.Namespace) -> int:
        path = self.engine.create_migration_file(args.name, sql=args.sql)
        self.console.print(f"Created {path}")
        return 0

    def cmd_lock(self, args: argparse.Namespace) -> int:
        self.engine.create_migration_lock_table()
        self.engine.lock_migration()
        self.console.print("[yellow]Migration lock taken[/yellow]")
        return 0

    def cmd_unlock(self, args: argparse.Namespace) -> int:
        self.engine.unlock_migration()
        self.console.print("[green]Migration lock released[/green]")
        return 0

    def cmd_validate(self, args: argparse.Namespace) -> int:
        issues = self.engine.validate_migrations()
        if not issues:
            self.console.print("[green]No issues found[/green]")
            return 0

        table = Table(title="Validation issues", show_header=True, header_style="bold magenta")
        table.add_column("Type", style="bold yellow")
        table.add_column("Message")
        for issue in issues:
            table.add_row(issue['type'], issue['message'])
        self.console.print(table)
        return 1

    def _show_result(self, result: MigrationResult) -> int:
        style = STATUS_STYLES[result.status]
        self.console.print(f"[{style}]{result.action.value}: {result.status.value}[/{style}]")
        if result.batch is not None:
            self.console.print(f"Batch: {result.batch}")
        for name in result.executed:
            self.console.print(f"  {name}")
        if result.error:
            self.console.print(f"[red]Error: {result.error}[/red]")
        return 0 if result.succeeded else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dwmigrate",
        description="Batch schema migrations for analytical warehouses",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('--config', '-c', help='YAML settings file')
    parser.add_argument('--dataset', help='Dataset to migrate (overrides settings)')
    parser.add_argument('--migrations-dir', help='Migrations directory (overrides settings)')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', required=True)
    subparsers.add_parser('run', help='Apply pending migrations as a new batch')
    subparsers.add_parser('rollback', help='Revert the latest batch')
    subparsers.add_parser('status', help='Show applied and pending migrations')
    subparsers.add_parser('list', help='List migration files')

    applied = subparsers.add_parser('applied', help='List applied migrations')
    applied.add_argument('--batch', type=int, help='Only show this batch')

    history = subparsers.add_parser('history', help='Show the ledger')
    history.add_argument('--csv', help='Write the ledger to a CSV file')

    create = subparsers.add_parser('create', help='Create a new migration file')
    create.add_argument('name', help='Migration name')
    create.add_argument('--sql', action='store_true', help='Create a .sql script')

    subparsers.add_parser('lock', help='Take the migration lock manually')
    subparsers.add_parser('unlock', help='Release the migration lock manually')
    subparsers.add_parser('validate', help='Check the ledger against the migration files')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides: Dict[str, Any] = {'migrations': {}}
    if args.dataset:
        overrides['migrations']['dataset'] = args.dataset
    if args.migrations_dir:
        overrides['migrations']['dir'] = args.migrations_dir
    if args.debug:
        overrides['logging'] = {'level': 'DEBUG'}

    console = Console()
    try:
        settings = load_settings(args.config, overrides)
    except MigrationError as e:
        console.print(f"[red]❌ {e}[/red]")
        return 2

    setup_migration_logging(settings)

    manager = None
    try:
        manager = MigrationManager(settings, console)
        return manager.dispatch(args)
    except MigrationError as e:
        logging.getLogger('dwmigrate.cli').debug("Command failed", exc_info=True)
        console.print(f"[red]❌ {e}[/red]")
        return 1
    finally:
        if manager is not None:
            manager.close()


if __name__ == '__main__':
    sys.exit(main())
