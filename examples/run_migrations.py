#!/usr/bin/env python3
"""
Apply the example migrations to a local DuckDB database, then roll back the
latest batch.

Usage:
    python examples/run_migrations.py [database.duckdb]
"""

import sys
from pathlib import Path

from dwmigrate import DuckDBWarehouseClient, MigrationEngine, setup_migration_logging


def main() -> int:
    database = sys.argv[1] if len(sys.argv) > 1 else ':memory:'
    setup_migration_logging({'logging': {'level': 'INFO'}})

    with DuckDBWarehouseClient(database) as client:
        engine = MigrationEngine(
            client,
            "analytics",
            migrations_dir=Path(__file__).parent / "migrations",
        )

        result = engine.run_migrations()
        print(f"run: {result.status.value}, batch {result.batch}, executed {result.executed}")
        print(f"applied: {engine.get_applied_migrations()}")

        result = engine.rollback_migrations()
        print(f"rollback: {result.status.value}, executed {result.executed}")
        print(f"applied: {engine.get_applied_migrations()}")

        return 0 if result.succeeded else 1


if __name__ == '__main__':
    sys.exit(main())
