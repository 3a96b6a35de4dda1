"""Tests for the SQLAlchemy client using an in-memory SQLite database."""

from datetime import datetime

import pytest

from dwmigrate import MigrationEngine, SQLAlchemyWarehouseClient, WarehouseClientFactory
from dwmigrate.clients import ColumnSpec
from dwmigrate.exceptions import LockAcquisitionError
from dwmigrate.results import ResultStatus

# SQLite's default schema
DATASET = "main"


@pytest.fixture
def sqlite_client():
    client = SQLAlchemyWarehouseClient("sqlite://")
    yield client
    client.close()


@pytest.fixture
def sqlite_engine(sqlite_client, migrations_dir, clock):
    return MigrationEngine(sqlite_client, DATASET, migrations_dir=migrations_dir, clock=clock)


class TestSQLAlchemyWarehouseClient:
    """Test the client primitives."""

    def test_create_and_query(self, sqlite_client):
        columns = [ColumnSpec('name', 'STRING'), ColumnSpec('created', 'DATETIME')]
        sqlite_client.create_table(DATASET, 'items', columns)

        assert sqlite_client.table_exists(DATASET, 'items')
        assert not sqlite_client.table_exists(DATASET, 'other')

        inserted = sqlite_client.execute_dml(
            "INSERT INTO items (name, created) VALUES (:name, :created)",
            {'name': 'a', 'created': datetime(2024, 1, 1)}
        )
        assert inserted == 1
        assert sqlite_client.query("SELECT name FROM items WHERE name = :name", {'name': 'a'}) == [{'name': 'a'}]

    def test_dml_returns_affected_rows(self, sqlite_client):
        sqlite_client.execute_script(
            "CREATE TABLE flags (v INTEGER); INSERT INTO flags VALUES (1); INSERT INTO flags VALUES (2);"
        )

        assert sqlite_client.execute_dml("UPDATE flags SET v = 3 WHERE v = :v", {'v': 1}) == 1
        assert sqlite_client.execute_dml("UPDATE flags SET v = 3 WHERE v = :v", {'v': 9}) == 0

    def test_factory(self):
        client = WarehouseClientFactory.create_client('sqlalchemy', {'url': 'sqlite://'})
        assert isinstance(client, SQLAlchemyWarehouseClient)
        client.close()

        with pytest.raises(ValueError):
            WarehouseClientFactory.create_client('sqlalchemy', {})
        with pytest.raises(ValueError):
            WarehouseClientFactory.create_client('bigquery', {})


class TestEngineOnSQLite:
    """Run the whole protocol through SQLAlchemy."""

    def test_run_and_rollback(self, sqlite_engine, write_script, calls):
        write_script('001_a')
        write_script('002_b')

        run = sqlite_engine.run_migrations()
        assert run.status == ResultStatus.SUCCESS
        assert run.batch == 1
        assert sqlite_engine.get_applied_migrations() == ['001_a', '002_b']

        rollback = sqlite_engine.rollback_migrations()
        assert rollback.executed == ['001_a', '002_b']
        assert sqlite_engine.get_applied_migrations() == []
        assert calls() == ['up:001_a', 'up:002_b', 'down:001_a', 'down:002_b']

    def test_lock_protocol(self, sqlite_engine, clock):
        sqlite_engine.create_migration_lock_table()

        sqlite_engine.lock_migration()
        with pytest.raises(LockAcquisitionError):
            sqlite_engine.lock_migration()

        clock.advance(30)
        sqlite_engine.lock_migration()
        sqlite_engine.unlock_migration()

        assert sqlite_engine.store.read_lock().is_locked is False

    def test_sql_migration(self, sqlite_engine, migrations_dir, sqlite_client):
        (migrations_dir / '001_people.sql').write_text(
            'CREATE TABLE {dataset}.people (name TEXT);\n'
            '-- DOWN MIGRATION\n'
            'DROP TABLE {dataset}.people;\n'
        )

        sqlite_engine.run_migrations()
        assert sqlite_client.table_exists(DATASET, 'people')

        sqlite_engine.rollback_migrations()
        assert not sqlite_client.table_exists(DATASET, 'people')
