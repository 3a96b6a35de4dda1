"""Unit tests for migration discovery and script loading."""

import sys

import pytest

from dwmigrate.catalog import MigrationCatalog, MigrationScript
from dwmigrate.exceptions import DiscoveryError

DATASET = "analytics"


class TestMigrationCatalog:
    """Test discovery and ordering of migration files."""

    def test_files_sorted_regardless_of_creation_order(self, migrations_dir, write_script):
        for name in ['003_c', '001_a', '002_b']:
            write_script(name)

        catalog = MigrationCatalog(migrations_dir)

        assert catalog.list_files() == ['001_a.py', '002_b.py', '003_c.py']
        assert [s.name for s in catalog.list_scripts()] == ['001_a', '002_b', '003_c']

    def test_non_matching_entries_ignored(self, migrations_dir, write_script):
        write_script('001_a')
        (migrations_dir / 'README.md').write_text('notes')
        (migrations_dir / '01_short.py').write_text('')
        (migrations_dir / '0001_long.py').write_text('')
        (migrations_dir / '002_notes.txt').write_text('')
        (migrations_dir / 'abc_001.py').write_text('')
        (migrations_dir / '003_directory.py').mkdir()

        catalog = MigrationCatalog(migrations_dir)

        assert catalog.list_files() == ['001_a.py']

    def test_sql_and_python_scripts_both_discovered(self, migrations_dir, write_script):
        write_script('001_a')
        (migrations_dir / '002_b.sql').write_text('SELECT 1;')

        scripts = MigrationCatalog(migrations_dir).list_scripts()

        assert [(s.name, s.kind, s.order_key) for s in scripts] == [
            ('001_a', 'py', '001'),
            ('002_b', 'sql', '002'),
        ]

    def test_empty_directory(self, migrations_dir):
        catalog = MigrationCatalog(migrations_dir)
        assert catalog.list_files() == []
        assert catalog.list_scripts() == []

    def test_missing_directory(self, tmp_path):
        catalog = MigrationCatalog(tmp_path / 'does_not_exist')

        assert not catalog.exists()
        with pytest.raises(DiscoveryError):
            catalog.list_files()

    def test_duplicate_names_rejected(self, migrations_dir, write_script):
        write_script('001_a')
        (migrations_dir / '001_a.sql').write_text('SELECT 1;')

        with pytest.raises(DiscoveryError, match='Ambiguous'):
            MigrationCatalog(migrations_dir).list_scripts()


class TestMigrationScript:
    """Test loading and running individual scripts."""

    def test_python_script_runs_up_and_down(self, migrations_dir, write_script, calls, client):
        write_script('001_a')
        script = MigrationCatalog(migrations_dir).list_scripts()[0]

        script.run('up', client, DATASET)
        script.run('down', client, DATASET)

        assert calls() == ['up:001_a', 'down:001_a']

    def test_module_not_registered(self, migrations_dir, write_script, client):
        write_script('001_a')
        script = MigrationCatalog(migrations_dir).list_scripts()[0]

        script.load()

        assert 'dwmigrate_script_001_a' not in sys.modules

    def test_script_reloaded_from_disk(self, migrations_dir, client):
        path = migrations_dir / '001_a.py'
        path.write_text("VALUE = 1\ndef up(c, d): return VALUE\ndef down(c, d): return VALUE\n")
        script = MigrationScript(order_key='001', name='001_a', path=path)
        assert script.load().up(None, DATASET) == 1

        path.write_text("VALUE = 20\ndef up(c, d): return VALUE\ndef down(c, d): return VALUE\n")
        assert script.load().up(None, DATASET) == 20

    def test_missing_down_procedure(self, migrations_dir):
        path = migrations_dir / '001_a.py'
        path.write_text("def up(client, dataset_id):\n    pass\n")
        script = MigrationScript(order_key='001', name='001_a', path=path)

        with pytest.raises(AttributeError, match="down"):
            script.load()

    def test_coroutine_procedures_awaited(self, migrations_dir, call_log, client):
        path = migrations_dir / '001_async.py'
        path.write_text(
            "import asyncio\n"
            f"LOG = {str(call_log)!r}\n"
            "async def up(client, dataset_id):\n"
            "    await asyncio.sleep(0)\n"
            "    open(LOG, 'a').write('async-up\\n')\n"
            "async def down(client, dataset_id):\n"
            "    open(LOG, 'a').write('async-down\\n')\n"
        )
        script = MigrationScript(order_key='001', name='001_async', path=path)

        script.run('up', client, DATASET)

        assert call_log.read_text() == 'async-up\n'

    def test_sql_script_up_and_down(self, migrations_dir, client):
        path = migrations_dir / '001_events.sql'
        path.write_text(
            'CREATE TABLE "{dataset}".events (id BIGINT);\n'
            'INSERT INTO "{dataset}".events VALUES (1);\n'
            '\n'
            '-- DOWN MIGRATION\n'
            'DROP TABLE "{dataset}".events;\n'
        )
        client.execute_script(f'CREATE SCHEMA "{DATASET}"')
        script = MigrationScript(order_key='001', name='001_events', path=path)

        script.run('up', client, DATASET)
        assert client.table_exists(DATASET, 'events')
        assert client.query(f'SELECT COUNT(*) AS n FROM "{DATASET}".events')[0]['n'] == 1

        script.run('down', client, DATASET)
        assert not client.table_exists(DATASET, 'events')

    def test_sql_script_without_down(self, migrations_dir, client):
        path = migrations_dir / '001_events.sql'
        path.write_text('SELECT 1;')
        script = MigrationScript(order_key='001', name='001_events', path=path)

        with pytest.raises(ValueError, match='no down SQL'):
            script.run('down', client, DATASET)


class TestCreateScript:
    """Test scaffolding of new migration files."""

    def test_first_script_numbered_001(self, migrations_dir):
        path = MigrationCatalog(migrations_dir).create_script('Create Users')

        assert path.name == '001_create_users.py'
        assert 'def up(client, dataset_id)' in path.read_text()
        assert 'def down(client, dataset_id)' in path.read_text()

    def test_next_number_follows_highest(self, migrations_dir, write_script):
        write_script('001_a')
        write_script('007_b')

        path = MigrationCatalog(migrations_dir).create_script('add-email column!', sql=True)

        assert path.name == '008_add_email_column.sql'
        assert '-- DOWN MIGRATION' in path.read_text()

    def test_creates_missing_directory(self, tmp_path):
        path = MigrationCatalog(tmp_path / 'new_dir').create_script('init')
        assert path.exists()

    def test_prefix_space_exhausted(self, migrations_dir, write_script):
        write_script('999_last')

        with pytest.raises(DiscoveryError):
            MigrationCatalog(migrations_dir).create_script('overflow')

    def test_unusable_name(self, migrations_dir):
        with pytest.raises(ValueError):
            MigrationCatalog(migrations_dir).create_script('!!!')
