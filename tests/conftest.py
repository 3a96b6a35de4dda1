"""Shared fixtures for dwmigrate tests."""

import logging
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from dwmigrate import DuckDBWarehouseClient, MigrationEngine

DATASET = "analytics"


class FakeClock:
    """Deterministic clock for lock expiry and timestamp tests."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


def script_source(log_path: Path, name: str, fail_up: bool = False, fail_down: bool = False) -> str:
    """Python migration that records each call in a log file."""
    source = (
        "from pathlib import Path\n"
        f"LOG = Path({str(log_path)!r})\n"
        "\n"
        "\n"
        "def _record(entry):\n"
        "    with LOG.open('a') as f:\n"
        "        f.write(entry + '\\n')\n"
        "\n"
        "\n"
        "def up(client, dataset_id):\n"
        f"    _record('up:{name}')\n"
    )
    if fail_up:
        source += f"    raise RuntimeError('up failed for {name}')\n"
    source += (
        "\n"
        "\n"
        "def down(client, dataset_id):\n"
        f"    _record('down:{name}')\n"
    )
    if fail_down:
        source += f"    raise RuntimeError('down failed for {name}')\n"
    return source


@pytest.fixture(autouse=True)
def restore_dwmigrate_logger():
    """Undo logger changes made by setup_migration_logging()."""
    logger = logging.getLogger('dwmigrate')
    handlers, level, propagate = logger.handlers[:], logger.level, logger.propagate
    yield
    logger.handlers = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def client():
    """In-memory DuckDB warehouse."""
    client = DuckDBWarehouseClient(':memory:')
    yield client
    client.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def migrations_dir(tmp_path):
    path = tmp_path / "migrations"
    path.mkdir()
    return path


@pytest.fixture
def call_log(tmp_path):
    return tmp_path / "calls.log"


@pytest.fixture
def write_script(migrations_dir, call_log):
    """Write a recording migration script: write_script('001_a', fail_up=True)."""
    def write(name: str, fail_up: bool = False, fail_down: bool = False) -> Path:
        path = migrations_dir / f"{name}.py"
        path.write_text(script_source(call_log, name, fail_up, fail_down))
        return path
    return write


@pytest.fixture
def calls(call_log):
    """Return the recorded up/down calls in order."""
    def read():
        if not call_log.exists():
            return []
        return call_log.read_text().splitlines()
    return read


@pytest.fixture
def engine(client, migrations_dir, clock):
    return MigrationEngine(client, DATASET, migrations_dir=migrations_dir, clock=clock)
