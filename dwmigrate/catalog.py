"""
Migration catalog.

Discovers migration scripts in a directory by filename convention
(NNN_name.py or NNN_name.sql), orders them, and loads their up/down
procedures. Scripts are read fresh on every call; loaded modules are never
registered in sys.modules.
"""

import asyncio
import importlib.util
import inspect
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, List, NamedTuple, Optional, Union

from .config.logging_config import get_logger
from .exceptions import DiscoveryError

SCRIPT_PATTERN = re.compile(r'^(\d{3})_.+\.(py|sql)$')
DOWN_MARKER = '-- DOWN MIGRATION'
DATASET_TOKEN = '{dataset}'
MAX_ORDER_KEY = 999

PY_TEMPLATE = '''"""Migration {order_key}: {title}"""


def up(client, dataset_id):
    pass


def down(client, dataset_id):
    pass
'''

SQL_TEMPLATE = '''-- Migration {order_key}: {title}
-- Created at: {created_at}

-- DOWN MIGRATION
'''


class ScriptProcedures(NamedTuple):
    up: Callable[[Any, str], Any]
    down: Callable[[Any, str], Any]


async def _as_coroutine(awaitable) -> Any:
    return await awaitable


class CoroutineRunner:
    """
    Drives coroutine procedures for one engine invocation.

    Every coroutine of an invocation runs on the same event loop: the
    caller's loop when one is given (the async engine operations run the
    invocation in a worker thread and hand their loop in), otherwise a
    private loop that lives until close().
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.loop = loop
        self._own_loop: Optional[asyncio.AbstractEventLoop] = None

    def wait(self, awaitable) -> Any:
        if self.loop is not None:
            return asyncio.run_coroutine_threadsafe(_as_coroutine(awaitable), self.loop).result()

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise RuntimeError(
                "Coroutine migrations cannot be run from inside a running event loop; "
                "use run_migrations_async() / rollback_migrations_async()"
            )

        if self._own_loop is None:
            self._own_loop = asyncio.new_event_loop()
        return self._own_loop.run_until_complete(_as_coroutine(awaitable))

    def close(self) -> None:
        if self._own_loop is not None:
            self._own_loop.run_until_complete(self._own_loop.shutdown_asyncgens())
            self._own_loop.close()
            self._own_loop = None


@dataclass(frozen=True)
class MigrationScript:
    """
    A discovered migration script.

    Attributes:
        order_key: 3-digit filename prefix
        name: filename stem, the identifier recorded in the ledger
        path: absolute path of the script file
    """

    order_key: str
    name: str
    path: Path

    @property
    def filename(self) -> str:
        return self.path.name

    @property
    def kind(self) -> str:
        return self.path.suffix.lstrip('.')

    def load(self) -> ScriptProcedures:
        """
        Load the script's up/down procedures.

        Raises:
            AttributeError: If a Python script lacks a callable up or down
        """
        if self.kind == 'sql':
            return self._load_sql()
        return self._load_python()

    def _load_python(self) -> ScriptProcedures:
        spec = importlib.util.spec_from_file_location(f"dwmigrate_script_{self.name}", self.path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Cannot load migration: {self.path}")

        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)

        for attr in ('up', 'down'):
            if not callable(getattr(module, attr, None)):
                raise AttributeError(f"Migration {self.filename} has no callable '{attr}'")

        return ScriptProcedures(up=module.up, down=module.down)

    def _load_sql(self) -> ScriptProcedures:
        content = self.path.read_text(encoding='utf-8')
        if DOWN_MARKER in content:
            up_sql, down_sql = content.split(DOWN_MARKER, 1)
        else:
            up_sql, down_sql = content, ''
        up_sql, down_sql = up_sql.strip(), down_sql.strip()

        def make(sql: str, direction: str):
            def procedure(client, dataset_id):
                if not sql:
                    raise ValueError(f"Migration {self.filename} has no {direction} SQL")
                client.execute_script(sql.replace(DATASET_TOKEN, dataset_id))
            return procedure

        return ScriptProcedures(up=make(up_sql, 'up'), down=make(down_sql, 'down'))

    def run(self, direction: str, client: Any, dataset_id: str,
            runner: Optional[CoroutineRunner] = None) -> None:
        """
        Execute up or down and wait for completion. Procedures may be plain
        functions or coroutine functions; coroutines are driven by runner,
        or by a runner of their own when none is given.
        """
        procedures = self.load()
        procedure = procedures.up if direction == 'up' else procedures.down
        result = procedure(client, dataset_id)
        if not inspect.isawaitable(result):
            return

        if runner is not None:
            runner.wait(result)
            return

        runner = CoroutineRunner()
        try:
            runner.wait(result)
        finally:
            runner.close()

    def __str__(self) -> str:
        return self.name


class MigrationCatalog:
    """Reads and orders the migration scripts of one directory."""

    def __init__(self, migrations_dir: Union[str, Path], dataset_id: Optional[str] = None):
        self.migrations_dir = Path(migrations_dir)
        self.logger = get_logger('catalog', dataset_id)

    def exists(self) -> bool:
        return self.migrations_dir.is_dir()

    def list_files(self) -> List[str]:
        """
        Return matching filenames sorted lexically.

        Lexical order on the full filename equals numeric order on the 3-digit
        prefix, which limits a catalog to prefixes 000-999.

        Raises:
            DiscoveryError: If the directory is missing or unreadable
        """
        try:
            entries = [p for p in self.migrations_dir.iterdir() if p.is_file()]
        except OSError as e:
            raise DiscoveryError(f"Cannot read migrations directory {self.migrations_dir}: {e}") from e

        files = sorted(p.name for p in entries if SCRIPT_PATTERN.match(p.name))
        self.logger.debug(f"Discovered {len(files)} migration files in {self.migrations_dir}")
        return files

    def list_scripts(self) -> List[MigrationScript]:
        """
        Return discovered scripts in catalog order.

        Raises:
            DiscoveryError: If the directory is unreadable or two files share a name
        """
        scripts = []
        seen = {}
        for filename in self.list_files():
            path = (self.migrations_dir / filename).resolve()
            name = path.stem
            if name in seen:
                raise DiscoveryError(f"Ambiguous migration name '{name}': {seen[name]} and {filename}")
            seen[name] = filename
            scripts.append(MigrationScript(order_key=filename[:3], name=name, path=path))
        return scripts

    def create_script(self, name: str, sql: bool = False) -> Path:
        """
        Create the next numbered migration file.

        Args:
            name: Migration name (will be sanitized)
            sql: Create a .sql script instead of a Python module

        Returns:
            Path to the created file
        """
        self.migrations_dir.mkdir(parents=True, exist_ok=True)
        existing = [int(s.order_key) for s in self.list_scripts()]
        next_key = max(existing, default=0) + 1
        if next_key > MAX_ORDER_KEY:
            raise DiscoveryError(f"Migration prefix space exhausted (max {MAX_ORDER_KEY:03d})")

        sanitized = re.sub(r'[^a-z0-9_]', '_', name.lower())
        sanitized = re.sub(r'_+', '_', sanitized).strip('_')
        if not sanitized:
            raise ValueError(f"Migration name '{name}' has no usable characters")

        order_key = f"{next_key:03d}"
        suffix = 'sql' if sql else 'py'
        file_path = self.migrations_dir / f"{order_key}_{sanitized}.{suffix}"

        template = SQL_TEMPLATE if sql else PY_TEMPLATE
        file_path.write_text(
            template.format(order_key=order_key, title=name, created_at=datetime.now().isoformat()),
            encoding='utf-8'
        )

        self.logger.info(f"Created migration file: {file_path.name}")
        return file_path
