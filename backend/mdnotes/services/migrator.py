"""
mdnotes Backend - Schema Migrator
===================================

What:  Applies ordered SQL migration files exactly once, tracked in the
       `schema_migrations` ledger table.
How:   Ensures the ledger exists, lists NNN_name.sql files sorted by name,
       and for each file not yet in the ledger executes its statements and
       records it inside one transaction.
Who:   Called once by the application lifespan before the server accepts
       requests.

Naming contract:
    Files are applied in lexicographic order of their names, so every .sql
    file must look like `<digits>_<name>.sql` and all numeric prefixes in the
    directory must share one width (001_, 002_, ... 010_). A directory that
    breaks the contract is rejected before anything runs.

Failure model:
    Each file is atomic: its statements and its ledger row commit together or
    roll back together. The first failure raises MigrationError and stops the
    run; files after it are left untouched. There is no cross-process lock;
    one instance migrates at a time.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from sqlalchemy import Column, DateTime, MetaData, Table, Text, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from mdnotes.database import utc_now
from mdnotes.exceptions import MigrationError

logger = logging.getLogger(__name__)

MIGRATION_SUFFIX = ".sql"
MIGRATION_NAME = re.compile(r"^(?P<number>\d+)_[^/\\]+\.sql$")
_DOLLAR_TAG = re.compile(r"\$(?:[A-Za-z_][A-Za-z0-9_]*)?\$")

# Owned by the migrator alone, kept out of the ORM metadata
ledger_metadata = MetaData()

schema_migrations = Table(
    "schema_migrations",
    ledger_metadata,
    Column("name", Text, primary_key=True),
    Column("applied_at", DateTime(timezone=True), nullable=False, default=utc_now),
)


@dataclass(frozen=True)
class Migration:
    name: str
    path: Path

    def read_statements(self) -> List[str]:
        try:
            script = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise MigrationError(
                message=f"read migration {self.name}: {e}",
                migration=self.name,
            ) from e
        return split_statements(script)


def discover_migrations(directory: Union[str, Path]) -> List[Migration]:
    """
    List the migration files of a directory in apply order.

    Raises:
        MigrationError: the directory is missing, or a .sql file violates the
            naming contract described in the module docstring.
    """
    root = Path(directory)
    if not root.is_dir():
        raise MigrationError(
            message=f"read migrations dir {root}: not a directory",
            context={"directory": str(root)},
        )

    names = sorted(
        entry.name
        for entry in root.iterdir()
        if entry.is_file() and entry.name.endswith(MIGRATION_SUFFIX)
    )

    widths = set()
    for name in names:
        match = MIGRATION_NAME.match(name)
        if match is None:
            raise MigrationError(
                message=(
                    f"migration file {name!r} must be named <number>_<name>.sql "
                    "so that name order is apply order"
                ),
                migration=name,
            )
        widths.add(len(match.group("number")))

    if len(widths) > 1:
        raise MigrationError(
            message=(
                "migration numbers must be zero-padded to one width, found widths "
                + ", ".join(str(w) for w in sorted(widths))
            ),
            context={"directory": str(root), "files": names},
        )

    return [Migration(name=name, path=root / name) for name in names]


def split_statements(script: str) -> List[str]:
    """
    Split a SQL script into individual statements on top-level semicolons.

    Semicolons inside quoted strings, quoted identifiers, comments and
    PostgreSQL dollar-quoted bodies ($$ ... $$, $fn$ ... $fn$) do not split.
    Chunks holding only whitespace or comments are dropped.
    """
    statements: List[str] = []
    buf: List[str] = []
    has_code = False
    i = 0
    n = len(script)

    while i < n:
        ch = script[i]

        if script.startswith("--", i):
            end = script.find("\n", i)
            end = n if end == -1 else end
            buf.append(script[i:end])
            i = end
            continue

        if script.startswith("/*", i):
            end = script.find("*/", i + 2)
            end = n if end == -1 else end + 2
            buf.append(script[i:end])
            i = end
            continue

        if ch in ("'", '"'):
            end = _closing_quote(script, i)
            buf.append(script[i:end])
            has_code = True
            i = end
            continue

        if ch == "$":
            match = _DOLLAR_TAG.match(script, i)
            if match:
                tag = match.group(0)
                end = script.find(tag, match.end())
                end = n if end == -1 else end + len(tag)
                buf.append(script[i:end])
                has_code = True
                i = end
                continue

        if ch == ";":
            if has_code:
                statements.append("".join(buf).strip())
            buf = []
            has_code = False
            i += 1
            continue

        if not ch.isspace():
            has_code = True
        buf.append(ch)
        i += 1

    if has_code:
        statements.append("".join(buf).strip())
    return statements


def _closing_quote(script: str, start: int) -> int:
    """Index just past the quote closing the one at `start` ('' escapes a quote)."""
    quote = script[start]
    j = start + 1
    while j < len(script):
        if script[j] == quote:
            if j + 1 < len(script) and script[j + 1] == quote:
                j += 2
                continue
            return j + 1
        j += 1
    return len(script)


class MigrationRunner:
    """
    Applies pending migrations against one engine.

    The engine is passed in explicitly; the runner opens one transaction per
    migration file and releases the connection when it ends.
    """

    def __init__(self, engine: AsyncEngine):
        self._engine = engine

    async def ensure_ledger(self) -> None:
        """Create schema_migrations if it does not exist yet."""
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(ledger_metadata.create_all, checkfirst=True)
        except SQLAlchemyError as e:
            raise MigrationError(
                message=f"ensure schema_migrations table: {e}",
            ) from e

    async def applied_names(self) -> List[str]:
        async with self._engine.connect() as conn:
            result = await conn.execute(
                select(schema_migrations.c.name).order_by(schema_migrations.c.name)
            )
            return list(result.scalars().all())

    async def apply(self, directory: Union[str, Path]) -> List[str]:
        """
        Apply every migration in `directory` that the ledger does not list.

        Returns:
            Names of the files applied by this call, in apply order. An
            up-to-date database returns an empty list.

        Raises:
            MigrationError: on the first file that cannot be read or applied.
        """
        migrations = discover_migrations(directory)
        await self.ensure_ledger()

        applied: List[str] = []
        for migration in migrations:
            if await self._apply_one(migration):
                applied.append(migration.name)

        if applied:
            logger.info("Applied %d migration(s): %s", len(applied), ", ".join(applied))
        else:
            logger.info("Schema up to date (%d migration(s) on record)", len(migrations))
        return applied

    async def _apply_one(self, migration: Migration) -> bool:
        statements: Optional[List[str]] = None
        try:
            async with self._engine.begin() as conn:
                already = await conn.scalar(
                    select(schema_migrations.c.name).where(
                        schema_migrations.c.name == migration.name
                    )
                )
                if already is not None:
                    return False

                statements = migration.read_statements()
                for statement in statements:
                    await conn.exec_driver_sql(statement)
                await conn.execute(
                    insert(schema_migrations).values(
                        name=migration.name,
                        applied_at=utc_now(),
                    )
                )
        except SQLAlchemyError as e:
            logger.error("Migration %s failed and was rolled back: %s", migration.name, e)
            raise MigrationError(
                message=f"run migration {migration.name}: {e}",
                migration=migration.name,
                context={"statements": len(statements or [])},
            ) from e

        logger.info("Applied migration %s (%d statement(s))", migration.name, len(statements))
        return True


async def run_migrations(engine: AsyncEngine, directory: Union[str, Path]) -> List[str]:
    """Startup entry point: apply pending migrations or raise MigrationError."""
    logger.info("Running migrations from %s", Path(directory).resolve())
    return await MigrationRunner(engine).apply(directory)
