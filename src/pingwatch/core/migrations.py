"""
Forward-only SQL schema migrations.

Migrations are ``NNN_name.sql`` files applied in version order. The highest applied
version is kept in a single-row version table, and every migration runs in its own
transaction together with the version bump.
"""
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from pingwatch.abstractions.result_sink import BootstrapError

logger = logging.getLogger(__name__)

MIGRATION_FILE = re.compile(r"^(\d+)_(\w+)\.sql$")


class MigrationError(BootstrapError):
    """Raised when migrations cannot be loaded or applied."""


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    sql: str

    @property
    def statements(self) -> Tuple[str, ...]:
        # Split on ';' so each statement goes to the driver separately; no procedural bodies
        return tuple(s.strip() for s in self.sql.split(";") if s.strip())


class SchemaMigrator:
    """
    Applies pending migrations from a directory to the database behind an AsyncEngine.
    """

    def __init__(self, engine: AsyncEngine, migrations_dir, version_table: str = "schema_version"):
        if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", version_table):
            raise ValueError(f"Invalid version table name: {version_table}")
        self.engine = engine
        self.migrations_dir = Path(migrations_dir)
        self.version_table = version_table

    def load_migrations(self) -> List[Migration]:
        """
        Read migration files, sorted by version.

        Raises:
            MigrationError: If the directory is missing or versions are not 1..N without gaps.
        """
        if not self.migrations_dir.is_dir():
            raise MigrationError(f"Migrations directory not found: {self.migrations_dir}")

        migrations = []
        for path in sorted(self.migrations_dir.iterdir()):
            match = MIGRATION_FILE.match(path.name)
            if not match:
                continue
            migrations.append(
                Migration(
                    version=int(match.group(1)),
                    name=match.group(2),
                    sql=path.read_text(encoding="utf-8"),
                )
            )
        migrations.sort(key=lambda m: m.version)

        for expected, migration in enumerate(migrations, start=1):
            if migration.version != expected:
                raise MigrationError(
                    f"Migration {migration.version}_{migration.name} out of sequence, expected version {expected}"
                )
        return migrations

    async def _current_version(self) -> int:
        async with self.engine.begin() as conn:
            await conn.execute(
                text(f'create table if not exists "{self.version_table}" (version int4 not null)')
            )
            result = await conn.execute(text(f'select version from "{self.version_table}"'))
            version = result.scalar()
            if version is None:
                await conn.execute(text(f'insert into "{self.version_table}" (version) values (0)'))
                version = 0
        return version

    async def migrate(self) -> int:
        """
        Apply every migration newer than the recorded version.

        Returns:
            int: The schema version after migrating.

        Raises:
            MigrationError: If loading or applying a migration fails.
        """
        migrations = self.load_migrations()
        try:
            current = await self._current_version()
            logger.info(f"Schema at version {current}, {len(migrations)} migrations available")
            for migration in migrations:
                if migration.version <= current:
                    continue
                async with self.engine.begin() as conn:
                    for statement in migration.statements:
                        await conn.exec_driver_sql(statement)
                    await conn.execute(
                        text(f'update "{self.version_table}" set version = :version'),
                        {"version": migration.version},
                    )
                current = migration.version
                logger.info(f"Applied migration {migration.version}_{migration.name}")
        except SQLAlchemyError as e:
            raise MigrationError(f"failed to run migrations: {e}") from e
        return current
