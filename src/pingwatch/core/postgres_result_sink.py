import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from pingwatch.abstractions.result_sink import BootstrapError, InsertError, ResultSink
from pingwatch.config.config import Config
from pingwatch.contracts.outcome import Outcome
from pingwatch.core.migrations import SchemaMigrator

logger = logging.getLogger(__name__)

INSERT_RESULT = text(
    'insert into "results"("time", "duration", "url", "had_error") '
    "values (:time, :duration, :url, :had_error)"
)


def normalize_dsn(dsn: str) -> str:
    """
    Return ``dsn`` with the asyncpg dialect SQLAlchemy needs.
    """
    if dsn.startswith("postgres://"):
        return dsn.replace("postgres://", "postgresql+asyncpg://", 1)
    if dsn.startswith("postgresql://"):
        return dsn.replace("postgresql://", "postgresql+asyncpg://", 1)
    return dsn


class PostgresResultSink(ResultSink):
    """
    Sink writing one row per outcome into the PostgreSQL ``results`` table.
    """

    def __init__(
        self,
        dsn: str,
        migrations_dir: Optional[str] = None,
        engine: Optional[AsyncEngine] = None,
    ):
        """
        Initialize the PostgresResultSink.

        Args:
            dsn (str): PostgreSQL connection string.
            migrations_dir (Optional[str]): Directory of schema migrations, defaults to
                Config.MIGRATIONS_DIR.
            engine (Optional[AsyncEngine]): Pre-built engine; one is created from ``dsn``
                on connect when omitted.
        """
        self.dsn = dsn
        self.migrations_dir = migrations_dir or Config.MIGRATIONS_DIR
        self._engine = engine

    async def connect(self):
        try:
            if self._engine is None:
                self._engine = create_async_engine(
                    normalize_dsn(self.dsn), pool_size=1, max_overflow=0, pool_pre_ping=True
                )
            async with self._engine.connect() as conn:
                await conn.execute(text("select 1"))
        except (SQLAlchemyError, OSError, ValueError) as e:
            raise BootstrapError(f"failed to connect to database: {e}") from e

        version = await SchemaMigrator(self._engine, self.migrations_dir).migrate()
        logger.info(f"Connected to database, schema at version {version}")

    async def record(self, outcome: Outcome):
        if self._engine is None:
            raise InsertError("sink is not connected")
        try:
            async with self._engine.begin() as conn:
                await conn.execute(INSERT_RESULT, outcome.to_record())
        except SQLAlchemyError as e:
            raise InsertError(f"failed to insert result for {outcome.endpoint}: {e}") from e

    async def close(self):
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database connections closed")
