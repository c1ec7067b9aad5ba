"""Connection pool manager for Postgres.

Owns the bounded ``psycopg_pool.AsyncConnectionPool`` and is the only
module that talks to psycopg. Every driver failure is wrapped into a
``DatabaseError``; raw psycopg exceptions never leave this module.
"""
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Optional, Sequence

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool, PoolClosed, PoolTimeout

from .config import DatabaseConfig, Settings
from .errors import DatabaseError
from .schemas_sql import ColumnInfo, ExecuteOutcome, QueryOutcome, TableInfo

# Graceful shutdown: poll for in-flight work, then close regardless
SHUTDOWN_TIMEOUT_SECONDS = 10.0
SHUTDOWN_POLL_INTERVAL_SECONDS = 0.1
POOL_CLOSE_TIMEOUT_SECONDS = 5.0
CANCEL_TIMEOUT_SECONDS = 2.0

LIST_TABLES_SQL = """
    SELECT
        table_schema AS schema_name,
        table_name AS table_name,
        table_type AS table_type
    FROM information_schema.tables
    WHERE table_schema NOT IN ('information_schema', 'pg_catalog')
    ORDER BY table_schema, table_name
"""

DESCRIBE_TABLE_SQL = """
    SELECT
        column_name AS column_name,
        data_type AS data_type,
        is_nullable = 'YES' AS is_nullable,
        column_default AS column_default,
        character_maximum_length AS character_maximum_length,
        numeric_precision AS numeric_precision,
        numeric_scale AS numeric_scale
    FROM information_schema.columns
    WHERE table_name = %s
      AND table_schema NOT IN ('information_schema', 'pg_catalog')
    ORDER BY ordinal_position
"""


class PoolManager:
    """Bounded connection pool with row/time limits and graceful drain.

    Each call checks out one connection, runs one statement and gives the
    connection back exactly once, whatever happens in between.

    Usage:
        manager = PoolManager(config, logger)
        await manager.open()
        outcome = await manager.query("SELECT * FROM users WHERE id = %s", [42])
        await manager.graceful_shutdown()
    """

    def __init__(
        self,
        config: DatabaseConfig,
        logger: logging.Logger,
        settings: Optional[Settings] = None,
        pool: Optional[Any] = None,
    ) -> None:
        """Initialize the pool manager.

        Args:
            config: Resolved database configuration.
            logger: Bridge logger, shared with the other components.
            settings: Service settings (controls SQL text logging).
            pool: Pre-built pool exposing ``getconn``/``putconn``/``get_stats``.
                  If None, an ``AsyncConnectionPool`` is built from ``config``.
        """
        self._config = config
        self._logger = logger
        self._log_sql = settings.log_sql_queries if settings else False
        self._pool = pool if pool is not None else self._create_pool()
        self._in_use: set[Any] = set()

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    def _create_pool(self) -> AsyncConnectionPool:
        self._logger.info(
            "Creating database connection pool host=%s port=%s database=%s user=%s",
            self._config.host, self._config.port, self._config.database, self._config.user,
        )
        return AsyncConnectionPool(
            conninfo="",
            kwargs=self._config.connection_kwargs(),
            min_size=self._config.pool_min,
            max_size=self._config.pool_max,
            max_idle=self._config.pool_idle_timeout_ms / 1000,
            timeout=self._config.connection_timeout_ms / 1000,
            name="postgres-tool-bridge",
            open=False,
        )

    async def open(self) -> None:
        """Open the pool. Connections are established in the background."""
        try:
            await self._pool.open()
        except psycopg.Error as e:
            raise self._wrap(e, "Failed to open database connection pool") from e

    # ------------------------------------------------------------------
    # Connection checkout
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[Any]:
        timeout = self._config.connection_timeout_ms / 1000
        try:
            conn = await self._pool.getconn(timeout=timeout)
        except PoolTimeout as e:
            self._logger.error("Timed out acquiring a connection after %sms", self._config.connection_timeout_ms)
            raise DatabaseError(
                f"Timed out acquiring a database connection after {self._config.connection_timeout_ms}ms"
            ) from e
        except PoolClosed as e:
            raise DatabaseError("Database connection pool is closed", retryable=False) from e
        except psycopg.Error as e:
            raise self._wrap(e, "Failed to acquire a database connection") from e

        self._in_use.add(conn)
        try:
            yield conn
        finally:
            self._in_use.discard(conn)
            try:
                await self._pool.putconn(conn)
            except Exception as e:  # the connection is gone either way
                self._logger.error("Failed to return connection to pool: %s", e)

    async def _run(
        self, conn: Any, sql: str, params: Optional[Sequence[Any]], limit: Optional[int] = None, fetch: bool = True
    ) -> tuple[list[dict[str, Any]], int, str, list[str]]:
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(sql, list(params) if params else None)
            if fetch and cur.description:
                field_names = [col.name for col in cur.description]
                rows = await (cur.fetchmany(limit) if limit is not None else cur.fetchall())
            else:
                field_names, rows = [], []
            return list(rows), cur.rowcount, cur.statusmessage or "", field_names

    def _sql_for_log(self, sql: str) -> str:
        return sql if self._log_sql else "[HIDDEN]"

    def _wrap(self, error: psycopg.Error, fallback: str) -> DatabaseError:
        diag = getattr(error, "diag", None)
        detail = diag.message_detail if diag is not None else None
        message = str(error).strip() or fallback
        return DatabaseError(message, code=getattr(error, "sqlstate", None), detail=detail)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    async def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> QueryOutcome:
        """Run a read statement and return at most ``max_rows`` rows.

        Raises:
            DatabaseError: On acquisition failure, engine error or statement timeout.
        """
        max_rows = self._config.max_rows
        start = time.perf_counter()
        self._logger.debug("Executing query sql=%s params=%d", self._sql_for_log(sql), len(params or []))

        async with self._connection() as conn:
            try:
                # One extra row tells us whether the result was truncated
                rows, rowcount, _, field_names = await self._run(conn, sql, params, limit=max_rows + 1)
            except psycopg.Error as e:
                self._logger.error(
                    "Query failed code=%s duration_ms=%.1f error=%s",
                    e.sqlstate, (time.perf_counter() - start) * 1000, e,
                )
                raise self._wrap(e, "Query execution failed") from e

        reported = rowcount if rowcount >= 0 else len(rows)
        self._logger.debug("Query completed rows=%d duration_ms=%.1f", reported, (time.perf_counter() - start) * 1000)

        if len(rows) > max_rows:
            self._logger.warning("Query returned %d rows, limited to %d", max(reported, len(rows)), max_rows)
            rows = rows[:max_rows]

        return QueryOutcome(rows=rows, row_count=reported, field_names=field_names)

    async def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> ExecuteOutcome:
        """Run a mutating statement.

        The reported command is the verb from the engine's command tag
        (``INSERT 0 3`` -> ``INSERT``), not whatever the caller claimed.

        Raises:
            DatabaseError: On acquisition failure, engine error or statement timeout.
        """
        start = time.perf_counter()
        self._logger.debug("Executing command sql=%s params=%d", self._sql_for_log(sql), len(params or []))

        async with self._connection() as conn:
            try:
                _, rowcount, status, _ = await self._run(conn, sql, params, fetch=False)
            except psycopg.Error as e:
                self._logger.error(
                    "Command failed code=%s duration_ms=%.1f error=%s",
                    e.sqlstate, (time.perf_counter() - start) * 1000, e,
                )
                raise self._wrap(e, "Command execution failed") from e

        command = status.split()[0].upper() if status.strip() else "UNKNOWN"
        self._logger.debug(
            "Command completed command=%s rows=%d duration_ms=%.1f",
            command, max(rowcount, 0), (time.perf_counter() - start) * 1000,
        )
        return ExecuteOutcome(row_count=max(rowcount, 0), command=command)

    # ------------------------------------------------------------------
    # Catalog helpers
    # ------------------------------------------------------------------

    async def list_tables(self) -> list[TableInfo]:
        outcome = await self.query(LIST_TABLES_SQL)
        return [TableInfo(**row) for row in outcome.rows]

    async def describe_table(self, table_name: str) -> list[ColumnInfo]:
        outcome = await self.query(DESCRIBE_TABLE_SQL, [table_name])
        return [ColumnInfo(**row) for row in outcome.rows]

    async def create_table(self, table_name: str, columns: Iterable[Any], if_not_exists: bool = True) -> ExecuteOutcome:
        """Create a table from column definitions.

        Identifiers are spliced in as-is; callers validate them first.
        """
        column_defs = ", ".join(
            f"{col.name} {col.type}{' ' + col.constraints if col.constraints else ''}" for col in columns
        )
        clause = "IF NOT EXISTS " if if_not_exists else ""
        return await self.execute(f"CREATE TABLE {clause}{table_name} ({column_defs})")

    # ------------------------------------------------------------------
    # Health and lifecycle
    # ------------------------------------------------------------------

    async def test_connection(self) -> bool:
        """Test if a database round trip works.

        Returns:
            True if ``SELECT 1`` succeeds, False otherwise. Never raises.
        """
        try:
            await self.query("SELECT 1 AS test")
            self._logger.info("Database connection test successful")
            return True
        except Exception as e:
            self._logger.error("Database connection test failed: %s", e)
            return False

    def pool_status(self) -> dict[str, int]:
        stats = self._pool.get_stats()
        return {
            "total": int(stats.get("pool_size", 0)),
            "idle": int(stats.get("pool_available", 0)),
            "waiting": int(stats.get("requests_waiting", 0)),
        }

    async def close(self) -> None:
        try:
            self._logger.info("Closing database connection pool")
            await self._pool.close(timeout=POOL_CLOSE_TIMEOUT_SECONDS)
            self._logger.info("Database connection pool closed successfully")
        except psycopg.Error as e:
            self._logger.error("Error closing database connection pool: %s", e)
            raise self._wrap(e, "Failed to close database connection pool") from e

    async def graceful_shutdown(
        self,
        timeout: float = SHUTDOWN_TIMEOUT_SECONDS,
        poll_interval: float = SHUTDOWN_POLL_INTERVAL_SECONDS,
    ) -> None:
        """Wait for in-flight statements to finish, then close the pool.

        Polls the number of checked-out connections every ``poll_interval``
        seconds until it reaches zero or ``timeout`` elapses. Statements still running at
        the deadline are cancelled server-side before the pool is closed.
        """
        self._logger.info("Initiating graceful database shutdown")
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            # Pool stats also count connections still being prepared
            active = len(self._in_use)
            if active <= 0:
                break
            if loop.time() >= deadline:
                self._logger.warning("Shutdown deadline reached with %d active connection(s)", active)
                break
            self._logger.debug("Waiting for active connections to finish active=%d", active)
            await asyncio.sleep(poll_interval)

        for conn in list(self._in_use):
            try:
                await conn.cancel_safe(timeout=CANCEL_TIMEOUT_SECONDS)
            except psycopg.Error as e:
                self._logger.warning("Failed to cancel active statement: %s", e)

        await self.close()
