"""
PostgreSQL Client for the Donation Ledger

Thin asyncpg pool wrapper shared by every repository of a service.
Provides service discovery integration, connection retry and a
task-scoped transaction so that several repository calls can commit
or roll back as one unit.

Usage:
    from core.postgres_client import AsyncPostgresClient

    db = AsyncPostgresClient("donation_service")
    await db.connect()

    # Execute queries
    rows = await db.query("SELECT * FROM ledger.campaigns WHERE status = $1", ["Active"])

    # Group writes atomically
    async with db.transaction():
        await db.execute("UPDATE ...", [...])
        await db.execute("UPDATE ...", [...])
"""

import logging
import os
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, AsyncIterator, Dict, List, Optional

import asyncpg
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

# Connection bound by an open transaction() in the current task
_current_connection: ContextVar[Optional[asyncpg.Connection]] = ContextVar(
    "ledger_pg_connection", default=None
)


def _affected_rows(status: str) -> int:
    """Parse an asyncpg command status such as 'UPDATE 3' or 'INSERT 0 1'"""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError, IndexError):
        return 0


class AsyncPostgresClient:
    """
    PostgreSQL client with service discovery integration.

    Wraps an asyncpg pool and provides:
    - Service discovery for host/port configuration
    - Lazy pool creation with retry
    - Task-local transactions shared by nested calls
    """

    def __init__(
        self,
        service_name: str,
        host: Optional[str] = None,
        port: Optional[int] = None,
        database: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
        command_timeout: Optional[float] = None,
    ):
        """
        Initialize PostgreSQL client.

        Args:
            service_name: Name of the service using this client
            host: PostgreSQL host (defaults to env/service discovery)
            port: PostgreSQL port (defaults to 5432)
            database: Database name (defaults to 'postgres')
            username: Database username
            password: Database password
            min_size: Minimum pool size
            max_size: Maximum pool size
            command_timeout: Per-statement timeout in seconds
        """
        from core.config_manager import ConfigManager

        self.service_name = service_name

        # Use ConfigManager for service discovery
        config = ConfigManager(service_name)
        discovered_host, discovered_port = config.discover_service(
            service_name="postgres_service",
            default_host="localhost",
            default_port=5432,
            env_host_key="POSTGRES_HOST",
            env_port_key="POSTGRES_PORT",
        )

        # Apply overrides
        self.host = host or discovered_host
        self.port = port or discovered_port
        self.database = database or os.getenv("POSTGRES_DB", "postgres")
        self.username = username or os.getenv("POSTGRES_USER", "postgres")
        self.password = password or os.getenv("POSTGRES_PASSWORD", "")
        self.min_size = min_size or int(os.getenv("POSTGRES_POOL_MIN", "2"))
        self.max_size = max_size or int(os.getenv("POSTGRES_POOL_MAX", "10"))
        self.command_timeout = command_timeout or float(os.getenv("POSTGRES_COMMAND_TIMEOUT", "30"))

        self._pool: Optional[asyncpg.Pool] = None

        logger.info(f"PostgreSQL client initialized for {service_name}: {self.host}:{self.port}/{self.database}")

    # ====================
    # Connection management
    # ====================

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((OSError, asyncpg.PostgresError)),
        reraise=True,
    )
    async def connect(self) -> None:
        """Create the connection pool (idempotent)"""
        if self._pool is not None:
            return
        self._pool = await asyncpg.create_pool(
            host=self.host,
            port=self.port,
            user=self.username,
            password=self.password,
            database=self.database,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=self.command_timeout,
        )
        logger.info(f"PostgreSQL pool ready for {self.service_name} ({self.min_size}-{self.max_size} connections)")

    async def __aenter__(self):
        """Async context manager entry"""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        return None

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        bound = _current_connection.get()
        if bound is not None:
            yield bound
            return
        if self._pool is None:
            await self.connect()
        async with self._pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["AsyncPostgresClient"]:
        """
        Run the enclosed calls in one database transaction.

        Every query/execute issued from the same task while the block is open
        uses the bound connection. Nested blocks become savepoints. The
        transaction rolls back if the block raises.
        """
        bound = _current_connection.get()
        if bound is not None:
            async with bound.transaction():
                yield self
            return

        if self._pool is None:
            await self.connect()
        async with self._pool.acquire() as conn:
            token = _current_connection.set(conn)
            try:
                async with conn.transaction():
                    yield self
            finally:
                _current_connection.reset(token)

    # ====================
    # Query helpers
    # ====================

    async def query(self, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """Execute query and return results"""
        async with self._connection() as conn:
            records = await conn.fetch(sql, *(params or []))
        return [dict(r) for r in records]

    async def query_row(self, sql: str, params: Optional[List[Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute query and return single row"""
        async with self._connection() as conn:
            record = await conn.fetchrow(sql, *(params or []))
        return dict(record) if record is not None else None

    async def execute(self, sql: str, params: Optional[List[Any]] = None) -> int:
        """Execute SQL statement, returning the number of affected rows"""
        async with self._connection() as conn:
            status = await conn.execute(sql, *(params or []))
        return _affected_rows(status)

    async def health_check(self) -> Optional[Dict]:
        """Check database health"""
        try:
            row = await self.query_row("SELECT 1 AS ok")
            return {"healthy": bool(row and row.get("ok") == 1), "database": self.database}
        except Exception as e:
            logger.error(f"PostgreSQL health check failed: {e}")
            return {"healthy": False, "database": self.database, "error": str(e)}

    async def close(self):
        """Close the pool"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info(f"PostgreSQL pool closed for {self.service_name}")

