"""Connection pool lifecycle, error types, and small SQL helpers."""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import asyncpg

logger = logging.getLogger(__name__)

_pool: "asyncpg.Pool | None" = None
_dsn: str | None = None

CONNECT_ERRORS = (OSError, asyncpg.PostgresError, asyncpg.InterfaceError)


class StorageError(RuntimeError):
    """Base class for errors raised by the storage layer."""


class ValidationFailed(StorageError):
    """A request field failed validation. Carries the offending field name."""

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(message or f"Invalid {field}")


class NotFound(StorageError):
    """The addressed row does not exist."""


class StoreUnavailable(StorageError):
    """The database cannot be reached or was never configured."""


async def connect(dsn: str, min_size: int = 1, max_size: int = 10) -> "asyncpg.Pool":
    """Open the process-wide pool and register it.

    The DSN is remembered even when this fails, so a later request can try
    again once the database is reachable.
    """
    global _pool, _dsn
    _dsn = dsn
    pool = await asyncpg.create_pool(
        dsn=dsn,
        min_size=min_size,
        max_size=max_size,
        command_timeout=30.0,
    )
    _pool = pool
    logger.info(f"Database pool ready (max_size={max_size})")
    return pool


def init_pool(pool: "asyncpg.Pool | None") -> None:
    """Install a pool directly (no reconnecting)."""
    global _pool, _dsn
    _pool = pool
    _dsn = None


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
    _pool = None


def pool() -> "asyncpg.Pool":
    if _pool is None:
        raise StoreUnavailable("Database not available")
    return _pool


async def _ready_pool() -> "asyncpg.Pool":
    if _pool is None and _dsn is not None:
        try:
            await connect(_dsn)
        except CONNECT_ERRORS as e:
            logger.error(f"Database still unavailable: {e}")
            raise StoreUnavailable("Database not available") from e
    return pool()


@asynccontextmanager
async def connection() -> AsyncIterator["asyncpg.Connection"]:
    """Borrow a connection for a sequence of non-transactional statements."""
    async with (await _ready_pool()).acquire() as conn:
        yield conn


@asynccontextmanager
async def transaction() -> AsyncIterator["asyncpg.Connection"]:
    """Borrow a connection and run everything inside one transaction.

    Any exception, including cancellation when the client goes away,
    rolls the whole transaction back.
    """
    async with (await _ready_pool()).acquire() as conn:
        async with conn.transaction():
            yield conn


async def notify(conn: "asyncpg.Connection", channel: str, payload: Any) -> None:
    """Publish on a NOTIFY channel. Failures are logged, never raised.

    Runs in a savepoint so a failed notify leaves the enclosing transaction
    usable. Delivery happens when the enclosing transaction commits.
    """
    text = payload if isinstance(payload, str) else json.dumps(payload)
    try:
        async with conn.transaction():
            await conn.execute("SELECT pg_notify($1, $2)", channel, text)
    except asyncpg.PostgresError as e:
        logger.warning(f"Notify on {channel} failed: {e}")


def to_json(value: Any) -> str | None:
    """Encode a value for a json/jsonb column (None stays NULL)."""
    if value is None:
        return None
    return json.dumps(value)


def from_json(value: Any, default: Any = None) -> Any:
    """Decode a json/jsonb column as returned by asyncpg (text)."""
    if value is None:
        return default
    if isinstance(value, (dict, list)):
        return value
    return json.loads(value)
