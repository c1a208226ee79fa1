import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Optional, Sequence

import aiomysql

from .config import MYSQL_CONFIG, MYSQL_MAX_RETRIES, MYSQL_RETRY_BACKOFF_SECONDS


_USE_FAKE_POOL = os.getenv("MYSQL_FAKE", "").lower() in {"1", "true", "yes"}
_LOGGER = logging.getLogger(__name__)


_RETRYABLE_MYSQL_ERROR_CODES: set[int] = {
    2003,  # Can't connect to MySQL server
    2006,  # MySQL server has gone away
    2013,  # Lost connection during query
    2055,  # Lost connection at host
}
_RETRYABLE_MYSQL_EXCEPTIONS = (
    aiomysql.OperationalError,
    aiomysql.InterfaceError,
    ConnectionError,
    OSError,
)


if _USE_FAKE_POOL:

    class _FakeCursor:
        def __init__(self) -> None:
            self.rowcount = 0

        async def execute(self, _query: str, _params: tuple | list) -> None:
            self.rowcount = 0

        async def fetchone(self) -> None:
            return None

        async def fetchall(self) -> list[Any]:
            return []

    @asynccontextmanager
    async def _fake_cursor_context() -> Any:
        cursor = _FakeCursor()
        yield cursor

    class _FakeConnection:
        def cursor(self) -> Any:
            return _fake_cursor_context()

        async def commit(self) -> None:
            return None

        async def rollback(self) -> None:
            return None

    @asynccontextmanager
    async def _fake_connection_context() -> Any:
        yield _FakeConnection()

    class _FakePool:
        def __init__(self) -> None:
            self._closed = False

        def acquire(self) -> Any:
            return _fake_connection_context()

        def close(self) -> None:
            self._closed = True

        async def wait_closed(self) -> None:
            return None

    _pool: Optional[_FakePool] = None

    async def init_pool(minsize: int = 1, maxsize: int = 10) -> _FakePool:  # noqa: ARG001
        """Create the fake connection pool used during tests."""
        global _pool
        if _pool is None:
            _pool = _FakePool()
        return _pool

    async def close_pool() -> None:
        """Reset the fake pool placeholder."""
        global _pool
        if _pool is not None:
            _pool.close()
            _pool = None

    async def get_pool() -> _FakePool:
        global _pool
        if _pool is None or getattr(_pool, "_closed", False):
            await init_pool()
        return _pool  # type: ignore[return-value]

else:
    _pool: Optional[aiomysql.Pool] = None

    async def init_pool(minsize: int = 1, maxsize: int = 10) -> aiomysql.Pool:
        """Create the global aiomysql connection pool (if not already created)."""
        global _pool
        if _pool is not None:
            return _pool

        await _ensure_database_exists()

        _pool = await aiomysql.create_pool(
            minsize=minsize,
            maxsize=maxsize,
            **MYSQL_CONFIG,
        )
        return _pool

    async def close_pool() -> None:
        """Gracefully close the global pool (e.g. on bot shutdown)."""
        global _pool
        if _pool is not None:
            _pool.close()
            await _pool.wait_closed()
            _pool = None

    async def get_pool() -> aiomysql.Pool:
        global _pool
        if _pool is None or _pool._closed:
            await init_pool()
        return _pool

    async def _connect_raw(use_database: bool = True) -> aiomysql.Connection:
        """Open a *single* connection (no pool) - used internally for bootstrap tasks."""
        cfg = MYSQL_CONFIG.copy()
        if not use_database:
            cfg.pop("db", None)
        return await aiomysql.connect(**cfg)

    async def _ensure_database_exists() -> None:
        """Create the target database and tables if they are missing."""
        conn = await _connect_raw(use_database=False)
        async with conn.cursor() as cur:
            try:
                await cur.execute(
                    f"CREATE DATABASE IF NOT EXISTS `{MYSQL_CONFIG['db']}` CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
                )
                await cur.execute(f"USE `{MYSQL_CONFIG['db']}`")
                await cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS automod_settings (
                        guild_id BIGINT PRIMARY KEY,
                        settings_json JSON,
                        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP
                    ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4;
                    """
                )
                await conn.commit()
            finally:
                conn.close()


async def execute_query(
    query: str,
    params: tuple | list = (),
    *,
    commit: bool = True,
    fetch_one: bool = False,
    fetch_all: bool = False,
):
    normalized_params: Sequence[Any] = tuple(params or ())
    attempt = 0
    total_attempts = max(MYSQL_MAX_RETRIES, 0) + 1
    while True:
        try:
            return await _execute_mysql(
                query,
                normalized_params,
                commit=commit,
                fetch_one=fetch_one,
                fetch_all=fetch_all,
            )
        except Exception as exc:
            if attempt >= MYSQL_MAX_RETRIES or not _is_retryable_mysql_error(exc):
                raise
            delay = _calculate_retry_delay(attempt)
            _LOGGER.warning(
                "MySQL query failed (attempt %s/%s); retrying in %.2fs",
                attempt + 1,
                total_attempts,
                delay,
            )
            if delay > 0:
                await asyncio.sleep(delay)
            attempt += 1


async def initialise_and_get_pool() -> Any:
    """Convenience wrapper that callers can await during startup."""
    return await init_pool()


def _calculate_retry_delay(attempt: int) -> float:
    base_delay = max(MYSQL_RETRY_BACKOFF_SECONDS, 0.0)
    if base_delay == 0:
        return 0.0
    return base_delay * (2 ** attempt)


def _is_retryable_mysql_error(exc: Exception) -> bool:
    current: BaseException | None = exc
    seen: set[int] = set()
    while current is not None:
        obj_id = id(current)
        if obj_id in seen:
            break
        seen.add(obj_id)
        if isinstance(current, _RETRYABLE_MYSQL_EXCEPTIONS):
            return True
        code = _extract_mysql_error_code(current)
        if code is not None and code in _RETRYABLE_MYSQL_ERROR_CODES:
            return True
        current = current.__cause__ or current.__context__
    return False


def _extract_mysql_error_code(exc: BaseException) -> int | None:
    args = getattr(exc, "args", None)
    if not args:
        return None
    first = args[0]
    return first if isinstance(first, int) else None


async def _execute_mysql(
    query: str,
    params: Sequence[Any],
    *,
    commit: bool,
    fetch_one: bool,
    fetch_all: bool,
) -> tuple[Any, int]:
    pool = await get_pool()
    async with pool.acquire() as conn:
        async with conn.cursor() as cur:
            try:
                await cur.execute(query, params)
                affected_rows = cur.rowcount
                result = None
                if fetch_one:
                    result = await cur.fetchone()
                elif fetch_all:
                    result = await cur.fetchall()
                if commit:
                    await conn.commit()
                return result, affected_rows
            except Exception:
                if commit:
                    await conn.rollback()
                raise
