import asyncio
import json
import sys
from pathlib import Path

import pytest
from aiomysql import OperationalError


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


from modules.utils.mysql import automod_settings
from modules.utils.mysql import connection as mysql_connection


def _run(coro):
    return asyncio.run(coro)


def test_execute_query_retries_transient_errors(monkeypatch):
    monkeypatch.setattr(mysql_connection, "MYSQL_MAX_RETRIES", 2, raising=False)
    monkeypatch.setattr(mysql_connection, "MYSQL_RETRY_BACKOFF_SECONDS", 0.1, raising=False)

    attempts: list[int] = []

    async def _failing_execute_mysql(*args, **kwargs):
        attempts.append(1)
        if len(attempts) < 3:
            raise OperationalError(2003, "down")
        return (("success",), 1)

    sleep_calls: list[float] = []

    async def _fake_sleep(delay):
        sleep_calls.append(delay)

    monkeypatch.setattr(mysql_connection, "_execute_mysql", _failing_execute_mysql, raising=False)
    monkeypatch.setattr(mysql_connection.asyncio, "sleep", _fake_sleep)

    result = _run(mysql_connection.execute_query("SELECT 1", ()))

    assert result == (("success",), 1)
    assert len(attempts) == 3  # initial try + 2 retries
    assert sleep_calls == [0.1, 0.2]


def test_execute_query_raises_after_retry_limit(monkeypatch):
    monkeypatch.setattr(mysql_connection, "MYSQL_MAX_RETRIES", 1, raising=False)
    monkeypatch.setattr(mysql_connection, "MYSQL_RETRY_BACKOFF_SECONDS", 0, raising=False)

    attempts: list[int] = []

    async def _always_fail(*args, **kwargs):
        attempts.append(1)
        raise OperationalError(2013, "lost")

    monkeypatch.setattr(mysql_connection, "_execute_mysql", _always_fail, raising=False)

    with pytest.raises(OperationalError):
        _run(mysql_connection.execute_query("SELECT 1", ()))
    assert len(attempts) == 2


def test_execute_query_non_retryable_error(monkeypatch):
    monkeypatch.setattr(mysql_connection, "MYSQL_MAX_RETRIES", 5, raising=False)

    attempts: list[int] = []

    async def _fail_non_retryable(*args, **kwargs):
        attempts.append(1)
        raise RuntimeError("syntax error")

    monkeypatch.setattr(mysql_connection, "_execute_mysql", _fail_non_retryable, raising=False)

    with pytest.raises(RuntimeError):
        _run(mysql_connection.execute_query("SELECT 1", ()))
    assert len(attempts) == 1


def test_fake_pool_returns_no_rows():
    async def scenario():
        try:
            return await mysql_connection.execute_query("SELECT 1", (), fetch_one=True)
        finally:
            await mysql_connection.close_pool()

    assert _run(scenario()) == (None, 0)


def test_config_store_round_trips_json(monkeypatch):
    stored: dict[int, str] = {}

    async def _fake_execute(query, params=(), **kwargs):
        if query.lstrip().upper().startswith("SELECT"):
            raw = stored.get(params[0])
            return ((raw,) if raw is not None else None), 0
        stored[params[0]] = params[1]
        return None, 1

    monkeypatch.setattr(automod_settings, "execute_query", _fake_execute)
    store = automod_settings.MySQLConfigStore()

    async def scenario():
        assert await store.load("42") is None
        await store.save("42", {"spam": {"max_messages": 7}})
        return await store.load("42")

    assert _run(scenario()) == {"spam": {"max_messages": 7}}
    assert json.loads(stored[42]) == {"spam": {"max_messages": 7}}


def test_config_store_ignores_corrupt_rows(monkeypatch):
    async def _fake_execute(query, params=(), **kwargs):
        return ("{not json",), 0

    monkeypatch.setattr(automod_settings, "execute_query", _fake_execute)

    assert _run(automod_settings.get_automod_settings(1)) is None
