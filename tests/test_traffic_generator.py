#!/usr/bin/env python3
"""
Unit tests for the traffic generator batch runner and its periodic loop.

Connections are replaced with a counting fake so each test can assert how
many statements ran and how many times the connection was released.
"""

import asyncio
import random
import sys
from contextlib import asynccontextmanager
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import asyncpg
import pytest

from explainlab.config import Settings
from explainlab.core.traffic_generator import TrafficGenerator, run_batch
from explainlab.exceptions import DatabaseUnavailableError
from explainlab.models import QueryPool, QueryTemplate

pytestmark = pytest.mark.asyncio


class FakeConnection:
    def __init__(self, fail_on: str | None = None) -> None:
        self.fail_on = fail_on
        self.executed: list[str] = []

    async def fetch(self, sql: str, *args):
        self.executed.append(sql)
        if self.fail_on and self.fail_on in sql:
            raise asyncpg.exceptions.UndefinedTableError(
                f'relation "{self.fail_on}" does not exist'
            )
        return [{"value": 1}]

    async def execute(self, sql: str, *args):
        self.executed.append(sql)
        return "SELECT 1"


class CountingConnector:
    """Stands in for postgres.connect(); counts acquisitions and releases."""

    def __init__(self, conn: FakeConnection | None = None, *, unavailable: bool = False):
        self.conn = conn or FakeConnection()
        self.unavailable = unavailable
        self.acquired = 0
        self.released = 0

    @asynccontextmanager
    async def __call__(self):
        if self.unavailable:
            raise DatabaseUnavailableError("connection refused")
        self.acquired += 1
        try:
            yield self.conn
        finally:
            self.released += 1


class ScriptedRng(random.Random):
    """Picks templates in a fixed order by name."""

    def __init__(self, order: list[str]) -> None:
        super().__init__(0)
        self._order = list(order)

    def choice(self, seq):
        name = self._order.pop(0)
        return next(t for t in seq if t.name == name)


def _pool() -> QueryPool:
    return QueryPool(
        templates=(
            QueryTemplate(name="ok_a", sql="SELECT 'a'"),
            QueryTemplate(name="ok_b", sql="SELECT 'b'"),
            QueryTemplate(name="broken", sql="SELECT * FROM missing_table", expect_error=True),
        )
    )


def _settings(**overrides) -> Settings:
    values = {
        "TRAFFIC_ENABLED": True,
        "TRAFFIC_INTERVAL_SECONDS": 0,
        "TRAFFIC_QUERIES_PER_BATCH": 3,
        "TRAFFIC_WARMUP_SECONDS": 0,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.mark.parametrize("n", [1, 3, 7, 25])
async def test_batch_executes_exactly_n_statements(n):
    connector = CountingConnector()

    result = await run_batch(_pool(), n, random.Random(n), connector)

    assert len(connector.conn.executed) == n
    assert len(result.outcomes) == n
    assert connector.acquired == 1
    assert connector.released == 1


async def test_failing_statement_does_not_stop_batch():
    connector = CountingConnector(FakeConnection(fail_on="missing_table"))
    rng = ScriptedRng(["ok_a", "broken", "ok_b"])

    result = await run_batch(_pool(), 3, rng, connector)

    assert connector.conn.executed == [
        "SELECT 'a'",
        "SELECT * FROM missing_table",
        "SELECT 'b'",
    ]
    assert [o.ok for o in result.outcomes] == [True, False, True]
    assert result.outcomes[1].sqlstate == "42P01"
    assert result.succeeded == 2
    assert result.failed == 1


@pytest.mark.parametrize("fail_on", [None, "missing_table"])
async def test_connection_released_once_per_batch(fail_on):
    connector = CountingConnector(FakeConnection(fail_on=fail_on))
    rng = ScriptedRng(["broken", "broken", "ok_a"])

    await run_batch(_pool(), 3, rng, connector)

    assert connector.acquired == 1
    assert connector.released == 1


async def test_connection_failure_skips_batch():
    connector = CountingConnector(unavailable=True)

    result = await run_batch(_pool(), 3, random.Random(0), connector)

    assert result.connection_error == "connection refused"
    assert result.outcomes == []
    assert connector.conn.executed == []


async def test_disabled_generator_never_runs():
    connector = CountingConnector()
    generator = TrafficGenerator(
        _pool(), _settings(TRAFFIC_ENABLED=False), connector=connector
    )

    assert generator.start() is False
    await asyncio.sleep(0.05)

    assert generator.active is False
    assert connector.acquired == 0
    assert connector.conn.executed == []
    assert generator.status()["enabled"] is False


async def test_generator_loop_runs_batches_until_stopped():
    connector = CountingConnector(FakeConnection(fail_on="missing_table"))
    generator = TrafficGenerator(
        _pool(), _settings(), rng=random.Random(5), connector=connector
    )

    assert generator.start() is True
    assert generator.active is True

    for _ in range(200):
        if generator.batches_completed >= 3:
            break
        await asyncio.sleep(0.01)

    await generator.stop()

    assert generator.batches_completed >= 3
    assert generator.active is False
    assert connector.acquired == connector.released
    assert len(connector.conn.executed) >= 3 * 3


async def test_generator_keeps_running_while_database_is_down():
    connector = CountingConnector(unavailable=True)
    generator = TrafficGenerator(_pool(), _settings(), connector=connector)

    generator.start()
    for _ in range(200):
        if generator.batches_completed >= 2:
            break
        await asyncio.sleep(0.01)

    assert generator.active is True
    await generator.stop()
    assert generator.batches_completed >= 2


async def test_run_once_counts_batches():
    connector = CountingConnector()
    generator = TrafficGenerator(_pool(), _settings(), connector=connector)

    result = await generator.run_once()

    assert result.batch == 1
    assert generator.batches_completed == 1
    assert generator.status() == {
        "enabled": True,
        "active": False,
        "batches_completed": 1,
        "interval_seconds": 0,
        "queries_per_batch": 3,
    }


async def test_warmup_delays_first_batch():
    connector = CountingConnector()
    generator = TrafficGenerator(
        _pool(), _settings(TRAFFIC_WARMUP_SECONDS=0.3), connector=connector
    )

    generator.start()
    await asyncio.sleep(0.1)

    assert generator.active is True
    assert connector.acquired == 0
    assert generator.batches_completed == 0

    for _ in range(300):
        if generator.batches_completed >= 1:
            break
        await asyncio.sleep(0.01)

    await generator.stop()
    assert connector.acquired >= 1
    assert generator.batches_completed >= 1
