"""
Background traffic generator.

A single asyncio task runs batches of randomly chosen pool templates on a
fixed cadence. Each batch uses its own connection; statement failures are
logged and the batch carries on; a failed connect skips the batch. Nothing
in here stops the loop except task cancellation at process shutdown.
"""

from __future__ import annotations

import asyncio
import logging
import random
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Any, Callable

from explainlab.config import Settings
from explainlab.connectors import postgres
from explainlab.core.statements import StatementOutcome, execute_statement, log_outcome
from explainlab.exceptions import DatabaseUnavailableError
from explainlab.models.query import QueryPool

logger = logging.getLogger(__name__)

Connector = Callable[[], AbstractAsyncContextManager[Any]]


@dataclass
class BatchResult:
    batch: int
    requested: int
    outcomes: list[StatementOutcome] = field(default_factory=list)
    connection_error: str | None = None

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)


async def run_batch(
    pool: QueryPool,
    queries_per_batch: int,
    rng: random.Random,
    connector: Connector,
    *,
    batch_number: int = 0,
) -> BatchResult:
    """
    Run one batch: N templates chosen with replacement on one connection.

    Returns a BatchResult with exactly `queries_per_batch` outcomes, or none
    and `connection_error` set when the connection could not be opened.
    """
    result = BatchResult(batch=batch_number, requested=queries_per_batch)

    try:
        async with connector() as conn:
            for _ in range(queries_per_batch):
                template = pool.choose(rng)
                outcome = await execute_statement(conn, template, rng)
                log_outcome(outcome)
                result.outcomes.append(outcome)
    except DatabaseUnavailableError as e:
        logger.error("Batch #%d skipped: %s", batch_number, e.message)
        result.connection_error = e.message

    return result


class TrafficGenerator:
    """Supervised periodic task that feeds query batches to Postgres."""

    def __init__(
        self,
        pool: QueryPool,
        settings: Settings,
        *,
        rng: random.Random | None = None,
        connector: Connector | None = None,
    ) -> None:
        self.pool = pool
        self.enabled = settings.TRAFFIC_ENABLED
        self.interval_seconds = settings.TRAFFIC_INTERVAL_SECONDS
        self.queries_per_batch = settings.TRAFFIC_QUERIES_PER_BATCH
        self.warmup_seconds = settings.TRAFFIC_WARMUP_SECONDS
        self._rng = rng or random.Random()
        self._connector: Connector = connector or (lambda: postgres.connect(settings))

        self._task: asyncio.Task[None] | None = None
        self._batches_completed = 0

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def batches_completed(self) -> int:
        return self._batches_completed

    def start(self) -> bool:
        """
        Schedule the generator loop on the running event loop.

        Returns False (and logs that the generator is idle) when disabled.
        """
        if not self.enabled:
            logger.info("Traffic generator disabled (TRAFFIC_ENABLED=false); idle")
            return False
        if self.active:
            return True

        logger.info(
            "Traffic generator starting: %d queries every %ds over %d templates",
            self.queries_per_batch,
            self.interval_seconds,
            len(self.pool.templates),
        )
        self._task = asyncio.create_task(self._run(), name="traffic-generator")
        return True

    async def stop(self) -> None:
        """Cancel the loop task, used on application shutdown."""
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(
            "Traffic generator stopped after %d batches", self._batches_completed
        )

    async def run_once(self) -> BatchResult:
        """Run a single batch and record it in the batch counter."""
        number = self._batches_completed + 1
        result = await run_batch(
            self.pool,
            self.queries_per_batch,
            self._rng,
            self._connector,
            batch_number=number,
        )
        self._batches_completed = number
        if result.connection_error is None:
            logger.info(
                "Batch #%d: ok=%d failed=%d",
                number,
                result.succeeded,
                result.failed,
            )
        return result

    async def _run(self) -> None:
        if self.warmup_seconds > 0:
            logger.info(
                "Traffic generator warming up for %.1fs", self.warmup_seconds
            )
            await asyncio.sleep(self.warmup_seconds)

        while True:
            try:
                await self.run_once()
            except Exception as e:
                logger.exception("Unexpected error in traffic batch: %s", e)
            await asyncio.sleep(self.interval_seconds)

    def status(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "active": self.active,
            "batches_completed": self._batches_completed,
            "interval_seconds": self.interval_seconds,
            "queries_per_batch": self.queries_per_batch,
        }
