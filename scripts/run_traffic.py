#!/usr/bin/env python3
"""Run the traffic generator headless, without the HTTP service."""

from __future__ import annotations

import argparse
import asyncio
import logging
import random
import sys

from pydantic import ValidationError

from explainlab.config import settings, settings_with_overrides
from explainlab.core.query_pool import build_pool
from explainlab.core.traffic_generator import TrafficGenerator
from explainlab.logging_config import configure_logging

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate query traffic against the configured Postgres database."
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single batch (no warm-up) and exit.",
    )
    parser.add_argument(
        "--queries-per-batch",
        type=int,
        default=None,
        help="Override TRAFFIC_QUERIES_PER_BATCH.",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Override TRAFFIC_INTERVAL_SECONDS.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed the template/parameter RNG for a reproducible sequence.",
    )
    return parser


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, object] = {"TRAFFIC_ENABLED": True}
    if args.queries_per_batch is not None:
        overrides["TRAFFIC_QUERIES_PER_BATCH"] = args.queries_per_batch
    if args.interval is not None:
        overrides["TRAFFIC_INTERVAL_SECONDS"] = args.interval
    try:
        cfg = settings_with_overrides(settings, **overrides)
    except ValidationError as e:
        logger.error("Invalid traffic settings: %s", e)
        return 2

    generator = TrafficGenerator(build_pool(cfg), cfg, rng=random.Random(args.seed))

    if args.once:
        result = await generator.run_once()
        return 1 if result.connection_error else 0

    generator.start()
    await asyncio.Event().wait()
    return 0


def main() -> int:
    args = _build_parser().parse_args()
    configure_logging(settings)
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        print("[traffic] interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
