#!/usr/bin/env python3
"""Run the explainlab HTTP service (and its traffic generator) under uvicorn."""

from __future__ import annotations

import argparse

import uvicorn

from explainlab.config import settings


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the explainlab service.")
    parser.add_argument("--host", default=settings.APP_HOST, help="Bind address.")
    parser.add_argument("--port", type=int, default=settings.APP_PORT, help="Bind port.")
    parser.add_argument(
        "--reload",
        action="store_true",
        default=settings.APP_RELOAD,
        help="Reload on code changes (development only).",
    )
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    uvicorn.run(
        "explainlab.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.LOG_LEVEL.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
