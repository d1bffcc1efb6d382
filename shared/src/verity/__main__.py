"""Maintenance entry point: python -m verity {init-db,sweep,sweeper}."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from verity.config import get_settings
from verity.database import dispose_engine, get_session, get_session_factory, init_models
from verity.seeds import seed_defaults
from verity.services.prediction_service import PredictionService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    stream=sys.stdout,
)

logger = logging.getLogger("verity")


async def _init_db() -> None:
    await init_models()
    async with get_session() as session:
        categories, templates = await seed_defaults(session)
    logger.info("Database initialised (%d categories, %d templates added)", categories, templates)


async def _sweep_once(service: PredictionService) -> int:
    result = await service.run_expiry_sweep()
    logger.info(
        "Sweep finished: %d expired, %d failed",
        result.processed_count,
        result.failed_count,
    )
    return result.failed_count


async def _run_sweeper(service: PredictionService, interval_minutes: int) -> None:
    logger.info("Expiry sweeper started (every %d min)", interval_minutes)
    while True:
        try:
            await _sweep_once(service)
        except Exception as exc:
            logger.error("Expiry sweep failed: %s", exc)
        await asyncio.sleep(interval_minutes * 60)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="verity", description="Prediction engine maintenance")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("init-db", help="create tables and seed default categories and templates")
    sub.add_parser("sweep", help="expire overdue predictions once")
    sweeper = sub.add_parser("sweeper", help="expire overdue predictions on a fixed interval")
    sweeper.add_argument("--interval", type=int, default=None, help="minutes between sweeps")
    return parser


async def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())

    try:
        if args.command == "init-db":
            await _init_db()
            return 0

        service = PredictionService.from_settings(get_session_factory(), settings)
        if args.command == "sweep":
            failed = await _sweep_once(service)
            return 1 if failed else 0

        await _run_sweeper(service, args.interval or settings.sweep_interval_minutes)
        return 0
    finally:
        await dispose_engine()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
