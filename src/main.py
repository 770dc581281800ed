"""Entry point and scheduler for the Costco price watcher.

Two scheduled jobs drive the scraper:
  build_plan    once a day, snapshots the catalog into the day's plan
  scrape_batch  every few minutes inside the daily window, checks a few
                pending items and records the results

Each run re-reads the plan, so a crashed or timed-out run only loses its
own in-flight batch.
"""

import argparse
import asyncio
import logging
import sqlite3
import sys
from datetime import datetime

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from src.batch import run_batch
from src.config import (
    BUILD_PLAN_CRON,
    INVOCATION_TIMEOUT_SECONDS,
    LOG_LEVEL,
    MAX_BATCH_SIZE,
    SCRAPE_BATCH_CRON,
)
from src.planner import build_plan, pending_items, record_results, today_as_id
from src.storage import DocumentNotFoundError, add_catalog_item, get_connection, init_db

logger = logging.getLogger(__name__)

PERSISTENCE_ERRORS = (sqlite3.Error, DocumentNotFoundError)


def setup_logging() -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def run_daily_build() -> None:
    """Build today's plan from the current catalog."""
    plan_id = today_as_id()
    try:
        build_plan(plan_id)
    except PERSISTENCE_ERRORS as e:
        logger.exception("Plan build for %s failed: %s", plan_id, e)


def run_scrape_batch(
    max_items: int = MAX_BATCH_SIZE, timeout: float = INVOCATION_TIMEOUT_SECONDS
) -> None:
    """Scrape up to ``max_items`` pending items of today's plan and save the results."""
    plan_id = today_as_id()
    try:
        items = pending_items(plan_id, max_items)
    except PERSISTENCE_ERRORS as e:
        logger.exception("Reading plan %s failed: %s", plan_id, e)
        return

    if not items:
        logger.info("Nothing to scrape for %s", plan_id)
        return

    try:
        results = asyncio.run(asyncio.wait_for(run_batch(items, max_items), timeout=timeout))
    except asyncio.TimeoutError:
        logger.error("Batch exceeded %.0f s and was abandoned; items stay pending", timeout)
        return
    except Exception as e:
        logger.exception("Batch for %s failed: %s", plan_id, e)
        return

    if not results:
        logger.warning("Batch produced no results for %s", items)
        return

    try:
        record_results(plan_id, results)
    except PERSISTENCE_ERRORS as e:
        logger.exception("Saving %d results to plan %s failed: %s", len(results), plan_id, e)


def add_item(item_id: str, price: float, name: str = "") -> None:
    """Add an item to the catalog by hand."""
    with get_connection() as conn:
        add_catalog_item(conn, item_id, price, datetime.now().isoformat(), name=name)


def serve() -> None:
    """Start the blocking scheduler with the daily build and batch jobs."""
    logger.info("🚀 Price watcher started")
    logger.info("Plan build: '%s', scrape batches: '%s'", BUILD_PLAN_CRON, SCRAPE_BATCH_CRON)

    scheduler = BlockingScheduler()
    scheduler.add_job(
        run_daily_build,
        trigger=CronTrigger.from_crontab(BUILD_PLAN_CRON),
        id="build_plan",
        max_instances=1,
        misfire_grace_time=3600,
    )
    scheduler.add_job(
        run_scrape_batch,
        trigger=CronTrigger.from_crontab(SCRAPE_BATCH_CRON),
        id="scrape_batch",
        max_instances=1,          # batches must not overlap
        coalesce=True,
        misfire_grace_time=120,
    )
    scheduler.start()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Costco price watcher")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("serve", help="run the scheduler (default)")
    sub.add_parser("build", help="build today's plan now")
    sub.add_parser("batch", help="scrape one batch of today's plan now")
    add = sub.add_parser("add-item", help="add an item to the catalog")
    add.add_argument("item_id")
    add.add_argument("price", type=float)
    add.add_argument("--name", default="")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Initialize DB and dispatch the requested command."""
    args = parse_args(argv)
    setup_logging()
    init_db()

    if args.command == "build":
        run_daily_build()
    elif args.command == "batch":
        run_scrape_batch()
    elif args.command == "add-item":
        add_item(args.item_id, args.price, args.name)
    else:
        serve()


if __name__ == "__main__":
    main()
