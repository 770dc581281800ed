"""Run one batch of price checks in a single browser session."""

import asyncio
import logging
import random
import time
from datetime import datetime

from src.browser import open_browser
from src.config import JITTER_MAX_SECONDS, JITTER_MIN_SECONDS, MAX_BATCH_SIZE
from src.fetchers.costco import resolve_price
from src.models import ScrapeResult

logger = logging.getLogger(__name__)


def _browser_disconnected(context) -> bool:
    browser = getattr(context, "browser", None)
    return browser is not None and not browser.is_connected()


async def run_batch(
    item_ids: list[str],
    max_items: int = MAX_BATCH_SIZE,
    resolve=resolve_price,
    browser_factory=open_browser,
    jitter: tuple[float, float] = (JITTER_MIN_SECONDS, JITTER_MAX_SECONDS),
) -> list[ScrapeResult]:
    """
    Check prices for the last ``max_items`` of ``item_ids``, last id first, one at a time.

    A failing item is logged and skipped; it stays pending for the next batch.
    Returns results in the order they were produced. Saving them is up to the caller.
    """
    batch = list(item_ids[-max_items:]) if max_items > 0 else []
    items = list(batch)
    results: list[ScrapeResult] = []
    logger.info("Batch start: %s", items)
    start = time.perf_counter()

    async with browser_factory() as context:
        while items:
            if _browser_disconnected(context):
                logger.error("Browser disconnected, %d items left for the next batch", len(items))
                break

            item_id = items.pop()
            try:
                info = await resolve(context, item_id)
                results.append(ScrapeResult(
                    item_id=item_id,
                    price=info.price,
                    searchable=info.searchable,
                    scraped_at=datetime.now(),
                    execution_time_ms=(time.perf_counter() - start) * 1000,
                ))
            except Exception as e:
                logger.exception("Scrape failed for %s: %s", item_id, e)

            if items:
                delay = random.uniform(*jitter)
                logger.debug("Sleeping %.2f s before next item", delay)
                await asyncio.sleep(delay)

    logger.info(
        "Batch done: %d/%d succeeded in %.1f s",
        len(results), len(batch), time.perf_counter() - start,
    )
    return results
