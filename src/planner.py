"""Daily scraping plan: build the day's work list, hand out pending items, record results.

Every operation re-reads the plan document; nothing is cached between calls.
"""

import logging
import sqlite3
from datetime import date

from src.comparator import is_price_drop, price_changed
from src.models import DailyPlan, ScrapeResult, Searchability, WorkItem
from src.storage import (
    LATEST_PRICE,
    DocumentNotFoundError,
    MEMBER_PLANS_COLLECTION,
    PLANS_COLLECTION,
    SCRAPED_DATETIME,
    SEARCHABLE,
    get_connection,
    get_document,
    load_catalog,
    plan_path,
    profile_path,
    set_document,
    update_document,
    write_batch,
)

logger = logging.getLogger(__name__)

# None (never scraped) is planned with these
GENERAL_SEARCHABILITY = {
    None,
    Searchability.FINDABLE,
    Searchability.SINGLE_RESULT_FOUND,
    Searchability.BUNDLE_PRICE_ONLY,
}


def today_as_id(today: date | None = None) -> str:
    """Plan id for a local calendar date, e.g. ``2024-5-7`` (no zero padding)."""
    today = today or date.today()
    return f"{today.year}-{today.month}-{today.day}"


def get_plan(
    conn: sqlite3.Connection, plan_id: str, collection: str = PLANS_COLLECTION
) -> DailyPlan | None:
    """Read a plan document, or None if it hasn't been built."""
    doc = get_document(conn, plan_path(plan_id, collection))
    if doc is None:
        return None
    return DailyPlan.from_document(plan_id, doc)


def build_plan(plan_id: str | None = None) -> tuple[DailyPlan, DailyPlan]:
    """
    Snapshot the catalog into the day's general and members-only plans.

    Items last classified as not found or warehouse-only are left out for the
    day. Any existing plan for the same id is replaced, done list included.

    Returns (general_plan, members_plan).
    """
    plan_id = plan_id or today_as_id()
    general = DailyPlan(plan_id)
    members = DailyPlan(plan_id)

    with get_connection() as conn:
        for item in load_catalog(conn):
            work = WorkItem(
                item_id=item.item_id,
                price=item.price,
                trade_datetime=item.trade_datetime,
            )
            if item.searchable in GENERAL_SEARCHABILITY:
                general.todos.append(work)
            elif item.searchable == Searchability.MEMBERS_ONLY:
                members.todos.append(work)
            else:
                logger.debug("Skipping %s (%s)", item.item_id, item.searchable.value)

        set_document(conn, plan_path(plan_id, PLANS_COLLECTION), general.to_document())
        set_document(
            conn,
            plan_path(plan_id, MEMBER_PLANS_COLLECTION),
            {"todos": [w.to_document() for w in members.todos]},
        )

    logger.info("Plan %s built: %d items", plan_id, len(general.todos))
    logger.info("Members-only plan %s built: %d items", plan_id, len(members.todos))
    return general, members


def pending_items(plan_id: str, limit: int) -> list[str]:
    """
    Item ids planned for ``plan_id`` without a recorded result.

    Planning order is preserved and at most ``limit`` ids are taken from the tail.
    A missing plan yields an empty list.
    """
    with get_connection() as conn:
        plan = get_plan(conn, plan_id)

    if plan is None:
        logger.info("No plan found for %s", plan_id)
        return []

    done_ids = {r.item_id for r in plan.done}
    incomplete = [w.item_id for w in plan.todos if w.item_id not in done_ids]
    if not incomplete:
        logger.info("Plan %s already complete (%d items)", plan_id, len(plan.todos))
        return []
    if limit <= 0:
        return []

    tasks = incomplete[-limit:]
    logger.info("Pending for %s: %d of %d, taking %s", plan_id, len(incomplete), len(plan.todos), tasks)
    return tasks


def record_results(plan_id: str, results: list[ScrapeResult]) -> None:
    """
    Project results onto the catalog and append them to the plan's done list.

    Runs as a single transaction. Price is overwritten only when the scraped
    price differs from the plan snapshot; searchability and scrape time are
    always overwritten. The done list is appended to without deduplication.

    Raises:
        DocumentNotFoundError: no plan exists for ``plan_id``.
    """
    with get_connection(immediate=True) as conn:
        plan = get_plan(conn, plan_id)
        if plan is None:
            raise DocumentNotFoundError(plan_path(plan_id))
        snapshots = {w.item_id: w.price for w in plan.todos}

        price_writes = []
        searchable_writes = []
        scraped_writes = []
        for result in results:
            snapshot = snapshots.get(result.item_id)
            if price_changed(result.price, snapshot):
                price_writes.append((profile_path(result.item_id, LATEST_PRICE), {"price": result.price}))
                if is_price_drop(result.price, snapshot):
                    logger.info("Price drop: %s $%.2f → $%.2f", result.item_id, snapshot, result.price)
            searchable = result.searchable.value if result.searchable else None
            searchable_writes.append((profile_path(result.item_id, SEARCHABLE), {"searchable": searchable}))
            scraped_writes.append(
                (profile_path(result.item_id, SCRAPED_DATETIME), {"scrapedDatetime": result.scraped_at.isoformat()})
            )

        write_batch(conn, price_writes, merge=True)
        write_batch(conn, searchable_writes)
        write_batch(conn, scraped_writes)
        logger.info("Catalog updated: %d results, %d price changes", len(results), len(price_writes))

        done = [r.to_document() for r in plan.done]
        done.extend(r.to_document() for r in results)
        update_document(conn, plan_path(plan_id), {"done": done})
        logger.info("Plan %s: %d results recorded", plan_id, len(done))
