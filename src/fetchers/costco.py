"""Costco search page resolver (Playwright async API).

A search for an item number renders exactly one of five page states.
All five detectors wait concurrently and the first to settle decides
the item's searchability and price:

  #no-results                      → NotFound
  a.pill-style-warehouse-only      → WarehouseOnly
  itemPriceOutput_0                → SingleResultFound (+ price)
  #starting-bundle-price           → BundlePriceOnly (+ price)
  #pull-right-price span.value     → MembersOnly, or Findable (+ price)
"""

import logging
import re
from functools import partial

from playwright.async_api import BrowserContext, Page
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.config import DETECTOR_TIMEOUT_MS, NAVIGATION_TIMEOUT_MS, SEARCH_HOME_URL
from src.fetchers.race import Detector, NoWinner, RaceTimeout, first_settled
from src.models import PriceInfo, Searchability

logger = logging.getLogger(__name__)

SEARCH_INPUT_SELECTOR = "#search-field"
NO_RESULTS_SELECTOR = "#no-results"
WAREHOUSE_ONLY_SELECTOR = "a.pill-style-warehouse-only"
SINGLE_RESULT_PRICE_SELECTOR = "[automation-id='itemPriceOutput_0']"
BUNDLE_PRICE_SELECTOR = "#starting-bundle-price"
PRIMARY_PRICE_SELECTOR = "#pull-right-price span.value"
MEMBER_ONLY_SELECTOR = "p.member-only[automation-id='memberOnly']"

# Shown in the primary price slot until the real price loads
PRICE_PLACEHOLDERS = ["- -.- -", "--"]

_PRICE_SETTLED_JS = """
([selector, placeholders]) => {
    const el = document.querySelector(selector);
    return !!el && !placeholders.includes((el.textContent || "").trim());
}
"""


class ExtractionError(RuntimeError):
    """The search page could not be classified."""


class ExtractionTimeoutError(ExtractionError):
    """The search page never reached a recognizable state in time."""


def parse_price(text: str | None) -> float | None:
    """Extract numeric price from string like '$1,299.99' or ' 24.99 '."""
    if not text:
        return None
    match = re.search(r"\d+(?:\.\d+)?", text.replace("$", "").replace(",", "").strip())
    if match:
        return float(match.group(0))
    return None


async def _detect_marker(
    page: Page, selector: str, searchable: Searchability, timeout_ms: int
) -> PriceInfo:
    await page.wait_for_selector(selector, state="attached", timeout=timeout_ms)
    logger.debug("found %s", selector)
    return PriceInfo(price=None, searchable=searchable)


async def _detect_price_marker(
    page: Page, selector: str, searchable: Searchability, timeout_ms: int
) -> PriceInfo:
    element = await page.wait_for_selector(selector, state="attached", timeout=timeout_ms)
    text = await element.text_content() if element else None
    logger.debug("found %s: %r", selector, text)
    return PriceInfo(price=parse_price(text), searchable=searchable)


async def _detect_primary_price(page: Page, timeout_ms: int) -> PriceInfo:
    await page.wait_for_selector(PRIMARY_PRICE_SELECTOR, state="attached", timeout=timeout_ms)
    logger.debug("found %s", PRIMARY_PRICE_SELECTOR)

    if await page.query_selector(MEMBER_ONLY_SELECTOR) is not None:
        logger.debug("found %s", MEMBER_ONLY_SELECTOR)
        return PriceInfo(price=None, searchable=Searchability.MEMBERS_ONLY)

    await page.wait_for_function(
        _PRICE_SETTLED_JS,
        arg=[PRIMARY_PRICE_SELECTOR, PRICE_PLACEHOLDERS],
        timeout=timeout_ms,
    )
    text = await page.text_content(PRIMARY_PRICE_SELECTOR)
    return PriceInfo(price=parse_price(text), searchable=Searchability.FINDABLE)


def build_detectors(page: Page, timeout_ms: int = DETECTOR_TIMEOUT_MS) -> list[Detector]:
    """The five page-state detectors, in tie-break order."""
    return [
        ("no_results", partial(
            _detect_marker, page, NO_RESULTS_SELECTOR, Searchability.NOT_FOUND, timeout_ms)),
        ("warehouse_only", partial(
            _detect_marker, page, WAREHOUSE_ONLY_SELECTOR, Searchability.WAREHOUSE_ONLY, timeout_ms)),
        ("single_result", partial(
            _detect_price_marker, page, SINGLE_RESULT_PRICE_SELECTOR,
            Searchability.SINGLE_RESULT_FOUND, timeout_ms)),
        ("bundle_price", partial(
            _detect_price_marker, page, BUNDLE_PRICE_SELECTOR,
            Searchability.BUNDLE_PRICE_ONLY, timeout_ms)),
        ("primary_price", partial(_detect_primary_price, page, timeout_ms)),
    ]


async def resolve_page(page: Page, timeout_ms: int = DETECTOR_TIMEOUT_MS) -> PriceInfo:
    """
    Classify a loaded search results page.

    The primary price detector waits twice (marker, then settled text), so
    the race deadline is twice the per-wait timeout.

    Raises:
        ExtractionTimeoutError: no page marker appeared in time.
        ExtractionError: detectors finished without a usable classification.
    """
    try:
        label, info = await first_settled(
            build_detectors(page, timeout_ms), timeout=2 * timeout_ms / 1000
        )
    except RaceTimeout as e:
        raise ExtractionTimeoutError(str(e)) from e
    except NoWinner as e:
        if e.errors and all(isinstance(err, PlaywrightTimeoutError) for err in e.errors.values()):
            raise ExtractionTimeoutError("No page marker appeared") from e
        raise ExtractionError("No valid result found") from e

    logger.debug("Page resolved by %s", label)
    return info


async def _submit_search(page: Page, query: str, navigation_timeout_ms: int) -> None:
    page.set_default_navigation_timeout(navigation_timeout_ms)
    await page.goto(SEARCH_HOME_URL, wait_until="networkidle")
    await page.wait_for_selector(SEARCH_INPUT_SELECTOR, timeout=navigation_timeout_ms)
    # Triple-click selects any leftover text so typing replaces it
    await page.click(SEARCH_INPUT_SELECTOR, click_count=3)
    await page.keyboard.type(query)
    async with page.expect_navigation(wait_until="networkidle"):
        await page.keyboard.press("Enter")


async def resolve_price(
    context: BrowserContext,
    query: str,
    detector_timeout_ms: int = DETECTOR_TIMEOUT_MS,
    navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS,
) -> PriceInfo:
    """
    Search Costco for ``query`` in a new tab and classify the result page.

    The tab is closed whether or not classification succeeds. Nothing is
    written to the catalog here.
    """
    page = await context.new_page()
    try:
        try:
            await _submit_search(page, query, navigation_timeout_ms)
        except PlaywrightTimeoutError as e:
            raise ExtractionTimeoutError(f"Search navigation timed out for {query}: {e}") from e
        except PlaywrightError as e:
            raise ExtractionError(f"Search navigation failed for {query}: {e}") from e

        info = await resolve_page(page, detector_timeout_ms)
        logger.info("%s → %s @ %s", query, info.searchable.value, info.price)
        return info
    finally:
        await page.close()
