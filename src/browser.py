"""Headless browser session shared by one scraping batch."""

import logging
from contextlib import asynccontextmanager

from playwright.async_api import async_playwright
from playwright_stealth import Stealth

from src.config import BROWSER, HEADLESS, USER_AGENT

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-infobars",
]


@asynccontextmanager
async def open_browser(browser_name: str = BROWSER, headless: bool = HEADLESS):
    """
    Launch one browser and yield a stealth-patched context.

    The browser is closed on every exit path.
    """
    async with async_playwright() as p:
        launcher = getattr(p, browser_name)
        launch_args = LAUNCH_ARGS if browser_name == "chromium" else []
        browser = await launcher.launch(headless=headless, args=launch_args)
        logger.info("Browser launched: %s (headless=%s)", browser_name, headless)
        try:
            context = await browser.new_context(
                user_agent=USER_AGENT,
                viewport={"width": 1440, "height": 900},
                locale="en-US",
            )
            await Stealth().apply_stealth_async(context)
            yield context
        finally:
            await browser.close()
            logger.info("Browser closed")
