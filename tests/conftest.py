"""Shared fixtures: a throwaway database and fake Playwright pages."""

import asyncio

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.storage import (
    SEARCHABLE,
    add_catalog_item,
    get_connection,
    init_db,
    profile_path,
    set_document,
)


@pytest.fixture(autouse=True)
def db(tmp_path, monkeypatch):
    """Point DB_PATH at a fresh database for every test."""
    path = tmp_path / "prices.db"
    monkeypatch.setenv("DB_PATH", str(path))
    init_db()
    return path


@pytest.fixture
def seed_item():
    """Add a catalog item, optionally with a searchable classification."""

    def _seed(item_id, price, searchable=None, trade_datetime="2024-05-01T10:00:00"):
        with get_connection() as conn:
            add_catalog_item(conn, item_id, price, trade_datetime, name=f"Item {item_id}")
            if searchable is not None:
                set_document(conn, profile_path(item_id, SEARCHABLE), {"searchable": searchable.value})

    return _seed


class FakeElement:
    def __init__(self, text):
        self._text = text

    async def text_content(self):
        return self._text


class FakePage:
    """Stand-in for a Playwright page.

    ``markers`` maps a selector to (delay_seconds, text). A marker appears
    after its delay; waiting for any other selector times out.
    """

    def __init__(self, markers=None, error=None):
        self.markers = markers or {}
        self.error = error
        self.closed = False
        self.function_waits = []

    async def wait_for_selector(self, selector, state=None, timeout=30000):
        if self.error is not None:
            raise self.error
        if selector in self.markers:
            delay, text = self.markers[selector]
            await asyncio.sleep(delay)
            return FakeElement(text)
        await asyncio.sleep(timeout / 1000)
        raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

    async def query_selector(self, selector):
        if selector in self.markers:
            return FakeElement(self.markers[selector][1])
        return None

    async def wait_for_function(self, expression, arg=None, timeout=30000):
        self.function_waits.append(arg)
        return True

    async def text_content(self, selector):
        return self.markers[selector][1]

    async def close(self):
        self.closed = True


class FakeContext:
    """Stand-in for a browser context handing out one FakePage."""

    browser = None

    def __init__(self, page):
        self.page = page

    async def new_page(self):
        return self.page


@pytest.fixture
def fake_page():
    return FakePage


@pytest.fixture
def fake_context():
    return FakeContext
