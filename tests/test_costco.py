"""Tests for the Costco search page resolver."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.fetchers.costco import (
    BUNDLE_PRICE_SELECTOR,
    MEMBER_ONLY_SELECTOR,
    NO_RESULTS_SELECTOR,
    PRICE_PLACEHOLDERS,
    PRIMARY_PRICE_SELECTOR,
    SINGLE_RESULT_PRICE_SELECTOR,
    WAREHOUSE_ONLY_SELECTOR,
    ExtractionError,
    ExtractionTimeoutError,
    parse_price,
    resolve_page,
    resolve_price,
)
from src.models import Searchability

TIMEOUT_MS = 200


class TestParsePrice:
    """Tests for parse_price."""

    def test_dollar_and_whitespace(self):
        assert parse_price(" $24.99 ") == 24.99

    def test_thousands_separator(self):
        assert parse_price("$1,299.99") == 1299.99

    def test_integer(self):
        assert parse_price("15") == 15.0

    def test_placeholder_or_empty(self):
        assert parse_price("- -.- -") is None
        assert parse_price("") is None
        assert parse_price(None) is None


class TestResolvePage:
    """Each single page marker maps to its searchability."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("markers, searchable, price", [
        ({NO_RESULTS_SELECTOR: (0, "")}, Searchability.NOT_FOUND, None),
        ({WAREHOUSE_ONLY_SELECTOR: (0, "Warehouse Only")}, Searchability.WAREHOUSE_ONLY, None),
        ({SINGLE_RESULT_PRICE_SELECTOR: (0, "$12.99 ")}, Searchability.SINGLE_RESULT_FOUND, 12.99),
        ({BUNDLE_PRICE_SELECTOR: (0, "$149.99")}, Searchability.BUNDLE_PRICE_ONLY, 149.99),
        ({PRIMARY_PRICE_SELECTOR: (0, "19.49")}, Searchability.FINDABLE, 19.49),
        (
            {PRIMARY_PRICE_SELECTOR: (0, "--"), MEMBER_ONLY_SELECTOR: (0, "Members Only")},
            Searchability.MEMBERS_ONLY,
            None,
        ),
    ])
    async def test_single_marker(self, fake_page, markers, searchable, price):
        info = await resolve_page(fake_page(markers), TIMEOUT_MS)
        assert info.searchable == searchable
        assert info.price == price

    @pytest.mark.asyncio
    async def test_first_marker_wins(self, fake_page):
        page = fake_page({
            BUNDLE_PRICE_SELECTOR: (0.1, "$99.99"),
            NO_RESULTS_SELECTOR: (0, ""),
        })
        info = await resolve_page(page, TIMEOUT_MS)
        assert info.searchable == Searchability.NOT_FOUND
        assert info.price is None

    @pytest.mark.asyncio
    async def test_primary_price_waits_past_placeholders(self, fake_page):
        page = fake_page({PRIMARY_PRICE_SELECTOR: (0, "8.99")})
        await resolve_page(page, TIMEOUT_MS)
        assert page.function_waits == [[PRIMARY_PRICE_SELECTOR, PRICE_PLACEHOLDERS]]

    @pytest.mark.asyncio
    async def test_no_marker_times_out(self, fake_page):
        with pytest.raises(ExtractionTimeoutError):
            await resolve_page(fake_page({}), 50)

    @pytest.mark.asyncio
    async def test_no_valid_result(self, fake_page):
        page = fake_page(error=PlaywrightError("Target page, context or browser has been closed"))
        with pytest.raises(ExtractionError, match="No valid result found") as exc_info:
            await resolve_page(page, TIMEOUT_MS)
        assert not isinstance(exc_info.value, ExtractionTimeoutError)


class TestResolvePrice:
    """resolve_price always closes its tab."""

    @pytest.mark.asyncio
    async def test_closes_page_on_success(self, monkeypatch, fake_page, fake_context):
        async def submitted(page, query, timeout):
            return None

        monkeypatch.setattr("src.fetchers.costco._submit_search", submitted)
        page = fake_page({SINGLE_RESULT_PRICE_SELECTOR: (0, "$5.49")})

        info = await resolve_price(fake_context(page), "1397329", detector_timeout_ms=TIMEOUT_MS)

        assert info.searchable == Searchability.SINGLE_RESULT_FOUND
        assert info.price == 5.49
        assert page.closed

    @pytest.mark.asyncio
    async def test_navigation_error_is_wrapped_and_page_closed(
        self, monkeypatch, fake_page, fake_context
    ):
        async def broken(page, query, timeout):
            raise PlaywrightError("net::ERR_CONNECTION_RESET")

        monkeypatch.setattr("src.fetchers.costco._submit_search", broken)
        page = fake_page({})

        with pytest.raises(ExtractionError, match="navigation failed"):
            await resolve_price(fake_context(page), "1397329", detector_timeout_ms=TIMEOUT_MS)
        assert page.closed

    @pytest.mark.asyncio
    async def test_closes_page_on_timeout(self, monkeypatch, fake_page, fake_context):
        async def submitted(page, query, timeout):
            return None

        monkeypatch.setattr("src.fetchers.costco._submit_search", submitted)
        page = fake_page({})

        with pytest.raises(ExtractionTimeoutError):
            await resolve_price(fake_context(page), "1397329", detector_timeout_ms=50)
        assert page.closed

    @pytest.mark.asyncio
    async def test_navigation_timeout_is_wrapped_and_page_closed(self, fake_page, fake_context):
        page = fake_page({})
        page.set_default_navigation_timeout = MagicMock()
        page.goto = AsyncMock(side_effect=PlaywrightTimeoutError("Timeout 90000ms exceeded"))

        with pytest.raises(ExtractionTimeoutError, match="timed out"):
            await resolve_price(fake_context(page), "1397329", detector_timeout_ms=TIMEOUT_MS)

        page.set_default_navigation_timeout.assert_called_once()
        assert page.closed
