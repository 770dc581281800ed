"""Data models for catalog items, daily plans and scrape results."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

logger = logging.getLogger(__name__)


class Searchability(str, Enum):
    """How an item's price shows up on the retailer's search page.

    Values are the strings stored in the ``searchable`` profile document,
    which other pipelines read. "Unknown" is represented by ``None``.
    """

    FINDABLE = "Yes"
    NOT_FOUND = "No"
    MEMBERS_ONLY = "MemberOnly"
    WAREHOUSE_ONLY = "WarehouseOnly"
    SINGLE_RESULT_FOUND = "FoundOneResult"
    BUNDLE_PRICE_ONLY = "StartingBundlePrice"

    @classmethod
    def parse(cls, value: str | None) -> "Searchability | None":
        """Map a stored value to a member; unrecognized values become unknown."""
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            logger.warning("Unrecognized searchable value %r, treating as unknown", value)
            return None


def to_price(value) -> float | None:
    """Coerce a stored price (number or numeric string) to float."""
    if value is None or value == "":
        return None
    try:
        return float(str(value).replace("$", "").replace(",", "").strip())
    except ValueError:
        logger.warning("Unparseable stored price %r", value)
        return None


@dataclass
class CatalogItem:
    """Catalog entry with its current profile fields."""

    item_id: str
    price: float | None = None
    trade_datetime: str | None = None
    searchable: Searchability | None = None
    scraped_at: str | None = None
    name: str = ""


@dataclass(frozen=True)
class WorkItem:
    """Planned price check, snapshotting the catalog at planning time."""

    item_id: str
    price: float | None
    trade_datetime: str | None
    completed: bool = False  # never read; completion lives in DailyPlan.done

    def to_document(self) -> dict:
        return {
            "itemId": self.item_id,
            "price": self.price,
            "tradeDatetime": self.trade_datetime,
            "completed": self.completed,
        }

    @classmethod
    def from_document(cls, doc: dict) -> "WorkItem":
        return cls(
            item_id=str(doc["itemId"]),
            price=to_price(doc.get("price")),
            trade_datetime=doc.get("tradeDatetime"),
            completed=bool(doc.get("completed", False)),
        )


@dataclass(frozen=True)
class PriceInfo:
    """Classified outcome of one search page."""

    price: float | None
    searchable: Searchability


@dataclass(frozen=True)
class ScrapeResult:
    """Outcome of one executed price check."""

    item_id: str
    price: float | None
    searchable: Searchability | None
    scraped_at: datetime
    execution_time_ms: float

    def to_document(self) -> dict:
        return {
            "itemId": self.item_id,
            "newPrice": self.price,
            "searchable": self.searchable.value if self.searchable else None,
            "scrapedDatetime": self.scraped_at.isoformat(),
            "executionTime": self.execution_time_ms,
        }

    @classmethod
    def from_document(cls, doc: dict) -> "ScrapeResult":
        return cls(
            item_id=str(doc["itemId"]),
            price=to_price(doc.get("newPrice")),
            searchable=Searchability.parse(doc.get("searchable")),
            scraped_at=datetime.fromisoformat(doc["scrapedDatetime"]),
            execution_time_ms=float(doc.get("executionTime", 0.0)),
        )


@dataclass
class DailyPlan:
    """Work list for one calendar date plus the results recorded so far."""

    plan_id: str
    todos: list[WorkItem] = field(default_factory=list)
    done: list[ScrapeResult] = field(default_factory=list)

    def to_document(self) -> dict:
        return {
            "todos": [w.to_document() for w in self.todos],
            "done": [r.to_document() for r in self.done],
        }

    @classmethod
    def from_document(cls, plan_id: str, doc: dict) -> "DailyPlan":
        return cls(
            plan_id=plan_id,
            todos=[WorkItem.from_document(d) for d in doc.get("todos") or []],
            done=[ScrapeResult.from_document(d) for d in doc.get("done") or []],
        )
