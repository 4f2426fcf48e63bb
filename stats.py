"""Period statistics over the order book.

One pass over the ledger feeds two independent sides:

- purchase side: rows whose order date falls in the window
- sale side: rows with a sell price, a parseable sale date, and that sale
  date in the window

A row can land on both sides. Results are broken down by item, month,
platform (marketplace) and store (retailer).
"""
import math
import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from records import LedgerEntry, SignedCost, to_date
from reconcile import net_profit, round_money

RANGE_KEYS = ("mtd", "last7", "last30", "none")
TOP_ITEMS_LIMIT = 10

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def name_tokens(text: str) -> FrozenSet[str]:
    """Normalized word set of an item name or filter.

    Lower-cases, drops everything up to the first colon (a "2023:" style
    prefix), and splits on any run of non-alphanumerics.
    """
    text = (text or "").lower()
    if ":" in text:
        text = text.split(":", 1)[1]
    return frozenset(_NON_ALNUM.sub(" ", text).split())


class ItemFilter:
    """Token-subset name filter: every filter word must appear in the name."""

    def __init__(self, text: str = ""):
        self.text = text or ""
        self.tokens = name_tokens(self.text)

    def matches(self, name: str) -> bool:
        if not self.tokens:
            return True
        return self.tokens <= name_tokens(name)


@dataclass(frozen=True)
class DateWindow:
    start: Optional[date] = None
    end: Optional[date] = None

    @property
    def active(self) -> bool:
        return self.start is not None or self.end is not None

    def contains(self, day: Optional[date]) -> bool:
        """Inclusive bounds; with no bounds every date (even None) is in."""
        if not self.active:
            return True
        if day is None:
            return False
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


def resolve_window(
    range_key: str,
    date_from: Any = None,
    date_to: Any = None,
    today: Optional[date] = None,
) -> DateWindow:
    """Turn a range key plus optional overrides into a window.

    Parseable ``date_from``/``date_to`` replace the start/end independently
    of the range key. Unknown range keys behave like ``none``.
    """
    today = today or date.today()
    key = (range_key or "none").lower()
    start: Optional[date] = None
    end: Optional[date] = None
    if key == "mtd":
        start, end = today.replace(day=1), today
    elif key == "last7":
        start, end = today - timedelta(days=6), today
    elif key == "last30":
        start, end = today - timedelta(days=29), today

    override_start = to_date(date_from)
    override_end = to_date(date_to)
    if override_start is not None:
        start = override_start
    if override_end is not None:
        end = override_end
    return DateWindow(start=start, end=end)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class Bucket:
    """Purchase and sale accumulators for one group."""

    bought: int = 0
    spent: float = 0.0
    sold: int = 0
    revenue: float = 0.0
    fees: float = 0.0
    shipping: float = 0.0
    cost_sold: float = 0.0

    def add_purchase(self, entry: LedgerEntry) -> None:
        self.bought += 1
        self.spent += entry.buy_price

    def add_sale(self, entry: LedgerEntry) -> None:
        self.sold += 1
        self.revenue += entry.sell_price
        self.fees += entry.fee_amount
        self.shipping += entry.shipping
        self.cost_sold += entry.buy_price

    @property
    def profit(self) -> float:
        return net_profit(self.revenue, self.fees, self.shipping, SignedCost(self.cost_sold))

    def to_dict(self, key_name: str, key: str) -> Dict[str, Any]:
        return {
            key_name: key,
            "bought": self.bought,
            "spent": round_money(self.spent),
            "sold": self.sold,
            "revenue": round_money(self.revenue),
            "fees": round_money(self.fees),
            "shipping": round_money(self.shipping),
            "cost_sold": round_money(self.cost_sold),
            "profit": round_money(self.profit),
        }


@dataclass
class StatsSummary:
    bought_qty: int = 0
    spent: float = 0.0
    sold_qty: int = 0
    revenue: float = 0.0
    fees: float = 0.0
    shipping: float = 0.0
    cost_sold: float = 0.0
    profit: float = 0.0
    roi_pct: float = 0.0
    margin_pct: float = 0.0
    asp: float = 0.0
    avg_days_to_sell: int = 0


@dataclass
class StatsResult:
    range_key: str
    window: DateWindow
    item_filter: str
    summary: StatsSummary
    by_item: List[Dict[str, Any]] = field(default_factory=list)
    by_month: List[Dict[str, Any]] = field(default_factory=list)
    by_platform: List[Dict[str, Any]] = field(default_factory=list)
    by_store: List[Dict[str, Any]] = field(default_factory=list)
    top_items: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        s = self.summary
        return {
            "range": self.range_key,
            "start": self.window.start.isoformat() if self.window.start else None,
            "end": self.window.end.isoformat() if self.window.end else None,
            "item_filter": self.item_filter,
            "summary": {
                "bought_qty": s.bought_qty,
                "spent": round_money(s.spent),
                "sold_qty": s.sold_qty,
                "revenue": round_money(s.revenue),
                "fees": round_money(s.fees),
                "shipping": round_money(s.shipping),
                "cost_sold": round_money(s.cost_sold),
                "profit": round_money(s.profit),
                "roi_pct": s.roi_pct,
                "margin_pct": s.margin_pct,
                "asp": round_money(s.asp),
                "avg_days_to_sell": s.avg_days_to_sell,
            },
            "by_item": self.by_item,
            "by_month": self.by_month,
            "by_platform": self.by_platform,
            "by_store": self.by_store,
            "top_items": self.top_items,
        }


def compute_stats(
    entries: Iterable[LedgerEntry],
    range_key: str = "none",
    item_filter: str = "",
    date_from: Any = None,
    date_to: Any = None,
    today: Optional[date] = None,
) -> StatsResult:
    """Compute period summary metrics and breakdowns.

    Args:
        entries: Mapped ledger entries
        range_key: One of mtd, last7, last30, none
        item_filter: Token-subset filter on item names ("" matches all)
        date_from: Optional start override (date or parseable string)
        date_to: Optional end override (date or parseable string)
        today: Reference date for range keys (defaults to today)

    Returns:
        StatsResult with money values rounded to cents
    """
    window = resolve_window(range_key, date_from, date_to, today)
    name_filter = ItemFilter(item_filter)

    summary = Bucket()
    by_item: Dict[str, Bucket] = {}
    by_month: Dict[str, Bucket] = {}
    by_platform: Dict[str, Bucket] = {}
    by_store: Dict[str, Bucket] = {}
    days_total = 0
    days_count = 0

    for entry in entries:
        if not entry.item or not name_filter.matches(entry.item):
            continue

        if window.contains(entry.order_date):
            summary.add_purchase(entry)
            by_item.setdefault(entry.item, Bucket()).add_purchase(entry)
            by_store.setdefault(entry.retailer_group, Bucket()).add_purchase(entry)
            if entry.order_date is not None:
                by_month.setdefault(entry.order_date.strftime("%Y-%m"), Bucket()).add_purchase(entry)

        if entry.is_sold and entry.sale_date is not None and window.contains(entry.sale_date):
            summary.add_sale(entry)
            by_item.setdefault(entry.item, Bucket()).add_sale(entry)
            by_platform.setdefault(entry.marketplace_group, Bucket()).add_sale(entry)
            by_month.setdefault(entry.sale_date.strftime("%Y-%m"), Bucket()).add_sale(entry)
            if entry.order_date is not None:
                days_total += max(0, (entry.sale_date - entry.order_date).days)
                days_count += 1

    profit = summary.profit
    result_summary = StatsSummary(
        bought_qty=summary.bought,
        spent=summary.spent,
        sold_qty=summary.sold,
        revenue=summary.revenue,
        fees=summary.fees,
        shipping=summary.shipping,
        cost_sold=summary.cost_sold,
        profit=profit,
        roi_pct=profit / abs(summary.cost_sold) if summary.cost_sold != 0 else 0.0,
        margin_pct=profit / summary.revenue if summary.revenue > 0 else 0.0,
        asp=summary.revenue / summary.sold if summary.sold else 0.0,
        avg_days_to_sell=_round_half_up(days_total / days_count) if days_count else 0,
    )

    # sorted() is stable, so ties keep ledger order.
    item_rows = sorted(by_item.items(), key=lambda kv: kv[1].profit, reverse=True)
    platform_rows = sorted(by_platform.items(), key=lambda kv: kv[1].revenue, reverse=True)
    store_rows = sorted(by_store.items(), key=lambda kv: kv[1].bought, reverse=True)

    return StatsResult(
        range_key=(range_key or "none").lower(),
        window=window,
        item_filter=name_filter.text,
        summary=result_summary,
        by_item=[bucket.to_dict("item", name) for name, bucket in item_rows],
        by_month=[bucket.to_dict("month", key) for key, bucket in sorted(by_month.items())],
        by_platform=[bucket.to_dict("platform", name) for name, bucket in platform_rows],
        by_store=[bucket.to_dict("store", name) for name, bucket in store_rows],
        top_items=[name for name, _ in item_rows[:TOP_ITEMS_LIMIT]],
    )
