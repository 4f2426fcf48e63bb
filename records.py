"""Typed records mapped from raw spreadsheet rows.

Every table has a fixed column layout. Raw cells are coerced defensively:
numbers that do not parse become 0, dates that do not parse become None,
and rows without a name are dropped. Nothing in this module raises on dirty
input.
"""
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, NewType, Optional, Sequence, Tuple

from grid_reader import GridSnapshot, cell

logger = logging.getLogger(__name__)

# Buy prices are stored negative. A SignedCost keeps that polarity: it is
# *added* to an amount to deduct the cost (see apply_cost).
SignedCost = NewType("SignedCost", float)

UNKNOWN_GROUP = "Unknown/Other"

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d")


def apply_cost(amount: float, cost: SignedCost) -> float:
    """Deduct a signed (negative) cost from ``amount``."""
    return amount + cost


@dataclass(frozen=True)
class TableLayout:
    """Fixed column positions of one sheet."""

    table: str
    header_row: int
    columns: Tuple[str, ...]

    @property
    def width(self) -> int:
        return len(self.columns)

    def col(self, name: str) -> int:
        """1-based column number of ``name``."""
        return self.columns.index(name) + 1

    def value(self, row: Sequence[Any], name: str) -> Any:
        return cell(row, self.col(name) - 1)

    @property
    def first_data_row(self) -> int:
        return self.header_row + 1


LEDGER = TableLayout(
    table="Order Book",
    header_row=2,
    columns=(
        "order_date",
        "item",
        "buy_price",
        "retailer",
        "sell_price",
        "sale_date",
        "marketplace",
        "fee_fraction",
        "shipping",
        "profit_loss",  # sheet formula, left blank by writers
    ),
)
ITEMS = TableLayout(table="Items", header_row=1, columns=("name", "market_value"))
RETAILERS = TableLayout(table="Retailers", header_row=1, columns=("name",))
MARKETPLACES = TableLayout(table="Marketplaces", header_row=1, columns=("name", "fee_fraction"))


def to_number(value: Any) -> float:
    """Coerce a cell to float; empty, null, non-numeric and non-finite give 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
    else:
        text = str(value).strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def to_date(value: Any) -> Optional[date]:
    """Coerce a cell to a calendar date, or None when empty or unparsable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    # Drop any time part: "2024-01-15T10:00:00", "1/15/2024 10:00:00"
    head = text.split("T", 1)[0].split(" ", 1)[0]
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(head, fmt).date()
        except ValueError:
            continue
    return None


def to_text(value: Any) -> str:
    return str(value).strip() if value not in (None, "") else ""


def normalize_fee(value: Any) -> float:
    """Fee as a fraction; values above 1 are read as percentages.

    Lossy by construction: a real fee above 100% cannot be stored.
    """
    fee = to_number(value)
    return fee / 100 if fee > 1 else fee


def iso_or_blank(value: Optional[date]) -> str:
    return value.isoformat() if value else ""


@dataclass(frozen=True)
class Item:
    position: int
    name: str
    market_value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"row": self.position, "name": self.name, "market": self.market_value}


@dataclass(frozen=True)
class Retailer:
    position: int
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"row": self.position, "name": self.name}


@dataclass(frozen=True)
class Marketplace:
    position: int
    name: str
    fee_fraction: float

    def to_dict(self) -> Dict[str, Any]:
        return {"row": self.position, "name": self.name, "fee_pct": self.fee_fraction}


@dataclass(frozen=True)
class LedgerEntry:
    """One purchase, optionally carrying its sale in the same row."""

    position: int
    order_date: Optional[date]
    item: str
    buy_price: SignedCost
    retailer: str
    sell_price: float
    sale_date: Optional[date]
    marketplace: str
    fee_fraction: float
    shipping: float

    @property
    def is_open(self) -> bool:
        return self.sell_price <= 0

    @property
    def is_sold(self) -> bool:
        return self.sell_price > 0

    @property
    def is_closed(self) -> bool:
        return self.is_sold and self.sale_date is not None

    @property
    def fee_amount(self) -> float:
        return self.sell_price * self.fee_fraction

    @property
    def marketplace_group(self) -> str:
        return self.marketplace or UNKNOWN_GROUP

    @property
    def retailer_group(self) -> str:
        return self.retailer or UNKNOWN_GROUP

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row": self.position,
            "order_date": iso_or_blank(self.order_date),
            "item": self.item,
            "buy_price": self.buy_price,
            "bought_from": self.retailer,
            "sell_price": self.sell_price,
            "sale_date": iso_or_blank(self.sale_date),
            "sale_location": self.marketplace,
            "fees_pct": self.fee_fraction,
            "shipping": self.shipping,
        }


def _named_rows(
    snapshot: GridSnapshot, layout: TableLayout, name_column: str
) -> Iterator[Tuple[int, Sequence[Any], str]]:
    """Yield (position, row, name) for rows whose name is not blank."""
    for offset, row in enumerate(snapshot.rows):
        name = to_text(layout.value(row, name_column))
        if not name:
            continue
        yield snapshot.position_of(offset), row, name


def map_items(snapshot: GridSnapshot) -> List[Item]:
    return [
        Item(position=pos, name=name, market_value=to_number(ITEMS.value(row, "market_value")))
        for pos, row, name in _named_rows(snapshot, ITEMS, "name")
    ]


def map_retailers(snapshot: GridSnapshot) -> List[Retailer]:
    return [Retailer(position=pos, name=name) for pos, _, name in _named_rows(snapshot, RETAILERS, "name")]


def map_marketplaces(snapshot: GridSnapshot) -> List[Marketplace]:
    return [
        Marketplace(
            position=pos,
            name=name,
            fee_fraction=to_number(MARKETPLACES.value(row, "fee_fraction")),
        )
        for pos, row, name in _named_rows(snapshot, MARKETPLACES, "name")
    ]


def map_ledger(snapshot: GridSnapshot) -> List[LedgerEntry]:
    """Map order book rows; rows without an item name are skipped."""
    entries: List[LedgerEntry] = []
    for pos, row, item in _named_rows(snapshot, LEDGER, "item"):
        entries.append(
            LedgerEntry(
                position=pos,
                order_date=to_date(LEDGER.value(row, "order_date")),
                item=item,
                buy_price=SignedCost(to_number(LEDGER.value(row, "buy_price"))),
                retailer=to_text(LEDGER.value(row, "retailer")),
                sell_price=to_number(LEDGER.value(row, "sell_price")),
                sale_date=to_date(LEDGER.value(row, "sale_date")),
                marketplace=to_text(LEDGER.value(row, "marketplace")),
                fee_fraction=to_number(LEDGER.value(row, "fee_fraction")),
                shipping=to_number(LEDGER.value(row, "shipping")),
            )
        )
    skipped = len(snapshot.rows) - len(entries)
    if skipped:
        logger.debug("Skipped %d order book rows without an item name", skipped)
    return entries
