"""
Authoritative ledger reconciliation module.
Single source of truth for position and profit math over the order book.

This module provides:
- Partitioning of ledger entries into open and closed positions
- Per-item running tallies (bought/sold counts, signed costs)
- The profit formula and its sign convention
- Money rounding used by every report

Sign convention: buy prices are stored negative. Costs stay negative
through the whole pipeline, so a cost is deducted by *adding* it.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from records import LedgerEntry, SignedCost, apply_cost

logger = logging.getLogger(__name__)


def round_money(value: float) -> float:
    """Round to cents, half away from zero, on the scaled integer."""
    scaled = math.floor(abs(value) * 100 + 0.5)
    if scaled == 0:
        return 0.0
    return math.copysign(scaled, value) / 100


def net_profit(revenue: float, fees: float, shipping: float, cost_sold: SignedCost) -> float:
    """Profit of sold units: revenue - fees - shipping + cost_sold.

    Args:
        revenue: Sum of sell prices
        fees: Sum of marketplace fees (positive)
        shipping: Sum of shipping paid (positive)
        cost_sold: Signed (negative) cost of the units sold
    """
    return apply_cost(revenue - fees - shipping, cost_sold)


@dataclass
class ItemTally:
    """Running per-item counts over the full ledger."""

    bought_qty: int = 0
    sold_qty: int = 0
    cost_all: float = 0.0
    cost_sold: float = 0.0

    @property
    def on_hand_qty(self) -> int:
        # More sales than purchases is tolerated; never report negative stock.
        return max(0, self.bought_qty - self.sold_qty)

    @property
    def on_hand_cost(self) -> float:
        """Signed cost of the units still held."""
        return self.cost_all - self.cost_sold


@dataclass
class Reconciliation:
    open: List[LedgerEntry] = field(default_factory=list)
    closed: List[LedgerEntry] = field(default_factory=list)
    tallies: Dict[str, ItemTally] = field(default_factory=dict)


def tally_by_item(entries: Iterable[LedgerEntry]) -> Dict[str, ItemTally]:
    """Build per-item tallies in one pass; keys keep encounter order."""
    tallies: Dict[str, ItemTally] = {}
    for entry in entries:
        tally = tallies.setdefault(entry.item, ItemTally())
        tally.bought_qty += 1
        tally.cost_all += entry.buy_price
        if entry.is_sold:
            tally.sold_qty += 1
            tally.cost_sold += entry.buy_price
    return tallies


def partition_positions(entries: Iterable[LedgerEntry]) -> Tuple[List[LedgerEntry], List[LedgerEntry]]:
    """Split entries into (open, closed).

    A sold row without a parseable sale date is neither open nor closed.
    """
    open_positions: List[LedgerEntry] = []
    closed_positions: List[LedgerEntry] = []
    for entry in entries:
        if entry.is_open:
            open_positions.append(entry)
        elif entry.is_closed:
            closed_positions.append(entry)
    return open_positions, closed_positions


def reconcile(entries: Iterable[LedgerEntry]) -> Reconciliation:
    """Reconcile the ledger into open/closed positions and item tallies."""
    entries = [e for e in entries if e.item]
    open_positions, closed_positions = partition_positions(entries)
    tallies = tally_by_item(entries)
    logger.debug(
        "Reconciled %d entries: %d open, %d closed, %d items",
        len(entries),
        len(open_positions),
        len(closed_positions),
        len(tallies),
    )
    return Reconciliation(open=open_positions, closed=closed_positions, tallies=tallies)
