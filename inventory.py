"""Inventory valuation: what is on hand, what it cost, what it is worth."""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Mapping

from records import Item, LedgerEntry
from reconcile import ItemTally, reconcile, round_money


@dataclass
class ItemValuation:
    item: str
    on_hand_qty: int
    on_hand_cost: float
    avg_cost: float
    market_value: float
    est_value: float
    unrealized: float


@dataclass
class InventoryTotals:
    qty: int = 0
    cost: float = 0.0
    est_value: float = 0.0
    unrealized: float = 0.0


@dataclass
class InventoryReport:
    items: List[ItemValuation] = field(default_factory=list)
    totals: InventoryTotals = field(default_factory=InventoryTotals)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [asdict(v) for v in self.items],
            "totals": asdict(self.totals),
        }


def value_tallies(tallies: Mapping[str, ItemTally], market_values: Mapping[str, float]) -> InventoryReport:
    """Value every item with stock on hand.

    Items missing from ``market_values`` are valued at 0. Rows are sorted by
    on-hand quantity, largest first; ties keep ledger order.
    """
    valuations: List[ItemValuation] = []
    total_qty = 0
    total_cost = 0.0
    total_est = 0.0

    for name, tally in tallies.items():
        qty = tally.on_hand_qty
        if qty <= 0:
            continue
        cost = tally.on_hand_cost
        unit_value = market_values.get(name, 0.0)
        est_value = unit_value * qty
        valuations.append(
            ItemValuation(
                item=name,
                on_hand_qty=qty,
                on_hand_cost=round_money(cost),
                avg_cost=round_money(cost / qty),
                market_value=round_money(unit_value),
                est_value=round_money(est_value),
                # est_value - |cost|
                unrealized=round_money(est_value + cost),
            )
        )
        total_qty += qty
        total_cost += cost
        total_est += est_value

    valuations.sort(key=lambda v: v.on_hand_qty, reverse=True)
    totals = InventoryTotals(
        qty=total_qty,
        cost=round_money(total_cost),
        est_value=round_money(total_est),
        unrealized=round_money(total_est + total_cost),
    )
    return InventoryReport(items=valuations, totals=totals)


def valuate(entries: Iterable[LedgerEntry], items: Iterable[Item]) -> InventoryReport:
    """Valuate the inventory implied by the ledger against item market values."""
    market_values: Dict[str, float] = {}
    for item in items:
        market_values.setdefault(item.name, item.market_value)
    return value_tallies(reconcile(entries).tallies, market_values)
