"""Ledger service: wires the store, cache, mapper and engines together.

Every read goes store -> cache -> record mapper -> reconciler -> engine.
Writes go through the mutation gateway, which clears the cache.
"""
import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from config_loader import get_cache_ttl
from grid_cache import GridCache
from grid_reader import GridReader
from holding_age import oldest_open_age_days
from inventory import valuate
from mutations import MutationGateway
from records import (
    ITEMS,
    LEDGER,
    MARKETPLACES,
    RETAILERS,
    Item,
    LedgerEntry,
    Marketplace,
    Retailer,
    iso_or_blank,
    map_items,
    map_ledger,
    map_marketplaces,
    map_retailers,
)
from reconcile import reconcile
from stats import compute_stats
from table_store import TableStore, create_table_store
from utils import LOGGER_NAME, format_currency

logger = logging.getLogger(LOGGER_NAME)


class LedgerService:
    """Read views, aggregates and mutations over one spreadsheet."""

    def __init__(
        self,
        store: TableStore,
        cache: Optional[GridCache] = None,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.cache = cache if cache is not None else GridCache()
        self.reader = GridReader(store, self.cache)
        self.mutations = MutationGateway(store, self.cache, self.reader)
        self._today = today

    # ----- Typed table reads -----

    def ledger_entries(self) -> List[LedgerEntry]:
        return map_ledger(self.reader.read_table(LEDGER.table, LEDGER.header_row))

    def items(self) -> List[Item]:
        return map_items(self.reader.read_table(ITEMS.table, ITEMS.header_row))

    def retailers(self) -> List[Retailer]:
        return map_retailers(self.reader.read_table(RETAILERS.table, RETAILERS.header_row))

    def marketplaces(self) -> List[Marketplace]:
        return map_marketplaces(self.reader.read_table(MARKETPLACES.table, MARKETPLACES.header_row))

    # ----- Views -----

    def init_model(self) -> Dict[str, Any]:
        """Names for the entry form pickers."""
        marketplaces = self.marketplaces()
        return {
            "items": [i.name for i in self.items()],
            "retailers": [r.name for r in self.retailers()],
            "marketplaces": [m.name for m in marketplaces],
            "marketplacesWithFees": [{"name": m.name, "fee_pct": m.fee_fraction} for m in marketplaces],
        }

    def database_full(self) -> Dict[str, Any]:
        """Reference tables with their row positions, for editing."""
        return {
            "items": [i.to_dict() for i in self.items()],
            "retailers": [r.to_dict() for r in self.retailers()],
            "marketplaces": [m.to_dict() for m in self.marketplaces()],
        }

    def open_purchases(self) -> List[Dict[str, Any]]:
        """Unsold rows with a one-line label for the mark-as-sold picker."""
        out = []
        for entry in reconcile(self.ledger_entries()).open:
            order_date = iso_or_blank(entry.order_date)
            out.append({
                "row": entry.position,
                "label": f"{order_date} • {entry.item} • {format_currency(entry.buy_price)} • {entry.retailer}",
                "item": entry.item,
                "buy_price": entry.buy_price,
                "order_date": order_date,
                "bought_from": entry.retailer,
            })
        return out

    def order_book(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.ledger_entries()]

    # ----- Aggregates -----

    def inventory(self) -> Dict[str, Any]:
        return valuate(self.ledger_entries(), self.items()).to_dict()

    def stats(
        self,
        range_key: str = "none",
        item_filter: str = "",
        date_from: Any = None,
        date_to: Any = None,
    ) -> Dict[str, Any]:
        result = compute_stats(
            self.ledger_entries(),
            range_key=range_key,
            item_filter=item_filter,
            date_from=date_from,
            date_to=date_to,
            today=self._today(),
        )
        return result.to_dict()

    def longest_hold_days(self, item_filter: str = "") -> Dict[str, Any]:
        entries = reconcile(self.ledger_entries()).open
        days = oldest_open_age_days(entries, item_filter, today=self._today())
        return {"days": days, "item_filter": item_filter or ""}


def create_service(config: Dict[str, Any]) -> LedgerService:
    """Build a service against the configured spreadsheet.

    Raises:
        ConfigurationError: If sheet settings are missing.
    """
    store = create_table_store(config)
    ttl = get_cache_ttl(config)
    logger.debug(f"Grid cache TTL: {ttl}s")
    return LedgerService(store, GridCache(ttl_seconds=ttl))
