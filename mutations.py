"""Writes to the order book and reference tables.

Rows are addressed by their 1-based sheet position; there is no other key.
Deleting rows shifts every row below them, so positions read before a
delete must not be reused afterwards. Callers that want protection can pass
the name they expect at a position: the gateway then re-reads the table
(bypassing the cache) right before writing and refuses to touch a row that
no longer holds that name. Without it, last write wins.

Every successful mutation clears the whole read cache.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from grid_cache import GridCache
from grid_reader import GridReader
from payloads import (
    ItemRow,
    MarkSoldPayload,
    MarketplaceRow,
    OrderPayload,
    OrderRowUpdate,
    RetailerRow,
)
from records import ITEMS, LEDGER, MARKETPLACES, RETAILERS, TableLayout, to_text
from table_store import TableStore, row_range

logger = logging.getLogger(__name__)


class StalePositionError(Exception):
    """Raised when a row no longer holds the record the caller expected."""

    def __init__(self, table: str, position: int, expected: str, found: str):
        super().__init__(
            f"{table} row {position} holds {found!r}, expected {expected!r}; re-read and retry"
        )
        self.table = table
        self.position = position
        self.expected = expected
        self.found = found


class MutationGateway:
    """Append/update/delete for the ledger and the reference tables."""

    def __init__(self, store: TableStore, cache: GridCache, reader: Optional[GridReader] = None):
        self.store = store
        self.cache = cache
        self.reader = reader or GridReader(store, cache)

    def _committed(self, description: str, **result: Any) -> Dict[str, Any]:
        self.cache.clear()
        logger.info(description)
        return {"ok": True, **result}

    def _verify_positions(
        self,
        layout: TableLayout,
        name_column: str,
        expectations: Sequence[Tuple[int, Optional[str]]],
    ) -> None:
        """Check expected names against a fresh read of ``layout.table``."""
        checks = [(pos, name) for pos, name in expectations if name is not None]
        if not checks:
            return
        snapshot = self.reader.read_table(layout.table, layout.header_row, fresh=True)
        for position, expected in checks:
            offset = position - layout.first_data_row
            row = snapshot.rows[offset] if 0 <= offset < len(snapshot.rows) else ()
            found = to_text(layout.value(row, name_column))
            if found != expected.strip():
                raise StalePositionError(layout.table, position, expected, found)

    @staticmethod
    def _check_data_rows(layout: TableLayout, positions: Iterable[int]) -> List[int]:
        checked = []
        for position in positions:
            if position < layout.first_data_row:
                raise ValueError(f"Row {position} is not a data row of {layout.table}")
            checked.append(position)
        return checked

    # ----- Order book -----

    def append_order(self, payload: OrderPayload) -> Dict[str, Any]:
        self.store.append(LEDGER.table, payload.to_row())
        return self._committed(f"Appended order for {payload.item}", added=1)

    def mark_as_sold(self, payload: MarkSoldPayload) -> Dict[str, Any]:
        """Write sale details onto an existing row, leaving purchase columns alone."""
        self._verify_positions(LEDGER, "item", [(payload.row, payload.expected_item)])
        a1 = row_range(payload.row, LEDGER.col("sell_price"), LEDGER.col("shipping"))
        self.store.update(LEDGER.table, a1, payload.to_sale_columns())
        return self._committed(f"Marked row {payload.row} as sold", row=payload.row)

    def update_orders(self, rows: Sequence[OrderRowUpdate]) -> Dict[str, Any]:
        """Rewrite whole rows one after another (not atomic)."""
        if not rows:
            return {"ok": True, "updated": 0}
        self._verify_positions(LEDGER, "item", [(r.row, r.expected_item) for r in rows])
        try:
            for r in rows:
                a1 = row_range(r.row, 1, LEDGER.width)
                self.store.update(LEDGER.table, a1, r.to_row())
        finally:
            # Earlier rows stay written when a later one fails.
            self.cache.clear()
        return self._committed(f"Updated {len(rows)} order rows", updated=len(rows))

    def delete_orders(
        self,
        positions: Iterable[int],
        expected_items: Optional[Dict[int, str]] = None,
    ) -> Dict[str, Any]:
        """Delete order rows in one batch, addressed by pre-delete positions."""
        return self._delete_rows(LEDGER, "item", positions, expected_items)

    def _delete_rows(
        self,
        layout: TableLayout,
        name_column: str,
        positions: Iterable[int],
        expected: Optional[Dict[int, str]] = None,
    ) -> Dict[str, Any]:
        ordered = sorted(set(self._check_data_rows(layout, positions)))
        if not ordered:
            return {"ok": True, "deleted": 0}
        expected = expected or {}
        self._verify_positions(layout, name_column, [(p, expected.get(p)) for p in ordered])
        self.store.batch_delete_rows(layout.table, ordered)
        return self._committed(f"Deleted {len(ordered)} rows from {layout.table}", deleted=len(ordered))

    # ----- Reference tables -----

    def _append_reference(self, layout: TableLayout, row) -> Dict[str, Any]:
        self.store.append(layout.table, row.to_row())
        return self._committed(f"Added {row.name} to {layout.table}", added=1)

    def _update_reference(self, layout: TableLayout, rows: Sequence) -> Dict[str, Any]:
        targeted = [r for r in rows if r.row]
        if not targeted:
            return {"ok": True, "updated": 0}
        self._verify_positions(layout, "name", [(r.row, r.expected_name) for r in targeted])
        try:
            for r in targeted:
                a1 = row_range(r.row, 1, layout.width)
                self.store.update(layout.table, a1, r.to_row())
        finally:
            self.cache.clear()
        return self._committed(f"Updated {len(targeted)} rows in {layout.table}", updated=len(targeted))

    def _remove_reference(
        self, layout: TableLayout, position: int, expected_name: Optional[str] = None
    ) -> Dict[str, Any]:
        expected = {position: expected_name} if expected_name is not None else None
        return self._delete_rows(layout, "name", [position], expected)

    def append_item(self, row: ItemRow) -> Dict[str, Any]:
        return self._append_reference(ITEMS, row)

    def update_items(self, rows: Sequence[ItemRow]) -> Dict[str, Any]:
        return self._update_reference(ITEMS, rows)

    def remove_item(self, position: int, expected_name: Optional[str] = None) -> Dict[str, Any]:
        return self._remove_reference(ITEMS, position, expected_name)

    def append_retailer(self, row: RetailerRow) -> Dict[str, Any]:
        return self._append_reference(RETAILERS, row)

    def update_retailers(self, rows: Sequence[RetailerRow]) -> Dict[str, Any]:
        return self._update_reference(RETAILERS, rows)

    def remove_retailer(self, position: int, expected_name: Optional[str] = None) -> Dict[str, Any]:
        return self._remove_reference(RETAILERS, position, expected_name)

    def append_marketplace(self, row: MarketplaceRow) -> Dict[str, Any]:
        return self._append_reference(MARKETPLACES, row)

    def update_marketplaces(self, rows: Sequence[MarketplaceRow]) -> Dict[str, Any]:
        return self._update_reference(MARKETPLACES, rows)

    def remove_marketplace(self, position: int, expected_name: Optional[str] = None) -> Dict[str, Any]:
        return self._remove_reference(MARKETPLACES, position, expected_name)
