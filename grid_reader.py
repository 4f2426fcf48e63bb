"""Reads whole tables from the store into immutable snapshots."""
import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

from grid_cache import GridCache
from table_store import TableStore

logger = logging.getLogger(__name__)

# Wide enough for every layout; the store trims empty trailing cells.
WHOLE_TABLE_RANGE = "A1:ZZ"


def cell(row: Sequence[Any], index: int) -> Any:
    """Safe 0-based cell lookup: missing or null cells read as ''."""
    if index < 0 or index >= len(row):
        return ""
    value = row[index]
    return "" if value is None else value


@dataclass(frozen=True)
class GridSnapshot:
    """Header row plus data rows of one table at one point in time."""

    table: str
    header_row: int
    headers: Tuple[str, ...]
    rows: Tuple[Tuple[Any, ...], ...]

    def position_of(self, offset: int) -> int:
        """1-based sheet row of the data row at ``offset``."""
        return self.header_row + 1 + offset


class GridReader:
    """Fetches table snapshots, going through the cache when one is given."""

    def __init__(self, store: TableStore, cache: Optional[GridCache] = None):
        self.store = store
        self.cache = cache

    def read_table(self, table: str, header_row: int = 1, fresh: bool = False) -> GridSnapshot:
        """Read ``table`` split at ``header_row`` (1-based).

        Args:
            table: Sheet name
            header_row: Row holding the column headers
            fresh: Skip the cache lookup (the result is still cached)

        Raises:
            TableStoreError: If the store read fails. Failures are not cached.
        """
        if self.cache is not None and not fresh:
            hit = self.cache.get(table)
            if hit is not None:
                logger.debug("Cache hit for %s", table)
                return hit

        values = self.store.get(table, WHOLE_TABLE_RANGE)
        header_values = values[header_row - 1] if len(values) >= header_row else []
        snapshot = GridSnapshot(
            table=table,
            header_row=header_row,
            headers=tuple(str(cell(header_values, i)).strip() for i in range(len(header_values))),
            rows=tuple(tuple(row) for row in values[header_row:]),
        )
        logger.debug("Read %d rows from %s", len(snapshot.rows), table)

        if self.cache is not None:
            self.cache.set(table, snapshot)
        return snapshot
