"""Age of the oldest unsold purchase."""
from datetime import date
from typing import Iterable, Optional

from records import LedgerEntry
from stats import ItemFilter


def oldest_open_age_days(
    entries: Iterable[LedgerEntry],
    item_filter: str = "",
    today: Optional[date] = None,
) -> int:
    """Whole days since the earliest open purchase matching ``item_filter``.

    Only open positions (sell price <= 0) with a parseable order date count.
    Returns 0 when nothing matches, which reads the same as a position
    opened today.
    """
    today = today or date.today()
    name_filter = ItemFilter(item_filter)
    oldest: Optional[date] = None
    for entry in entries:
        if not entry.item or not entry.is_open or entry.order_date is None:
            continue
        if not name_filter.matches(entry.item):
            continue
        if oldest is None or entry.order_date < oldest:
            oldest = entry.order_date
    if oldest is None:
        return 0
    return max(0, (today - oldest).days)
