"""Shared test fixtures for the reseller ledger."""
from datetime import date

import pytest

from grid_cache import GridCache
from ledger_service import LedgerService
from records import LedgerEntry, SignedCost
from table_store import InMemoryTableStore
from tests.fixtures.sheet_grids import all_tables

TODAY = date(2024, 3, 20)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    """In-memory store preloaded with the sample spreadsheet."""
    return InMemoryTableStore(all_tables())


@pytest.fixture
def cache(clock):
    return GridCache(ttl_seconds=30, clock=clock)


@pytest.fixture
def service(store, cache):
    """Ledger service pinned to a fixed 'today'."""
    return LedgerService(store, cache, today=lambda: TODAY)


@pytest.fixture
def make_entry():
    """Factory for ledger entries with sensible defaults."""
    counter = {"position": 2}

    def _make(
        item="Widget",
        buy_price=-10.0,
        sell_price=0.0,
        order_date=None,
        sale_date=None,
        retailer="Target",
        marketplace="eBay",
        fee_fraction=0.0,
        shipping=0.0,
    ):
        counter["position"] += 1
        return LedgerEntry(
            position=counter["position"],
            order_date=order_date,
            item=item,
            buy_price=SignedCost(buy_price),
            retailer=retailer,
            sell_price=sell_price,
            sale_date=sale_date,
            marketplace=marketplace,
            fee_fraction=fee_fraction,
            shipping=shipping,
        )

    return _make
