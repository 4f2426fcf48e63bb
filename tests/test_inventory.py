"""Tests for inventory valuation."""
from datetime import date

import pytest

from inventory import valuate, value_tallies
from records import Item
from reconcile import ItemTally


class TestValuate:
    """Test on-hand valuation against market values."""

    def test_single_widget_on_hand(self, make_entry):
        entries = [
            make_entry(item="Widget", buy_price=-10, sell_price=20, sale_date=date(2024, 1, 10)),
            make_entry(item="Widget", buy_price=-12),
        ]

        report = valuate(entries, [Item(position=2, name="Widget", market_value=25)])

        row = report.items[0]
        assert row.on_hand_qty == 1
        assert row.on_hand_cost == -12
        assert row.avg_cost == -12
        assert row.est_value == 25
        assert row.unrealized == 13
        assert report.totals.qty == 1

    def test_sold_out_items_excluded(self, make_entry):
        entries = [make_entry(item="Widget", sell_price=20, sale_date=date(2024, 1, 10))]
        report = valuate(entries, [])
        assert report.items == []
        assert report.totals.qty == 0

    def test_unknown_market_value_is_zero(self, make_entry):
        report = valuate([make_entry(item="Mystery", buy_price=-8)], [])
        row = report.items[0]
        assert row.market_value == 0
        assert row.est_value == 0
        assert row.unrealized == -8

    def test_first_market_value_wins_for_duplicates(self, make_entry):
        items = [Item(2, "Widget", 25), Item(9, "Widget", 99)]
        report = valuate([make_entry(item="Widget")], items)
        assert report.items[0].market_value == 25

    def test_sorted_by_quantity(self):
        tallies = {
            "One": ItemTally(bought_qty=1, cost_all=-5),
            "Three": ItemTally(bought_qty=3, cost_all=-30),
            "AlsoOne": ItemTally(bought_qty=1, cost_all=-7),
        }
        report = value_tallies(tallies, {})
        assert [v.item for v in report.items] == ["Three", "One", "AlsoOne"]
        assert report.items[0].avg_cost == -10


class TestInventoryFromSheet:
    """Test the full sample sheet through the service."""

    def test_report(self, service):
        report = service.inventory()

        assert [row["item"] for row in report["items"]] == ["Widget", "Blue Dragon Plush", "Gadget"]
        widget, blue, gadget = report["items"]
        assert widget["unrealized"] == 13
        assert blue["est_value"] == 18.5
        assert blue["unrealized"] == 3.5
        assert gadget["on_hand_cost"] == 0
        assert report["totals"] == {"qty": 3, "cost": -27.0, "est_value": 43.5, "unrealized": 16.5}

    def test_totals_match_item_sums(self, service):
        report = service.inventory()
        assert report["totals"]["qty"] == sum(r["on_hand_qty"] for r in report["items"])
        assert report["totals"]["cost"] == pytest.approx(sum(r["on_hand_cost"] for r in report["items"]))

    def test_infinite_cell_does_not_break_totals(self, service, store):
        store.update("Order Book", "C3:C3", ["Infinity"])

        report = service.inventory()

        assert report["items"][0]["on_hand_cost"] == -12
        assert report["totals"]["cost"] == -27.0
