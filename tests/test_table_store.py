"""Tests for table store adapters."""
from unittest.mock import MagicMock

import gspread
import pytest
from gspread.utils import DateTimeOption, ValueRenderOption

from actions import handle_action
from ledger_service import LedgerService
from table_store import (
    GoogleSheetsStore,
    InMemoryTableStore,
    TableStoreError,
    column_letter,
    column_number,
    parse_a1,
    row_range,
)


class TestA1Helpers:
    """Test A1 notation helpers."""

    def test_column_letters(self):
        assert column_letter(1) == "A"
        assert column_letter(9) == "I"
        assert column_letter(26) == "Z"
        assert column_letter(27) == "AA"
        assert column_letter(702) == "ZZ"

    def test_column_numbers(self):
        assert column_number("A") == 1
        assert column_number("J") == 10
        assert column_number("ZZ") == 702

    def test_row_range(self):
        assert row_range(7, 5, 9) == "E7:I7"
        assert row_range(3, 1, 10) == "A3:J3"

    def test_parse_open_ended_range(self):
        assert parse_a1("A1:ZZ") == (1, 1, None, 702)

    def test_parse_bounded_range(self):
        assert parse_a1("E7:I7") == (7, 5, 7, 9)

    def test_parse_invalid_range(self):
        with pytest.raises(ValueError, match="Invalid A1 range"):
            parse_a1("7E:I7")


class TestInMemoryTableStore:
    """Test the in-memory store mirrors the values API."""

    @pytest.fixture
    def mem(self):
        return InMemoryTableStore({
            "Sheet": [
                ["h1", "h2", ""],
                ["a", "b", None],
                [],
                ["c"],
                ["", ""],
            ]
        })

    def test_get_trims_trailing_cells_and_rows(self, mem):
        assert mem.get("Sheet", "A1:ZZ") == [["h1", "h2"], ["a", "b"], [], ["c"]]
        assert mem.read_count == 1

    def test_get_column_window(self, mem):
        assert mem.get("Sheet", "B1:B2") == [["h2"], ["b"]]

    def test_unknown_table_raises(self, mem):
        with pytest.raises(TableStoreError) as exc_info:
            mem.get("Missing", "A1:ZZ")
        assert exc_info.value.status_code == 400

    def test_append_goes_after_last_non_empty_row(self, mem):
        mem.append("Sheet", ["d", "e"])
        assert mem.rows("Sheet")[-1] == ["d", "e"]
        assert mem.rows("Sheet")[-2] == ["c"]
        assert mem.write_count == 1

    def test_update_writes_only_target_columns(self, mem):
        mem.update("Sheet", "C2:D2", ["x", "y"])
        assert mem.rows("Sheet")[1] == ["a", "b", "x", "y"]

    def test_update_extends_short_row(self, mem):
        mem.update("Sheet", "C4:C4", ["z"])
        assert mem.rows("Sheet")[3] == ["c", "", "z"]

    def test_batch_delete_uses_pre_delete_positions(self, mem):
        mem.batch_delete_rows("Sheet", [2, 4, 4])
        assert mem.rows("Sheet") == [["h1", "h2", ""], [], ["", ""]]

    def test_list_sheet_ids(self, mem):
        assert mem.list_sheet_ids() == {"Sheet": 0}


class TestGoogleSheetsStore:
    """Test the gspread adapter against a mocked spreadsheet."""

    @pytest.fixture
    def spreadsheet(self):
        book = MagicMock()
        ledger = MagicMock()
        ledger.title = "Order Book"
        ledger.id = 111
        items = MagicMock()
        items.title = "Items"
        items.id = 222
        book.worksheets.return_value = [ledger, items]
        book.worksheet.return_value = ledger
        return book

    @pytest.fixture
    def sheets(self, spreadsheet):
        store = GoogleSheetsStore(spreadsheet_id="sheet-id", credentials_path="creds.json")
        store._spreadsheet = spreadsheet
        return store

    def test_get_uses_unformatted_values(self, sheets, spreadsheet):
        ledger = spreadsheet.worksheet.return_value
        ledger.get.return_value = [["Order Date"], ["2024-01-01", "Widget", -10]]

        values = sheets.get("Order Book", "A1:ZZ")

        assert values == [["Order Date"], ["2024-01-01", "Widget", -10]]
        spreadsheet.worksheet.assert_called_with("Order Book")
        ledger.get.assert_called_once_with(
            "A1:ZZ",
            value_render_option=ValueRenderOption.unformatted,
            date_time_render_option=DateTimeOption.formatted_string,
        )

    def test_append_is_user_entered(self, sheets, spreadsheet):
        sheets.append("Order Book", ["2024-01-01", "Widget"])

        spreadsheet.worksheet.return_value.append_row.assert_called_once_with(
            ["2024-01-01", "Widget"], value_input_option="USER_ENTERED"
        )

    def test_update_writes_single_row(self, sheets, spreadsheet):
        sheets.update("Order Book", "E7:I7", [20, "2024-02-01", "eBay", 0.1, 2])

        spreadsheet.worksheet.return_value.update.assert_called_once_with(
            range_name="E7:I7",
            values=[[20, "2024-02-01", "eBay", 0.1, 2]],
            value_input_option="USER_ENTERED",
        )

    def test_batch_delete_is_bottom_up(self, sheets, spreadsheet):
        sheets.batch_delete_rows("Order Book", [3, 7, 5, 3])

        body = spreadsheet.batch_update.call_args[0][0]
        ranges = [r["deleteDimension"]["range"] for r in body["requests"]]
        assert [(r["startIndex"], r["endIndex"]) for r in ranges] == [(6, 7), (4, 5), (2, 3)]
        assert all(r["sheetId"] == 111 and r["dimension"] == "ROWS" for r in ranges)

    def test_batch_delete_unknown_sheet(self, sheets, spreadsheet):
        with pytest.raises(TableStoreError, match="No sheet named"):
            sheets.batch_delete_rows("Nope", [3])
        spreadsheet.batch_update.assert_not_called()

    def test_batch_delete_nothing(self, sheets, spreadsheet):
        sheets.batch_delete_rows("Items", [])
        spreadsheet.batch_update.assert_not_called()

    def test_missing_worksheet_becomes_store_error(self, sheets, spreadsheet):
        spreadsheet.worksheet.side_effect = gspread.exceptions.WorksheetNotFound("Nope")

        with pytest.raises(TableStoreError) as exc_info:
            sheets.get("Nope", "A1:ZZ")
        assert exc_info.value.status_code == 404

    def test_list_sheet_ids(self, sheets):
        assert sheets.list_sheet_ids() == {"Order Book": 111, "Items": 222}


class TestGoogleSheetsStoreOpenFailures:
    """Failures while opening the spreadsheet surface as store errors."""

    @pytest.fixture
    def sheets(self):
        store = GoogleSheetsStore(spreadsheet_id="sheet-id", credentials_path="creds.json")
        store._client = MagicMock()
        return store

    def test_unshared_spreadsheet(self, sheets):
        sheets._client.open_by_key.side_effect = gspread.exceptions.SpreadsheetNotFound()

        with pytest.raises(TableStoreError) as exc_info:
            sheets.get("Order Book", "A1:ZZ")
        assert exc_info.value.status_code == 404

    def test_api_error_on_open(self, sheets):
        response = MagicMock()
        response.status_code = 403
        response.json.return_value = {
            "error": {"code": 403, "message": "The caller does not have permission", "status": "PERMISSION_DENIED"}
        }
        sheets._client.open_by_key.side_effect = gspread.exceptions.APIError(response)

        with pytest.raises(TableStoreError) as exc_info:
            sheets.list_sheet_ids()
        assert exc_info.value.status_code == 403

    def test_missing_credentials_file(self, tmp_path):
        sheets = GoogleSheetsStore(spreadsheet_id="sheet-id", credentials_path=str(tmp_path / "missing.json"))

        with pytest.raises(TableStoreError, match="Loading credentials"):
            sheets.get("Order Book", "A1:ZZ")

    def test_store_error_reported_by_action(self, sheets):
        sheets._client.open_by_key.side_effect = gspread.exceptions.SpreadsheetNotFound()

        status, body = handle_action(LedgerService(sheets), "getInventory", {})

        assert status == 500
        assert body["ok"] is False
