"""Table store adapters: the spreadsheet backing the ledger.

The core only talks to the ``TableStore`` protocol. ``GoogleSheetsStore``
is the production adapter; ``InMemoryTableStore`` holds grids in memory for
tests and offline runs.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

logger = logging.getLogger("reseller_ledger")

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

_CELL_RE = re.compile(r"^([A-Z]+)(\d*)$")


class TableStoreError(Exception):
    """Raised when the backing table store fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TableStore(Protocol):
    def get(self, table: str, a1_range: str) -> List[List[Any]]:
        ...

    def append(self, table: str, row: Sequence[Any]) -> None:
        ...

    def update(self, table: str, a1_range: str, row: Sequence[Any]) -> None:
        ...

    def batch_delete_rows(self, table: str, positions: Sequence[int]) -> None:
        ...

    def list_sheet_ids(self) -> Dict[str, int]:
        ...


def column_letter(n: int) -> str:
    """Convert a 1-based column number to its A1 letter(s)."""
    letters = ""
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


def column_number(letters: str) -> int:
    """Convert A1 column letter(s) to a 1-based column number."""
    n = 0
    for ch in letters:
        n = n * 26 + (ord(ch) - 64)
    return n


def row_range(position: int, first_col: int, last_col: int) -> str:
    """A1 range covering one row between two 1-based columns, e.g. ``E7:I7``."""
    return f"{column_letter(first_col)}{position}:{column_letter(last_col)}{position}"


def parse_a1(a1_range: str) -> Tuple[int, int, Optional[int], Optional[int]]:
    """Parse ``A1:ZZ``-style ranges into (first_row, first_col, last_row, last_col).

    A missing row number on the start cell means row 1; on the end cell it
    means "to the last row" and is returned as None.
    """
    start, _, end = a1_range.upper().partition(":")
    match = _CELL_RE.match(start)
    if not match:
        raise ValueError(f"Invalid A1 range: {a1_range}")
    first_col = column_number(match.group(1))
    first_row = int(match.group(2) or 1)
    last_row: Optional[int] = None
    last_col: Optional[int] = None
    if end:
        match = _CELL_RE.match(end)
        if not match:
            raise ValueError(f"Invalid A1 range: {a1_range}")
        last_col = column_number(match.group(1))
        last_row = int(match.group(2)) if match.group(2) else None
    else:
        last_col = first_col
        last_row = first_row
    return first_row, first_col, last_row, last_col


def _trim_trailing(values: Iterable[Any]) -> List[Any]:
    """Drop trailing empty cells the way the Sheets values API does."""
    out = list(values)
    while out and out[-1] in ("", None):
        out.pop()
    return out


class InMemoryTableStore:
    """Table store over plain lists of rows, one list per table."""

    def __init__(self, tables: Optional[Dict[str, List[List[Any]]]] = None):
        self._tables: Dict[str, List[List[Any]]] = {
            name: [list(row) for row in rows] for name, rows in (tables or {}).items()
        }
        self.read_count = 0
        self.write_count = 0

    def _table(self, table: str) -> List[List[Any]]:
        if table not in self._tables:
            raise TableStoreError(f"Unable to parse range: {table}", status_code=400)
        return self._tables[table]

    def rows(self, table: str) -> List[List[Any]]:
        """Raw copy of a table's rows, for inspection."""
        return [list(row) for row in self._table(table)]

    def get(self, table: str, a1_range: str) -> List[List[Any]]:
        grid = self._table(table)
        self.read_count += 1
        first_row, first_col, last_row, last_col = parse_a1(a1_range)
        end = len(grid) if last_row is None else min(last_row, len(grid))
        values = []
        for row in grid[first_row - 1:end]:
            cells = row[first_col - 1:last_col] if last_col else row[first_col - 1:]
            values.append(_trim_trailing(cells))
        while values and not values[-1]:
            values.pop()
        return values

    def append(self, table: str, row: Sequence[Any]) -> None:
        grid = self._table(table)
        self.write_count += 1
        while grid and not _trim_trailing(grid[-1]):
            grid.pop()
        grid.append(list(row))

    def update(self, table: str, a1_range: str, row: Sequence[Any]) -> None:
        grid = self._table(table)
        self.write_count += 1
        first_row, first_col, _, _ = parse_a1(a1_range)
        while len(grid) < first_row:
            grid.append([])
        target = grid[first_row - 1]
        needed = first_col - 1 + len(row)
        if len(target) < needed:
            target.extend([""] * (needed - len(target)))
        target[first_col - 1:needed] = list(row)

    def batch_delete_rows(self, table: str, positions: Sequence[int]) -> None:
        grid = self._table(table)
        self.write_count += 1
        # Positions address the grid as it was before this call.
        for position in sorted(set(positions), reverse=True):
            if 1 <= position <= len(grid):
                del grid[position - 1]

    def list_sheet_ids(self) -> Dict[str, int]:
        return {name: index for index, name in enumerate(self._tables)}


class GoogleSheetsStore:
    """Table store backed by a Google spreadsheet through gspread."""

    def __init__(self, spreadsheet_id: str, credentials_path: str):
        """Initialize the Google Sheets store.

        Args:
            spreadsheet_id: Google Sheet ID (from URL)
            credentials_path: Path to service account JSON file
        """
        self.spreadsheet_id = spreadsheet_id
        self.credentials_path = credentials_path
        self._client = None
        self._spreadsheet = None

    def _get_client(self):
        """Lazy-load gspread client."""
        if self._client is None:
            try:
                import gspread
                from google.oauth2.service_account import Credentials
            except ImportError:
                raise ImportError(
                    "gspread and google-auth are required for the Google Sheets store. "
                    "Install with: pip install gspread google-auth"
                )

            creds = Credentials.from_service_account_file(
                self.credentials_path, scopes=SCOPES
            )
            self._client = gspread.authorize(creds)

        return self._client

    def _get_spreadsheet(self):
        if self._spreadsheet is None:
            try:
                client = self._get_client()
            except (OSError, ValueError) as e:
                raise TableStoreError(
                    f"Loading credentials from {self.credentials_path} failed: {e}"
                ) from e
            self._spreadsheet = self._call(
                f"Opening spreadsheet {self.spreadsheet_id[:8]}...",
                client.open_by_key,
                self.spreadsheet_id,
            )
        return self._spreadsheet

    def _call(self, description: str, fn, *args, **kwargs):
        """Run a gspread call, converting its failures into TableStoreError."""
        import gspread
        from google.auth.exceptions import GoogleAuthError

        try:
            return fn(*args, **kwargs)
        except gspread.exceptions.APIError as e:
            status_code = getattr(getattr(e, "response", None), "status_code", None)
            raise TableStoreError(f"{description} failed: {e}", status_code=status_code) from e
        except gspread.exceptions.WorksheetNotFound as e:
            raise TableStoreError(f"{description} failed: no sheet named {e}", status_code=404) from e
        except gspread.exceptions.SpreadsheetNotFound as e:
            raise TableStoreError(
                f"{description} failed: spreadsheet not found or not shared", status_code=404
            ) from e
        except GoogleAuthError as e:
            raise TableStoreError(f"{description} failed: {e}", status_code=401) from e

    def _worksheet(self, table: str):
        spreadsheet = self._get_spreadsheet()
        return self._call(f"Opening sheet {table}", spreadsheet.worksheet, table)

    def get(self, table: str, a1_range: str) -> List[List[Any]]:
        from gspread.utils import DateTimeOption, ValueRenderOption

        worksheet = self._worksheet(table)
        values = self._call(
            f"Reading {table}!{a1_range}",
            worksheet.get,
            a1_range,
            value_render_option=ValueRenderOption.unformatted,
            date_time_render_option=DateTimeOption.formatted_string,
        )
        return [list(row) for row in values]

    def append(self, table: str, row: Sequence[Any]) -> None:
        worksheet = self._worksheet(table)
        self._call(
            f"Appending to {table}",
            worksheet.append_row,
            list(row),
            value_input_option="USER_ENTERED",
        )

    def update(self, table: str, a1_range: str, row: Sequence[Any]) -> None:
        worksheet = self._worksheet(table)
        self._call(
            f"Updating {table}!{a1_range}",
            worksheet.update,
            range_name=a1_range,
            values=[list(row)],
            value_input_option="USER_ENTERED",
        )

    def batch_delete_rows(self, table: str, positions: Sequence[int]) -> None:
        sheet_id = self.list_sheet_ids().get(table)
        if sheet_id is None:
            raise TableStoreError(f"No sheet named {table}", status_code=404)
        # Sheets applies the requests in order, so delete bottom-up to keep
        # every original row index valid.
        requests = [
            {
                "deleteDimension": {
                    "range": {
                        "sheetId": sheet_id,
                        "dimension": "ROWS",
                        "startIndex": position - 1,
                        "endIndex": position,
                    }
                }
            }
            for position in sorted(set(positions), reverse=True)
        ]
        if not requests:
            return
        spreadsheet = self._get_spreadsheet()
        self._call(
            f"Deleting {len(requests)} rows from {table}",
            spreadsheet.batch_update,
            {"requests": requests},
        )

    def list_sheet_ids(self) -> Dict[str, int]:
        spreadsheet = self._get_spreadsheet()
        worksheets = self._call("Listing sheets", spreadsheet.worksheets)
        return {ws.title: ws.id for ws in worksheets}


def create_table_store(config: Dict[str, Any]) -> GoogleSheetsStore:
    """Create the Google Sheets store from config.

    Raises:
        ConfigurationError: If the spreadsheet id or credentials are missing.
    """
    from config_loader import require_sheets_settings

    spreadsheet_id, credentials_path = require_sheets_settings(config)
    # Log truncated sheet ID for security
    logger.info(f"Using spreadsheet {spreadsheet_id[:8]}...")
    return GoogleSheetsStore(spreadsheet_id=spreadsheet_id, credentials_path=credentials_path)
