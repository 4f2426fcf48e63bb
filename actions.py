"""Action dispatch: action name + parameter bag -> JSON-ready result.

Parameters arrive as strings (query string) or already-decoded JSON (POST
body). ``payload`` and ``rows`` are JSON documents; ``row`` is a position.
"""
import json
import logging
from typing import Any, Callable, Dict, List, Mapping, Tuple, Type

from pydantic import BaseModel, ValidationError

from config_loader import ConfigurationError
from ledger_service import LedgerService
from mutations import StalePositionError
from payloads import (
    ItemRow,
    MarkSoldPayload,
    MarketplaceRow,
    OrderPayload,
    OrderRowUpdate,
    RetailerRow,
)
from table_store import TableStoreError
from utils import LOGGER_NAME, log_with_context

logger = logging.getLogger(LOGGER_NAME)


class BadRequestError(ValueError):
    """Malformed parameters or unknown action; the operation is not attempted."""
    pass


def _json_param(params: Mapping[str, Any], key: str, default: Any) -> Any:
    raw = params.get(key)
    if raw is None or raw == "":
        return default
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise BadRequestError(f"Invalid JSON in '{key}': {e.msg}")


def _int_param(params: Mapping[str, Any], key: str) -> int:
    raw = params.get(key)
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise BadRequestError(f"'{key}' must be a row number, got {raw!r}")


def _model(model: Type[BaseModel], data: Any) -> Any:
    if not isinstance(data, dict):
        raise BadRequestError(f"Expected an object for {model.__name__}")
    return model.model_validate(data)


def _models(model: Type[BaseModel], data: Any) -> List[Any]:
    if not isinstance(data, list):
        raise BadRequestError(f"Expected a list of {model.__name__} rows")
    return [_model(model, item) for item in data]


def _delete_orders(service: LedgerService, params: Mapping[str, Any]) -> Dict[str, Any]:
    rows = _json_param(params, "rows", [])
    if not isinstance(rows, list):
        raise BadRequestError("Expected a list of rows")
    positions = []
    expected = {}
    for r in rows:
        raw = r.get("row") if isinstance(r, dict) else r
        try:
            position = int(raw)
        except (TypeError, ValueError):
            raise BadRequestError(f"Invalid row number: {raw!r}")
        positions.append(position)
        if isinstance(r, dict) and r.get("expected_item") is not None:
            expected[position] = str(r["expected_item"])
    return service.mutations.delete_orders(positions, expected or None)


Handler = Callable[[LedgerService, Mapping[str, Any]], Any]

ACTIONS: Dict[str, Handler] = {
    # Reads
    "getInitModel": lambda s, p: s.init_model(),
    "getDatabaseFull": lambda s, p: s.database_full(),
    "getOpenPurchases": lambda s, p: s.open_purchases(),
    "getOrderBookEditable": lambda s, p: s.order_book(),
    "getInventory": lambda s, p: s.inventory(),
    "getStatsV2": lambda s, p: s.stats(
        range_key=p.get("range") or "none",
        item_filter=p.get("item") or "",
        date_from=p.get("from") or None,
        date_to=p.get("to") or None,
    ),
    "getLongestHoldDays": lambda s, p: s.longest_hold_days(p.get("item") or ""),
    # Order book mutations
    "submitQuickAdd": lambda s, p: s.mutations.append_order(_model(OrderPayload, _json_param(p, "payload", {}))),
    "addOrderBookRow": lambda s, p: s.mutations.append_order(_model(OrderPayload, _json_param(p, "payload", {}))),
    "submitMarkAsSold": lambda s, p: s.mutations.mark_as_sold(_model(MarkSoldPayload, _json_param(p, "payload", {}))),
    "updateOrderBookRows": lambda s, p: s.mutations.update_orders(_models(OrderRowUpdate, _json_param(p, "rows", []))),
    "deleteOrderBookRows": _delete_orders,
    # Reference table mutations
    "addDatabaseItem": lambda s, p: s.mutations.append_item(_model(ItemRow, _json_param(p, "payload", {}))),
    "addDatabaseRetailer": lambda s, p: s.mutations.append_retailer(_model(RetailerRow, _json_param(p, "payload", {}))),
    "addDatabaseMarketplace": lambda s, p: s.mutations.append_marketplace(
        _model(MarketplaceRow, _json_param(p, "payload", {}))
    ),
    "updateDatabaseItems": lambda s, p: s.mutations.update_items(_models(ItemRow, _json_param(p, "rows", []))),
    "updateDatabaseRetailers": lambda s, p: s.mutations.update_retailers(
        _models(RetailerRow, _json_param(p, "rows", []))
    ),
    "updateDatabaseMarketplaces": lambda s, p: s.mutations.update_marketplaces(
        _models(MarketplaceRow, _json_param(p, "rows", []))
    ),
    "removeDatabaseItem": lambda s, p: s.mutations.remove_item(_int_param(p, "row"), p.get("expected_name")),
    "removeDatabaseRetailer": lambda s, p: s.mutations.remove_retailer(_int_param(p, "row"), p.get("expected_name")),
    "removeDatabaseMarketplace": lambda s, p: s.mutations.remove_marketplace(
        _int_param(p, "row"), p.get("expected_name")
    ),
}


def dispatch(service: LedgerService, action: str, params: Mapping[str, Any]) -> Any:
    """Run ``action`` with ``params``.

    Raises:
        BadRequestError: Unknown action or malformed parameters
        ValidationError: Payload failed validation
    """
    handler = ACTIONS.get((action or "").strip())
    if handler is None:
        raise BadRequestError(f"Unknown action: {action}")
    return handler(service, params)


def _validation_message(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "payload"
        parts.append(f"{loc}: {err.get('msg')}")
    return "Invalid payload: " + "; ".join(parts)


def handle_action(service: LedgerService, action: str, params: Mapping[str, Any]) -> Tuple[int, Any]:
    """Dispatch and map failures to (status, body) pairs."""
    try:
        return 200, dispatch(service, action, params)
    except ValidationError as e:
        return 400, {"ok": False, "error": _validation_message(e)}
    except StalePositionError as e:
        return 409, {"ok": False, "error": str(e)}
    except BadRequestError as e:
        return 400, {"ok": False, "error": str(e)}
    except ValueError as e:
        return 400, {"ok": False, "error": str(e)}
    except (ConfigurationError, TableStoreError) as e:
        log_with_context(
            logger, logging.ERROR, f"Action {action} failed: {e}",
            action=action, error_type=type(e).__name__,
        )
        return 500, {"ok": False, "error": str(e)}
