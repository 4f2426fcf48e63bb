"""Validated write payloads for the order book and reference tables."""
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from records import ITEMS, LEDGER, MARKETPLACES, RETAILERS, normalize_fee, to_number


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class OrderPayload(_Payload):
    """A full order book row as sent by the client."""

    order_date: str = ""
    item: str = Field(min_length=1)
    buy_price: float = 0.0
    bought_from: str = ""
    sell_price: float = 0.0
    sale_date: str = Field(default="", validation_alias=AliasChoices("sale_date", "sell_date"))
    sale_location: str = ""
    fees_pct: float = 0.0
    shipping: float = 0.0

    @field_validator("order_date", "item", "bought_from", "sale_date", "sale_location", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> str:
        return _text(value)

    @field_validator("buy_price", "sell_price", "shipping", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> float:
        return to_number(value)

    @field_validator("fees_pct", mode="before")
    @classmethod
    def _coerce_fee(cls, value: Any) -> float:
        return normalize_fee(value)

    def to_row(self) -> list:
        # Last column holds the sheet's P/L formula; writers leave it blank.
        return [
            self.order_date,
            self.item,
            self.buy_price,
            self.bought_from,
            self.sell_price,
            self.sale_date,
            self.sale_location,
            self.fees_pct,
            self.shipping,
            "",
        ]


class OrderRowUpdate(OrderPayload):
    """A full row rewrite addressed by sheet position."""

    row: int = Field(ge=LEDGER.first_data_row)
    expected_item: Optional[str] = None


class MarkSoldPayload(_Payload):
    """Sale details written onto an existing purchase row."""

    row: int = Field(ge=LEDGER.first_data_row)
    sell_price: float = 0.0
    sale_date: str = Field(default="", validation_alias=AliasChoices("sale_date", "sell_date"))
    sale_location: str = ""
    fees_pct: float = 0.0
    shipping: float = 0.0
    expected_item: Optional[str] = None

    @field_validator("sale_date", "sale_location", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> str:
        return _text(value)

    @field_validator("sell_price", "shipping", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> float:
        return to_number(value)

    @field_validator("fees_pct", mode="before")
    @classmethod
    def _coerce_fee(cls, value: Any) -> float:
        return normalize_fee(value)

    def to_sale_columns(self) -> list:
        """Values for the sell price .. shipping columns."""
        return [self.sell_price, self.sale_date, self.sale_location, self.fees_pct, self.shipping]


class _ReferenceRow(_Payload):
    row: Optional[int] = None
    name: str = Field(min_length=1)
    expected_name: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> str:
        return _text(value)


class ItemRow(_ReferenceRow):
    row: Optional[int] = Field(default=None, ge=ITEMS.first_data_row)
    market: float = 0.0

    @field_validator("market", mode="before")
    @classmethod
    def _coerce_market(cls, value: Any) -> float:
        return to_number(value)

    def to_row(self) -> list:
        return [self.name, self.market]


class RetailerRow(_ReferenceRow):
    row: Optional[int] = Field(default=None, ge=RETAILERS.first_data_row)

    def to_row(self) -> list:
        return [self.name]


class MarketplaceRow(_ReferenceRow):
    row: Optional[int] = Field(default=None, ge=MARKETPLACES.first_data_row)
    fee_pct: float = 0.0

    @field_validator("fee_pct", mode="before")
    @classmethod
    def _coerce_fee(cls, value: Any) -> float:
        return normalize_fee(value)

    def to_row(self) -> list:
        return [self.name, self.fee_pct]
