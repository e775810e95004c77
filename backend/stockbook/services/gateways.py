# Overview: Boundary contracts between the order engine and its collaborators.

"""
Gateways are the only way the engine touches storage or the accounting
ledger. Implementations must raise only stockbook.errors types
(PersistenceError, StockConflict); anything driver-specific is translated
at this boundary.

SQLAlchemy-backed implementations live in store_gateways.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Protocol, Sequence

from ..drafts import LineDraft, PaymentEntry
from ..money import ZERO


@dataclass(frozen=True)
class VariationRecord:
    """Catalog row as returned by CatalogGateway.get_variations."""
    id: int
    product_id: int
    sku: str
    name: str = "default"
    group_name: str | None = None
    is_default: bool = False
    price_buy: Decimal = ZERO
    price_retail: Decimal = ZERO
    price_wholesale: Decimal = ZERO
    stock_at_location: Decimal = ZERO


@dataclass(frozen=True)
class StockLevel:
    quantity: Decimal = ZERO
    # None means no stock entry exists yet for (variation, location)
    version: int | None = None


@dataclass(frozen=True)
class StoredLine:
    id: int
    product_id: int
    variation_id: int
    quantity: Decimal
    unit_price: Decimal
    sku: str | None = None


@dataclass(frozen=True)
class StoredOrder:
    """Snapshot of a persisted order used by finalize/cancel/delete."""
    id: int
    order_type: str
    status: str
    payment_status: str
    location_id: int
    document_number: str
    grand_total: Decimal
    lines: tuple[StoredLine, ...] = ()
    payments: tuple[PaymentEntry, ...] = ()
    document_date: date | None = None


class CatalogGateway(Protocol):
    def get_variations(self, product_id: int, location_id: int) -> Sequence[VariationRecord]: ...


class StockGateway(Protocol):
    def get_stock(self, variation_id: int, location_id: int) -> StockLevel: ...

    def upsert_stock(
        self,
        variation_id: int,
        location_id: int,
        new_quantity: Decimal,
        expected_version: int | None = None,
    ) -> StockLevel: ...


class OrderGateway(Protocol):
    def create_order_header(self, fields: dict) -> int: ...

    def create_line_items(self, order_id: int, lines: Sequence[LineDraft]) -> None: ...

    def create_payment_entries(self, order_id: int, payments: Sequence[PaymentEntry]) -> None: ...

    def delete_order_header(self, order_id: int) -> None: ...

    def update_order_status(self, order_id: int, status: str, payment_status: str) -> None: ...

    def load_order(self, order_id: int) -> StoredOrder | None: ...


class NumberingGateway(Protocol):
    def find_last_document_number(
        self,
        prefix: str,
        pattern: str,
        sequence_of: Callable[[str], int] | None = None,
    ) -> str | None: ...


class AccountingSink(Protocol):
    def record_payment(
        self,
        order_id: int,
        amount: Decimal,
        method: str,
        reference: str | None,
        description: str,
    ) -> None: ...
