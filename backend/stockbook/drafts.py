# Overview: Immutable value objects describing an order as it is being assembled.

"""
Order drafts are snapshots.

The entry form (or API payload) is converted once into an OrderDraft and every
computation downstream (pricing, aggregation, payment summary, commit) reads
only that snapshot. Edits produce a new draft; nothing is mutated in place.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal

from .money import ZERO


ORDER_SALE = "sale"
ORDER_PURCHASE = "purchase"
ORDER_TYPES = (ORDER_SALE, ORDER_PURCHASE)

CUSTOMER_RETAIL = "retail"
CUSTOMER_WHOLESALE = "wholesale"
CUSTOMER_TYPES = (CUSTOMER_RETAIL, CUSTOMER_WHOLESALE)

PAYMENT_METHOD_CASH = "cash"
PAYMENT_METHOD_CARD = "card"
PAYMENT_METHOD_BANK = "bank"
PAYMENT_METHODS = (PAYMENT_METHOD_CASH, PAYMENT_METHOD_CARD, PAYMENT_METHOD_BANK)


# =============================================================================
# PACKING
# =============================================================================

@dataclass(frozen=True)
class PackingPiece:
    # Raw entry; may be "", None or garbage, parsed leniently by the calculator
    measure: object = None


@dataclass(frozen=True)
class PackingBox:
    pieces: tuple[PackingPiece, ...] = ()


@dataclass(frozen=True)
class QuickPacking:
    """Flat quick-entry triple: box count, piece count, total measured length."""
    boxes: object = None
    pieces: object = None
    measure: object = None


@dataclass(frozen=True)
class PackingEntry:
    boxes: tuple[PackingBox, ...] = ()
    loose_pieces: tuple[PackingPiece, ...] = ()
    quick: QuickPacking | None = None


@dataclass(frozen=True)
class PackingTotals:
    total_boxes: int = 0
    total_pieces: int = 0
    total_measure: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "total_boxes": self.total_boxes,
            "total_pieces": self.total_pieces,
            "total_measure": str(self.total_measure),
        }


# =============================================================================
# LINES, CHARGES, PAYMENTS
# =============================================================================

@dataclass(frozen=True)
class LineDraft:
    """
    One product/variation entry.

    variation_id, sku, unit_price and stock_at_location are bound together by
    variation_service.bind_variation; callers must not set them one by one.
    line_discount is informational only.
    """
    product_id: int
    quantity: Decimal = ZERO
    unit_price: Decimal = ZERO
    variation_id: int | None = None
    sku: str | None = None
    stock_at_location: Decimal | None = None
    line_discount: Decimal = ZERO
    packing: PackingEntry | None = None


@dataclass(frozen=True)
class ExtraCharge:
    """Fixed extra charge. Sales call these services, purchases call them COGS."""
    label: str
    amount: Decimal = ZERO


@dataclass(frozen=True)
class PaymentEntry:
    method: str
    amount: Decimal
    reference: str | None = None

    def to_dict(self) -> dict:
        return {"method": self.method, "amount": str(self.amount), "reference": self.reference}


# =============================================================================
# ORDER
# =============================================================================

@dataclass(frozen=True)
class OrderDraft:
    order_type: str
    location_id: int | None
    lines: tuple[LineDraft, ...] = ()
    contact_id: int | None = None
    customer_type: str = CUSTOMER_RETAIL
    status: str = "draft"
    document_date: date | None = None
    document_number: str | None = None
    discount_percent: Decimal = ZERO
    extra_charges: tuple[ExtraCharge, ...] = ()
    shipping: Decimal = ZERO
    payments: tuple[PaymentEntry, ...] = ()
    notes: str | None = None

    def with_line(self, line: LineDraft) -> "OrderDraft":
        return replace(self, lines=self.lines + (line,))

    def with_lines(self, lines) -> "OrderDraft":
        return replace(self, lines=tuple(lines))

    def with_customer_type(self, customer_type: str) -> "OrderDraft":
        return replace(self, customer_type=customer_type)

    def with_document_number(self, document_number: str) -> "OrderDraft":
        return replace(self, document_number=document_number)
