# Overview: Service-layer operations for persistence; SQLAlchemy-backed gateway implementations.

"""
SQLAlchemy gateways

Each gateway call is its own unit of work: it commits before returning, so the
commit pipeline sees exactly one durable step per call and can compensate
(delete the header) when a later step fails.

ERROR TRANSLATION:
- StaleDataError / version mismatch -> StockConflict
- any other SQLAlchemyError         -> PersistenceError (after rollback)
"""

from __future__ import annotations

import logging
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..drafts import CUSTOMER_RETAIL, CUSTOMER_TYPES, ORDER_PURCHASE, OrderDraft, PaymentEntry
from ..errors import PersistenceError, StockConflict, ValidationError
from ..extensions import db
from ..models import (
    Contact,
    Order,
    OrderCharge,
    OrderLine,
    OrderPayment,
    PackingPieceRecord,
    PackingRecord,
    Product,
    ProductVariation,
    StockEntry,
)
from ..money import ZERO, as_decimal, quantize_money, quantize_quantity
from ..time_utils import utcnow
from . import lifecycle_service
from .accounting_service import SqlAccountingSink
from .commit_service import NumberingPolicy, OrderCommitPipeline
from .concurrency import commit_or_raise, lock_for_update, translate_errors
from .document_service import parse_sequence
from .gateways import StockLevel, StoredLine, StoredOrder, VariationRecord
from .packing_service import calculate_totals, entry_mode, parse_measure
from .pricing_service import line_total


logger = logging.getLogger("stockbook.store")


CONTACT_CUSTOMER = "customer"
CONTACT_SUPPLIER = "supplier"


# =============================================================================
# COUNTERPARTY
# =============================================================================

@translate_errors("counterparty lookup")
def apply_counterparty(draft: OrderDraft) -> OrderDraft:
    """
    Set the draft's price class from its counterparty.

    - sale to a customer contact: that contact's customer_type
    - walk-in sale (no contact): retail
    - purchase: the contact must be a supplier; purchases price at buy cost

    Raises:
        ValidationError: unknown contact, or a contact of the wrong type
    """
    if draft.contact_id is None:
        return draft.with_customer_type(CUSTOMER_RETAIL)

    contact = db.session.get(Contact, draft.contact_id)
    if contact is None:
        raise ValidationError(f"Contact {draft.contact_id} not found", details={"field": "contact_id"})

    expected = CONTACT_SUPPLIER if draft.order_type == ORDER_PURCHASE else CONTACT_CUSTOMER
    if contact.contact_type != expected:
        raise ValidationError(
            f"Contact {draft.contact_id} is a {contact.contact_type}, not a {expected}",
            details={"field": "contact_id"},
        )

    if draft.order_type == ORDER_PURCHASE:
        return draft.with_customer_type(CUSTOMER_RETAIL)
    customer_type = contact.customer_type if contact.customer_type in CUSTOMER_TYPES else CUSTOMER_RETAIL
    return draft.with_customer_type(customer_type)


# =============================================================================
# CATALOG
# =============================================================================

def ensure_default_variation(product: Product) -> ProductVariation | None:
    """
    Give a group-less product its single default variation row.

    Returns the created row, or None when the product already has variation
    groups or a default row. Caller commits.
    """
    if product.groups:
        return None
    for variation in product.variations:
        if variation.is_default:
            return None
    variation = ProductVariation(
        product=product,
        group_id=None,
        name="default",
        sku_suffix=None,
        is_default=True,
        price_buy=product.price_buy or 0,
        price_retail=product.price_retail or 0,
        price_wholesale=product.price_wholesale or 0,
    )
    db.session.add(variation)
    return variation


class SqlCatalogGateway:
    @translate_errors("catalog lookup")
    def get_variations(self, product_id: int, location_id: int) -> list[VariationRecord]:
        product = db.session.get(Product, product_id)
        if product is None or not product.is_active:
            return []

        variations = (
            db.session.query(ProductVariation)
            .filter_by(product_id=product_id, is_active=True)
            .order_by(ProductVariation.is_default.desc(), ProductVariation.id.asc())
            .all()
        )
        if not variations:
            return []

        stock_rows = (
            db.session.query(StockEntry.variation_id, StockEntry.quantity)
            .filter(
                StockEntry.location_id == location_id,
                StockEntry.variation_id.in_([v.id for v in variations]),
            )
            .all()
        )
        stock = {variation_id: quantity for variation_id, quantity in stock_rows}

        return [
            VariationRecord(
                id=v.id,
                product_id=v.product_id,
                sku=v.sku,
                name=v.name,
                group_name=v.group.name if v.group is not None else None,
                is_default=v.is_default,
                price_buy=as_decimal(v.price_buy),
                price_retail=as_decimal(v.price_retail),
                price_wholesale=as_decimal(v.price_wholesale),
                stock_at_location=as_decimal(stock.get(v.id, ZERO)),
            )
            for v in variations
        ]


# =============================================================================
# STOCK
# =============================================================================

class SqlStockGateway:
    def _entry(self, variation_id: int, location_id: int, *, lock: bool = False) -> StockEntry | None:
        query = db.session.query(StockEntry).filter_by(variation_id=variation_id, location_id=location_id)
        if lock:
            query = lock_for_update(query)
        return query.one_or_none()

    @translate_errors("stock read")
    def get_stock(self, variation_id: int, location_id: int) -> StockLevel:
        # Fresh read: drop any cached state from an earlier attempt
        db.session.expire_all()
        entry = self._entry(variation_id, location_id)
        if entry is None:
            return StockLevel()
        return StockLevel(quantity=as_decimal(entry.quantity), version=entry.version_id)

    @translate_errors("stock upsert")
    def upsert_stock(
        self,
        variation_id: int,
        location_id: int,
        new_quantity: Decimal,
        expected_version: int | None = None,
    ) -> StockLevel:
        """
        Write an absolute quantity computed from a read at expected_version.

        expected_version None means the caller saw no entry; the row is
        inserted and a concurrent insert surfaces as a unique violation.
        """
        new_quantity = quantize_quantity(new_quantity)
        entry = self._entry(variation_id, location_id, lock=True)

        if expected_version is None:
            if entry is not None:
                raise StockConflict(
                    "Stock entry was created concurrently",
                    details={"variation_id": variation_id, "location_id": location_id},
                )
            entry = StockEntry(variation_id=variation_id, location_id=location_id, quantity=new_quantity)
            db.session.add(entry)
            try:
                db.session.commit()
            except IntegrityError as exc:
                db.session.rollback()
                raise StockConflict(
                    "Stock entry was created concurrently",
                    details={"variation_id": variation_id, "location_id": location_id},
                ) from exc
            return StockLevel(quantity=new_quantity, version=entry.version_id)

        if entry is None or entry.version_id != expected_version:
            raise StockConflict(
                "Stock entry changed since it was read",
                details={
                    "variation_id": variation_id,
                    "location_id": location_id,
                    "expected_version": expected_version,
                    "found_version": entry.version_id if entry is not None else None,
                },
            )

        entry.quantity = new_quantity
        commit_or_raise("stock upsert")
        return StockLevel(quantity=new_quantity, version=entry.version_id)


# =============================================================================
# ORDERS
# =============================================================================

def _packing_record(line) -> PackingRecord | None:
    if line.packing is None:
        return None
    totals = calculate_totals(line.packing)
    record = PackingRecord(
        entry_mode=entry_mode(line.packing),
        total_boxes=totals.total_boxes,
        total_pieces=totals.total_pieces,
        total_measure=quantize_quantity(totals.total_measure),
    )
    for number, box in enumerate(line.packing.boxes, start=1):
        for piece in box.pieces:
            record.pieces.append(PackingPieceRecord(box_number=number, measure=parse_measure(piece.measure)))
    for piece in line.packing.loose_pieces:
        record.pieces.append(PackingPieceRecord(box_number=None, measure=parse_measure(piece.measure)))
    return record


class SqlOrderGateway:
    @translate_errors("order header insert")
    def create_order_header(self, fields: dict) -> int:
        fields = dict(fields)
        charges = fields.pop("extra_charges", [])
        order = Order(**fields)
        if lifecycle_service.is_final(order.status):
            order.finalized_at = utcnow()
        for charge in charges:
            order.charges.append(OrderCharge(label=charge["label"], amount=quantize_money(charge["amount"])))
        db.session.add(order)
        commit_or_raise("order header insert")
        return order.id

    @translate_errors("order line insert")
    def create_line_items(self, order_id: int, lines) -> None:
        for line in lines:
            row = OrderLine(
                order_id=order_id,
                product_id=line.product_id,
                variation_id=line.variation_id,
                sku=line.sku,
                quantity=quantize_quantity(line.quantity),
                unit_price=quantize_money(line.unit_price),
                line_discount=quantize_money(line.line_discount),
                row_total=quantize_money(line_total(line)),
            )
            packing = _packing_record(line)
            if packing is not None:
                row.packing = packing
            db.session.add(row)
        commit_or_raise("order line insert")

    @translate_errors("order payment insert")
    def create_payment_entries(self, order_id: int, payments) -> None:
        for payment in payments:
            db.session.add(
                OrderPayment(
                    order_id=order_id,
                    method=payment.method,
                    amount=quantize_money(payment.amount),
                    reference=payment.reference,
                )
            )
        commit_or_raise("order payment insert")

    @translate_errors("order delete")
    def delete_order_header(self, order_id: int) -> None:
        order = db.session.get(Order, order_id)
        if order is None:
            return
        db.session.delete(order)
        commit_or_raise("order delete")

    @translate_errors("order status update")
    def update_order_status(self, order_id: int, status: str, payment_status: str) -> None:
        order = db.session.get(Order, order_id)
        if order is None:
            raise PersistenceError(f"Order {order_id} not found", details={"order_id": order_id})
        order.status = status
        order.payment_status = payment_status
        if lifecycle_service.is_final(status) and order.finalized_at is None:
            order.finalized_at = utcnow()
        if status == lifecycle_service.STATUS_CANCELLED:
            order.cancelled_at = utcnow()
        commit_or_raise("order status update")

    @translate_errors("order load")
    def load_order(self, order_id: int) -> StoredOrder | None:
        order = db.session.get(Order, order_id)
        if order is None:
            return None
        return StoredOrder(
            id=order.id,
            order_type=order.order_type,
            status=order.status,
            payment_status=order.payment_status,
            location_id=order.location_id,
            document_number=order.document_number,
            grand_total=as_decimal(order.grand_total),
            document_date=order.document_date,
            lines=tuple(
                StoredLine(
                    id=line.id,
                    product_id=line.product_id,
                    variation_id=line.variation_id,
                    quantity=as_decimal(line.quantity),
                    unit_price=as_decimal(line.unit_price),
                    sku=line.sku,
                )
                for line in order.lines
            ),
            payments=tuple(
                PaymentEntry(method=p.method, amount=as_decimal(p.amount), reference=p.reference)
                for p in order.payments
            ),
        )


# =============================================================================
# NUMBERING
# =============================================================================

class SqlNumberingGateway:
    @translate_errors("document number lookup")
    def find_last_document_number(self, prefix: str, pattern: str, sequence_of=None) -> str | None:
        """
        Highest-sequence document number matching pattern.

        Lexical max is wrong once sequences outgrow their padding
        (INV-2024-9999 < INV-2024-10000), so every match is compared by
        sequence_of (trailing digits by default).
        """
        sequence_of = sequence_of or parse_sequence
        rows = (
            db.session.query(Order.document_number)
            .filter(Order.document_number.like(pattern))
            .all()
        )
        best = None
        best_seq = -1
        for (number,) in rows:
            seq = sequence_of(number)
            if seq > best_seq:
                best, best_seq = number, seq
        return best


# =============================================================================
# WIRING
# =============================================================================

def build_pipeline(config=None) -> OrderCommitPipeline:
    """Pipeline wired to the SQLAlchemy gateways using app config."""
    config = config if config is not None else current_app.config
    template = config.get("DOCUMENT_NUMBER_TEMPLATE") or None
    return OrderCommitPipeline(
        catalog=SqlCatalogGateway(),
        stock=SqlStockGateway(),
        orders=SqlOrderGateway(),
        numbering=SqlNumberingGateway(),
        accounting=SqlAccountingSink(),
        numbering_policy=NumberingPolicy(
            sale_prefix=config.get("SALE_NUMBER_PREFIX", "INV"),
            purchase_prefix=config.get("PURCHASE_NUMBER_PREFIX", "PUR"),
            fmt=config.get("DOCUMENT_NUMBER_FORMAT", "long"),
            template=template,
        ),
        stock_retry_attempts=int(config.get("STOCK_RETRY_ATTEMPTS", 3)),
    )


def prefix_for(order_type: str, config=None) -> str:
    config = config if config is not None else current_app.config
    if order_type == ORDER_PURCHASE:
        return config.get("PURCHASE_NUMBER_PREFIX", "PUR")
    return config.get("SALE_NUMBER_PREFIX", "INV")
