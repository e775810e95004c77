from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


class Order(db.Model):
    """
    Sale or purchase header.

    STATUS:
    draft | final | cancelled, plus pending | ordered | received for purchases.
    final / ordered / received all mean the order has moved stock.

    DOCUMENT NUMBER:
    Unique across both order types (prefixes differ). Cancelled orders keep
    their number so it is never handed out again.

    OWNERSHIP:
    Lines, charges and payments are owned by the header and cascade on delete.
    Only draft/cancelled orders are ever deleted (see lifecycle_service).
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_type_status", "order_type", "status"),
        db.Index("ix_orders_location_date", "location_id", "document_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_type = db.Column(db.String(16), nullable=False)

    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    # Nullable for walk-in sales
    contact_id = db.Column(db.Integer, db.ForeignKey("contacts.id"), nullable=True, index=True)
    customer_type = db.Column(db.String(16), nullable=False, default="retail")

    document_number = db.Column(db.String(64), nullable=False, unique=True)
    document_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="due")

    items_subtotal = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    extra_charges_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    shipping_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    grand_total = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_paid = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    finalized_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    location = db.relationship("Location")
    contact = db.relationship("Contact")
    lines = db.relationship(
        "OrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.id",
        lazy=True,
    )
    charges = db.relationship(
        "OrderCharge",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderCharge.id",
        lazy=True,
    )
    payments = db.relationship(
        "OrderPayment",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderPayment.id",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} {self.order_type} {self.document_number} status={self.status}>"

    def to_dict(self, include_children: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_type": self.order_type,
            "location_id": self.location_id,
            "contact_id": self.contact_id,
            "customer_type": self.customer_type,
            "document_number": self.document_number,
            "document_date": self.document_date.isoformat() if self.document_date else None,
            "status": self.status,
            "payment_status": self.payment_status,
            "items_subtotal": money_str(self.items_subtotal),
            "discount_percent": str(self.discount_percent),
            "discount_amount": money_str(self.discount_amount),
            "extra_charges_amount": money_str(self.extra_charges_amount),
            "shipping_amount": money_str(self.shipping_amount),
            "grand_total": money_str(self.grand_total),
            "total_paid": money_str(self.total_paid),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "finalized_at": to_utc_z(self.finalized_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
        }
        if include_children:
            data["lines"] = [line.to_dict() for line in self.lines]
            data["charges"] = [charge.to_dict() for charge in self.charges]
            data["payments"] = [payment.to_dict() for payment in self.payments]
        return data


class OrderLine(db.Model):
    """quantity is the effective quantity (packing total when packing was entered)."""
    __tablename__ = "order_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    variation_id = db.Column(db.Integer, db.ForeignKey("product_variations.id"), nullable=False, index=True)
    sku = db.Column(db.String(128), nullable=True)

    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    unit_price = db.Column(db.Numeric(14, 2), nullable=False)
    # Informational; not applied to row_total
    line_discount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    row_total = db.Column(db.Numeric(14, 2), nullable=False)

    order = db.relationship("Order", back_populates="lines")
    packing = db.relationship(
        "PackingRecord",
        back_populates="line",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "variation_id": self.variation_id,
            "sku": self.sku,
            "quantity": str(self.quantity),
            "unit_price": money_str(self.unit_price),
            "line_discount": money_str(self.line_discount),
            "row_total": money_str(self.row_total),
            "packing": self.packing.to_dict() if self.packing is not None else None,
        }


class PackingRecord(db.Model):
    """
    Packing breakdown captured for one line.

    entry_mode: detailed (boxes -> pieces) | quick (flat totals only).
    The totals are stored as computed at entry time.
    """
    __tablename__ = "packing_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_line_id = db.Column(
        db.Integer,
        db.ForeignKey("order_lines.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    entry_mode = db.Column(db.String(16), nullable=False, default="detailed")
    total_boxes = db.Column(db.Integer, nullable=False, default=0)
    total_pieces = db.Column(db.Integer, nullable=False, default=0)
    total_measure = db.Column(db.Numeric(14, 3), nullable=False, default=0)

    line = db.relationship("OrderLine", back_populates="packing")
    pieces = db.relationship(
        "PackingPieceRecord",
        back_populates="packing",
        cascade="all, delete-orphan",
        order_by="PackingPieceRecord.id",
        lazy=True,
    )

    def to_dict(self) -> dict:
        boxes: dict[int, list[str]] = {}
        loose: list[str] = []
        for piece in self.pieces:
            if piece.box_number is None:
                loose.append(str(piece.measure))
            else:
                boxes.setdefault(piece.box_number, []).append(str(piece.measure))
        return {
            "entry_mode": self.entry_mode,
            "total_boxes": self.total_boxes,
            "total_pieces": self.total_pieces,
            "total_measure": str(self.total_measure),
            "boxes": [boxes[n] for n in sorted(boxes)],
            "loose_pieces": loose,
        }


class PackingPieceRecord(db.Model):
    """One measured piece. box_number is NULL for loose pieces."""
    __tablename__ = "packing_pieces"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    packing_id = db.Column(
        db.Integer,
        db.ForeignKey("packing_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    box_number = db.Column(db.Integer, nullable=True)
    measure = db.Column(db.Numeric(14, 3), nullable=False, default=0)

    packing = db.relationship("PackingRecord", back_populates="pieces")


class OrderCharge(db.Model):
    """Extra fixed charge: "services" on a sale, "COGS" on a purchase."""
    __tablename__ = "order_charges"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    label = db.Column(db.String(120), nullable=False)
    amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    order = db.relationship("Order", back_populates="charges")

    def to_dict(self) -> dict:
        return {"id": self.id, "label": self.label, "amount": money_str(self.amount)}


class OrderPayment(db.Model):
    __tablename__ = "order_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    method = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    reference = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", back_populates="payments")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "method": self.method,
            "amount": money_str(self.amount),
            "reference": self.reference,
            "created_at": to_utc_z(self.created_at),
        }
