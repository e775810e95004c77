from __future__ import annotations

from decimal import Decimal
from typing import Any

from .drafts import (
    CUSTOMER_TYPES,
    ORDER_PURCHASE,
    ORDER_TYPES,
    ExtraCharge,
    LineDraft,
    OrderDraft,
)
from .errors import LifecycleError, ValidationError
from .money import ZERO, as_decimal
from .services import lifecycle_service
from .services.packing_service import apply_packing, packing_from_payload
from .services.payment_service import make_payment
from .time_utils import parse_iso_date


# Maximum unit price / charge: 9,999,999,999.99
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT = Decimal("9999999999.99")

# Statuses a brand-new order may be committed with
CREATABLE_STATUSES = {
    lifecycle_service.STATUS_DRAFT,
    lifecycle_service.STATUS_FINAL,
    lifecycle_service.STATUS_PENDING,
    lifecycle_service.STATUS_ORDERED,
    lifecycle_service.STATUS_RECEIVED,
}


def _coerce_id(value: Any, field: str, *, required: bool = False) -> int | None:
    """Strict integer ids: reject floats, decimals and scientific notation."""
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field} is required", details={"field": field})
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.isdigit():
            return int(stripped)
    raise ValidationError(f"{field} must be an integer", details={"field": field})


def _coerce_amount(value: Any, field: str) -> Decimal:
    amount = as_decimal(value)
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds the maximum allowed amount", details={"field": field})
    return amount


def _entries(value: Any, field: str) -> list[dict]:
    """A list of JSON objects; null entries count as empty objects."""
    if value is None or value == "":
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list", details={"field": field})
    entries = []
    for i, item in enumerate(value):
        item = {} if item is None else item
        if not isinstance(item, dict):
            raise ValidationError(f"{field}[{i}] must be an object", details={"field": f"{field}[{i}]"})
        entries.append(item)
    return entries


def line_from_payload(data: dict, index: int) -> LineDraft:
    """
    Build a line from an already-selected variation.

    The payload carries what the variation picker bound (variation_id, sku,
    unit_price); commit re-verifies the binding against the catalog.
    """
    field_prefix = f"lines[{index}]"
    line = LineDraft(
        product_id=_coerce_id(data.get("product_id"), f"{field_prefix}.product_id", required=True),
        variation_id=_coerce_id(data.get("variation_id"), f"{field_prefix}.variation_id"),
        sku=(data.get("sku") or None),
        quantity=as_decimal(data.get("quantity")),
        unit_price=_coerce_amount(data.get("unit_price"), f"{field_prefix}.unit_price"),
        line_discount=as_decimal(data.get("line_discount")),
    )
    packing = packing_from_payload(data.get("packing"))
    if packing is not None:
        line = apply_packing(line, packing)
    return line


def draft_from_payload(order_type: str, payload: dict | None) -> OrderDraft:
    """
    Convert a JSON payload into an immutable OrderDraft. Shape errors raise ValidationError.

    customer_type is not taken from the payload: it belongs to the contact and
    is filled in by apply_counterparty.
    """
    payload = payload or {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    if order_type not in ORDER_TYPES:
        raise ValidationError(f"Invalid order type '{order_type}'", details={"field": "order_type"})

    lines = tuple(line_from_payload(item, i) for i, item in enumerate(_entries(payload.get("lines"), "lines")))

    charges = tuple(
        ExtraCharge(label=str(c.get("label") or "charge"), amount=_coerce_amount(c.get("amount"), "extra_charges"))
        for c in _entries(payload.get("extra_charges"), "extra_charges")
    )

    payments = tuple(
        make_payment(p.get("method"), p.get("amount"), p.get("reference"))
        for p in _entries(payload.get("payments"), "payments")
    )

    try:
        document_date = parse_iso_date(payload.get("document_date"))
    except ValueError:
        raise ValidationError("document_date must be an ISO-8601 date", details={"field": "document_date"})

    notes = payload.get("notes")
    return OrderDraft(
        order_type=order_type,
        location_id=_coerce_id(payload.get("location_id"), "location_id"),
        contact_id=_coerce_id(payload.get("contact_id"), "contact_id"),
        status=(payload.get("status") or lifecycle_service.STATUS_DRAFT),
        document_date=document_date,
        document_number=(payload.get("document_number") or None),
        discount_percent=as_decimal(payload.get("discount_percent")),
        extra_charges=charges,
        shipping=_coerce_amount(payload.get("shipping"), "shipping"),
        payments=payments,
        lines=lines,
        notes=str(notes).strip() if notes else None,
    )


def validate_draft(draft: OrderDraft) -> None:
    """
    Pre-commit validation. Pure: never performs I/O.

    Rejects:
    - unknown order type / customer type / status
    - missing location
    - purchase without a supplier (sales may be walk-in)
    - zero lines
    - a line without a selected variation
    - a line with non-positive unit price or quantity
    - discount percent outside 0-100
    """
    errors: list[dict] = []

    if draft.order_type not in ORDER_TYPES:
        raise ValidationError(f"Invalid order type '{draft.order_type}'", details={"field": "order_type"})

    try:
        lifecycle_service.validate_status(draft.order_type, draft.status)
    except LifecycleError as exc:
        raise ValidationError(exc.message, details={"field": "status"})
    if draft.status not in CREATABLE_STATUSES:
        raise ValidationError(f"Orders cannot be created as '{draft.status}'", details={"field": "status"})

    if draft.customer_type not in CUSTOMER_TYPES:
        errors.append({"field": "customer_type", "error": "must be retail or wholesale"})

    if draft.location_id is None:
        errors.append({"field": "location_id", "error": "location is required"})

    if draft.order_type == ORDER_PURCHASE and draft.contact_id is None:
        errors.append({"field": "contact_id", "error": "supplier is required"})

    if not draft.lines:
        errors.append({"field": "lines", "error": "at least one line item is required"})

    for i, line in enumerate(draft.lines):
        if line.variation_id is None:
            errors.append({"field": f"lines[{i}].variation_id", "error": "variation must be selected"})
        if line.unit_price <= ZERO:
            errors.append({"field": f"lines[{i}].unit_price", "error": "must be positive"})
        if line.quantity <= ZERO:
            errors.append({"field": f"lines[{i}].quantity", "error": "must be positive"})

    if draft.discount_percent < ZERO or draft.discount_percent > Decimal("100"):
        errors.append({"field": "discount_percent", "error": "must be between 0 and 100"})

    if errors:
        raise ValidationError(
            "; ".join(f"{e['field']}: {e['error']}" for e in errors),
            details={"errors": errors},
        )
