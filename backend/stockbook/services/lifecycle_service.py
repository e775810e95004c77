# Overview: Service-layer operations for order lifecycle; status state machine.

"""
Stockbook Order Lifecycle

================================================================================
STATE MACHINE
================================================================================

Sales:
    draft -> final
    draft -> cancelled

Purchases (additionally):
    draft -> pending | ordered | received | final
    pending -> ordered -> received
    pending -> cancelled

'final', 'ordered' and 'received' share the same underlying FINAL state.
Entering the FINAL state from a non-final state is the only trigger for stock
mutation and accounting emission. Moving between two final statuses
(ordered -> received) changes the label only; stock has already moved.

RULES:
1. cancelled is terminal.
2. Nothing leaves the FINAL state except forward along ordered -> received.
3. Only draft/cancelled orders may be deleted; finalized orders need
   compensating entries, not deletion.
================================================================================
"""

from __future__ import annotations

from ..drafts import ORDER_PURCHASE, ORDER_SALE
from ..errors import LifecycleError


STATUS_DRAFT = "draft"
STATUS_FINAL = "final"
STATUS_CANCELLED = "cancelled"
STATUS_PENDING = "pending"
STATUS_ORDERED = "ordered"
STATUS_RECEIVED = "received"

VALID_STATUSES = {
    STATUS_DRAFT,
    STATUS_FINAL,
    STATUS_CANCELLED,
    STATUS_PENDING,
    STATUS_ORDERED,
    STATUS_RECEIVED,
}

FINAL_STATUSES = {STATUS_FINAL, STATUS_ORDERED, STATUS_RECEIVED}

SALE_STATUSES = {STATUS_DRAFT, STATUS_FINAL, STATUS_CANCELLED}

DELETABLE_STATUSES = {STATUS_DRAFT, STATUS_CANCELLED}

_SALE_TRANSITIONS = {
    (STATUS_DRAFT, STATUS_FINAL),
    (STATUS_DRAFT, STATUS_CANCELLED),
}

_PURCHASE_TRANSITIONS = _SALE_TRANSITIONS | {
    (STATUS_DRAFT, STATUS_PENDING),
    (STATUS_DRAFT, STATUS_ORDERED),
    (STATUS_DRAFT, STATUS_RECEIVED),
    (STATUS_PENDING, STATUS_ORDERED),
    (STATUS_PENDING, STATUS_RECEIVED),
    (STATUS_PENDING, STATUS_FINAL),
    (STATUS_PENDING, STATUS_CANCELLED),
    (STATUS_ORDERED, STATUS_RECEIVED),
}


def validate_status(order_type: str, status: str) -> None:
    if status not in VALID_STATUSES:
        raise LifecycleError(
            f"Invalid status '{status}'. Must be one of: {', '.join(sorted(VALID_STATUSES))}"
        )
    if order_type == ORDER_SALE and status not in SALE_STATUSES:
        raise LifecycleError(f"Status '{status}' is only valid for purchases")


def is_final(status: str) -> bool:
    return status in FINAL_STATUSES


def underlying_status(status: str) -> str:
    """Collapse purchase-specific labels onto the shared status set."""
    return STATUS_FINAL if status in FINAL_STATUSES else status


def can_transition(order_type: str, from_status: str, to_status: str) -> bool:
    validate_status(order_type, from_status)
    validate_status(order_type, to_status)

    if from_status == to_status:
        return False

    table = _PURCHASE_TRANSITIONS if order_type == ORDER_PURCHASE else _SALE_TRANSITIONS
    return (from_status, to_status) in table


def ensure_transition(order_type: str, from_status: str, to_status: str) -> None:
    if not can_transition(order_type, from_status, to_status):
        raise LifecycleError(
            f"Cannot move {order_type} from '{from_status}' to '{to_status}'",
            details={"from": from_status, "to": to_status},
        )


def moves_stock(from_status: str | None, to_status: str) -> bool:
    """True only when an order enters the FINAL state from outside it."""
    return is_final(to_status) and not (from_status and is_final(from_status))


def is_deletable(status: str) -> bool:
    return status in DELETABLE_STATUSES
