# Overview: Service-layer operations for payment; accumulates tenders and classifies orders.

"""
Payment Ledger

WHY: An order can be settled with several tenders (cash now, card later,
bank transfer for the rest). The ledger only adds them up; it never decides
on its own to record money.

DESIGN PRINCIPLES:
- Payments are separate entries (many-to-one with the order)
- Split payments: any number of entries, each with its own method/reference
- Partial payments: entries may sum to less than the grand total
- Quick-pay shortcuts only SUGGEST an amount; an explicit add is required
- Removing an entry just drops it from the sums (no renumbering, no locking)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..drafts import PAYMENT_METHODS, PaymentEntry
from ..errors import ValidationError
from ..money import ZERO, as_decimal, non_negative, quantize_money


# =============================================================================
# PAYMENT STATUS (CONSTANTS)
# =============================================================================

PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_PARTIAL = "partial"
PAYMENT_STATUS_DUE = "due"

QUICK_PAY_PERCENTS = (25, 50, 75, 100)


@dataclass(frozen=True)
class PaymentSummary:
    grand_total: Decimal
    total_paid: Decimal
    balance_due: Decimal
    status: str

    def to_dict(self) -> dict:
        return {
            "grand_total": str(self.grand_total),
            "total_paid": str(self.total_paid),
            "balance_due": str(self.balance_due),
            "payment_status": self.status,
        }


# =============================================================================
# PURE CALCULATIONS
# =============================================================================

def total_paid(payments) -> Decimal:
    return quantize_money(sum((non_negative(p.amount) for p in payments), ZERO))


def classify(grand_total, paid) -> str:
    """
    paid    -> paid >= grand_total
    partial -> 0 < paid < grand_total
    due     -> nothing paid against a positive total
    """
    grand_total = as_decimal(grand_total)
    paid = as_decimal(paid)
    if paid <= ZERO and grand_total > ZERO:
        return PAYMENT_STATUS_DUE
    if paid >= grand_total:
        return PAYMENT_STATUS_PAID
    return PAYMENT_STATUS_PARTIAL


def summarize(grand_total, payments) -> PaymentSummary:
    grand_total = quantize_money(grand_total)
    paid = total_paid(payments)
    return PaymentSummary(
        grand_total=grand_total,
        total_paid=paid,
        balance_due=grand_total - paid,
        status=classify(grand_total, paid),
    )


def suggest_amount(grand_total, percent) -> Decimal:
    """Quick-pay prefill: grand_total * percent / 100. Does not add a payment."""
    return quantize_money(non_negative(grand_total) * non_negative(percent) / Decimal("100"))


def make_payment(method: str, amount, reference: str | None = None) -> PaymentEntry:
    """
    Validate and build a payment entry.

    Raises:
        ValidationError: unknown method or non-positive amount
    """
    method = str(method or "").strip().lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method: {method!r}. Must be one of {list(PAYMENT_METHODS)}",
            details={"field": "method"},
        )
    value = as_decimal(amount)
    if value <= ZERO:
        raise ValidationError("Payment amount must be positive", details={"field": "amount"})
    reference = reference.strip() if isinstance(reference, str) else reference
    return PaymentEntry(method=method, amount=quantize_money(value), reference=reference or None)


# =============================================================================
# LEDGER
# =============================================================================

class PaymentLedger:
    """Accumulates payment entries for one order while it is being assembled."""

    def __init__(self, entries=()):
        self._entries: list[PaymentEntry] = list(entries)

    @property
    def entries(self) -> tuple[PaymentEntry, ...]:
        return tuple(self._entries)

    def add_payment(self, method: str, amount, reference: str | None = None) -> PaymentEntry:
        entry = make_payment(method, amount, reference)
        self._entries.append(entry)
        return entry

    def remove_payment(self, index: int) -> PaymentEntry:
        if index < 0 or index >= len(self._entries):
            raise ValidationError(f"No payment at position {index}")
        return self._entries.pop(index)

    def total_paid(self) -> Decimal:
        return total_paid(self._entries)

    def summary(self, grand_total) -> PaymentSummary:
        return summarize(grand_total, self._entries)

    def __len__(self) -> int:
        return len(self._entries)
