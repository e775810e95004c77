# Overview: Service-layer operations for pricing; line row totals and invoice aggregation.

"""
Line Pricing + Invoice Aggregation

Both are pure functions of their inputs. Totals are never cached: callers
recompute from the current OrderDraft every time something changes.

LINE:
    row_total = max(0, unit_price) * max(0, quantity)
    The line discount is carried for display/audit only and is NOT subtracted.
    All discounting happens once, at invoice level.

INVOICE:
    items_subtotal  = sum(row_total)
    discount_amount = items_subtotal * discount_percent / 100
    extra_charges   = sum(extra charge amounts)
    grand_total     = (items_subtotal - discount_amount) + extra_charges + shipping

Every term floors at 0 before use. The 0-100 range of discount_percent is
a validation policy (see validation.validate_draft), not enforced here.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..drafts import LineDraft, OrderDraft
from ..money import ZERO, non_negative, quantize_money, quantize_quantity


HUNDRED = Decimal("100")


@dataclass(frozen=True)
class InvoiceTotals:
    items_subtotal: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    extra_charges: Decimal
    shipping: Decimal
    grand_total: Decimal

    def to_dict(self) -> dict:
        return {
            "items_subtotal": str(self.items_subtotal),
            "discount_percent": str(self.discount_percent),
            "discount_amount": str(self.discount_amount),
            "extra_charges": str(self.extra_charges),
            "shipping": str(self.shipping),
            "grand_total": str(self.grand_total),
        }


def row_total(unit_price, quantity) -> Decimal:
    return non_negative(unit_price) * non_negative(quantity)


def line_total(line: LineDraft) -> Decimal:
    """Row total at stored precision, so a saved line always satisfies unit_price x quantity == row_total."""
    return row_total(quantize_money(line.unit_price), quantize_quantity(line.quantity))


def compute_totals(draft: OrderDraft) -> InvoiceTotals:
    # Each term is rounded before it is combined so the stored parts always add up
    items_subtotal = quantize_money(sum((line_total(line) for line in draft.lines), ZERO))
    discount_percent = non_negative(draft.discount_percent)
    discount_amount = quantize_money(non_negative(items_subtotal * discount_percent / HUNDRED))
    extra_charges = quantize_money(sum((non_negative(c.amount) for c in draft.extra_charges), ZERO))
    shipping = quantize_money(non_negative(draft.shipping))

    grand_total = non_negative(items_subtotal - discount_amount) + extra_charges + shipping

    return InvoiceTotals(
        items_subtotal=items_subtotal,
        discount_percent=discount_percent,
        discount_amount=discount_amount,
        extra_charges=extra_charges,
        shipping=shipping,
        grand_total=grand_total,
    )
