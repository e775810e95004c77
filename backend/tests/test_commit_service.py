"""
Commit pipeline against in-memory gateways.

Covers the hard/soft failure asymmetry: header, lines and payments roll back;
stock and accounting failures become warnings on a successful result.
"""

from decimal import Decimal

import pytest

from stockbook.drafts import ExtraCharge, LineDraft, OrderDraft, PaymentEntry
from stockbook.errors import ErrorKind


def _sale(status="final", qty="3", price="100", payments=(), variation_id=11, product_id=1, **kwargs):
    return OrderDraft(
        order_type="sale",
        location_id=1,
        status=status,
        lines=(LineDraft(product_id=product_id, variation_id=variation_id, quantity=Decimal(qty), unit_price=Decimal(price)),),
        payments=tuple(payments),
        **kwargs,
    )


def _purchase(status="received", **kwargs):
    return OrderDraft(
        order_type="purchase",
        location_id=1,
        contact_id=5,
        status=status,
        lines=(
            LineDraft(product_id=1, variation_id=11, quantity=Decimal("2"), unit_price=Decimal("300")),
            LineDraft(product_id=2, variation_id=21, quantity=Decimal("0.5"), unit_price=Decimal("800")),
        ),
        **kwargs,
    )


# =============================================================================
# SCENARIOS
# =============================================================================

def test_simple_sale(pipeline, gateways):
    gateways.stock.seed(11, 1, "10")

    result = pipeline.commit(_sale(payments=[PaymentEntry("cash", Decimal("300"))]))

    assert result.success
    assert result.document_number == "INV-2024-0001"
    assert result.totals.items_subtotal == Decimal("300.00")
    assert result.totals.grand_total == Decimal("300.00")
    assert result.payment.status == "paid"
    assert result.payment.balance_due == 0
    assert result.warnings == ()
    assert gateways.stock.quantity(11, 1) == Decimal("7")
    assert len(gateways.accounting.entries) == 1
    header = gateways.orders.headers[result.order_id]
    assert header["payment_status"] == "paid"
    assert header["document_date"].isoformat() == "2024-05-01"


def test_discounted_purchase(pipeline, gateways):
    draft = _purchase(
        discount_percent=Decimal("10"),
        extra_charges=(ExtraCharge("COGS", Decimal("50")),),
        shipping=Decimal("25"),
    )

    result = pipeline.commit(draft)

    assert result.success
    assert result.document_number == "PUR-2024-0001"
    assert result.totals.items_subtotal == Decimal("1000.00")
    assert result.totals.discount_amount == Decimal("100.00")
    assert result.totals.grand_total == Decimal("975.00")
    assert result.payment.status == "due"
    # Purchases add stock; entries are created on first write
    assert gateways.stock.quantity(11, 1) == Decimal("2")
    assert gateways.stock.quantity(21, 1) == Decimal("0.5")
    assert gateways.orders.headers[result.order_id]["extra_charges"] == [{"label": "COGS", "amount": Decimal("50")}]


def test_line_without_variation_fails_validation_before_any_io(pipeline, gateways):
    result = pipeline.commit(_sale(variation_id=None, product_id=2))

    assert not result.success
    assert result.stage == "validation"
    assert result.error_kind == ErrorKind.VALIDATION
    assert gateways.orders.headers == {}


def test_document_number_continues_history(pipeline, gateways):
    gateways.numbering.numbers = ["INV-2024-0041", "INV-2023-0100"]

    result = pipeline.commit(_sale(status="draft"))

    assert result.document_number == "INV-2024-0042"


def test_supplied_document_number_is_kept(pipeline, gateways):
    result = pipeline.commit(_sale(status="draft", document_number="MANUAL-7"))

    assert result.document_number == "MANUAL-7"


def test_numbering_outage_commits_with_placeholder_and_warning(pipeline, gateways):
    gateways.numbering.broken = True

    result = pipeline.commit(_sale(status="draft"))

    assert result.success
    assert result.document_number == "INV-20240501-0001"
    assert [w.kind for w in result.warnings] == [ErrorKind.NUMBERING_FALLBACK]


# =============================================================================
# HARD FAILURES ROLL BACK
# =============================================================================

def test_header_failure_writes_nothing(pipeline, gateways):
    gateways.orders.fail_on.add("header")

    result = pipeline.commit(_sale())

    assert not result.success
    assert result.stage == "header"
    assert gateways.orders.headers == {}
    assert gateways.stock.upserts == []


def test_line_failure_deletes_header(pipeline, gateways):
    gateways.orders.fail_on.add("lines")

    result = pipeline.commit(_sale())

    assert not result.success
    assert result.stage == "lines"
    assert result.error_kind == ErrorKind.PERSISTENCE
    assert gateways.orders.headers == {}
    assert gateways.orders.deleted == [1]
    assert gateways.stock.upserts == []
    assert gateways.accounting.entries == []


def test_payment_failure_deletes_header_and_lines(pipeline, gateways):
    gateways.orders.fail_on.add("payment")

    result = pipeline.commit(_sale(payments=[PaymentEntry("cash", Decimal("300"))]))

    assert not result.success
    assert result.stage == "payment"
    assert gateways.orders.headers == {}
    assert gateways.orders.lines == {}


def test_failed_compensation_is_reported(pipeline, gateways):
    gateways.orders.fail_on.update({"lines", "delete"})

    result = pipeline.commit(_sale())

    assert not result.success
    assert result.details["rollback_failed"] is True
    assert result.details["orphan_order_id"] == 1


def test_deleted_variation_aborts_before_header(pipeline, gateways):
    gateways.catalog.remove_variation(11)

    result = pipeline.commit(_sale())

    assert not result.success
    assert result.stage == "lines"
    assert result.error_kind == ErrorKind.VARIATION_MISSING
    assert gateways.orders.headers == {}


# =============================================================================
# SOFT FAILURES WARN
# =============================================================================

def test_stock_failure_still_commits_with_warning(pipeline, gateways):
    gateways.stock.fail_for.add(11)

    result = pipeline.commit(_purchase())

    assert result.success
    assert result.order_id in gateways.orders.headers
    assert [w.kind for w in result.warnings] == [ErrorKind.STOCK_SYNC]
    assert result.warnings[0].details["variation_id"] == 11
    # The other line is still applied
    assert gateways.stock.quantity(21, 1) == Decimal("0.5")


def test_stock_race_is_retried(pipeline, gateways):
    gateways.stock.seed(11, 1, "10")
    gateways.stock.races[11] = 2

    result = pipeline.commit(_sale(qty="4"))

    assert result.success
    assert result.warnings == ()
    # Two concurrent +1 writes landed before ours: 10 + 2 - 4
    assert gateways.stock.quantity(11, 1) == Decimal("8")


def test_persistent_stock_race_becomes_warning(pipeline, gateways):
    gateways.stock.seed(11, 1, "10")
    gateways.stock.races[11] = 10

    result = pipeline.commit(_sale())

    assert result.success
    assert result.warnings[0].kind == ErrorKind.STOCK_SYNC
    assert result.warnings[0].details["cause"] == "stock_conflict"


def test_sale_stock_is_clamped_at_zero_and_reported(pipeline, gateways):
    gateways.stock.seed(11, 1, "2")

    result = pipeline.commit(_sale(qty="5"))

    assert result.success
    assert gateways.stock.quantity(11, 1) == 0
    (warning,) = result.warnings
    assert warning.kind == ErrorKind.STOCK_SYNC
    assert warning.details["cause"] == "clamped"
    assert warning.details["delta"] == "-5"
    assert warning.details["applied_delta"] == "-2"


def test_draft_does_not_move_stock_or_accounting(pipeline, gateways):
    result = pipeline.commit(_sale(status="draft", payments=[PaymentEntry("cash", Decimal("300"))]))

    assert result.success
    assert gateways.stock.upserts == []
    assert gateways.accounting.entries == []


def test_accounting_failure_still_commits_with_warning(pipeline, gateways):
    gateways.stock.seed(11, 1, "10")
    gateways.accounting.broken = True

    result = pipeline.commit(_sale(payments=[PaymentEntry("card", Decimal("300"))]))

    assert result.success
    assert [w.kind for w in result.warnings] == [ErrorKind.ACCOUNTING_SYNC]


def test_partial_card_payment_is_not_sent_to_accounting(pipeline, gateways):
    result = pipeline.commit(_sale(payments=[PaymentEntry("card", Decimal("100"))]))

    assert result.payment.status == "partial"
    assert gateways.accounting.entries == []


def test_partial_cash_payment_is_sent_to_accounting(pipeline, gateways):
    result = pipeline.commit(_sale(payments=[PaymentEntry("cash", Decimal("100"))]))

    assert result.payment.status == "partial"
    assert [e["method"] for e in gateways.accounting.entries] == ["cash"]


def test_one_accounting_entry_per_payment(pipeline, gateways):
    payments = [PaymentEntry("cash", Decimal("100")), PaymentEntry("bank", Decimal("200"), "TRX-9")]

    pipeline.commit(_sale(payments=payments))

    assert [(e["method"], e["amount"], e["reference"]) for e in gateways.accounting.entries] == [
        ("cash", Decimal("100"), None),
        ("bank", Decimal("200"), "TRX-9"),
    ]


# =============================================================================
# STORED ORDER TRANSITIONS
# =============================================================================

def test_finalize_draft_moves_stock_once(pipeline, gateways):
    gateways.stock.seed(11, 1, "10")
    committed = pipeline.commit(_sale(status="draft", payments=[PaymentEntry("cash", Decimal("300"))]))

    result = pipeline.finalize(committed.order_id)

    assert result.success
    assert result.status == "final"
    assert gateways.stock.quantity(11, 1) == Decimal("7")
    assert len(gateways.accounting.entries) == 1
    assert gateways.orders.headers[committed.order_id]["status"] == "final"

    again = pipeline.finalize(committed.order_id)
    assert not again.success
    assert again.error_kind == ErrorKind.LIFECYCLE
    assert gateways.stock.quantity(11, 1) == Decimal("7")


def test_ordered_to_received_does_not_move_stock_twice(pipeline, gateways):
    committed = pipeline.commit(_purchase(status="ordered"))
    assert gateways.stock.quantity(11, 1) == Decimal("2")

    result = pipeline.finalize(committed.order_id, "received")

    assert result.success
    assert gateways.stock.quantity(11, 1) == Decimal("2")


def test_finalize_to_non_final_status_is_rejected(pipeline, gateways):
    committed = pipeline.commit(_purchase(status="draft"))

    result = pipeline.finalize(committed.order_id, "pending")

    assert not result.success
    assert result.error_kind == ErrorKind.LIFECYCLE


def test_finalize_missing_order(pipeline):
    result = pipeline.finalize(404)

    assert not result.success
    assert result.details["reason"] == "not_found"


def test_cancel_then_delete_draft(pipeline, gateways):
    committed = pipeline.commit(_sale(status="draft"))

    cancelled = pipeline.cancel(committed.order_id)
    deleted = pipeline.delete_draft(committed.order_id)

    assert cancelled.status == "cancelled"
    assert deleted.success
    assert committed.order_id not in gateways.orders.headers


def test_finalized_order_cannot_be_cancelled_or_deleted(pipeline, gateways):
    committed = pipeline.commit(_sale())

    assert pipeline.cancel(committed.order_id).error_kind == ErrorKind.LIFECYCLE
    assert pipeline.delete_draft(committed.order_id).error_kind == ErrorKind.LIFECYCLE
    assert committed.order_id in gateways.orders.headers


def test_result_serialization(pipeline, gateways):
    gateways.orders.fail_on.add("lines")

    body = pipeline.commit(_sale()).to_dict()

    assert body["success"] is False
    assert body["stage"] == "lines"
    assert body["kind"] == "persistence"


@pytest.mark.parametrize("status", ["final", "draft"])
def test_successful_result_serialization(pipeline, gateways, status):
    gateways.stock.seed(11, 1, "10")
    body = pipeline.commit(_sale(status=status)).to_dict()

    assert body["success"] is True
    assert body["status"] == status
    assert body["totals"]["grand_total"] == "300.00"
    assert body["warnings"] == []
