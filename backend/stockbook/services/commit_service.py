# Overview: Service-layer operations for order commit; orchestrates header, lines, stock and accounting.

"""
Order Commit Pipeline

WHY: Turning a cart into a committed sale/purchase touches four things that
must stay consistent under partial failure: the order record, its lines,
the stock ledger and the accounting ledger.

SEQUENCE (fixed; later steps need identifiers from earlier ones):
    0. validate draft                      (no I/O)          -> fail: validation
    1. allocate document number            (fallback ok)     -> fail: numbering
    2. re-resolve every line's variation   (VariationMissing) -> fail: lines
    3. insert order header                 (nothing to undo)  -> fail: header
    4. insert line items                   (delete header)    -> fail: lines
    5. insert payment entries              (delete header)    -> fail: payment
    6. finalizing only: stock deltas       (warning, never rollback)
    7. finalizing only: accounting entries (warning, never rollback)

ASYMMETRY:
- Steps 3-5 are hard: a failure removes whatever this commit wrote, so no
  orphaned header survives the call.
- Steps 6-7 are soft: once the financial record is durable it is the source
  of truth. Stock/accounting failures are returned as warnings for manual
  reconciliation.

CONCURRENCY:
- Every gateway call is issued sequentially; no parallel writes.
- Stock is read-modify-write with an optimistic version check. A conflict is
  re-read and retried a bounded number of times before it becomes a warning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable

from ..drafts import ORDER_PURCHASE, ORDER_SALE, PAYMENT_METHOD_CASH, OrderDraft
from ..errors import (
    AccountingSyncWarning,
    EngineError,
    EngineWarning,
    ErrorKind,
    LifecycleError,
    PersistenceError,
    StockConflict,
    StockSyncWarning,
    ValidationError,
    VariationMissing,
)
from ..money import ZERO, as_decimal, non_negative
from ..time_utils import today
from ..validation import validate_draft
from . import lifecycle_service
from .document_service import FORMAT_LONG, DocumentSequenceError, next_document_number
from .gateways import AccountingSink, CatalogGateway, NumberingGateway, OrderGateway, StockGateway
from .payment_service import PAYMENT_STATUS_PAID, PaymentSummary, summarize
from .pricing_service import InvoiceTotals, compute_totals
from .variation_service import verify_binding


logger = logging.getLogger("stockbook.commit")


STAGE_VALIDATION = "validation"
STAGE_HEADER = "header"
STAGE_LINES = "lines"
STAGE_STOCK = "stock"
STAGE_PAYMENT = "payment"
STAGE_NUMBERING = "numbering"


@dataclass(frozen=True)
class CommitResult:
    success: bool
    order_id: int | None = None
    document_number: str | None = None
    status: str | None = None
    stage: str | None = None
    message: str | None = None
    error_kind: ErrorKind | None = None
    details: dict = field(default_factory=dict)
    warnings: tuple[EngineWarning, ...] = ()
    totals: InvoiceTotals | None = None
    payment: PaymentSummary | None = None

    @classmethod
    def failed(cls, stage: str, error: EngineError, **extra) -> "CommitResult":
        details = dict(error.details)
        details.update(extra.pop("details", {}))
        return cls(
            success=False,
            stage=stage,
            message=extra.pop("message", error.message),
            error_kind=error.kind,
            details=details,
            **extra,
        )

    def to_dict(self) -> dict:
        if not self.success:
            return {
                "success": False,
                "stage": self.stage,
                "message": self.message,
                "kind": self.error_kind.value if self.error_kind else None,
                "details": self.details,
                "warnings": [w.to_dict() for w in self.warnings],
            }
        body = {
            "success": True,
            "order_id": self.order_id,
            "document_number": self.document_number,
            "status": self.status,
            "warnings": [w.to_dict() for w in self.warnings],
        }
        if self.totals is not None:
            body["totals"] = self.totals.to_dict()
        if self.payment is not None:
            body["payment"] = self.payment.to_dict()
        return body


@dataclass(frozen=True)
class NumberingPolicy:
    sale_prefix: str = "INV"
    purchase_prefix: str = "PUR"
    fmt: str = FORMAT_LONG
    template: str | None = None

    def prefix_for(self, order_type: str) -> str:
        return self.purchase_prefix if order_type == ORDER_PURCHASE else self.sale_prefix


class OrderCommitPipeline:
    """Orchestrates one order at a time against the supplied gateways."""

    def __init__(
        self,
        *,
        catalog: CatalogGateway,
        stock: StockGateway,
        orders: OrderGateway,
        numbering: NumberingGateway,
        accounting: AccountingSink,
        numbering_policy: NumberingPolicy | None = None,
        stock_retry_attempts: int = 3,
        clock: Callable[[], date] = today,
    ):
        self.catalog = catalog
        self.stock = stock
        self.orders = orders
        self.numbering = numbering
        self.accounting = accounting
        self.numbering_policy = numbering_policy or NumberingPolicy()
        self.stock_retry_attempts = max(1, stock_retry_attempts)
        self.clock = clock

    # =========================================================================
    # COMMIT A NEW ORDER
    # =========================================================================

    def commit(self, draft: OrderDraft) -> CommitResult:
        try:
            validate_draft(draft)
        except ValidationError as exc:
            return CommitResult.failed(STAGE_VALIDATION, exc)

        warnings: list[EngineWarning] = []
        document_date = draft.document_date or self.clock()

        if not draft.document_number:
            policy = self.numbering_policy
            try:
                number = next_document_number(
                    self.numbering,
                    prefix=policy.prefix_for(draft.order_type),
                    fmt=policy.fmt,
                    reference_date=document_date,
                    template=policy.template,
                )
            except DocumentSequenceError as exc:
                return CommitResult.failed(STAGE_NUMBERING, exc)
            if number.warning is not None:
                warnings.append(number.warning)
            draft = draft.with_document_number(number.value)

        verified = []
        for line in draft.lines:
            try:
                record = verify_binding(self.catalog, line, draft.location_id)
            except (VariationMissing, PersistenceError) as exc:
                logger.warning("Commit aborted before header insert: %s", exc.message)
                return CommitResult.failed(STAGE_LINES, exc)
            # SKU snapshot is taken from the catalog when the caller did not bind one
            verified.append(line if line.sku else replace(line, sku=record.sku))
        draft = draft.with_lines(verified)

        totals = compute_totals(draft)
        payment = summarize(totals.grand_total, draft.payments)

        try:
            order_id = self.orders.create_order_header(
                self._header_fields(draft, document_date, totals, payment)
            )
        except PersistenceError as exc:
            logger.error("Order header insert failed: %s", exc.message)
            return CommitResult.failed(STAGE_HEADER, exc)

        try:
            self.orders.create_line_items(order_id, draft.lines)
        except PersistenceError as exc:
            return self._abort(order_id, STAGE_LINES, exc)

        if draft.payments:
            try:
                self.orders.create_payment_entries(order_id, draft.payments)
            except PersistenceError as exc:
                return self._abort(order_id, STAGE_PAYMENT, exc)

        if lifecycle_service.is_final(draft.status):
            warnings.extend(
                self._apply_stock(
                    order_type=draft.order_type,
                    location_id=draft.location_id,
                    document_number=draft.document_number,
                    lines=((line.variation_id, line.quantity) for line in draft.lines),
                )
            )
            warnings.extend(
                self._emit_accounting(
                    order_id=order_id,
                    order_type=draft.order_type,
                    document_number=draft.document_number,
                    payments=draft.payments,
                    payment_status=payment.status,
                )
            )

        logger.info(
            "Committed %s %s (id=%s, status=%s, total=%s, warnings=%d)",
            draft.order_type,
            draft.document_number,
            order_id,
            draft.status,
            totals.grand_total,
            len(warnings),
        )
        return CommitResult(
            success=True,
            order_id=order_id,
            document_number=draft.document_number,
            status=draft.status,
            warnings=tuple(warnings),
            totals=totals,
            payment=payment,
        )

    # =========================================================================
    # STORED ORDER TRANSITIONS
    # =========================================================================

    def finalize(self, order_id: int, target_status: str = lifecycle_service.STATUS_FINAL) -> CommitResult:
        """
        Move a stored order into a final status (final / ordered / received).

        Stock and accounting run only when the order enters the final state
        from outside it; ordered -> received only relabels.
        """
        stored, failure = self._load(order_id)
        if failure is not None:
            return failure

        try:
            lifecycle_service.ensure_transition(stored.order_type, stored.status, target_status)
            if not lifecycle_service.is_final(target_status):
                raise LifecycleError(f"'{target_status}' is not a finalizing status")
        except LifecycleError as exc:
            return CommitResult.failed(STAGE_VALIDATION, exc, order_id=order_id)

        payment = summarize(stored.grand_total, stored.payments)

        try:
            self.orders.update_order_status(order_id, target_status, payment.status)
        except PersistenceError as exc:
            logger.error("Status update failed for order %s: %s", order_id, exc.message)
            return CommitResult.failed(STAGE_HEADER, exc, order_id=order_id)

        warnings: list[EngineWarning] = []
        if lifecycle_service.moves_stock(stored.status, target_status):
            warnings.extend(
                self._apply_stock(
                    order_type=stored.order_type,
                    location_id=stored.location_id,
                    document_number=stored.document_number,
                    lines=((line.variation_id, line.quantity) for line in stored.lines),
                )
            )
            warnings.extend(
                self._emit_accounting(
                    order_id=order_id,
                    order_type=stored.order_type,
                    document_number=stored.document_number,
                    payments=stored.payments,
                    payment_status=payment.status,
                )
            )

        logger.info("Order %s moved %s -> %s", stored.document_number, stored.status, target_status)
        return CommitResult(
            success=True,
            order_id=order_id,
            document_number=stored.document_number,
            status=target_status,
            warnings=tuple(warnings),
            payment=payment,
        )

    def cancel(self, order_id: int) -> CommitResult:
        stored, failure = self._load(order_id)
        if failure is not None:
            return failure

        try:
            lifecycle_service.ensure_transition(
                stored.order_type, stored.status, lifecycle_service.STATUS_CANCELLED
            )
        except LifecycleError as exc:
            return CommitResult.failed(STAGE_VALIDATION, exc, order_id=order_id)

        try:
            self.orders.update_order_status(order_id, lifecycle_service.STATUS_CANCELLED, stored.payment_status)
        except PersistenceError as exc:
            return CommitResult.failed(STAGE_HEADER, exc, order_id=order_id)

        logger.info("Order %s cancelled", stored.document_number)
        return CommitResult(
            success=True,
            order_id=order_id,
            document_number=stored.document_number,
            status=lifecycle_service.STATUS_CANCELLED,
        )

    def delete_draft(self, order_id: int) -> CommitResult:
        """Delete a draft/cancelled order with its lines and payments. Finalized orders are refused."""
        stored, failure = self._load(order_id)
        if failure is not None:
            return failure

        if not lifecycle_service.is_deletable(stored.status):
            exc = LifecycleError(
                f"Order {stored.document_number} is '{stored.status}'; "
                "finalized orders need compensating entries, not deletion",
                details={"status": stored.status},
            )
            return CommitResult.failed(STAGE_VALIDATION, exc, order_id=order_id)

        try:
            self.orders.delete_order_header(order_id)
        except PersistenceError as exc:
            return CommitResult.failed(STAGE_HEADER, exc, order_id=order_id)

        logger.info("Order %s deleted", stored.document_number)
        return CommitResult(success=True, order_id=order_id, document_number=stored.document_number)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _load(self, order_id: int):
        try:
            stored = self.orders.load_order(order_id)
        except PersistenceError as exc:
            return None, CommitResult.failed(STAGE_HEADER, exc, order_id=order_id)
        if stored is None:
            exc = ValidationError(f"Order {order_id} not found", details={"order_id": order_id, "reason": "not_found"})
            return None, CommitResult.failed(STAGE_VALIDATION, exc, order_id=order_id)
        return stored, None

    def _header_fields(
        self,
        draft: OrderDraft,
        document_date: date,
        totals: InvoiceTotals,
        payment: PaymentSummary,
    ) -> dict:
        return {
            "order_type": draft.order_type,
            "location_id": draft.location_id,
            "contact_id": draft.contact_id,
            "customer_type": draft.customer_type,
            "status": draft.status,
            "payment_status": payment.status,
            "document_number": draft.document_number,
            "document_date": document_date,
            "items_subtotal": totals.items_subtotal,
            "discount_percent": totals.discount_percent,
            "discount_amount": totals.discount_amount,
            "extra_charges_amount": totals.extra_charges,
            "shipping_amount": totals.shipping,
            "grand_total": totals.grand_total,
            "total_paid": payment.total_paid,
            "notes": draft.notes,
            "extra_charges": [
                {"label": c.label, "amount": non_negative(c.amount)} for c in draft.extra_charges
            ],
        }

    def _abort(self, order_id: int, stage: str, error: EngineError) -> CommitResult:
        """Compensating rollback: remove the header (and anything cascaded under it)."""
        logger.error("Commit failed at %s for order %s: %s; rolling back header", stage, order_id, error.message)
        try:
            self.orders.delete_order_header(order_id)
        except PersistenceError as cleanup_exc:
            logger.critical("Compensating delete of order %s failed: %s", order_id, cleanup_exc.message)
            return CommitResult.failed(
                stage,
                error,
                message=f"{error.message} (rollback of order {order_id} also failed)",
                details={"rollback_failed": True, "orphan_order_id": order_id},
            )
        return CommitResult.failed(stage, error)

    def _apply_stock(
        self,
        *,
        order_type: str,
        location_id: int,
        document_number: str,
        lines: Iterable[tuple[int, Decimal]],
    ) -> list[EngineWarning]:
        """Sequential per-line stock mutation. Failures become warnings; nothing is rolled back."""
        warnings: list[EngineWarning] = []
        sign = 1 if order_type == ORDER_PURCHASE else -1

        for variation_id, quantity in lines:
            delta = as_decimal(quantity) * sign
            try:
                applied = self._apply_stock_delta(
                    variation_id,
                    location_id,
                    delta,
                    clamp_at_zero=(order_type == ORDER_SALE),
                )
            except (PersistenceError, StockConflict) as exc:
                logger.warning(
                    "Stock sync failed for %s variation=%s location=%s delta=%s: %s",
                    document_number,
                    variation_id,
                    location_id,
                    delta,
                    exc.message,
                )
                warnings.append(
                    StockSyncWarning(
                        f"Stock not updated for variation {variation_id}: {exc.message}",
                        variation_id=variation_id,
                        location_id=location_id,
                        delta=str(delta),
                        cause=exc.kind.value,
                    )
                )
                continue
            if applied != delta:
                warnings.append(
                    StockSyncWarning(
                        f"Stock for variation {variation_id} clamped at zero: applied {applied} of {delta}",
                        variation_id=variation_id,
                        location_id=location_id,
                        delta=str(delta),
                        applied_delta=str(applied),
                        cause="clamped",
                    )
                )
        return warnings

    def _apply_stock_delta(self, variation_id: int, location_id: int, delta: Decimal, *, clamp_at_zero: bool) -> Decimal:
        """Read-modify-write with version check and bounded retry. Returns the delta actually applied."""
        attempts = self.stock_retry_attempts
        for attempt in range(attempts):
            level = self.stock.get_stock(variation_id, location_id)
            new_quantity = level.quantity + delta
            if clamp_at_zero and new_quantity < ZERO:
                logger.warning(
                    "Stock for variation=%s location=%s would go negative (%s); clamped to 0",
                    variation_id,
                    location_id,
                    new_quantity,
                )
                new_quantity = ZERO
            try:
                self.stock.upsert_stock(
                    variation_id,
                    location_id,
                    new_quantity,
                    expected_version=level.version,
                )
                return new_quantity - level.quantity
            except StockConflict:
                if attempt >= attempts - 1:
                    raise
                logger.info(
                    "Stock entry variation=%s location=%s changed concurrently; retry %d/%d",
                    variation_id,
                    location_id,
                    attempt + 1,
                    attempts - 1,
                )

    def _emit_accounting(
        self,
        *,
        order_id: int,
        order_type: str,
        document_number: str,
        payments,
        payment_status: str,
    ) -> list[EngineWarning]:
        """One accounting entry per payment, only for fully paid or all-cash orders."""
        payments = tuple(payments)
        if not payments:
            return []
        all_cash = all(p.method == PAYMENT_METHOD_CASH for p in payments)
        if payment_status != PAYMENT_STATUS_PAID and not all_cash:
            logger.info("Order %s is %s with non-cash tenders; accounting deferred", document_number, payment_status)
            return []

        label = "Purchase" if order_type == ORDER_PURCHASE else "Sale"
        warnings: list[EngineWarning] = []
        for payment in payments:
            try:
                self.accounting.record_payment(
                    order_id,
                    payment.amount,
                    payment.method,
                    payment.reference,
                    f"{label} {document_number} payment via {payment.method}",
                )
            except EngineError as exc:
                logger.warning("Accounting entry failed for %s (%s %s): %s", document_number, payment.method, payment.amount, exc.message)
                warnings.append(
                    AccountingSyncWarning(
                        f"Accounting entry not recorded for {payment.method} payment of {payment.amount}",
                        order_id=order_id,
                        method=payment.method,
                        amount=str(payment.amount),
                        cause=exc.kind.value,
                    )
                )
        return warnings
