# Overview: Flask API routes for order operations; parses input and returns JSON responses.

# backend/stockbook/routes/orders.py
"""
Order API routes

Every failure body has the same shape so the entry screen can tell the
operator which step failed:

    {"success": false, "stage": "validation|header|lines|stock|payment|numbering",
     "message": "...", "kind": "...", "details": {...}}

Successful commits may still carry warnings (stock or accounting sync,
numbering fallback) for "saved, but ..." feedback.
"""

from flask import Blueprint, request, jsonify, current_app

from ..drafts import ORDER_PURCHASE, ORDER_SALE, ORDER_TYPES
from ..errors import EmptyCatalog, EngineError, ErrorKind
from ..extensions import db
from ..models import Order
from ..validation import draft_from_payload
from ..services.commit_service import STAGE_LINES, STAGE_VALIDATION, CommitResult
from ..services.packing_service import aggregate_packing
from ..services.payment_service import summarize
from ..services.pricing_service import compute_totals, line_total
from ..services.store_gateways import SqlCatalogGateway, apply_counterparty, build_pipeline
from ..services.variation_service import bind_unresolved_lines


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


_HTTP_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.LIFECYCLE: 409,
    ErrorKind.VARIATION_MISSING: 409,
    ErrorKind.EMPTY_CATALOG: 422,
    ErrorKind.STOCK_CONFLICT: 409,
    ErrorKind.PERSISTENCE: 500,
}


def _failure_response(result: CommitResult):
    status = _HTTP_STATUS_BY_KIND.get(result.error_kind, 500)
    if result.details.get("reason") == "not_found":
        status = 404
    return jsonify(result.to_dict()), status


def _prepared_draft(order_type: str, payload: dict):
    """Payload -> draft priced for its counterparty, single-variation lines bound. Raises EngineError."""
    draft = apply_counterparty(draft_from_payload(order_type, payload))
    return bind_unresolved_lines(draft, SqlCatalogGateway())


def _commit(order_type: str):
    try:
        draft = _prepared_draft(order_type, request.get_json(silent=True) or {})
    except EmptyCatalog as e:
        return _failure_response(CommitResult.failed(STAGE_LINES, e))
    except EngineError as e:
        return _failure_response(CommitResult.failed(STAGE_VALIDATION, e))

    try:
        result = build_pipeline().commit(draft)
    except Exception:
        current_app.logger.exception("Failed to commit %s", order_type)
        return jsonify({"success": False, "stage": None, "message": "Internal server error"}), 500

    if not result.success:
        current_app.logger.warning("Commit of %s failed at %s: %s", order_type, result.stage, result.message)
        return _failure_response(result)

    body = result.to_dict()
    order = db.session.get(Order, result.order_id)
    if order is not None:
        body["order"] = order.to_dict()
    return jsonify(body), 201


@orders_bp.post("/sales")
def create_sale_route():
    """Commit a sale draft. status "final" moves stock and records payments in accounting."""
    return _commit(ORDER_SALE)


@orders_bp.post("/purchases")
def create_purchase_route():
    """Commit a purchase draft. Stock moves once the purchase is final/ordered/received."""
    return _commit(ORDER_PURCHASE)


@orders_bp.post("/quote")
def quote_route():
    """
    Price a draft without persisting anything.

    Body: same as a commit plus "order_type" (default "sale").
    Returns line totals, invoice totals, payment summary and packing totals.
    """
    data = request.get_json(silent=True) or {}
    order_type = (data.get("order_type") if isinstance(data, dict) else None) or ORDER_SALE
    if order_type not in ORDER_TYPES:
        return jsonify({"success": False, "stage": STAGE_VALIDATION, "message": f"Invalid order type '{order_type}'"}), 400

    try:
        draft = _prepared_draft(order_type, data)
    except EmptyCatalog as e:
        return _failure_response(CommitResult.failed(STAGE_LINES, e))
    except EngineError as e:
        return _failure_response(CommitResult.failed(STAGE_VALIDATION, e))

    totals = compute_totals(draft)
    payment = summarize(totals.grand_total, draft.payments)
    return jsonify({
        "success": True,
        "order_type": order_type,
        "lines": [
            {
                "product_id": line.product_id,
                "variation_id": line.variation_id,
                "sku": line.sku,
                "quantity": str(line.quantity),
                "unit_price": str(line.unit_price),
                "row_total": str(line_total(line)),
            }
            for line in draft.lines
        ],
        "totals": totals.to_dict(),
        "payment": payment.to_dict(),
        "packing": aggregate_packing(draft.lines).to_dict(),
    }), 200


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    order = db.session.get(Order, order_id)
    if not order:
        return jsonify({"error": "Order not found"}), 404
    return jsonify({"order": order.to_dict()}), 200


@orders_bp.post("/<int:order_id>/finalize")
def finalize_order_route(order_id: int):
    """
    Finalize a stored order.

    Body (optional): {"status": "final" | "ordered" | "received"}
    """
    data = request.get_json(silent=True) or {}
    target_status = data.get("status") or "final"

    try:
        result = build_pipeline().finalize(order_id, target_status)
    except Exception:
        current_app.logger.exception("Failed to finalize order %s", order_id)
        return jsonify({"success": False, "stage": None, "message": "Internal server error"}), 500

    if not result.success:
        return _failure_response(result)
    return jsonify(result.to_dict()), 200


@orders_bp.post("/<int:order_id>/cancel")
def cancel_order_route(order_id: int):
    try:
        result = build_pipeline().cancel(order_id)
    except Exception:
        current_app.logger.exception("Failed to cancel order %s", order_id)
        return jsonify({"success": False, "stage": None, "message": "Internal server error"}), 500

    if not result.success:
        return _failure_response(result)
    return jsonify(result.to_dict()), 200


@orders_bp.delete("/<int:order_id>")
def delete_order_route(order_id: int):
    """Delete a draft or cancelled order. Finalized orders are refused with 409."""
    try:
        result = build_pipeline().delete_draft(order_id)
    except Exception:
        current_app.logger.exception("Failed to delete order %s", order_id)
        return jsonify({"success": False, "stage": None, "message": "Internal server error"}), 500

    if not result.success:
        return _failure_response(result)
    return jsonify(result.to_dict()), 200
