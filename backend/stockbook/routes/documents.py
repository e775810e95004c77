# Overview: Flask API routes for document numbering; parses input and returns JSON responses.

"""
Document Numbering Routes

Preview of the number the next committed order would receive. Nothing is
reserved: the number is derived again at commit time.
"""

from flask import Blueprint, request, jsonify, current_app

from ..drafts import ORDER_SALE, ORDER_TYPES
from ..services.document_service import DocumentSequenceError, next_document_number
from ..services.store_gateways import SqlNumberingGateway, prefix_for
from ..time_utils import parse_iso_date, today


documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")


@documents_bp.get("/next-number")
def next_number_route():
    """
    Query params:
    - order_type: sale | purchase (default sale); picks the configured prefix
    - prefix: overrides the configured prefix
    - format: long | short | custom (default from config)
    - date: YYYY-MM-DD reference date (default today, UTC)
    """
    order_type = request.args.get("order_type") or ORDER_SALE
    if order_type not in ORDER_TYPES:
        return jsonify({"error": f"Invalid order_type. Must be one of: {', '.join(ORDER_TYPES)}"}), 400

    prefix = request.args.get("prefix") or prefix_for(order_type)
    fmt = request.args.get("format") or current_app.config.get("DOCUMENT_NUMBER_FORMAT", "long")

    try:
        reference_date = parse_iso_date(request.args.get("date")) or today()
    except ValueError:
        return jsonify({"error": "Invalid date"}), 400

    try:
        number = next_document_number(
            SqlNumberingGateway(),
            prefix=prefix,
            fmt=fmt,
            reference_date=reference_date,
            template=current_app.config.get("DOCUMENT_NUMBER_TEMPLATE") or None,
        )
    except DocumentSequenceError as e:
        return jsonify({"error": e.message, "details": e.details}), 400

    return jsonify({
        "document_number": number.value,
        "sequence": number.sequence,
        "is_fallback": number.is_fallback,
        "warnings": [number.warning.to_dict()] if number.warning else [],
    }), 200
