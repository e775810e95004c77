# Overview: Flask API routes for product variations; parses input and returns JSON responses.

# backend/stockbook/routes/products.py
"""
Variation picker routes.

The entry screen calls this when a product is chosen. A single option is
returned as "auto_selected" and can be added directly; otherwise the operator
must pick one before the line exists.
"""
from flask import Blueprint, request, jsonify

from ..drafts import ORDER_SALE
from ..errors import EmptyCatalog, PersistenceError, ValidationError
from ..services.store_gateways import SqlCatalogGateway
from ..services.variation_service import auto_select, price_role_for, requires_selection, resolve_variations


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("/<int:product_id>/variations")
def list_variations(product_id: int):
    """
    Query params:
    - location_id: int (required) - stock is reported for this location
    - role: buy | retail | wholesale (optional)
    - order_type / customer_type: used to derive role when role is omitted
    """
    location_id = request.args.get("location_id", type=int)
    if not location_id:
        return jsonify({"error": "location_id required"}), 400

    role = request.args.get("role") or price_role_for(
        request.args.get("order_type") or ORDER_SALE,
        request.args.get("customer_type"),
    )

    try:
        options = resolve_variations(SqlCatalogGateway(), product_id, location_id, role)
    except ValidationError as e:
        return jsonify({"error": e.message, "details": e.details}), 400
    except EmptyCatalog as e:
        return jsonify({"error": e.message, "kind": e.kind.value, "details": e.details}), 422
    except PersistenceError as e:
        return jsonify({"error": e.message}), 500

    only = auto_select(options)
    return jsonify({
        "product_id": product_id,
        "location_id": location_id,
        "role": role,
        "requires_selection": requires_selection(options),
        "auto_selected": only.id if only is not None else None,
        "items": [option.to_dict() for option in options],
    }), 200
