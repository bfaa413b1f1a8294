# Overview: Flask API routes for stock levels and manual adjustments; parses input and returns JSON responses.

from flask import Blueprint, request, current_app

from ..models import StockAdjustment
from ..money import format_quantity
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_stock_adjustment,
    ValidationError,
    NotFoundError,
    PersistenceError,
)
from ..services.stock_service import (
    adjust_stock,
    get_stock,
    list_products_with_stock,
    list_stock_adjustments,
)

"""
Stock semantics:
- current_stock = purchases - sales + adjustments, recomputed on every read.
- Adjustments are append-only; a wrong adjustment is fixed with an opposite one.
"""

ADJUSTMENT_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "quantity", "notes"},
    required_on_create={"product_id", "quantity"},
)

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock")


@stock_bp.get("")
def stock_levels_route():
    include_inactive = request.args.get("include_inactive", "").lower() in ("1", "true", "yes")
    items = list_products_with_stock(include_inactive=include_inactive)
    if request.args.get("out_of_stock", "").lower() in ("1", "true", "yes"):
        items = [p for p in items if p["out_of_stock"]]
    return {"items": items}, 200


@stock_bp.post("/adjust")
def adjust_stock_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=StockAdjustment, payload=payload, policy=ADJUSTMENT_POLICY, partial=False)
        enforce_rules_stock_adjustment(patch)
        adj = adjust_stock(product_id=patch["product_id"], quantity=patch["quantity"], notes=patch.get("notes"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except PersistenceError:
        current_app.logger.exception("Failed to adjust stock")
        return {"error": "Internal server error"}, 500

    current_app.logger.info("Stock adjusted for product %s by %s", adj.product_id, format_quantity(adj.quantity))
    data = adj.to_dict()
    data["current_stock"] = format_quantity(get_stock(adj.product_id))
    return data, 201


@stock_bp.get("/<int:product_id>/adjustments")
def list_adjustments_route(product_id: int):
    limit = request.args.get("limit", default=200, type=int)
    limit = max(1, min(limit, 1000))
    try:
        rows = list_stock_adjustments(product_id=product_id, limit=limit)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"items": [adj.to_dict() for adj in rows]}, 200
