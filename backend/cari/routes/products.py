# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/cari/routes/products.py
"""
Product catalogue routes.

Products carry no stored quantity; every listing here reports stock derived
from purchases, sales and manual adjustments.
"""
from flask import Blueprint, request, current_app

from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
    NotFoundError,
    PersistenceError,
)
from ..services.product_service import (
    create_product,
    get_product,
    update_product,
    set_product_active,
    delete_product,
    bulk_import_products,
)
from ..services.stock_service import get_stock, list_products_with_stock, product_with_stock

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "unit", "is_active"},
    required_on_create={"name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products_route():
    """
    Query params:
    - include_inactive: "1"/"true" to list deactivated products too
    """
    include_inactive = request.args.get("include_inactive", "").lower() in ("1", "true", "yes")
    return {"items": list_products_with_stock(include_inactive=include_inactive)}, 200


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = create_product(name=patch["name"], unit=patch.get("unit") or "kg")
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except PersistenceError:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return product_with_stock(created, get_stock(created.id)), 201


@products_bp.post("/bulk")
def bulk_import_products_route():
    payload = request.get_json(silent=True) or {}
    rows = payload.get("rows")
    if not isinstance(rows, list) or not rows:
        return {"error": "rows must be a non-empty list"}, 400

    try:
        for idx, row in enumerate(rows, start=1):
            try:
                enforce_rules_product(
                    validate_payload(model=Product, payload=row, policy=PRODUCT_POLICY, partial=False)
                )
            except ValidationError as e:
                raise ValidationError(f"row {idx}: {e}") from e
        result = bulk_import_products(rows)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except PersistenceError:
        current_app.logger.exception("Failed to bulk import products")
        return {"error": "Internal server error"}, 500

    return result, 201


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return product_with_stock(product, get_stock(product.id)), 200


@products_bp.patch("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = update_product(product_id=product_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except PersistenceError:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500

    return product_with_stock(updated, get_stock(updated.id)), 200


def _set_active(product_id: int, is_active: bool):
    try:
        product = set_product_active(product_id=product_id, is_active=is_active)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except PersistenceError:
        current_app.logger.exception("Failed to change product status")
        return {"error": "Internal server error"}, 500
    return product_with_stock(product, get_stock(product.id)), 200


@products_bp.post("/<int:product_id>/deactivate")
def deactivate_product_route(product_id: int):
    return _set_active(product_id, False)


@products_bp.post("/<int:product_id>/reactivate")
def reactivate_product_route(product_id: int):
    return _set_active(product_id, True)


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    try:
        delete_product(product_id=product_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except PersistenceError:
        current_app.logger.exception("Failed to delete product")
        return {"error": "Internal server error"}, 500

    return {"ok": True}, 200
