# Overview: Flask API routes for counterparty (cari) accounts; parses input and returns JSON responses.

# backend/cari/routes/counterparties.py
from flask import Blueprint, request, current_app

from ..models import Counterparty
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_counterparty,
    ValidationError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    COUNTERPARTY_TYPES,
)
from ..services.balance_service import get_counterparty_with_balance, list_counterparties_with_balance
from ..services.counterparty_service import (
    create_counterparty,
    update_counterparty,
    delete_counterparty,
    bulk_import_counterparties,
)
from ..services.transaction_service import list_transactions_for_counterparty
from ..services.check_service import list_checks

COUNTERPARTY_FIELDS = {
    "name",
    "phone",
    "notes",
    "invoiced",
    "tax_number",
    "tax_office",
    "company_title",
    "address",
    "payment_due_day",
}

COUNTERPARTY_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=COUNTERPARTY_FIELDS | {"type"},
    required_on_create={"type", "name"},
)

# type is deliberately absent: it cannot change after creation
COUNTERPARTY_UPDATE_POLICY = ModelValidationPolicy(writable_fields=set(COUNTERPARTY_FIELDS))

counterparties_bp = Blueprint("counterparties", __name__, url_prefix="/api/counterparties")


@counterparties_bp.get("")
def list_counterparties_route():
    """
    Query params:
    - type: customer | supplier (optional)
    - search: case-insensitive name substring (optional)
    """
    counterparty_type = request.args.get("type")
    if counterparty_type is not None and counterparty_type not in COUNTERPARTY_TYPES:
        return {"error": f"type must be one of: {', '.join(COUNTERPARTY_TYPES)}"}, 400

    rows = list_counterparties_with_balance(
        counterparty_type=counterparty_type,
        search=request.args.get("search"),
    )
    return {"items": rows}, 200


@counterparties_bp.post("")
def create_counterparty_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=Counterparty, payload=payload, policy=COUNTERPARTY_CREATE_POLICY, partial=False
        )
        enforce_rules_counterparty(patch, creating=True)
        created = create_counterparty(patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except PersistenceError:
        current_app.logger.exception("Failed to create counterparty")
        return {"error": "Internal server error"}, 500

    current_app.logger.info("Created %s %s (id=%s)", created["type"], created["name"], created["id"])
    return created, 201


@counterparties_bp.post("/bulk")
def bulk_import_counterparties_route():
    """
    Body: {"rows": [{"type", "name", ...}, ...]}

    All rows land or none do. Existing names are skipped and reported.
    """
    payload = request.get_json(silent=True) or {}
    rows = payload.get("rows")
    if not isinstance(rows, list) or not rows:
        return {"error": "rows must be a non-empty list"}, 400

    try:
        patches = []
        for idx, row in enumerate(rows, start=1):
            try:
                patch = validate_payload(
                    model=Counterparty, payload=row, policy=COUNTERPARTY_CREATE_POLICY, partial=False
                )
                enforce_rules_counterparty(patch, creating=True)
            except ValidationError as e:
                raise ValidationError(f"row {idx}: {e}") from e
            patches.append(patch)
        result = bulk_import_counterparties(patches)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except PersistenceError:
        current_app.logger.exception("Failed to bulk import counterparties")
        return {"error": "Internal server error"}, 500

    current_app.logger.info(
        "Bulk import: %d counterparties created, %d skipped", len(result["created"]), len(result["skipped"])
    )
    return result, 201


@counterparties_bp.get("/<int:counterparty_id>")
def get_counterparty_route(counterparty_id: int):
    try:
        return get_counterparty_with_balance(counterparty_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@counterparties_bp.patch("/<int:counterparty_id>")
def update_counterparty_route(counterparty_id: int):
    payload = request.get_json(silent=True) or {}
    if "type" in payload:
        return {"error": "type cannot be changed after creation"}, 400

    try:
        patch = validate_payload(
            model=Counterparty, payload=payload, policy=COUNTERPARTY_UPDATE_POLICY, partial=True
        )
        enforce_rules_counterparty(patch, creating=False)
        updated = update_counterparty(counterparty_id=counterparty_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except PersistenceError:
        current_app.logger.exception("Failed to update counterparty")
        return {"error": "Internal server error"}, 500

    return updated, 200


@counterparties_bp.delete("/<int:counterparty_id>")
def delete_counterparty_route(counterparty_id: int):
    try:
        delete_counterparty(counterparty_id=counterparty_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except PersistenceError:
        current_app.logger.exception("Failed to delete counterparty")
        return {"error": "Internal server error"}, 500

    current_app.logger.info("Deleted counterparty %s", counterparty_id)
    return {"ok": True}, 200


@counterparties_bp.get("/<int:counterparty_id>/transactions")
def list_counterparty_transactions_route(counterparty_id: int):
    try:
        return {"items": list_transactions_for_counterparty(counterparty_id)}, 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@counterparties_bp.get("/<int:counterparty_id>/checks")
def list_counterparty_checks_route(counterparty_id: int):
    try:
        checks = list_checks(counterparty_id=counterparty_id, status=request.args.get("status"))
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"items": [c.to_dict() for c in checks]}, 200
