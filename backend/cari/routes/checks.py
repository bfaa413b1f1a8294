# Overview: Flask API routes for checks and promissory notes; parses input and returns JSON responses.

# backend/cari/routes/checks.py
"""
Check/note routes.

Status moves once: pending -> paid, or pending -> bounced. Bouncing writes a
compensating ledger entry; deleting a check also deletes the ledger entries
it produced.
"""
from flask import Blueprint, request, current_app

from ..models import CheckNote
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_check,
    ValidationError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    CHECK_STATUSES,
)
from ..services.check_service import (
    create_check,
    bulk_create_checks,
    list_checks,
    get_check,
    update_check_status,
    delete_check,
    get_upcoming_checks,
)

CHECK_POLICY = ModelValidationPolicy(
    writable_fields={"counterparty_id", "kind", "direction", "amount", "due_date", "notes", "received_date", "status"},
    required_on_create={"counterparty_id", "direction", "amount", "due_date"},
    extra_fields={"create_transaction"},
)

BULK_ENTRY_POLICY = ModelValidationPolicy(
    writable_fields={"kind", "direction", "amount", "due_date", "notes", "received_date"},
    required_on_create={"direction", "amount", "due_date"},
    extra_fields={"create_transaction"},
)

checks_bp = Blueprint("checks", __name__, url_prefix="/api/checks")


def _check_fields(patch: dict) -> dict:
    return {k: v for k, v in patch.items() if k not in ("counterparty_id", "status", "create_transaction")}


@checks_bp.get("")
def list_checks_route():
    """
    Query params:
    - counterparty_id: int (optional)
    - status: pending | paid | bounced (optional)
    """
    status = request.args.get("status")
    if status is not None and status not in CHECK_STATUSES:
        return {"error": f"status must be one of: {', '.join(CHECK_STATUSES)}"}, 400

    try:
        checks = list_checks(counterparty_id=request.args.get("counterparty_id", type=int), status=status)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"items": [c.to_dict() for c in checks]}, 200


@checks_bp.get("/upcoming")
def upcoming_checks_route():
    """
    Pending checks inside the configured window.

    Query params (override config):
    - past_days: int
    - future_days: int
    """
    try:
        rows = get_upcoming_checks(
            past_days=request.args.get("past_days", type=int),
            future_days=request.args.get("future_days", type=int),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"items": rows}, 200


@checks_bp.post("")
def create_check_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=CheckNote, payload=payload, policy=CHECK_POLICY, partial=False)
        enforce_rules_check(patch)
        check = create_check(
            counterparty_id=patch["counterparty_id"],
            create_transaction=bool(patch.get("create_transaction")),
            **_check_fields(patch),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except PersistenceError:
        current_app.logger.exception("Failed to create check")
        return {"error": "Internal server error"}, 500

    current_app.logger.info("Created %s %s (id=%s, transaction=%s)", check.direction, check.kind, check.id, check.transaction_id)
    return check.to_dict(), 201


@checks_bp.post("/bulk")
def bulk_create_checks_route():
    """Body: {"counterparty_id": int, "entries": [{kind, direction, amount, due_date, ...}, ...]}"""
    payload = request.get_json(silent=True) or {}
    counterparty_id = payload.get("counterparty_id")
    entries = payload.get("entries")
    if not isinstance(counterparty_id, int) or isinstance(counterparty_id, bool):
        return {"error": "counterparty_id must be an integer"}, 400
    if not isinstance(entries, list) or not entries:
        return {"error": "entries must be a non-empty list"}, 400

    try:
        validated = []
        for idx, entry in enumerate(entries, start=1):
            try:
                patch = validate_payload(model=CheckNote, payload=entry, policy=BULK_ENTRY_POLICY, partial=False)
                enforce_rules_check(patch)
            except ValidationError as e:
                raise ValidationError(f"entry {idx}: {e}") from e
            validated.append(patch)
        checks = bulk_create_checks(counterparty_id=counterparty_id, entries=validated)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except PersistenceError:
        current_app.logger.exception("Failed to bulk create checks")
        return {"error": "Internal server error"}, 500

    return {"items": [c.to_dict() for c in checks]}, 201


@checks_bp.get("/<int:check_id>")
def get_check_route(check_id: int):
    try:
        return get_check(check_id).to_dict(), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@checks_bp.patch("/<int:check_id>/status")
def update_check_status_route(check_id: int):
    """Body: {"status": "paid" | "bounced"}"""
    payload = request.get_json(silent=True) or {}

    try:
        check = update_check_status(check_id=check_id, status=payload.get("status"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except PersistenceError:
        current_app.logger.exception("Failed to update check status")
        return {"error": "Internal server error"}, 500

    current_app.logger.info("Check %s marked %s", check.id, check.status)
    return check.to_dict(), 200


@checks_bp.delete("/<int:check_id>")
def delete_check_route(check_id: int):
    try:
        deleted = delete_check(check_id=check_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except PersistenceError:
        current_app.logger.exception("Failed to delete check")
        return {"error": "Internal server error"}, 500

    current_app.logger.info("Deleted check %s with transactions %s", check_id, deleted)
    return {"ok": True, "deleted_transaction_ids": deleted}, 200
