# Overview: Flask API routes for ledger transactions; parses input and returns JSON responses.

# backend/cari/routes/transactions.py
"""
Ledger entry routes.

Transactions are never edited. A mistake is fixed by POST /<id>/reverse,
which appends a compensating entry, or by DELETE /<id>, which removes the
entry together with any correction that reverses it.
"""
from flask import Blueprint, request, current_app

from ..models import Transaction
from ..money import format_quantity, format_money
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_transaction,
    ValidationError,
    ConflictError,
    NotFoundError,
    PersistenceError,
)
from ..services.item_lines import parse_item_lines
from ..services.transaction_service import (
    create_transaction,
    quick_create_transaction,
    bulk_create_transactions,
    reverse_transaction,
    delete_transaction,
    get_transaction_detail,
    get_transaction_state,
    list_recent_transactions,
)

TRANSACTION_POLICY = ModelValidationPolicy(
    writable_fields={"counterparty_id", "tx_type", "amount", "description", "tx_date"},
    required_on_create={"tx_type"},
    extra_fields={"items", "counterparty_name", "counterparty_type", "phone"},
)

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _validated_entry(payload: dict) -> dict:
    patch = validate_payload(model=Transaction, payload=payload, policy=TRANSACTION_POLICY, partial=False)
    enforce_rules_transaction(patch)
    return patch


@transactions_bp.get("")
def list_recent_transactions_route():
    limit = request.args.get("limit", default=50, type=int)
    limit = max(1, min(limit, 500))
    return {"items": list_recent_transactions(limit=limit)}, 200


@transactions_bp.post("")
def create_transaction_route():
    """
    Body:
    - counterparty_id, or counterparty_name + counterparty_type for quick entry
    - tx_type: sale | collection | purchase | payment
    - amount: optional when every item carries a unit_price
    - description, tx_date (YYYY-MM-DD, default today): optional
    - items: [{"product_id" | "product_name" (+ "unit"), "quantity", "unit_price"}]
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = _validated_entry(payload)
        fields = {
            "tx_type": patch["tx_type"],
            "amount": patch.get("amount"),
            "description": patch.get("description"),
            "tx_date": patch.get("tx_date"),
            "items": patch.get("items"),
        }
        if patch.get("counterparty_id") is not None:
            tx = create_transaction(counterparty_id=patch["counterparty_id"], **fields)
        elif patch.get("counterparty_name"):
            tx = quick_create_transaction(
                counterparty_name=str(patch["counterparty_name"]),
                counterparty_type=patch.get("counterparty_type") or "customer",
                phone=patch.get("phone"),
                **fields,
            )
        else:
            raise ValidationError("counterparty_id or counterparty_name is required")
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except PersistenceError:
        current_app.logger.exception("Failed to create transaction")
        return {"error": "Internal server error"}, 500

    current_app.logger.info(
        "Recorded %s %s for counterparty %s (tx id=%s)", tx.tx_type, format_money(tx.amount), tx.counterparty_id, tx.id
    )
    return tx.to_dict(state=get_transaction_state(tx)), 201


@transactions_bp.post("/bulk")
def bulk_create_transactions_route():
    """
    Body: {"entries": [{counterparty_id, tx_type, amount, description?, tx_date?}, ...]}

    Any invalid entry rejects the whole batch.
    """
    payload = request.get_json(silent=True) or {}
    entries = payload.get("entries")
    if not isinstance(entries, list) or not entries:
        return {"error": "entries must be a non-empty list"}, 400

    try:
        validated = []
        for idx, entry in enumerate(entries, start=1):
            try:
                validated.append(_validated_entry(entry))
            except ValidationError as e:
                raise ValidationError(f"entry {idx}: {e}") from e
        created = bulk_create_transactions(validated)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except PersistenceError:
        current_app.logger.exception("Failed to bulk create transactions")
        return {"error": "Internal server error"}, 500

    current_app.logger.info("Bulk entry: %d transactions recorded", len(created))
    return {"items": [tx.to_dict(include_items=False) for tx in created]}, 201


@transactions_bp.post("/parse-items")
def parse_items_route():
    """Preview free-text item lines: {"text": "..."} -> parsed rows (unparseable lines dropped)."""
    payload = request.get_json(silent=True) or {}
    text = payload.get("text")
    if text is not None and not isinstance(text, str):
        return {"error": "text must be a string"}, 400

    rows = parse_item_lines(text)
    return {
        "items": [
            {
                "product_name": row["product_name"],
                "unit": row["unit"],
                "quantity": format_quantity(row["quantity"]),
                "unit_price": format_money(row["unit_price"]),
            }
            for row in rows
        ]
    }, 200


@transactions_bp.get("/<int:transaction_id>")
def get_transaction_route(transaction_id: int):
    try:
        return get_transaction_detail(transaction_id), 200
    except NotFoundError as e:
        return {"error": str(e)}, 404


@transactions_bp.post("/<int:transaction_id>/reverse")
def reverse_transaction_route(transaction_id: int):
    try:
        reversal = reverse_transaction(transaction_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except PersistenceError:
        current_app.logger.exception("Failed to reverse transaction")
        return {"error": "Internal server error"}, 500

    current_app.logger.info("Transaction %s reversed by %s", transaction_id, reversal.id)
    return reversal.to_dict(state=get_transaction_state(reversal)), 201


@transactions_bp.delete("/<int:transaction_id>")
def delete_transaction_route(transaction_id: int):
    try:
        deleted = delete_transaction(transaction_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except PersistenceError:
        current_app.logger.exception("Failed to delete transaction")
        return {"error": "Internal server error"}, 500

    current_app.logger.info("Deleted transactions %s", deleted)
    return {"ok": True, "deleted_ids": deleted}, 200
