# backend/cari/services/counterparty_service.py
"""
Counterparty (cari) Service

TYPE IS IMMUTABLE: balance signs depend on it.

DELETION: allowed only while the derived balance is exactly zero. Deleting
cascades to the counterparty's checks/notes, transactions and line items.
"""
from __future__ import annotations

from ..extensions import db
from ..models import CheckNote, Counterparty, Transaction
from ..money import format_money
from ..validation import ConflictError, NotFoundError, ValidationError, COUNTERPARTY_TYPES
from .balance_service import counterparty_with_balance, get_balance
from .concurrency import atomic, run_with_retry

COUNTERPARTY_MUTABLE_FIELDS = {
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


def _name_key(name: str) -> str:
    return " ".join(str(name).split()).casefold()


def apply_counterparty_patch(cp: Counterparty, patch: dict) -> None:
    for k, v in patch.items():
        if k not in COUNTERPARTY_MUTABLE_FIELDS:
            continue
        setattr(cp, k, v)


def get_counterparty(counterparty_id: int) -> Counterparty:
    cp = db.session.query(Counterparty).filter_by(id=counterparty_id).first()
    if cp is None:
        raise NotFoundError(f"Counterparty {counterparty_id} not found")
    return cp


def find_counterparty_by_name(name: str, counterparty_type: str) -> Counterparty | None:
    key = _name_key(name)
    candidates = db.session.query(Counterparty).filter_by(type=counterparty_type).all()
    for cp in candidates:
        if _name_key(cp.name) == key:
            return cp
    return None


def _create_counterparty_inner(*, patch: dict) -> Counterparty:
    counterparty_type = patch.get("type")
    if counterparty_type not in COUNTERPARTY_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(COUNTERPARTY_TYPES)}")
    name = (patch.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")

    cp = Counterparty(type=counterparty_type)
    apply_counterparty_patch(cp, {**patch, "name": name})
    if cp.invoiced is None:
        cp.invoiced = False
    db.session.add(cp)
    db.session.flush()
    return cp


def create_counterparty(*, patch: dict) -> dict:
    def _op():
        with atomic():
            cp = _create_counterparty_inner(patch=patch)
        return counterparty_with_balance(cp)

    return run_with_retry(_op)


def find_or_create_counterparty(*, name: str, counterparty_type: str, phone: str | None = None) -> Counterparty:
    """
    Quick-entry auto-create: reuse a same-type counterparty whose name matches
    ignoring case and spacing, otherwise create one. Does not commit.
    """
    if not name or not name.strip():
        raise ValidationError("name is required")
    existing = find_counterparty_by_name(name, counterparty_type)
    if existing is not None:
        return existing
    return _create_counterparty_inner(patch={"type": counterparty_type, "name": name, "phone": phone})


def update_counterparty(*, counterparty_id: int, patch: dict) -> dict:
    if "type" in patch:
        raise ValidationError("type cannot be changed after creation")
    if "name" in patch and not (patch["name"] or "").strip():
        raise ValidationError("name cannot be blank")

    def _op():
        with atomic():
            cp = get_counterparty(counterparty_id)
            apply_counterparty_patch(cp, patch)
        return counterparty_with_balance(cp)

    return run_with_retry(_op)


def delete_counterparty(*, counterparty_id: int) -> None:
    """
    Delete a counterparty whose balance is exactly zero.

    Corrections are removed before the entries they reverse.
    """
    def _op():
        with atomic():
            cp = get_counterparty(counterparty_id)
            balance = get_balance(cp.id)
            if balance != 0:
                raise ConflictError(
                    f"'{cp.name}' has a balance of {format_money(balance)}; "
                    "only counterparties with a zero balance can be deleted"
                )

            for check in db.session.query(CheckNote).filter_by(counterparty_id=cp.id).all():
                db.session.delete(check)
            db.session.flush()

            txs = db.session.query(Transaction).filter_by(counterparty_id=cp.id).all()
            for tx in txs:
                if tx.reversed_of is not None:
                    db.session.delete(tx)
            db.session.flush()
            for tx in txs:
                if tx.reversed_of is None:
                    db.session.delete(tx)
            db.session.flush()

            db.session.delete(cp)

    run_with_retry(_op)


def bulk_import_counterparties(rows: list[dict]) -> dict:
    """
    Create many counterparties at once (all-or-nothing).

    Rows that match an existing counterparty of the same type (name compared
    ignoring case and spacing) are skipped and reported.
    """
    def _op():
        created: list[Counterparty] = []
        skipped: list[str] = []
        seen: set[tuple[str, str]] = set()
        with atomic():
            for idx, row in enumerate(rows, start=1):
                if not isinstance(row, dict):
                    raise ValidationError(f"row {idx}: expected an object")
                name = (row.get("name") or "").strip()
                counterparty_type = row.get("type")
                if not name:
                    raise ValidationError(f"row {idx}: name is required")
                if counterparty_type not in COUNTERPARTY_TYPES:
                    raise ValidationError(f"row {idx}: type must be one of: {', '.join(COUNTERPARTY_TYPES)}")

                key = (counterparty_type, _name_key(name))
                if key in seen or find_counterparty_by_name(name, counterparty_type) is not None:
                    skipped.append(name)
                    continue
                seen.add(key)
                patch = {k: v for k, v in row.items() if k in COUNTERPARTY_MUTABLE_FIELDS or k == "type"}
                created.append(_create_counterparty_inner(patch=patch))
        return {"created": [cp.to_dict() for cp in created], "skipped": skipped}

    return run_with_retry(_op)
