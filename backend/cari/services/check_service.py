# Overview: Service-layer check/note lifecycle; creation with optional ledger entry, bounce, cascade delete, upcoming window.

from __future__ import annotations

from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import CheckNote, Counterparty, Transaction
from ..money import to_money
from ..time_utils import parse_iso_date, to_iso_date, today
from ..validation import (
    CHECK_DIRECTIONS,
    CHECK_KINDS,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from .concurrency import atomic, lock_for_update, run_with_retry
from .counterparty_service import get_counterparty
from .transaction_service import _delete_transaction_inner, _insert_transaction, _reverse_inner
"""
Check/Note Invariants (authoritative)

- status: pending -> paid | pending -> bounced. Both targets are terminal.
- paid has no ledger effect.
- bounced requires transaction_id. It writes exactly one compensating
  transaction (same map as a manual correction) and stamps
  reversal_transaction_id in the same atomic scope.
- delete removes the check, then the reversal transaction, then the
  original transaction, all-or-nothing.
"""

DIRECTION_TX_TYPE = {
    "received": "collection",
    "given": "payment",
}

TERMINAL_STATUSES = ("paid", "bounced")


def get_check(check_id: int) -> CheckNote:
    check = db.session.query(CheckNote).filter_by(id=check_id).first()
    if check is None:
        raise NotFoundError(f"Check {check_id} not found")
    return check


def _get_check_for_update(check_id: int) -> CheckNote:
    check = lock_for_update(db.session.query(CheckNote).filter_by(id=check_id)).first()
    if check is None:
        raise NotFoundError(f"Check {check_id} not found")
    return check


def _normalize_check(entry: dict) -> dict:
    kind = entry.get("kind") or "check"
    if kind not in CHECK_KINDS:
        raise ValidationError(f"kind must be one of: {', '.join(CHECK_KINDS)}")
    direction = entry.get("direction")
    if direction not in CHECK_DIRECTIONS:
        raise ValidationError(f"direction must be one of: {', '.join(CHECK_DIRECTIONS)}")

    amount = to_money(entry.get("amount"))
    if amount <= 0:
        raise ValidationError("amount must be greater than zero")

    try:
        due_date = parse_iso_date(entry.get("due_date"))
    except ValueError:
        raise ValidationError("due_date must be a YYYY-MM-DD date")
    if due_date is None:
        raise ValidationError("due_date is required")

    received_date = entry.get("received_date")
    if received_date not in (None, ""):
        try:
            received_date = parse_iso_date(received_date)
        except ValueError:
            raise ValidationError("received_date must be a YYYY-MM-DD date")
    else:
        received_date = None

    notes = entry.get("notes")
    if notes is not None:
        notes = str(notes).strip() or None

    return {
        "kind": kind,
        "direction": direction,
        "amount": amount,
        "due_date": due_date,
        "received_date": received_date,
        "notes": notes,
    }


def describe_check(kind: str, direction: str, due_date) -> str:
    """'Check received (due 2024-05-01)'"""
    return f"{kind.capitalize()} {direction} (due {to_iso_date(due_date)})"


def _create_check_inner(counterparty: Counterparty, data: dict, *, create_transaction: bool) -> CheckNote:
    transaction_id = None
    if create_transaction:
        tx = _insert_transaction(
            counterparty_id=counterparty.id,
            tx_type=DIRECTION_TX_TYPE[data["direction"]],
            amount=data["amount"],
            description=describe_check(data["kind"], data["direction"], data["due_date"]),
            tx_date=today(),
        )
        transaction_id = tx.id

    check = CheckNote(
        counterparty_id=counterparty.id,
        status="pending",
        transaction_id=transaction_id,
        **data,
    )
    db.session.add(check)
    db.session.flush()
    return check


def create_check(*, counterparty_id: int, create_transaction: bool = False, **fields) -> CheckNote:
    """
    Record a check or promissory note.

    With create_transaction the face value also lands on the ledger
    (received -> collection, given -> payment) and the check is linked to it.
    """
    data = _normalize_check(fields)

    def _op():
        with atomic():
            cp = get_counterparty(counterparty_id)
            return _create_check_inner(cp, data, create_transaction=create_transaction)

    return run_with_retry(_op)


def bulk_create_checks(*, counterparty_id: int, entries: list[dict]) -> list[CheckNote]:
    if not entries:
        raise ValidationError("at least one entry is required")

    normalized = []
    for idx, raw in enumerate(entries, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"entry {idx}: expected an object")
        raw = dict(raw)
        create_tx = bool(raw.pop("create_transaction", False))
        try:
            normalized.append((_normalize_check(raw), create_tx))
        except ValidationError as e:
            raise ValidationError(f"entry {idx}: {e}") from e

    def _op():
        with atomic():
            cp = get_counterparty(counterparty_id)
            return [
                _create_check_inner(cp, data, create_transaction=create_tx)
                for data, create_tx in normalized
            ]

    return run_with_retry(_op)


def list_checks(*, counterparty_id: int | None = None, status: str | None = None) -> list[CheckNote]:
    q = db.session.query(CheckNote)
    if counterparty_id is not None:
        get_counterparty(counterparty_id)
        q = q.filter(CheckNote.counterparty_id == counterparty_id)
    if status is not None:
        q = q.filter(CheckNote.status == status)
    return q.order_by(CheckNote.due_date.asc(), CheckNote.id.asc()).all()


def _bounce_inner(check: CheckNote) -> None:
    if check.transaction_id is None:
        raise ValidationError("no linked transaction to reverse")

    original = lock_for_update(
        db.session.query(Transaction).filter_by(id=check.transaction_id)
    ).first()
    if original is None:
        raise NotFoundError(f"Transaction {check.transaction_id} not found")

    reversal = _reverse_inner(original, f"Bounced {check.kind} (reversal)")
    check.status = "bounced"
    check.reversal_transaction_id = reversal.id


def update_check_status(*, check_id: int, status: str) -> CheckNote:
    if status not in TERMINAL_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(TERMINAL_STATUSES)}")

    def _op():
        with atomic():
            check = _get_check_for_update(check_id)
            if check.status != "pending":
                raise ConflictError(f"Check {check_id} is already {check.status}")

            if status == "bounced":
                _bounce_inner(check)
            else:
                check.status = "paid"
            db.session.flush()
            return check

    return run_with_retry(_op)


def delete_check(*, check_id: int) -> list[int]:
    """Delete the check, then its reversal, then its original transaction. Returns deleted transaction ids."""
    def _op():
        with atomic():
            check = _get_check_for_update(check_id)
            linked = [check.reversal_transaction_id, check.transaction_id]
            db.session.delete(check)
            db.session.flush()

            deleted: list[int] = []
            for tx_id in linked:
                if tx_id is None or tx_id in deleted:
                    continue
                tx = db.session.query(Transaction).filter_by(id=tx_id).first()
                if tx is not None:
                    deleted.extend(_delete_transaction_inner(tx))
            return deleted

    return run_with_retry(_op)


def get_upcoming_checks(*, past_days: int | None = None, future_days: int | None = None) -> list[dict]:
    """Pending checks due in [today - past_days, today + future_days], earliest first."""
    if past_days is None:
        past_days = int(current_app.config.get("UPCOMING_CHECKS_PAST_DAYS", 30))
    if future_days is None:
        future_days = int(current_app.config.get("UPCOMING_CHECKS_FUTURE_DAYS", 30))
    if past_days < 0 or future_days < 0:
        raise ValidationError("window bounds cannot be negative")

    now = today()
    rows = (
        db.session.query(CheckNote, Counterparty.name, Counterparty.type)
        .join(Counterparty, Counterparty.id == CheckNote.counterparty_id)
        .filter(
            CheckNote.status == "pending",
            CheckNote.due_date >= now - timedelta(days=past_days),
            CheckNote.due_date <= now + timedelta(days=future_days),
        )
        .order_by(CheckNote.due_date.asc(), CheckNote.id.asc())
        .all()
    )

    out = []
    for check, name, cp_type in rows:
        data = check.to_dict()
        data["counterparty_name"] = name
        data["counterparty_type"] = cp_type
        data["days_left"] = (check.due_date - now).days
        out.append(data)
    return out
