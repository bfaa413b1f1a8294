# Overview: Service-layer ledger writes; creation with line items, reversal by compensating entry, cascade delete.

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import CheckNote, Counterparty, Product, Transaction, TransactionItem
from ..money import MAX_AMOUNT, ZERO, format_money, format_quantity, round_money, to_money, to_quantity
from ..time_utils import parse_iso_date, today
from ..validation import ConflictError, NotFoundError, ValidationError, ITEMISED_TX_TYPES, TX_TYPES
from .concurrency import atomic, lock_for_update, run_with_retry
from .counterparty_service import find_or_create_counterparty, get_counterparty
from .product_service import find_or_create_product, find_product_by_name, get_product
from .stock_service import ensure_sufficient_stock
"""
Ledger Write Invariants (authoritative)

Creation:
- amount > 0 always; direction lives in tx_type.
- tx_date is a calendar date and may not be in the future.
- Only sale/purchase carry items. A sale is checked against current stock
  before anything is written; one short line rejects the whole sale.
- Transaction + items are written in one atomic scope.

Reversal (correction):
- Never mutates the original. Inserts a compensating row:
  sale <-> collection, purchase <-> payment, same counterparty and amount,
  tx_date = today, reversed_of = original.id, description prefixed with the
  correction marker, items copied verbatim.
- One hop only: a correction cannot be reversed, and an original can be
  reversed at most once (uq_transactions_reversed_of backs the check).

Derived state (not stored):
- active           no reversed_of, nothing reverses it
- reversed         another row's reversed_of points at it
- active-reversal  has reversed_of set

Delete:
- Removes the row and its items, and first removes the correction that
  reverses it (forward cascade, one hop). Deleting a correction alone only
  removes that correction.
- A row that a check/note points at (its transaction or its bounce reversal)
  is not deleted here; delete_check owns that cascade.
"""

REVERSAL_TX_TYPE: dict[str, str] = {
    "sale": "collection",
    "collection": "sale",
    "purchase": "payment",
    "payment": "purchase",
}

# IntegrityError text identifying the one-correction-per-original constraint (PostgreSQL / SQLite)
REVERSAL_UNIQUE_MARKERS = ("uq_transactions_reversed_of", "transactions.reversed_of")

STATE_ACTIVE = "active"
STATE_REVERSED = "reversed"
STATE_ACTIVE_REVERSAL = "active-reversal"


@dataclass(frozen=True)
class ItemLine:
    product: Product
    quantity: Decimal
    unit_price: Decimal | None


def transaction_state(tx: Transaction, reversed_ids: set[int]) -> str:
    if tx.reversed_of is not None:
        return STATE_ACTIVE_REVERSAL
    if tx.id in reversed_ids:
        return STATE_REVERSED
    return STATE_ACTIVE


def get_transaction(transaction_id: int) -> Transaction:
    tx = db.session.query(Transaction).filter_by(id=transaction_id).first()
    if tx is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return tx


def find_reversal(transaction_id: int) -> Transaction | None:
    return db.session.query(Transaction).filter_by(reversed_of=transaction_id).first()


def get_transaction_state(tx: Transaction) -> str:
    reversed_ids = {tx.id} if find_reversal(tx.id) is not None else set()
    return transaction_state(tx, reversed_ids)


def _resolve_tx_date(value):
    try:
        tx_date = parse_iso_date(value) if value not in (None, "") else today()
    except ValueError:
        raise ValidationError("tx_date must be a YYYY-MM-DD date")
    grace = int(current_app.config.get("FUTURE_DATE_GRACE_DAYS", 0))
    if tx_date > today() + timedelta(days=grace):
        raise ValidationError("tx_date cannot be in the future")
    return tx_date


def _resolve_product(tx_type: str, raw: dict, idx: int) -> Product:
    product_id = raw.get("product_id")
    product_name = (raw.get("product_name") or "").strip()

    if product_id is not None:
        product = get_product(product_id)
    elif product_name:
        if tx_type == "purchase":
            product = find_or_create_product(name=product_name, unit=raw.get("unit") or "kg")
        else:
            product = find_product_by_name(product_name)
            if product is None:
                raise ValidationError(f"item {idx}: unknown product '{product_name}'")
    else:
        raise ValidationError(f"item {idx}: product_id or product_name is required")

    if tx_type == "sale" and not product.is_active:
        raise ValidationError(f"item {idx}: '{product.name}' is inactive and cannot be sold")
    return product


def _resolve_items(tx_type: str, raw_items: list) -> list[ItemLine]:
    lines = []
    for idx, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"item {idx}: expected an object")

        quantity = to_quantity(raw.get("quantity"), f"item {idx} quantity")
        if quantity <= 0:
            raise ValidationError(f"item {idx}: quantity must be greater than zero")

        unit_price = raw.get("unit_price")
        if unit_price in (None, ""):
            unit_price = None
        else:
            unit_price = to_money(unit_price, f"item {idx} unit_price")
            if unit_price < 0:
                raise ValidationError(f"item {idx}: unit_price cannot be negative")

        lines.append(ItemLine(_resolve_product(tx_type, raw, idx), quantity, unit_price))
    return lines


def _vat_rate() -> Decimal:
    return Decimal(str(current_app.config.get("INVOICE_VAT_RATE", "0.01")))


def itemised_amount(counterparty: Counterparty, lines: list[ItemLine]) -> tuple[Decimal, Decimal]:
    """(subtotal, vat) from line prices; vat only for invoiced counterparties."""
    if any(line.unit_price is None for line in lines):
        raise ValidationError("amount is required when items have no unit price")
    subtotal = round_money(sum((line.quantity * line.unit_price for line in lines), Decimal("0")))
    vat = ZERO
    if counterparty.invoiced:
        vat = round_money(subtotal * _vat_rate())
    if subtotal + vat > MAX_AMOUNT:
        raise ValidationError(f"amount exceeds maximum {MAX_AMOUNT}")
    return subtotal, vat


def describe_items(lines: list[ItemLine], vat: Decimal = ZERO) -> str:
    """'Levrek 5kg x 120.00, Hamsi 2kasa x 450.00 [KDV %1: 15.00]'"""
    parts = []
    for line in lines:
        text = f"{line.product.name} {format_quantity(line.quantity)}{line.product.unit}"
        if line.unit_price is not None:
            text += f" x {format_money(line.unit_price)}"
        parts.append(text)
    description = ", ".join(parts)
    if vat > 0:
        description += f" [KDV %{format_quantity(_vat_rate() * 100)}: {format_money(vat)}]"
    return description


def _insert_transaction(
    *,
    counterparty_id: int,
    tx_type: str,
    amount: Decimal,
    description: str | None,
    tx_date,
    items: list[tuple[int, Decimal, Decimal | None]] = (),
    reversed_of: int | None = None,
) -> Transaction:
    """Core insert without validation or commit. Called by create, reverse and bounce."""
    tx = Transaction(
        counterparty_id=counterparty_id,
        tx_type=tx_type,
        amount=amount,
        description=description or None,
        tx_date=tx_date,
        reversed_of=reversed_of,
    )
    for product_id, quantity, unit_price in items:
        tx.items.append(TransactionItem(product_id=product_id, quantity=quantity, unit_price=unit_price))
    db.session.add(tx)
    db.session.flush()
    return tx


def _normalize_entry(entry: dict, *, require_items: bool = False) -> dict:
    """Input checks that need no database access."""
    tx_type = entry.get("tx_type")
    if tx_type not in TX_TYPES:
        raise ValidationError(f"tx_type must be one of: {', '.join(TX_TYPES)}")

    raw_items = entry.get("items") or []
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")
    if raw_items and tx_type not in ITEMISED_TX_TYPES:
        raise ValidationError("only sale and purchase transactions carry items")
    if require_items and tx_type in ITEMISED_TX_TYPES and not raw_items:
        raise ValidationError(f"a {tx_type} needs at least one line item")

    amount = entry.get("amount")
    if amount in (None, ""):
        amount = None
        if not raw_items:
            raise ValidationError("amount is required")
    else:
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("amount must be greater than zero")

    description = entry.get("description")
    if description is not None:
        description = str(description).strip() or None

    return {
        "counterparty_id": entry.get("counterparty_id"),
        "tx_type": tx_type,
        "amount": amount,
        "description": description,
        "tx_date": _resolve_tx_date(entry.get("tx_date")),
        "items": raw_items,
    }


def _record_transaction(entry: dict) -> Transaction:
    """Create one normalized entry inside the caller's atomic scope."""
    if entry["counterparty_id"] is None:
        raise ValidationError("counterparty_id is required")
    cp = get_counterparty(entry["counterparty_id"])
    tx_type = entry["tx_type"]

    lines = _resolve_items(tx_type, entry["items"])
    if tx_type == "sale":
        ensure_sufficient_stock((line.product, line.quantity) for line in lines)

    amount = entry["amount"]
    vat = ZERO
    if amount is None:
        subtotal, vat = itemised_amount(cp, lines)
        amount = subtotal + vat
        if amount <= 0:
            raise ValidationError("amount must be greater than zero")

    description = entry["description"]
    if description is None and lines:
        description = describe_items(lines, vat)

    return _insert_transaction(
        counterparty_id=cp.id,
        tx_type=tx_type,
        amount=amount,
        description=description,
        tx_date=entry["tx_date"],
        items=[(line.product.id, line.quantity, line.unit_price) for line in lines],
    )


def create_transaction(
    *,
    counterparty_id: int,
    tx_type: str,
    amount=None,
    description: str | None = None,
    tx_date=None,
    items: list[dict] | None = None,
    require_items: bool = False,
) -> Transaction:
    """
    Record a sale, collection, purchase or payment.

    items: [{"product_id"| "product_name" (+ "unit"), "quantity", "unit_price"?}, ...]
    When amount is omitted it is computed from item prices (plus KDV for
    invoiced counterparties); when description is omitted on an itemised
    entry it is generated from the items.
    """
    entry = _normalize_entry(
        {
            "counterparty_id": counterparty_id,
            "tx_type": tx_type,
            "amount": amount,
            "description": description,
            "tx_date": tx_date,
            "items": items,
        },
        require_items=require_items,
    )

    def _op():
        with atomic():
            return _record_transaction(entry)

    return run_with_retry(_op)


def quick_create_transaction(
    *,
    counterparty_name: str,
    counterparty_type: str,
    phone: str | None = None,
    **fields,
) -> Transaction:
    """
    Quick entry by name: the counterparty is matched (ignoring case and
    spacing) or created, in the same atomic scope as the transaction.
    """
    entry = _normalize_entry({"counterparty_id": None, **fields})

    def _op():
        with atomic():
            cp = find_or_create_counterparty(
                name=counterparty_name, counterparty_type=counterparty_type, phone=phone
            )
            return _record_transaction({**entry, "counterparty_id": cp.id})

    return run_with_retry(_op)


def bulk_create_transactions(entries: list[dict]) -> list[Transaction]:
    """
    Bulk collection/payment entry: every entry lands, or none does.

    Errors are prefixed with the 1-based entry number.
    """
    if not entries:
        raise ValidationError("at least one entry is required")

    normalized = []
    for idx, raw in enumerate(entries, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"entry {idx}: expected an object")
        try:
            normalized.append(_normalize_entry(raw))
        except ValidationError as e:
            raise ValidationError(f"entry {idx}: {e}") from e

    def _op():
        created = []
        with atomic():
            for idx, entry in enumerate(normalized, start=1):
                try:
                    created.append(_record_transaction(entry))
                except (ValidationError, NotFoundError) as e:
                    raise e.__class__(f"entry {idx}: {e}") from e
        return created

    return run_with_retry(_op)


def _reverse_inner(original: Transaction, description: str) -> Transaction:
    """
    Insert the compensating entry for `original`. No commit.

    Shared by manual correction and check bounce.
    """
    if original.reversed_of is not None:
        raise ConflictError(
            f"Transaction {original.id} is itself a correction of transaction "
            f"{original.reversed_of} and cannot be reversed"
        )
    original_id = original.id
    existing = find_reversal(original_id)
    if existing is not None:
        raise ConflictError(f"Transaction {original_id} was already reversed by transaction {existing.id}")

    try:
        return _insert_transaction(
            counterparty_id=original.counterparty_id,
            tx_type=REVERSAL_TX_TYPE[original.tx_type],
            amount=original.amount,
            description=description,
            tx_date=today(),
            items=[(item.product_id, item.quantity, item.unit_price) for item in original.items],
            reversed_of=original_id,
        )
    except IntegrityError as exc:
        # session is pending rollback (atomic() does it); no ORM attribute access here
        if not any(marker in str(exc.orig) for marker in REVERSAL_UNIQUE_MARKERS):
            raise
        raise ConflictError(f"Transaction {original_id} was already reversed") from exc


def _get_for_update(transaction_id: int) -> Transaction:
    tx = lock_for_update(db.session.query(Transaction).filter_by(id=transaction_id)).first()
    if tx is None:
        raise NotFoundError(f"Transaction {transaction_id} not found")
    return tx


def reverse_transaction(transaction_id: int) -> Transaction:
    def _op():
        with atomic():
            original = _get_for_update(transaction_id)
            prefix = current_app.config.get("CORRECTION_PREFIX", "Düzeltme:")
            description = f"{prefix} {original.description or ''}".strip()
            return _reverse_inner(original, description)

    return run_with_retry(_op)


def _correction_chain(tx: Transaction) -> list[int]:
    """tx.id followed by the ids of the corrections reversing it."""
    ids = [tx.id]
    reversal = find_reversal(tx.id)
    while reversal is not None:
        ids.append(reversal.id)
        reversal = find_reversal(reversal.id)
    return ids


def _ensure_not_check_linked(transaction_ids: list[int]) -> None:
    check = db.session.query(CheckNote).filter(
        or_(
            CheckNote.transaction_id.in_(transaction_ids),
            CheckNote.reversal_transaction_id.in_(transaction_ids),
        )
    ).order_by(CheckNote.id.asc()).first()
    if check is not None:
        linked = check.transaction_id if check.transaction_id in transaction_ids else check.reversal_transaction_id
        raise ConflictError(
            f"Transaction {linked} belongs to {check.kind} {check.id}; delete the {check.kind} instead"
        )


def _delete_transaction_inner(tx: Transaction) -> list[int]:
    """Delete tx (and, first, the correction reversing it). No commit. Returns deleted ids."""
    deleted = []
    reversal = find_reversal(tx.id)
    if reversal is not None:
        deleted.extend(_delete_transaction_inner(reversal))

    deleted.append(tx.id)
    db.session.delete(tx)  # items go with it (delete-orphan cascade)
    db.session.flush()
    return deleted


def delete_transaction(transaction_id: int) -> list[int]:
    def _op():
        with atomic():
            tx = _get_for_update(transaction_id)
            _ensure_not_check_linked(_correction_chain(tx))
            return _delete_transaction_inner(tx)

    return run_with_retry(_op)


def list_transactions_for_counterparty(counterparty_id: int) -> list[dict]:
    """Newest first, each annotated with its derived reversal state."""
    get_counterparty(counterparty_id)
    txs = (
        db.session.query(Transaction)
        .filter_by(counterparty_id=counterparty_id)
        .order_by(Transaction.tx_date.desc(), Transaction.created_at.desc(), Transaction.id.desc())
        .all()
    )
    reversed_ids = {tx.reversed_of for tx in txs if tx.reversed_of is not None}
    return [tx.to_dict(state=transaction_state(tx, reversed_ids)) for tx in txs]


def get_transaction_detail(transaction_id: int) -> dict:
    tx = get_transaction(transaction_id)
    return tx.to_dict(state=get_transaction_state(tx))


def list_recent_transactions(*, limit: int = 50) -> list[dict]:
    """Latest entries across all counterparties, with the counterparty's name and type."""
    rows = (
        db.session.query(Transaction, Counterparty.name, Counterparty.type)
        .join(Counterparty, Counterparty.id == Transaction.counterparty_id)
        .order_by(Transaction.tx_date.desc(), Transaction.created_at.desc(), Transaction.id.desc())
        .limit(limit)
        .all()
    )
    out = []
    for tx, name, cp_type in rows:
        data = tx.to_dict(include_items=False)
        data["counterparty_name"] = name
        data["counterparty_type"] = cp_type
        out.append(data)
    return out
