# Overview: Service-layer balance derivation; pure sign table plus DB reads of counterparty ledgers.

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Iterable

from ..extensions import db
from ..models import Counterparty, Transaction
from ..money import ZERO, format_money
from ..validation import NotFoundError
"""
Balance Invariants (authoritative)

- Balance is NEVER stored. It is recomputed from the full transaction set on every read.
- balance(C) = SUM(amount * sign(C.type, tx.tx_type)) over all of C's transactions,
  corrections included (their compensating tx_type already carries the right sign).
- Customer balance = what they owe us (receivable).
- Supplier balance = what we owe them (payable).
- All eight (type, tx_type) pairs are defined. The cross terms
  (customer purchase/payment, supplier sale/collection) are rare but must
  still produce a number, never an error.
- Arithmetic is Decimal throughout; no float ever touches an amount.
"""

BALANCE_SIGNS: dict[tuple[str, str], int] = {
    ("customer", "sale"): 1,
    ("customer", "collection"): -1,
    ("customer", "purchase"): -1,
    ("customer", "payment"): 1,
    ("supplier", "purchase"): 1,
    ("supplier", "payment"): -1,
    ("supplier", "sale"): -1,
    ("supplier", "collection"): 1,
}


def balance_sign(counterparty_type: str, tx_type: str) -> int:
    try:
        return BALANCE_SIGNS[(counterparty_type, tx_type)]
    except KeyError:
        raise ValueError(f"no balance sign for ({counterparty_type!r}, {tx_type!r})")


def compute_balance(counterparty_type: str, transactions: Iterable) -> Decimal:
    """
    Pure derivation of a counterparty's balance.

    transactions: any iterable of objects exposing .tx_type and .amount
    (ORM rows, query tuples with those labels, or test doubles).
    """
    total = ZERO
    for tx in transactions:
        total += Decimal(tx.amount) * balance_sign(counterparty_type, tx.tx_type)
    return total


def aggregate_totals(balances: Iterable[tuple[str, Decimal]]) -> dict[str, Decimal]:
    """
    Dashboard totals from (counterparty_type, balance) pairs.

    - receivables: positive customer balances
    - payables: positive supplier balances PLUS the absolute value of negative
      customer balances (a customer in credit is money we owe back)
    Negative supplier balances (advances we paid) are not counted on either side.
    """
    receivables = ZERO
    payables = ZERO
    for counterparty_type, balance in balances:
        if counterparty_type == "customer":
            if balance > 0:
                receivables += balance
            elif balance < 0:
                payables += -balance
        elif counterparty_type == "supplier" and balance > 0:
            payables += balance
    return {"total_receivables": receivables, "total_payables": payables}


def _require_counterparty(counterparty_id: int) -> Counterparty:
    cp = db.session.query(Counterparty).filter_by(id=counterparty_id).first()
    if cp is None:
        raise NotFoundError(f"Counterparty {counterparty_id} not found")
    return cp


def _fetch_ledger(counterparty_id: int):
    return (
        db.session.query(Transaction.tx_type, Transaction.amount)
        .filter(Transaction.counterparty_id == counterparty_id)
        .all()
    )


def get_balance(counterparty_id: int) -> Decimal:
    cp = _require_counterparty(counterparty_id)
    return compute_balance(cp.type, _fetch_ledger(cp.id))


def _balances_by_counterparty(counterparties: list[Counterparty]) -> dict[int, Decimal]:
    """One scan of the transaction table, grouped in Python by counterparty."""
    ids = [cp.id for cp in counterparties]
    if not ids:
        return {}

    ledgers = defaultdict(list)
    rows = (
        db.session.query(Transaction.counterparty_id, Transaction.tx_type, Transaction.amount)
        .filter(Transaction.counterparty_id.in_(ids))
        .all()
    )
    for row in rows:
        ledgers[row.counterparty_id].append(row)

    return {cp.id: compute_balance(cp.type, ledgers.get(cp.id, ())) for cp in counterparties}


def counterparty_with_balance(cp: Counterparty, balance: Decimal | None = None) -> dict:
    if balance is None:
        balance = compute_balance(cp.type, _fetch_ledger(cp.id))
    data = cp.to_dict()
    data["balance"] = format_money(balance)
    return data


def get_counterparty_with_balance(counterparty_id: int) -> dict:
    cp = _require_counterparty(counterparty_id)
    return counterparty_with_balance(cp)


def list_counterparties_with_balance(
    *,
    counterparty_type: str | None = None,
    search: str | None = None,
) -> list[dict]:
    q = db.session.query(Counterparty)
    if counterparty_type is not None:
        q = q.filter(Counterparty.type == counterparty_type)
    parties = q.order_by(Counterparty.name.asc(), Counterparty.id.asc()).all()

    # Case-insensitive substring match done in Python so non-ASCII names fold correctly
    if search:
        needle = search.strip().casefold()
        parties = [cp for cp in parties if needle in cp.name.casefold()]

    balances = _balances_by_counterparty(parties)
    return [counterparty_with_balance(cp, balances[cp.id]) for cp in parties]


def get_balance_totals() -> dict[str, Decimal]:
    parties = db.session.query(Counterparty).all()
    balances = _balances_by_counterparty(parties)
    return aggregate_totals((cp.type, balances[cp.id]) for cp in parties)
