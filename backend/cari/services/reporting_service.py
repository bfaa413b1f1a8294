# Overview: Service-layer operations for reporting; read-only aggregates over the ledger.

from __future__ import annotations

import calendar
from collections import defaultdict
from datetime import date, timedelta

from ..extensions import db
from ..models import CheckNote, Counterparty, Product, Transaction
from ..money import ZERO, format_money
from ..time_utils import parse_iso_date, to_iso_date, today
from ..validation import TX_TYPES, ValidationError
from .balance_service import _balances_by_counterparty, aggregate_totals


def _totals_by_type(rows) -> dict[str, object]:
    totals = {tx_type: ZERO for tx_type in TX_TYPES}
    for row in rows:
        totals[row.tx_type] += row.amount
    return totals


def _format_totals(totals: dict) -> dict[str, str]:
    return {k: format_money(v) for k, v in totals.items()}


def _net(totals: dict):
    return totals["sale"] + totals["collection"] - totals["purchase"] - totals["payment"]


def _joined_transactions(q):
    out = []
    for tx, name, cp_type in q.all():
        data = tx.to_dict(include_items=False)
        data["counterparty_name"] = name
        data["counterparty_type"] = cp_type
        out.append(data)
    return out


def daily_report(day=None) -> dict:
    try:
        day = parse_iso_date(day) if day not in (None, "") else today()
    except ValueError:
        raise ValidationError("date must be a YYYY-MM-DD date")

    q = (
        db.session.query(Transaction, Counterparty.name, Counterparty.type)
        .join(Counterparty, Counterparty.id == Transaction.counterparty_id)
        .filter(Transaction.tx_date == day)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
    )
    rows = db.session.query(Transaction.tx_type, Transaction.amount).filter(Transaction.tx_date == day).all()
    totals = _totals_by_type(rows)

    return {
        "date": to_iso_date(day),
        "totals": _format_totals(totals),
        "net": format_money(_net(totals)),
        "transactions": _joined_transactions(q),
    }


def monthly_report(year: int, month: int) -> dict:
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    if year < 1:
        raise ValidationError("year must be positive")

    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    rows = (
        db.session.query(Transaction.tx_date, Transaction.tx_type, Transaction.amount)
        .filter(Transaction.tx_date >= first, Transaction.tx_date <= last)
        .all()
    )

    totals = _totals_by_type(rows)
    per_day: dict[date, list] = defaultdict(list)
    for row in rows:
        per_day[row.tx_date].append(row)

    days = []
    for d in sorted(per_day):
        day_totals = _totals_by_type(per_day[d])
        days.append({
            "date": to_iso_date(d),
            "totals": _format_totals(day_totals),
            "net": format_money(_net(day_totals)),
        })

    return {
        "year": year,
        "month": month,
        "totals": _format_totals(totals),
        "net": format_money(_net(totals)),
        "transaction_count": len(rows),
        "days": days,
    }


def _receivable_payable() -> tuple[dict, list[Counterparty], dict[int, object]]:
    parties = db.session.query(Counterparty).all()
    balances = _balances_by_counterparty(parties)
    totals = aggregate_totals((cp.type, balances[cp.id]) for cp in parties)
    return totals, parties, balances


def dashboard_summary() -> dict:
    """Headline totals, today's activity and a zero-filled seven-day sales series."""
    totals, _, _ = _receivable_payable()
    now = today()

    today_rows = db.session.query(Transaction.tx_type, Transaction.amount).filter(Transaction.tx_date == now).all()

    start = now - timedelta(days=6)
    sale_rows = (
        db.session.query(Transaction.tx_date, Transaction.amount)
        .filter(Transaction.tx_type == "sale", Transaction.tx_date >= start, Transaction.tx_date <= now)
        .all()
    )
    by_day = defaultdict(lambda: ZERO)
    for row in sale_rows:
        by_day[row.tx_date] += row.amount

    series = []
    for offset in range(7):
        d = start + timedelta(days=offset)
        series.append({"date": to_iso_date(d), "amount": format_money(by_day[d])})

    pending_checks = db.session.query(CheckNote).filter(CheckNote.status == "pending").count()

    return {
        "total_receivables": format_money(totals["total_receivables"]),
        "total_payables": format_money(totals["total_payables"]),
        "today": _format_totals(_totals_by_type(today_rows)),
        "last_7_days_sales": series,
        "pending_checks": pending_checks,
    }


def next_due_date(due_day: int, on: date) -> date:
    """Next occurrence of a monthly due day, this month or next, clamped to month length."""
    this_month = date(on.year, on.month, min(due_day, calendar.monthrange(on.year, on.month)[1]))
    if this_month >= on:
        return this_month
    year, month = (on.year + 1, 1) if on.month == 12 else (on.year, on.month + 1)
    return date(year, month, min(due_day, calendar.monthrange(year, month)[1]))


def stats() -> dict:
    totals, parties, balances = _receivable_payable()
    now = today()

    def _row(cp: Counterparty) -> dict:
        return {"id": cp.id, "name": cp.name, "type": cp.type, "balance": format_money(balances[cp.id])}

    debtors = sorted(
        (cp for cp in parties if cp.type == "customer" and balances[cp.id] > 0),
        key=lambda cp: balances[cp.id],
        reverse=True,
    )
    creditors = sorted(
        (cp for cp in parties if cp.type == "supplier" and balances[cp.id] > 0),
        key=lambda cp: balances[cp.id],
        reverse=True,
    )

    upcoming = []
    for cp in parties:
        if cp.payment_due_day is None or balances[cp.id] <= 0:
            continue
        due = next_due_date(cp.payment_due_day, now)
        data = _row(cp)
        data["payment_due_day"] = cp.payment_due_day
        data["due_date"] = to_iso_date(due)
        data["days_left"] = (due - now).days
        upcoming.append(data)
    upcoming.sort(key=lambda r: (r["days_left"], r["name"]))

    return {
        "total_receivables": format_money(totals["total_receivables"]),
        "total_payables": format_money(totals["total_payables"]),
        "customer_count": sum(1 for cp in parties if cp.type == "customer"),
        "supplier_count": sum(1 for cp in parties if cp.type == "supplier"),
        "product_count": db.session.query(Product).filter(Product.is_active.is_(True)).count(),
        "total_transactions": db.session.query(Transaction).count(),
        "top_debtors": [_row(cp) for cp in debtors[:5]],
        "top_creditors": [_row(cp) for cp in creditors[:5]],
        "upcoming_payments": upcoming[:10],
    }
