# Overview: Pytest coverage for reports, dashboard and stats aggregates.

from datetime import date

import pytest

from cari.services.reporting_service import (
    daily_report,
    dashboard_summary,
    monthly_report,
    next_due_date,
    stats,
)
from cari.time_utils import today
from cari.validation import ValidationError


def test_daily_report_totals_and_rows(db_session, customer, supplier, add_tx):
    add_tx(customer, "sale", "2500", description="Levrek + Çipura")
    add_tx(customer, "collection", "1000")
    add_tx(supplier, "purchase", "800")
    add_tx(customer, "sale", "999", days_ago=1)

    report = daily_report(today().isoformat())
    assert report["totals"] == {
        "sale": "2500.00",
        "collection": "1000.00",
        "purchase": "800.00",
        "payment": "0.00",
    }
    assert report["net"] == "2700.00"
    assert len(report["transactions"]) == 3
    assert {r["counterparty_name"] for r in report["transactions"]} == {"Deniz Restaurant", "Karadeniz Su Ürünleri"}


def test_daily_report_bad_date(db_session):
    with pytest.raises(ValidationError):
        daily_report("yesterday")


def test_monthly_report_groups_days(db_session, customer, add_tx):
    first = today().replace(day=1)
    add_tx(customer, "sale", "100", days_ago=(today() - first).days)
    add_tx(customer, "sale", "50", days_ago=(today() - first).days)
    add_tx(customer, "collection", "30")

    report = monthly_report(today().year, today().month)
    assert report["totals"]["sale"] == "150.00"
    assert report["net"] == "180.00"
    assert report["transaction_count"] == 3
    assert report["days"][0]["date"] == first.isoformat()
    assert report["days"][0]["totals"]["sale"] == "150.00"


def test_monthly_report_validates_month(db_session):
    with pytest.raises(ValidationError):
        monthly_report(2024, 13)


def test_dashboard_summary(db_session, make_counterparty, add_tx):
    cust = make_counterparty("customer", "Deniz Restaurant")
    credit = make_counterparty("customer", "Liman Cafe")
    supp = make_counterparty("supplier", "Ege Balıkçılık")
    add_tx(cust, "sale", "300", days_ago=2)
    add_tx(cust, "sale", "200")
    add_tx(credit, "collection", "25")
    add_tx(supp, "purchase", "1000", days_ago=10)

    summary = dashboard_summary()
    assert summary["total_receivables"] == "500.00"
    assert summary["total_payables"] == "1025.00"
    assert summary["today"]["sale"] == "200.00"

    series = summary["last_7_days_sales"]
    assert len(series) == 7
    assert series[-1] == {"date": today().isoformat(), "amount": "200.00"}
    assert series[-3]["amount"] == "300.00"
    assert series[0]["amount"] == "0.00"


@pytest.mark.parametrize("due_day,on,expected", [
    (15, date(2024, 3, 10), date(2024, 3, 15)),
    (10, date(2024, 3, 10), date(2024, 3, 10)),
    (5, date(2024, 3, 10), date(2024, 4, 5)),
    (31, date(2024, 2, 10), date(2024, 2, 29)),
    (31, date(2024, 4, 30), date(2024, 4, 30)),
    (1, date(2024, 12, 20), date(2025, 1, 1)),
])
def test_next_due_date(due_day, on, expected):
    assert next_due_date(due_day, on) == expected


def test_stats(db_session, make_counterparty, add_tx):
    debtors = [make_counterparty("customer", f"Müşteri {i}") for i in range(6)]
    for i, cp in enumerate(debtors):
        add_tx(cp, "sale", str(100 * (i + 1)))
    due = make_counterparty("supplier", "Marmara Toptancı", payment_due_day=today().day)
    add_tx(due, "purchase", "4800")
    make_counterparty("supplier", "Borçsuz", payment_due_day=1)

    result = stats()
    assert [r["name"] for r in result["top_debtors"]] == [f"Müşteri {i}" for i in (5, 4, 3, 2, 1)]
    assert [r["name"] for r in result["top_creditors"]] == ["Marmara Toptancı"]
    assert result["customer_count"] == 6
    assert result["supplier_count"] == 2
    assert result["total_transactions"] == 7

    upcoming = result["upcoming_payments"]
    assert len(upcoming) == 1
    assert upcoming[0]["days_left"] == 0
    assert upcoming[0]["balance"] == "4800.00"
