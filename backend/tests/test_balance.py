# Overview: Pytest coverage for balance derivation and dashboard totals.

from collections import namedtuple
from decimal import Decimal

import pytest

from cari.services.balance_service import (
    BALANCE_SIGNS,
    aggregate_totals,
    balance_sign,
    compute_balance,
    get_balance,
    get_balance_totals,
    get_counterparty_with_balance,
    list_counterparties_with_balance,
)
from cari.validation import NotFoundError

Row = namedtuple("Row", "tx_type amount")


class TestSignTable:
    @pytest.mark.parametrize("counterparty_type,tx_type,expected", [
        ("customer", "sale", 1),
        ("customer", "collection", -1),
        ("customer", "purchase", -1),
        ("customer", "payment", 1),
        ("supplier", "purchase", 1),
        ("supplier", "payment", -1),
        ("supplier", "sale", -1),
        ("supplier", "collection", 1),
    ])
    def test_all_eight_pairs(self, counterparty_type, tx_type, expected):
        assert balance_sign(counterparty_type, tx_type) == expected

    def test_table_is_complete(self):
        assert len(BALANCE_SIGNS) == 8

    def test_unknown_pair_raises(self):
        with pytest.raises(ValueError):
            balance_sign("customer", "refund")


class TestComputeBalance:
    def test_empty_ledger_is_zero(self):
        assert compute_balance("customer", []) == Decimal("0.00")

    def test_customer_sale_then_collection(self):
        rows = [Row("sale", Decimal("2500.00")), Row("collection", Decimal("1000.00"))]
        assert compute_balance("customer", rows) == Decimal("1500.00")

    def test_supplier_cross_terms_do_not_error(self):
        rows = [
            Row("purchase", Decimal("800.00")),
            Row("sale", Decimal("100.00")),
            Row("collection", Decimal("50.00")),
        ]
        assert compute_balance("supplier", rows) == Decimal("750.00")

    def test_no_float_drift(self):
        rows = [Row("sale", Decimal("0.10"))] * 100
        assert compute_balance("customer", rows) == Decimal("10.00")


class TestAggregateTotals:
    def test_customer_credit_counts_as_payable(self):
        totals = aggregate_totals([
            ("customer", Decimal("300.00")),
            ("customer", Decimal("-40.00")),
            ("supplier", Decimal("200.00")),
            ("supplier", Decimal("-75.00")),
        ])
        assert totals["total_receivables"] == Decimal("300.00")
        assert totals["total_payables"] == Decimal("240.00")

    def test_zero_balances_contribute_nothing(self):
        totals = aggregate_totals([("customer", Decimal("0")), ("supplier", Decimal("0"))])
        assert totals == {"total_receivables": Decimal("0.00"), "total_payables": Decimal("0.00")}


class TestBalanceQueries:
    def test_balance_matches_independent_sum(self, customer, add_tx):
        add_tx(customer, "sale", "120.50")
        add_tx(customer, "sale", "79.50")
        add_tx(customer, "collection", "50.00")
        add_tx(customer, "payment", "10.00")

        expected = Decimal("120.50") + Decimal("79.50") - Decimal("50.00") + Decimal("10.00")
        assert get_balance(customer.id) == expected

    def test_missing_counterparty(self, db_session):
        with pytest.raises(NotFoundError):
            get_balance(999999)

    def test_counterparty_payload_renders_two_places(self, customer, add_tx):
        add_tx(customer, "sale", "2500")
        data = get_counterparty_with_balance(customer.id)
        assert data["name"] == "Deniz Restaurant"
        assert data["balance"] == "2500.00"

    def test_list_filters_by_type_and_search(self, make_counterparty, add_tx):
        deniz = make_counterparty("customer", "Deniz Restaurant")
        make_counterparty("customer", "Liman Cafe")
        make_counterparty("supplier", "Ege Balıkçılık")
        add_tx(deniz, "sale", "100")

        customers = list_counterparties_with_balance(counterparty_type="customer")
        assert [c["name"] for c in customers] == ["Deniz Restaurant", "Liman Cafe"]
        assert customers[0]["balance"] == "100.00"
        assert customers[1]["balance"] == "0.00"

        found = list_counterparties_with_balance(search="  DENIZ ")
        assert [c["name"] for c in found] == ["Deniz Restaurant"]

    def test_totals_over_database(self, make_counterparty, add_tx):
        owes_us = make_counterparty("customer", "A")
        in_credit = make_counterparty("customer", "B")
        we_owe = make_counterparty("supplier", "C")
        add_tx(owes_us, "sale", "500")
        add_tx(in_credit, "collection", "30")
        add_tx(we_owe, "purchase", "900")
        add_tx(we_owe, "payment", "400")

        totals = get_balance_totals()
        assert totals["total_receivables"] == Decimal("500.00")
        assert totals["total_payables"] == Decimal("530.00")
