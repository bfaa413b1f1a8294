# Overview: Pytest coverage for stock derivation, the sale guard and adjustments.

from collections import namedtuple
from decimal import Decimal

import pytest

from cari.models import Transaction, TransactionItem
from cari.services.stock_service import (
    adjust_stock,
    compute_stock,
    get_stock,
    get_stock_levels,
    list_products_with_stock,
    list_stock_adjustments,
)
from cari.services.transaction_service import create_transaction, reverse_transaction
from cari.validation import NotFoundError, ValidationError

Movement = namedtuple("Movement", "tx_type quantity")
Adjustment = namedtuple("Adjustment", "quantity")


def test_compute_stock_formula():
    movements = [
        Movement("purchase", Decimal("10.5")),
        Movement("sale", Decimal("3.25")),
        Movement("collection", Decimal("3.25")),
        Movement("payment", Decimal("99")),
    ]
    adjustments = [Adjustment(Decimal("-0.25")), Adjustment(Decimal("2"))]
    assert compute_stock(movements, adjustments) == Decimal("9.000")


def test_compute_stock_order_independent():
    movements = [Movement("purchase", Decimal("5")), Movement("sale", Decimal("2"))]
    adjustments = [Adjustment(Decimal("1"))]
    assert compute_stock(list(reversed(movements)), adjustments) == compute_stock(movements, adjustments)


class TestStockFromLedger:
    def test_purchase_sale_and_adjustment(self, db_session, customer, supplier, make_product):
        levrek = make_product("Levrek")
        create_transaction(
            counterparty_id=supplier.id,
            tx_type="purchase",
            items=[{"product_id": levrek.id, "quantity": "20", "unit_price": "90"}],
        )
        create_transaction(
            counterparty_id=customer.id,
            tx_type="sale",
            items=[{"product_id": levrek.id, "quantity": "7.5", "unit_price": "120"}],
        )
        adjust_stock(product_id=levrek.id, quantity="-0.5", notes="fire")

        assert get_stock(levrek.id) == Decimal("12.000")
        assert get_stock_levels([levrek.id]) == {levrek.id: Decimal("12.000")}

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            get_stock(424242)

    def test_listing_flags_out_of_stock(self, db_session, make_product):
        make_product("Hamsi", unit="kasa", stock="3")
        make_product("Mezgit")
        make_product("Eski Ürün", is_active=False)

        rows = list_products_with_stock()
        by_name = {r["name"]: r for r in rows}
        assert set(by_name) == {"Hamsi", "Mezgit"}
        assert by_name["Hamsi"]["current_stock"] == "3"
        assert by_name["Hamsi"]["out_of_stock"] is False
        assert by_name["Mezgit"]["current_stock"] == "0"
        assert by_name["Mezgit"]["out_of_stock"] is True

        assert len(list_products_with_stock(include_inactive=True)) == 3


class TestSaleGuard:
    def test_short_line_rejects_whole_sale(self, db_session, customer, make_product):
        levrek = make_product("Levrek", stock="10")
        cipura = make_product("Çipura", stock="1")

        with pytest.raises(ValidationError) as exc:
            create_transaction(
                counterparty_id=customer.id,
                tx_type="sale",
                items=[
                    {"product_id": levrek.id, "quantity": "2", "unit_price": "100"},
                    {"product_id": cipura.id, "quantity": "1.5", "unit_price": "150"},
                ],
            )

        message = str(exc.value)
        assert "Çipura" in message
        assert "available 1 kg" in message
        assert db_session.query(Transaction).count() == 0
        assert db_session.query(TransactionItem).count() == 0
        assert get_stock(levrek.id) == Decimal("10.000")
        assert get_stock(cipura.id) == Decimal("1.000")

    def test_lines_for_same_product_are_summed(self, db_session, customer, make_product):
        levrek = make_product("Levrek", stock="10")
        with pytest.raises(ValidationError):
            create_transaction(
                counterparty_id=customer.id,
                tx_type="sale",
                items=[
                    {"product_id": levrek.id, "quantity": "6", "unit_price": "100"},
                    {"product_id": levrek.id, "quantity": "6", "unit_price": "100"},
                ],
            )
        assert get_stock(levrek.id) == Decimal("10.000")

    def test_exact_stock_can_be_sold(self, db_session, customer, make_product):
        levrek = make_product("Levrek", stock="2.5")
        create_transaction(
            counterparty_id=customer.id,
            tx_type="sale",
            items=[{"product_id": levrek.id, "quantity": "2.5", "unit_price": "100"}],
        )
        assert get_stock(levrek.id) == Decimal("0.000")


class TestReversalItems:
    def test_sale_correction_does_not_restock(self, db_session, customer, make_product):
        levrek = make_product("Levrek", stock="10")
        sale = create_transaction(
            counterparty_id=customer.id,
            tx_type="sale",
            items=[{"product_id": levrek.id, "quantity": "4", "unit_price": "100"}],
        )
        reversal = reverse_transaction(sale.id)

        assert reversal.tx_type == "collection"
        assert len(reversal.items) == 1
        assert get_stock(levrek.id) == Decimal("6.000")

    def test_purchase_correction_keeps_goods(self, db_session, supplier, make_product):
        hamsi = make_product("Hamsi", unit="kasa")
        purchase = create_transaction(
            counterparty_id=supplier.id,
            tx_type="purchase",
            items=[{"product_id": hamsi.id, "quantity": "3", "unit_price": "450"}],
        )
        reverse_transaction(purchase.id)
        assert get_stock(hamsi.id) == Decimal("3.000")


class TestAdjustments:
    def test_zero_rejected(self, db_session, make_product):
        p = make_product("Levrek")
        with pytest.raises(ValidationError):
            adjust_stock(product_id=p.id, quantity="0")

    def test_may_go_negative(self, db_session, make_product):
        p = make_product("Levrek", stock="1")
        adjust_stock(product_id=p.id, quantity="-3")
        assert get_stock(p.id) == Decimal("-2.000")

    def test_listing_newest_first(self, db_session, make_product):
        p = make_product("Levrek", stock="5")
        adjust_stock(product_id=p.id, quantity="2", notes="sayım")
        rows = list_stock_adjustments(product_id=p.id)
        assert [r.notes for r in rows] == ["sayım", "opening"]

    def test_unknown_product(self, db_session):
        with pytest.raises(NotFoundError):
            adjust_stock(product_id=999, quantity="1")
