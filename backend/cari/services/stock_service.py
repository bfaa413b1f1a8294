# Overview: Service-layer stock derivation; encapsulates the stock formula, the sale guard and adjustments.

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Iterable

from ..extensions import db
from ..models import Product, StockAdjustment, Transaction, TransactionItem
from ..money import format_quantity, to_quantity
from ..validation import ValidationError
from .concurrency import atomic, lock_for_update, run_with_retry
from .product_service import get_product
"""
Stock Invariants (authoritative)

- Stock is NEVER stored. It is derived from two independent sources:
    stock(P) = SUM(purchase item qty) - SUM(sale item qty) + SUM(adjustment qty)
- collection / payment transactions contribute 0, even when they carry items.
  A sale correction is a collection carrying a copy of the sale's items;
  those copies are inert for stock. Reversing a sale fixes the money side
  only and does NOT restock.
- A sale is rejected as a whole if any line would take a product below zero.
  Lines for the same product are summed before the check.
- Adjustments are append-only and must be non-zero.
"""

STOCK_DIRECTION: dict[str, int] = {
    "purchase": 1,
    "sale": -1,
    "collection": 0,
    "payment": 0,
}

ZERO_QTY = Decimal("0.000")


def compute_stock(item_movements: Iterable, adjustments: Iterable) -> Decimal:
    """
    Pure derivation of a product's stock.

    item_movements: objects exposing .tx_type (the parent transaction's type) and .quantity
    adjustments: objects exposing .quantity (signed)
    """
    total = ZERO_QTY
    for row in item_movements:
        total += Decimal(row.quantity) * STOCK_DIRECTION[row.tx_type]
    for adj in adjustments:
        total += Decimal(adj.quantity)
    return total


def _item_movements_query():
    return db.session.query(
        TransactionItem.product_id,
        Transaction.tx_type,
        TransactionItem.quantity,
    ).join(Transaction, Transaction.id == TransactionItem.transaction_id)


def get_stock(product_id: int) -> Decimal:
    get_product(product_id)

    movements = _item_movements_query().filter(TransactionItem.product_id == product_id).all()
    adjustments = (
        db.session.query(StockAdjustment.quantity)
        .filter(StockAdjustment.product_id == product_id)
        .all()
    )
    return compute_stock(movements, adjustments)


def get_stock_levels(product_ids: Iterable[int] | None = None) -> dict[int, Decimal]:
    """Stock for many products in two scans instead of two queries per product."""
    movements_q = _item_movements_query()
    adjustments_q = db.session.query(StockAdjustment.product_id, StockAdjustment.quantity)
    if product_ids is not None:
        product_ids = list(product_ids)
        if not product_ids:
            return {}
        movements_q = movements_q.filter(TransactionItem.product_id.in_(product_ids))
        adjustments_q = adjustments_q.filter(StockAdjustment.product_id.in_(product_ids))

    movements = defaultdict(list)
    for row in movements_q.all():
        movements[row.product_id].append(row)
    adjustments = defaultdict(list)
    for row in adjustments_q.all():
        adjustments[row.product_id].append(row)

    keys = set(product_ids) if product_ids is not None else set(movements) | set(adjustments)
    return {pid: compute_stock(movements.get(pid, ()), adjustments.get(pid, ())) for pid in keys}


def product_with_stock(product: Product, stock: Decimal) -> dict:
    data = product.to_dict()
    data["current_stock"] = format_quantity(stock)
    data["out_of_stock"] = stock <= 0
    return data


def list_products_with_stock(*, include_inactive: bool = False) -> list[dict]:
    q = db.session.query(Product)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    products = q.order_by(Product.name.asc(), Product.id.asc()).all()

    levels = get_stock_levels([p.id for p in products])
    return [product_with_stock(p, levels.get(p.id, ZERO_QTY)) for p in products]


def ensure_sufficient_stock(lines: Iterable[tuple[Product, Decimal]]) -> None:
    """
    Reject a sale if any product would go negative.

    Called inside the caller's atomic scope before anything is written.
    Product rows are locked so two concurrent sales cannot both pass the check.
    """
    requested: dict[int, Decimal] = defaultdict(lambda: ZERO_QTY)
    products: dict[int, Product] = {}
    for product, quantity in lines:
        requested[product.id] += quantity
        products[product.id] = product

    if not requested:
        return

    lock_for_update(db.session.query(Product).filter(Product.id.in_(list(requested)))).all()
    levels = get_stock_levels(list(requested))

    for product_id, quantity in requested.items():
        available = levels.get(product_id, ZERO_QTY)
        if available < quantity:
            product = products[product_id]
            raise ValidationError(
                f"Insufficient stock for '{product.name}': available "
                f"{format_quantity(available)} {product.unit}, requested "
                f"{format_quantity(quantity)} {product.unit}"
            )


def adjust_stock(*, product_id: int, quantity, notes: str | None = None) -> StockAdjustment:
    """
    Append a manual correction. Positive adds, negative removes.

    Stock may go negative through an adjustment; the sale guard is the only
    place that refuses to oversell.
    """
    qty = to_quantity(quantity)
    if qty == 0:
        raise ValidationError("quantity must be non-zero for a stock adjustment")

    def _op():
        with atomic():
            product = get_product(product_id)
            adj = StockAdjustment(product_id=product.id, quantity=qty, notes=notes or None)
            db.session.add(adj)
            db.session.flush()
            return adj

    return run_with_retry(_op)


def list_stock_adjustments(*, product_id: int, limit: int = 200) -> list[StockAdjustment]:
    get_product(product_id)
    return (
        db.session.query(StockAdjustment)
        .filter_by(product_id=product_id)
        .order_by(StockAdjustment.created_at.desc(), StockAdjustment.id.desc())
        .limit(limit)
        .all()
    )
