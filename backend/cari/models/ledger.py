from __future__ import annotations

from ..extensions import db
from cari.money import format_money, format_quantity
from cari.time_utils import to_iso_date, to_utc_z


class Transaction(db.Model):
    """
    One monetary event on a counterparty's account.

    DIRECTION IS THE TYPE, NEVER THE SIGN:
    - amount is always > 0 (ck_transactions_amount_positive)
    - tx_type in (sale, collection, purchase, payment)
    - the balance sign is looked up from (counterparty.type, tx_type)

    CORRECTIONS:
    - A correction is a NEW row with reversed_of pointing at the original.
    - Originals are never mutated.
    - uq_transactions_reversed_of guarantees at most one correction per original,
      which is what stops two concurrent reversals from both landing.
    - reversed_of cascades on delete: removing an original removes its correction.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        db.CheckConstraint(
            "tx_type IN ('sale', 'collection', 'purchase', 'payment')",
            name="ck_transactions_tx_type",
        ),
        db.UniqueConstraint("reversed_of", name="uq_transactions_reversed_of"),
        db.Index("ix_transactions_counterparty", "counterparty_id"),
        db.Index("ix_transactions_tx_date", "tx_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    counterparty_id = db.Column(
        db.Integer,
        db.ForeignKey("counterparties.id", ondelete="CASCADE"),
        nullable=False,
    )
    tx_type = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.Text, nullable=True)
    tx_date = db.Column(db.Date, nullable=False)
    reversed_of = db.Column(
        db.Integer,
        db.ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    counterparty = db.relationship(
        "Counterparty",
        backref=db.backref("transactions", lazy=True, passive_deletes=True),
    )
    items = db.relationship(
        "TransactionItem",
        backref="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionItem.id",
        lazy=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction id={self.id} counterparty_id={self.counterparty_id} "
            f"tx_type={self.tx_type} amount={self.amount}>"
        )

    def to_dict(self, *, state: str | None = None, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "counterparty_id": self.counterparty_id,
            "tx_type": self.tx_type,
            "amount": format_money(self.amount),
            "description": self.description,
            "tx_date": to_iso_date(self.tx_date),
            "reversed_of": self.reversed_of,
            "created_at": to_utc_z(self.created_at),
        }
        if state is not None:
            data["state"] = state
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TransactionItem(db.Model):
    """
    Line item of a sale or purchase.

    quantity is always positive; the stock direction comes from the parent's
    tx_type. Items are copied (not shared) onto a correction so each
    transaction owns its own snapshot.
    """
    __tablename__ = "transaction_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transaction_items_quantity_positive"),
        db.Index("ix_transaction_items_product", "product_id"),
        db.Index("ix_transaction_items_transaction", "transaction_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(
        db.Integer,
        db.ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=False,
    )
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=True)

    product = db.relationship("Product", backref=db.backref("transaction_items", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "quantity": format_quantity(self.quantity),
            "unit_price": format_money(self.unit_price),
        }
