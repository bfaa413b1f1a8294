from __future__ import annotations

from ..extensions import db
from cari.time_utils import to_utc_z


class Counterparty(db.Model):
    """
    A customer or supplier the business keeps a running account (cari) with.

    BALANCE IS NEVER STORED: it is derived from the counterparty's
    transactions at read time (see services.balance_service).

    TYPE IS FIXED: the sign of every transaction's balance effect depends on
    it, so changing type would silently rewrite history.
    """
    __tablename__ = "counterparties"
    __table_args__ = (
        db.CheckConstraint("type IN ('customer', 'supplier')", name="ck_counterparties_type"),
        db.CheckConstraint(
            "payment_due_day IS NULL OR (payment_due_day BETWEEN 1 AND 31)",
            name="ck_counterparties_due_day",
        ),
        db.Index("ix_counterparties_type_name", "type", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Invoicing metadata (e-fatura)
    invoiced = db.Column(db.Boolean, nullable=False, default=False)
    tax_number = db.Column(db.String(32), nullable=True)
    tax_office = db.Column(db.String(128), nullable=True)
    company_title = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)

    # Day of month the account is usually settled (1-31)
    payment_due_day = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Counterparty id={self.id} type={self.type} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "phone": self.phone,
            "notes": self.notes,
            "invoiced": self.invoiced,
            "tax_number": self.tax_number,
            "tax_office": self.tax_office,
            "company_title": self.company_title,
            "address": self.address,
            "payment_due_day": self.payment_due_day,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
