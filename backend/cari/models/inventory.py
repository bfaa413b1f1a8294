from __future__ import annotations

from ..extensions import db
from cari.money import format_quantity
from cari.time_utils import to_utc_z


class Product(db.Model):
    """
    Stock-tracked good.

    NAME UNIQUENESS:
    name_key holds the trimmed, whitespace-collapsed, case-folded name and
    carries the unique constraint, so "Levrek", " levrek " and "LEVREK" are
    the same product. See services.product_service.normalize_product_name.

    LIFECYCLE:
    Products referenced by transaction items are never hard-deleted; they are
    deactivated (is_active=False) and can be reactivated.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("name_key", name="uq_products_name_key"),
        db.CheckConstraint("unit IN ('kg', 'kasa', 'adet')", name="ck_products_unit"),
        db.Index("ix_products_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    name_key = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(8), nullable=False, default="kg")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} unit={self.unit}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "unit": self.unit,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockAdjustment(db.Model):
    """
    Manual stock correction (count found more/less than the books say).

    Append-only: positive quantity adds, negative removes.
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = (
        db.CheckConstraint("quantity <> 0", name="ck_stock_adjustments_nonzero"),
        db.Index("ix_stock_adjustments_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    quantity = db.Column(db.Numeric(14, 3), nullable=False)
    notes = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("stock_adjustments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "quantity": format_quantity(self.quantity),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
