# backend/cari/services/product_service.py
"""
Products Service

NAME UNIQUENESS: product names are unique after trimming, collapsing inner
whitespace and case-folding ("Levrek" == " LEVREK "). The folded form is
stored in Product.name_key, which carries the unique constraint.

DELETION: a product with transaction history can only be deactivated.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Product, TransactionItem
from ..validation import ConflictError, NotFoundError, ValidationError, PRODUCT_UNITS
from .concurrency import atomic, run_with_retry

PRODUCT_MUTABLE_FIELDS = {"name", "unit", "is_active"}


def normalize_product_name(name: str | None) -> str:
    if name is None:
        raise ValidationError("product name is required")
    key = " ".join(str(name).split()).casefold()
    if not key:
        raise ValidationError("product name is required")
    return key


def _clean_name(name: str) -> str:
    return " ".join(str(name).split())


def get_product(product_id: int) -> Product:
    p = db.session.query(Product).filter_by(id=product_id).first()
    if p is None:
        raise NotFoundError(f"Product {product_id} not found")
    return p


def find_product_by_name(name: str) -> Product | None:
    return db.session.query(Product).filter_by(name_key=normalize_product_name(name)).first()


def list_products(*, include_inactive: bool = True) -> list[Product]:
    q = db.session.query(Product)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def _create_product_inner(*, name: str, unit: str = "kg") -> Product:
    if unit not in PRODUCT_UNITS:
        raise ValidationError(f"unit must be one of: {', '.join(PRODUCT_UNITS)}")

    key = normalize_product_name(name)
    existing = db.session.query(Product).filter_by(name_key=key).first()
    if existing is not None:
        raise ConflictError(f"A product named '{existing.name}' already exists.")

    p = Product(name=_clean_name(name), name_key=key, unit=unit, is_active=True)
    db.session.add(p)
    db.session.flush()
    return p


def create_product(*, name: str, unit: str = "kg") -> Product:
    def _op():
        with atomic():
            return _create_product_inner(name=name, unit=unit)

    return run_with_retry(_op)


def find_or_create_product(*, name: str, unit: str = "kg") -> Product:
    """
    Resolve a product by (normalized) name, creating it if missing.

    Used by purchase entry where the user types product names freely.
    Does not commit; callers run it inside their own atomic scope.
    An existing product keeps its unit; a deactivated one is reactivated
    since goods are being bought again.
    """
    p = find_product_by_name(name)
    if p is not None:
        if not p.is_active:
            p.is_active = True
        return p
    return _create_product_inner(name=name, unit=unit)


def update_product(*, product_id: int, patch: dict) -> Product:
    def _op():
        with atomic():
            p = get_product(product_id)

            if "name" in patch and patch["name"] is not None:
                key = normalize_product_name(patch["name"])
                clash = (
                    db.session.query(Product)
                    .filter(Product.name_key == key, Product.id != p.id)
                    .first()
                )
                if clash is not None:
                    raise ConflictError(f"A product named '{clash.name}' already exists.")
                p.name = _clean_name(patch["name"])
                p.name_key = key

            for k, v in patch.items():
                if k == "name" or k not in PRODUCT_MUTABLE_FIELDS:
                    continue
                setattr(p, k, v)
            return p

    return run_with_retry(_op)


def set_product_active(*, product_id: int, is_active: bool) -> Product:
    """Soft-delete / reactivate. History is untouched either way."""
    with atomic():
        p = get_product(product_id)
        p.is_active = is_active
        return p


def delete_product(*, product_id: int) -> None:
    """Hard delete, allowed only while nothing in the ledger references the product."""
    with atomic():
        p = get_product(product_id)
        used = db.session.query(TransactionItem.id).filter_by(product_id=p.id).first()
        if used is not None:
            raise ConflictError(
                f"'{p.name}' appears on past transactions and cannot be deleted; deactivate it instead."
            )
        for adj in list(p.stock_adjustments):
            db.session.delete(adj)
        db.session.delete(p)


def bulk_import_products(rows: list[dict]) -> dict:
    """
    Create many products at once (all-or-nothing).

    Rows whose name already exists are skipped and reported, not treated as errors.
    """
    def _op():
        created: list[Product] = []
        skipped: list[str] = []
        seen: set[str] = set()
        with atomic():
            for idx, row in enumerate(rows, start=1):
                if not isinstance(row, dict):
                    raise ValidationError(f"row {idx}: expected an object")
                name = row.get("name")
                try:
                    key = normalize_product_name(name)
                except ValidationError:
                    raise ValidationError(f"row {idx}: product name is required")
                if key in seen or find_product_by_name(name) is not None:
                    skipped.append(_clean_name(name))
                    continue
                seen.add(key)
                created.append(_create_product_inner(name=name, unit=row.get("unit") or "kg"))
        return {"created": [p.to_dict() for p in created], "skipped": skipped}

    return run_with_retry(_op)
