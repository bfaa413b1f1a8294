from __future__ import annotations
import re
from datetime import date, datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text, Date, DateTime
from sqlalchemy.orm import DeclarativeMeta

from cari.time_utils import parse_iso_date, parse_iso_datetime


COUNTERPARTY_TYPES = ("customer", "supplier")
TX_TYPES = ("sale", "collection", "purchase", "payment")
ITEMISED_TX_TYPES = ("sale", "purchase")
PRODUCT_UNITS = ("kg", "kasa", "adet")
CHECK_KINDS = ("check", "note")
CHECK_DIRECTIONS = ("received", "given")
CHECK_STATUSES = ("pending", "paid", "bounced")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., double reversal, non-zero balance delete)."""


class NotFoundError(LookupError):
    """404-level: referenced entity does not exist."""


class PersistenceError(RuntimeError):
    """500-level: the store failed in a way no business rule explains."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - extra_fields: accepted keys that are not model columns (e.g. nested items)
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    extra_fields: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    return {c.key: c for c in model.__mapper__.columns}


def _coerce_int(key: str, value: Any) -> int:
    # bool is an int subclass but never a valid id / day number
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and re.fullmatch(r"\s*-?\d+\s*", value):
        return int(value)
    raise ValidationError(f"{key} must be an integer")


def _coerce_date(key: str, value: Any) -> date:
    if not isinstance(value, (date, str)):
        raise ValidationError(f"{key} must be a date")
    try:
        d = parse_iso_date(value)
    except ValueError:
        d = None
    if d is None:
        raise ValidationError(f"{key} must be a YYYY-MM-DD date")
    return d


def _coerce_value(col, value: Any):
    from .money import to_money, to_quantity

    coltype = col.type
    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    # Fixed-point: scale 2 is money, anything else is a quantity
    if isinstance(coltype, Numeric):
        if coltype.scale == 2:
            return to_money(value, col.key)
        return to_quantity(value, col.key)

    if isinstance(coltype, Boolean):
        return value if isinstance(value, bool) else bool(value)

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        try:
            dt = parse_iso_datetime(value) if isinstance(value, str) else None
        except ValueError:
            dt = None
        if dt is None:
            raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
        return dt

    if isinstance(coltype, Date):
        return _coerce_date(col.key, value)

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Check a JSON body against the model's columns and the route's policy.

    partial=False is create semantics (required_on_create enforced);
    partial=True validates only the keys that are present.
    Column values come back coerced (Decimal, date, int, stripped str);
    extra_fields pass through untouched for the service to interpret.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in (policy.required_on_create or set()) if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    extra = policy.extra_fields or set()
    patch: dict = {}

    for key, raw in payload.items():
        if key in extra:
            patch[key] = raw
            continue
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        col = cols.get(key)
        if col is None:
            raise ValidationError(f"Unknown field: {key}")

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
            continue

        val = _coerce_value(col, raw)
        if isinstance(val, str):
            if val == "" and not col.nullable:
                raise ValidationError(f"{key} cannot be blank")
            length = getattr(col.type, "length", None)
            if length and len(val) > length:
                raise ValidationError(f"{key} exceeds max length {length}")
        patch[key] = val

    return patch


def _require_choice(patch: dict, key: str, choices: tuple[str, ...]) -> None:
    if key in patch and patch[key] not in choices:
        raise ValidationError(f"{key} must be one of: {', '.join(choices)}")


def enforce_rules_counterparty(patch: dict, *, creating: bool) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if creating:
        _require_choice(patch, "type", COUNTERPARTY_TYPES)
    elif "type" in patch:
        raise ValidationError("type cannot be changed after creation")

    due_day = patch.get("payment_due_day")
    if due_day is not None and not 1 <= due_day <= 31:
        raise ValidationError("payment_due_day must be between 1 and 31")


def enforce_rules_transaction(patch: dict) -> None:
    _require_choice(patch, "tx_type", TX_TYPES)

    amount = patch.get("amount")
    if amount is not None and amount <= 0:
        raise ValidationError("amount must be greater than zero")

    items = patch.get("items")
    if items is not None:
        if not isinstance(items, list):
            raise ValidationError("items must be a list")
        if items and patch.get("tx_type") not in ITEMISED_TX_TYPES:
            raise ValidationError("only sale and purchase transactions carry items")


def enforce_rules_product(patch: dict) -> None:
    _require_choice(patch, "unit", PRODUCT_UNITS)


def enforce_rules_stock_adjustment(patch: dict) -> None:
    # ADJUST requires qty != 0
    if "quantity" in patch:
        if patch["quantity"] is None or patch["quantity"] == 0:
            raise ValidationError("quantity must be non-zero for a stock adjustment")


def enforce_rules_check(patch: dict) -> None:
    _require_choice(patch, "kind", CHECK_KINDS)
    _require_choice(patch, "direction", CHECK_DIRECTIONS)

    amount = patch.get("amount")
    if amount is not None and amount <= 0:
        raise ValidationError("amount must be greater than zero")

    if patch.get("status") not in (None, "pending"):
        raise ValidationError("new checks start as pending")
