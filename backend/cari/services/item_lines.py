# Overview: Parser for free-text bulk line-item entry ("Levrek, 5kg, 120").

from __future__ import annotations

import re

from ..money import to_money, to_quantity
from ..validation import ValidationError, PRODUCT_UNITS

"""
Accepted line shapes (one item per line, blank lines ignored):

    name, qty[unit], price[tl|₺]        Levrek, 5kg, 120
    name, unit, qty, price              Hamsi, kasa, 3, 450 TL

Separators are ';' or TAB when the line contains one (so decimal commas
survive: "Levrek; 2,5 kg; 120,50"), otherwise ','. Unit defaults to kg.
Lines that do not parse, or parse to a non-positive quantity/price, are skipped.
"""

_QTY_RE = re.compile(r"^([\d.,]+)\s*(kg|kasa|adet)?$", re.IGNORECASE)
_PRICE_RE = re.compile(r"^([\d.,]+)\s*(tl|₺)?$", re.IGNORECASE)
_STRONG_SEP_RE = re.compile(r"[;\t]+")


def _split(line: str) -> list[str]:
    if ";" in line or "\t" in line:
        parts = _STRONG_SEP_RE.split(line)
    else:
        parts = line.split(",")
    return [p.strip() for p in parts if p.strip()]


def _number(raw: str) -> str:
    return raw.replace(",", ".")


def parse_item_line(line: str) -> dict | None:
    parts = _split(line)
    if len(parts) < 3:
        return None

    name = parts[0]
    unit = "kg"
    qty_raw, price_raw = parts[1], parts[2]

    unit_candidate = parts[1].lower().replace(" ", "")
    if len(parts) >= 4 and unit_candidate in PRODUCT_UNITS:
        unit = unit_candidate
        qty_raw, price_raw = parts[2], parts[3]

    m = _QTY_RE.match(qty_raw)
    if m is None:
        return None
    qty_raw = m.group(1)
    if m.group(2):
        unit = m.group(2).lower()

    m = _PRICE_RE.match(price_raw)
    if m is None:
        return None
    price_raw = m.group(1)

    try:
        quantity = to_quantity(_number(qty_raw))
        unit_price = to_money(_number(price_raw), "unit_price")
    except ValidationError:
        return None
    if quantity <= 0 or unit_price <= 0:
        return None

    return {
        "product_name": name,
        "unit": unit,
        "quantity": quantity,
        "unit_price": unit_price,
    }


def parse_item_lines(text: str | None) -> list[dict]:
    items = []
    for line in (text or "").splitlines():
        if not line.strip():
            continue
        item = parse_item_line(line)
        if item is not None:
            items.append(item)
    return items

