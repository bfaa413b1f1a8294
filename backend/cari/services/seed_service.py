# Overview: Sample data for a fresh database; a week of fish-trade activity.

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from ..extensions import db
from ..models import Counterparty, Transaction
from ..time_utils import today
from .concurrency import atomic

SEED_CUSTOMERS = [
    {"name": "Deniz Restaurant", "phone": "05321234567", "notes": "Kadıköy"},
    {"name": "Mavi Balık Evi", "phone": "05339876543", "notes": "Beşiktaş"},
    {"name": "Liman Cafe", "phone": "05447654321"},
    {"name": "Sahil Lokantası", "phone": "05551112233"},
]

SEED_SUPPLIERS = [
    {"name": "Karadeniz Su Ürünleri", "phone": "05362223344", "notes": "Trabzon"},
    {"name": "Ege Balıkçılık", "phone": "05423334455", "notes": "İzmir"},
    {"name": "Marmara Toptancı", "phone": "05384445566"},
]

# (party key, tx_type, amount, description, day index 0..6 where 6 is today)
SEED_TRANSACTIONS = [
    (("customer", 0), "sale", "2500.00", "Levrek + Çipura", 0),
    (("customer", 0), "sale", "1800.00", "Hamsi kasası", 1),
    (("customer", 1), "sale", "3200.00", "Karışık balık", 1),
    (("customer", 0), "collection", "2500.00", "Nakit ödeme", 2),
    (("customer", 2), "sale", "1500.00", "Mezgit", 2),
    (("customer", 1), "sale", "4100.00", "Lüfer + Palamut", 3),
    (("customer", 3), "sale", "2200.00", "Alabalık", 3),
    (("customer", 1), "collection", "3200.00", "Havale", 4),
    (("customer", 2), "sale", "1900.00", "Somon fileto", 4),
    (("customer", 0), "sale", "2800.00", "Karides + Kalamar", 5),
    (("customer", 3), "collection", "2200.00", "POS ile ödeme", 5),
    (("customer", 1), "sale", "3500.00", "Levrek fileto", 6),
    (("customer", 2), "collection", "1500.00", "Nakit", 6),
    (("supplier", 0), "purchase", "8500.00", "Hamsi + Palamut alımı", 0),
    (("supplier", 1), "purchase", "6200.00", "Çipura + Levrek", 2),
    (("supplier", 0), "payment", "8500.00", "Havale", 3),
    (("supplier", 2), "purchase", "4800.00", "Somon kasası", 4),
    (("supplier", 1), "payment", "3000.00", "Nakit ödeme", 5),
]


def seed_database() -> bool:
    """Insert sample data unless any counterparty exists. Returns True when seeded."""
    if db.session.query(Counterparty.id).first() is not None:
        return False

    with atomic():
        parties = {"customer": [], "supplier": []}
        for cp_type, rows in (("customer", SEED_CUSTOMERS), ("supplier", SEED_SUPPLIERS)):
            for row in rows:
                cp = Counterparty(type=cp_type, **row)
                db.session.add(cp)
                parties[cp_type].append(cp)
        db.session.flush()

        start = today() - timedelta(days=6)
        for (cp_type, idx), tx_type, amount, description, day in SEED_TRANSACTIONS:
            db.session.add(Transaction(
                counterparty_id=parties[cp_type][idx].id,
                tx_type=tx_type,
                amount=Decimal(amount),
                description=description,
                tx_date=start + timedelta(days=day),
            ))
    return True
