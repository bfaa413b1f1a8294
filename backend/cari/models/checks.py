from __future__ import annotations

from ..extensions import db
from cari.money import format_money
from cari.time_utils import to_iso_date, to_utc_z


class CheckNote(db.Model):
    """
    Check (çek) or promissory note (senet) tied to a counterparty.

    LEDGER LINKS (weak references, not ownership):
    - transaction_id: the ledger entry this instrument represents, if one was made
    - reversal_transaction_id: the compensating entry, set exactly once on bounce

    STATUS:
    pending -> paid      (terminal, no ledger effect)
    pending -> bounced   (terminal, writes a compensating transaction)
    """
    __tablename__ = "check_notes"
    __table_args__ = (
        db.CheckConstraint("kind IN ('check', 'note')", name="ck_check_notes_kind"),
        db.CheckConstraint("direction IN ('received', 'given')", name="ck_check_notes_direction"),
        db.CheckConstraint("status IN ('pending', 'paid', 'bounced')", name="ck_check_notes_status"),
        db.CheckConstraint("amount > 0", name="ck_check_notes_amount_positive"),
        db.Index("ix_check_notes_status_due", "status", "due_date"),
        db.Index("ix_check_notes_counterparty", "counterparty_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    counterparty_id = db.Column(
        db.Integer,
        db.ForeignKey("counterparties.id", ondelete="CASCADE"),
        nullable=False,
    )
    kind = db.Column(db.String(8), nullable=False)
    direction = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending")
    notes = db.Column(db.Text, nullable=True)

    transaction_id = db.Column(
        db.Integer,
        db.ForeignKey("transactions.id", ondelete="SET NULL"),
        nullable=True,
    )
    reversal_transaction_id = db.Column(
        db.Integer,
        db.ForeignKey("transactions.id", ondelete="SET NULL"),
        nullable=True,
    )
    received_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    counterparty = db.relationship(
        "Counterparty",
        backref=db.backref("check_notes", lazy=True, passive_deletes=True),
    )

    def __repr__(self) -> str:
        return f"<CheckNote id={self.id} kind={self.kind} status={self.status} amount={self.amount}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "counterparty_id": self.counterparty_id,
            "kind": self.kind,
            "direction": self.direction,
            "amount": format_money(self.amount),
            "due_date": to_iso_date(self.due_date),
            "status": self.status,
            "notes": self.notes,
            "transaction_id": self.transaction_id,
            "reversal_transaction_id": self.reversal_transaction_id,
            "received_date": to_iso_date(self.received_date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
