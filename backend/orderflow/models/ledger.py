from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


LEDGER_KINDS = ("credit", "debit")
LEDGER_CATEGORIES = ("sales", "purchases", "collections", "logistics", "services", "other")


class LedgerEntry(db.Model):
    """
    Append-only money movement for one owner.

    credit = money in (sales), debit = money out (purchases). Rows are never
    updated or deleted; corrections are new entries.
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        db.Index("ix_ledger_entries_owner_created", "owner_id", "created_at"),
        db.CheckConstraint("amount_cents > 0", name="amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("parties.id"), nullable=False, index=True)
    kind = db.Column(db.String(8), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(16), nullable=False, default="other")
    related_order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "kind": self.kind,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "category": self.category,
            "related_order_id": self.related_order_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
