from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class DeliveryReceipt(db.Model):
    """
    Single-use handoff artifact for one order.

    line_snapshot is written once at creation and never updated. Each item:
    {"product_id", "name", "quantity", "unit_price_cents", "barcode",
     "category", "image_url"}.

    The unique index on code is the real collision guarantee; the unique
    index on order_id makes creation idempotent per order.
    """
    __tablename__ = "delivery_receipts"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_delivery_receipts_code"),
        db.UniqueConstraint("order_id", name="uq_delivery_receipts_order_id"),
        db.Index("ix_delivery_receipts_buyer_confirmed", "buyer_id", "confirmed"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(96), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    buyer_id = db.Column(db.Integer, db.ForeignKey("parties.id"), nullable=False)
    depot_id = db.Column(db.Integer, db.ForeignKey("parties.id"), nullable=False)

    line_snapshot = db.Column(db.JSON, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    confirmed = db.Column(db.Boolean, nullable=False, default=False)
    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    confirmed_by_id = db.Column(db.Integer, db.ForeignKey("parties.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    order = db.relationship("Order", foreign_keys=[order_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "order_id": self.order_id,
            "buyer_id": self.buyer_id,
            "depot_id": self.depot_id,
            "lines": list(self.line_snapshot or []),
            "total_cents": self.total_cents,
            "confirmed": self.confirmed,
            "confirmed_at": to_utc_z(self.confirmed_at),
            "confirmed_by_id": self.confirmed_by_id,
            "created_at": to_utc_z(self.created_at),
        }
