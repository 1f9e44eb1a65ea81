from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


ORDER_STATES = ("pending", "preparing", "ready", "shipped", "delivered", "cancelled")
DELIVERY_MODES = ("ship", "carrier", "pickup")
PRIORITIES = ("low", "medium", "high")


class Order(db.Model):
    """
    Buyer order against one depot.

    total_cents is always recomputed from the line set; state only moves via
    order_service (see ORDER_TRANSITIONS there).
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("sequence_number", name="uq_orders_sequence_number"),
        db.Index("ix_orders_buyer_state", "buyer_id", "state"),
        db.Index("ix_orders_depot_state", "depot_id", "state"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sequence_number = db.Column(db.Integer, nullable=False)

    buyer_id = db.Column(db.Integer, db.ForeignKey("parties.id"), nullable=False)
    depot_id = db.Column(db.Integer, db.ForeignKey("parties.id"), nullable=False)

    delivery_mode = db.Column(db.String(16), nullable=False)
    address = db.Column(db.Text, nullable=True)
    state = db.Column(db.String(16), nullable=False, default="pending")
    priority = db.Column(db.String(16), nullable=False, default="medium")
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    estimated_delivery_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    buyer = db.relationship("Party", foreign_keys=[buyer_id])
    depot = db.relationship("Party", foreign_keys=[depot_id])
    lines = db.relationship(
        "OrderLine",
        backref="order",
        lazy=True,
        order_by="OrderLine.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "sequence_number": self.sequence_number,
            "buyer_id": self.buyer_id,
            "depot_id": self.depot_id,
            "delivery_mode": self.delivery_mode,
            "address": self.address,
            "state": self.state,
            "priority": self.priority,
            "total_cents": self.total_cents,
            "notes": self.notes,
            "estimated_delivery_at": to_utc_z(self.estimated_delivery_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class OrderLine(db.Model):
    """Name/price snapshot taken when the line is written; later product edits do not touch it."""
    __tablename__ = "order_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product", foreign_keys=[product_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "subtotal_cents": self.subtotal_cents,
        }


class DocumentSequence(db.Model):
    """Per-document-type counter backing human-readable numbers (order #, receipt codes)."""
    __tablename__ = "document_sequences"

    document_type = db.Column(db.String(32), primary_key=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
