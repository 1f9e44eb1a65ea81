from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


SHIPMENT_STATES = ("pending", "in_transit", "delivered", "failed")


class Shipment(db.Model):
    """
    Physical movement of one order. Exactly one per order.

    current_location is overwritten wholesale by the assigned carrier:
    {"lat": float, "lng": float, "address": str | None, "timestamp": ISO-8601}.
    """
    __tablename__ = "shipments"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_shipments_order_id"),
        db.Index("ix_shipments_carrier_state", "carrier_id", "state"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    carrier_id = db.Column(db.Integer, db.ForeignKey("parties.id"), nullable=True)

    vehicle = db.Column(db.String(128), nullable=True)
    driver = db.Column(db.String(128), nullable=True)
    state = db.Column(db.String(16), nullable=False, default="pending")

    departed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    estimated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    current_location = db.Column(db.JSON, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    order = db.relationship("Order", backref=db.backref("shipment", uselist=False, lazy=True))
    carrier = db.relationship("Party", foreign_keys=[carrier_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "carrier_id": self.carrier_id,
            "vehicle": self.vehicle,
            "driver": self.driver,
            "state": self.state,
            "departed_at": to_utc_z(self.departed_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "estimated_at": to_utc_z(self.estimated_at),
            "current_location": self.current_location,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
