from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class PersonalStockEntry(db.Model):
    """
    One batch of goods held by an owner (usually a buyer after delivery).

    Several entries may share a name (different batches or prices). Depletion
    walks them oldest-first by (created_at, id). An entry that reaches zero is
    deleted, so quantity is always > 0 for persisted rows.
    """
    __tablename__ = "personal_stock_entries"
    __table_args__ = (
        db.Index("ix_personal_stock_owner_name_created", "owner_id", "name", "created_at"),
        db.Index("ix_personal_stock_owner_barcode", "owner_id", "barcode"),
        db.CheckConstraint("quantity >= 0", name="quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("parties.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=True)

    barcode = db.Column(db.String(64), nullable=True)
    category = db.Column(db.String(64), nullable=True, default="General")
    image_url = db.Column(db.Text, nullable=True)

    source_receipt_id = db.Column(db.Integer, db.ForeignKey("delivery_receipts.id"), nullable=True)
    source_order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "barcode": self.barcode,
            "internal_code": self.internal_code,
            "category": self.category,
            "image_url": self.image_url,
            "source_receipt_id": self.source_receipt_id,
            "source_order_id": self.source_order_id,
            "created_at": to_utc_z(self.created_at),
        }

    @property
    def internal_code(self) -> str | None:
        """Scannable fallback code for entries without a barcode of their own."""
        if self.id is None:
            return None
        return f"STK{self.id:06d}"


class PersonalAlternateCode(db.Model):
    """
    Extra scannable code an owner maps onto one of their stock names.

    Targets the name rather than a single entry, so it keeps resolving after
    the batch it was created against is depleted. Soft-deleted like the
    depot-side alternate barcodes.
    """
    __tablename__ = "personal_alternate_codes"
    __table_args__ = (
        db.Index("ix_personal_alternate_codes_owner_code", "owner_id", "code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("parties.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(64), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    deactivated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "deactivated_at": to_utc_z(self.deactivated_at),
        }
