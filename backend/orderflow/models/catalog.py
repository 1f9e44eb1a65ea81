from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Depot catalog row.

    quantity_on_hand is a stored counter (not ledger-derived) and must never
    go below zero; every service path that lowers it checks first and raises
    InsufficientStockError. Products are soft-deleted via is_active.

    BARCODE: unique within a depot among products. Extra codes for the same
    good live in AlternateBarcode, not here.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("depot_id", "barcode", name="uq_products_depot_barcode"),
        db.Index("ix_products_depot_name", "depot_id", "name"),
        db.Index("ix_products_depot_active", "depot_id", "is_active"),
        db.CheckConstraint("quantity_on_hand >= 0", name="quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    depot_id = db.Column(db.Integer, db.ForeignKey("parties.id"), nullable=False, index=True)

    barcode = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(64), nullable=True)
    image_url = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    unit_cost_cents = db.Column(db.Integer, nullable=True)

    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    depot = db.relationship("Party", foreign_keys=[depot_id])
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} barcode={self.barcode!r} name={self.name!r} depot_id={self.depot_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "depot_id": self.depot_id,
            "barcode": self.barcode,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "image_url": self.image_url,
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "quantity_on_hand": self.quantity_on_hand,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def summary(self) -> dict:
        return {
            "id": self.id,
            "barcode": self.barcode,
            "name": self.name,
            "quantity_on_hand": self.quantity_on_hand,
        }


class ProductLinkage(db.Model):
    """
    Undirected edge "these two catalog rows are the same physical good".

    Stored as (product_a_id, product_b_id) in creation order; uniqueness of
    the unordered pair among active edges is enforced by linkage_service.
    Consolidation only ever follows one edge (no transitive closure).
    """
    __tablename__ = "product_linkages"
    __table_args__ = (
        db.CheckConstraint("product_a_id <> product_b_id", name="no_self_link"),
        db.Index("ix_product_linkages_depot_active", "depot_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_a_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_b_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    depot_id = db.Column(db.Integer, db.ForeignKey("parties.id"), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    deactivated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    product_a = db.relationship("Product", foreign_keys=[product_a_id])
    product_b = db.relationship("Product", foreign_keys=[product_b_id])

    def other_side(self, product_id: int) -> int:
        return self.product_b_id if self.product_a_id == product_id else self.product_a_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_a_id": self.product_a_id,
            "product_b_id": self.product_b_id,
            "depot_id": self.depot_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "deactivated_at": to_utc_z(self.deactivated_at),
        }


class AlternateBarcode(db.Model):
    """
    Extra scannable code mapped onto a canonical product.

    SOFT DELETE: deactivated codes are excluded from lookups and from the
    uniqueness check but preserved for audit history.
    """
    __tablename__ = "alternate_barcodes"
    __table_args__ = (
        db.Index("ix_alternate_barcodes_depot_code", "depot_id", "code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    depot_id = db.Column(db.Integer, db.ForeignKey("parties.id"), nullable=False)
    code = db.Column(db.String(64), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    deactivated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    product = db.relationship("Product", backref=db.backref("alternate_barcodes", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "depot_id": self.depot_id,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "deactivated_at": to_utc_z(self.deactivated_at),
        }
