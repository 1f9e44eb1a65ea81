from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Party(db.Model):
    """
    Any account that takes part in an order: buyer, depot, carrier or admin.

    Identity and session handling live outside this service; this row only
    anchors foreign keys and carries the role used for capability checks.
    password_hash is always written by auth_service.create_party, never by a
    model hook.
    """
    __tablename__ = "parties"
    __table_args__ = (
        db.Index("ix_parties_role_active", "role", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    role = db.Column(db.String(16), nullable=False)
    password_hash = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Party id={self.id} role={self.role!r} email={self.email!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "phone": self.phone,
            "address": self.address,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
