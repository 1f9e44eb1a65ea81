# Overview: Service-layer operations for parties and their credentials.

"""
Party & credential service

WHY: Every order, shipment and ledger row is attributed to a party. Session
handling and login live in the external identity component; this module only
registers parties and owns password hashing so the hash is computed by an
explicit step before insert (never by a model hook).

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
"""

import bcrypt
import re

from ..extensions import db
from ..models import Party
from ..permissions import Role
from ..validation import ValidationError, ConflictError, NotFoundError


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise (including parties
    registered without a password).
    """
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_party(
    name: str,
    email: str,
    role: str,
    password: str | None = None,
    phone: str | None = None,
    address: str | None = None,
) -> Party:
    """
    Register a buyer, depot, carrier or admin.

    Email is unique across all parties. The password is optional because
    identity may be federated; when given it must meet strength requirements.
    """
    name = (name or "").strip()
    email = (email or "").strip().lower()
    if not name or not email:
        raise ValidationError("name and email required")

    try:
        role = Role(role).value
    except ValueError:
        raise ValidationError(f"role must be one of: {', '.join(r.value for r in Role)}")

    existing = db.session.query(Party).filter(Party.email == email).first()
    if existing:
        raise ConflictError("Email already registered")

    # Explicit hashing step before the insert
    password_hash = hash_password(password) if password else None

    party = Party(
        name=name,
        email=email,
        role=role,
        password_hash=password_hash,
        phone=phone,
        address=address,
    )
    db.session.add(party)
    db.session.commit()
    return party


def get_party(party_id: int) -> Party:
    party = db.session.get(Party, party_id)
    if party is None:
        raise NotFoundError("Party not found")
    return party


def list_parties(role: str | None = None, include_inactive: bool = False) -> list[Party]:
    q = db.session.query(Party)
    if role:
        q = q.filter(Party.role == role)
    if not include_inactive:
        q = q.filter(Party.is_active.is_(True))
    return q.order_by(Party.id.asc()).all()


def require_party_role(party_id: int, role: Role) -> Party:
    """Load an active party and check it has the given role (e.g. the depot of an order)."""
    party = get_party(party_id)
    if not party.is_active:
        raise ValidationError(f"Party {party_id} is not active")
    if party.role != role.value:
        raise ValidationError(f"Party {party_id} is not a {role.value}")
    return party
