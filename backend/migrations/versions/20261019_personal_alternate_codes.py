"""Owner-side alternate codes for personal stock

Revision ID: 20261019_personal_alt_codes
Revises: 20261019_initial
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_personal_alt_codes"
down_revision = "20261019_initial"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "personal_alternate_codes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("parties.id", name="fk_personal_alternate_codes_owner_id_parties"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_personal_alternate_codes_owner_id", "personal_alternate_codes", ["owner_id"])
    op.create_index("ix_personal_alternate_codes_owner_code", "personal_alternate_codes", ["owner_id", "code"])


def downgrade():
    op.drop_index("ix_personal_alternate_codes_owner_code", table_name="personal_alternate_codes")
    op.drop_index("ix_personal_alternate_codes_owner_id", table_name="personal_alternate_codes")
    op.drop_table("personal_alternate_codes")
