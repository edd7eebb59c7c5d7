"""verification codes
Revision ID: 0001_verification_codes
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_verification_codes"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "verification_codes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("phone_number", sa.String(length=20), nullable=False),
        sa.Column("code", sa.String(length=10), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_index("ix_verification_codes_phone_number", "verification_codes", ["phone_number"])
    op.create_index("ix_verification_codes_created_at", "verification_codes", ["created_at"])
    op.create_index("ix_verification_codes_phone_expires", "verification_codes", ["phone_number", "expires_at"])

def downgrade():
    op.drop_index("ix_verification_codes_phone_expires", table_name="verification_codes")
    op.drop_index("ix_verification_codes_created_at", table_name="verification_codes")
    op.drop_index("ix_verification_codes_phone_number", table_name="verification_codes")
    op.drop_table("verification_codes")
