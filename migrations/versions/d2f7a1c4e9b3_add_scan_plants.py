"""add scan_plants

Revision ID: d2f7a1c4e9b3
Revises: 8b4e6d0c5a21
Create Date: 2026-10-19 10:12:44.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "d2f7a1c4e9b3"
down_revision = "8b4e6d0c5a21"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "scan_plants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("name_ta", sa.String(length=120), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )


def downgrade():
    op.drop_table("scan_plants")
