"""add rating and review to order items

Revision ID: 8b4e6d0c5a21
Revises: 3f1a9c2d7b10
Create Date: 2026-10-06 15:40:09.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "8b4e6d0c5a21"
down_revision = "3f1a9c2d7b10"
branch_labels = None
depends_on = None


def upgrade():
    # SQLite-safe add column
    with op.batch_alter_table("order_items", schema=None) as batch_op:
        batch_op.add_column(sa.Column("rating", sa.Integer(), nullable=True))
        batch_op.add_column(sa.Column("review", sa.Text(), nullable=True))
        batch_op.create_check_constraint(
            "check_order_item_rating_range",
            "rating IS NULL OR (rating >= 1 AND rating <= 5)",
        )


def downgrade():
    with op.batch_alter_table("order_items", schema=None) as batch_op:
        batch_op.drop_constraint(
            "check_order_item_rating_range", type_="check")
        batch_op.drop_column("review")
        batch_op.drop_column("rating")
