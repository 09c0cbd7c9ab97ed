"""Drop orphaned and duplicate associations and index the association table.

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute(
        sa.text(
            "DELETE FROM product_resellers "
            "WHERE reseller_id NOT IN (SELECT id FROM resellers)"
        )
    )
    op.execute(
        sa.text(
            "DELETE FROM product_resellers WHERE id NOT IN ("
            "SELECT MIN(id) FROM product_resellers GROUP BY product_id, reseller_id)"
        )
    )

    op.create_index(
        "product_resellers_product_reseller_key",
        "product_resellers",
        ["product_id", "reseller_id"],
        unique=True,
    )
    op.create_index(
        "product_resellers_product_idx",
        "product_resellers",
        ["product_id"],
        unique=False,
    )
    op.create_index("resellers_name_idx", "resellers", ["name"], unique=False)


def downgrade() -> None:
    op.drop_index("resellers_name_idx", table_name="resellers")
    op.drop_index("product_resellers_product_idx", table_name="product_resellers")
    op.drop_index("product_resellers_product_reseller_key", table_name="product_resellers")
