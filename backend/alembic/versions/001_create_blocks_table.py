"""Create blocks table

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates the ``blocks`` table backing the document store: one row per
       school, classroom, student or user, keyed by (label, id).
How:   Document bodies and host lists are JSON columns, so entity fields
       need no migrations of their own.

Rollback: downgrade() drops the table and every stored document.
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "blocks",
        sa.Column(
            "label",
            sa.String(50),
            nullable=False,
            comment="Document type: school, classroom, student, user",
        ),
        sa.Column(
            "id",
            sa.String(64),
            nullable=False,
            comment="Document id, unique per label",
        ),
        sa.Column(
            "hosts",
            sa.JSON(),
            nullable=False,
            comment="Keys of the blocks hosting this one, e.g. ['school:<id>']",
        ),
        sa.Column(
            "data",
            sa.JSON(),
            nullable=False,
            comment="Document body",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("label", "id"),
    )

    # Listings are per label, oldest first
    op.create_index("idx_blocks_label_created", "blocks", ["label", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_blocks_label_created", table_name="blocks")
    op.drop_table("blocks")
