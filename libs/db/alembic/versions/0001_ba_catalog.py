# ruff: noqa: I001
"""Ledger subject catalog and classified entry history.

Revision ID: 0001_ba_catalog
Revises: None
Create Date: 2026-10-18
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "0001_ba_catalog"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "ba_subjects",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ledger_id", sa.String(), nullable=False),
        sa.Column("major_code", sa.String(), nullable=False),
        sa.Column("major_name", sa.String(), nullable=False),
        sa.Column("sub_code", sa.String(), nullable=False),
        sa.Column("sub_name", sa.String(), nullable=False),
        sa.Column("synonyms", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("sort_order", sa.Integer(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.UniqueConstraint("ledger_id", "major_code", "sub_code", name="uq_ba_subject_code"),
    )
    op.create_index("ix_ba_subjects_ledger", "ba_subjects", ["ledger_id", "is_active"])

    op.create_table(
        "ba_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ledger_id", sa.String(), nullable=False),
        sa.Column("major_code", sa.String(), nullable=False),
        sa.Column("sub_code", sa.String(), nullable=False),
        sa.Column("subject_name", sa.String(), nullable=False),
        sa.Column("synonym_hint", sa.Text(), nullable=True),
        sa.Column("amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("raw_amount", sa.String(), nullable=True),
        sa.Column("payment_method", sa.String(), nullable=True),
        sa.Column("remark", sa.Text(), nullable=True),
        sa.Column("user_type", sa.String(1), nullable=False, server_default=sa.text("'J'")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index(
        "ix_ba_entries_subject", "ba_entries", ["ledger_id", "major_code", "sub_code"]
    )


def downgrade() -> None:
    op.drop_index("ix_ba_entries_subject", table_name="ba_entries")
    op.drop_table("ba_entries")
    op.drop_index("ix_ba_subjects_ledger", table_name="ba_subjects")
    op.drop_table("ba_subjects")
