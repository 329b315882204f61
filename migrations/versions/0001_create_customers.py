"""create customers

Revision ID: 0001_create_customers
Revises:
Create Date: 2026-10-17

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "0001_create_customers"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    bind = op.get_bind()
    insp = inspect(bind)
    existing_tables = set(insp.get_table_names())

    def _has_index(table: str, name: str) -> bool:
        try:
            return any(ix.get("name") == name for ix in insp.get_indexes(table))
        except Exception:
            return False

    if "customers" not in existing_tables:
        op.create_table(
            "customers",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
            sa.Column("first_name", sa.String(length=50), nullable=False),
            sa.Column("last_name", sa.String(length=50), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("phone_number", sa.String(length=15), nullable=True),
            # Timestamps are stamped by the application (naive UTC), not the server.
            sa.Column("created_at", sa.DateTime(timezone=False), nullable=False),
            sa.Column("last_modified", sa.DateTime(timezone=False), nullable=False),
            sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        )
        existing_tables.add("customers")

    insp = inspect(op.get_bind())
    for idx_name, cols in (
        ("idx_customers_last_name", ["last_name"]),
        ("idx_customers_deleted", ["deleted"]),
    ):
        if not _has_index("customers", idx_name):
            op.create_index(idx_name, "customers", cols)

    # Email is unique among live rows only, so a soft-deleted email can be reused.
    if not _has_index("customers", "uq_customers_email_active"):
        op.create_index(
            "uq_customers_email_active",
            "customers",
            ["email"],
            unique=True,
            sqlite_where=sa.text("deleted = 0"),
            postgresql_where=sa.text("deleted = false"),
        )


def downgrade() -> None:
    op.drop_index("uq_customers_email_active", table_name="customers")
    op.drop_index("idx_customers_deleted", table_name="customers")
    op.drop_index("idx_customers_last_name", table_name="customers")
    op.drop_table("customers")
