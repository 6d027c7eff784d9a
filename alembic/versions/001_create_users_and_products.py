"""Create users and products tables

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates the two document collections served by the API.
How:   Every table carries the shared document columns (id, created_at,
       version) next to its own fields; ids are UUID strings generated by
       the application.

Rollback: downgrade() drops both tables (all data lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _document_columns():
    return [
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "version",
            sa.Integer(),
            server_default=sa.text("0"),
            nullable=False,
            comment="Internal update counter, hidden from API responses by default",
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        *_document_columns(),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column(
            "role",
            sa.String(20),
            server_default=sa.text("'user'"),
            nullable=False,
            comment="user or admin; never writable through /update-me",
        ),
        sa.Column("password", sa.String(255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "products",
        *_document_columns(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("stock", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("featured", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "img_url",
            sa.String(500),
            nullable=True,
            comment="Absolute URL of the resized image under /public/images/products",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_products_created_at", "products", ["created_at"])
    op.create_index("ix_products_price", "products", ["price"])


def downgrade() -> None:
    """Drop both tables. Destructive: all documents are lost."""
    op.drop_index("ix_products_price", table_name="products")
    op.drop_index("ix_products_created_at", table_name="products")
    op.drop_table("products")
    op.drop_index("ix_users_created_at", table_name="users")
    op.drop_table("users")
