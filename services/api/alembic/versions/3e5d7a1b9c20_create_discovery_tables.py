"""create_discovery_tables

Revision ID: 3e5d7a1b9c20
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "3e5d7a1b9c20"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "commerces",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.String(length=500), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("opening_hours", sa.String(length=200), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("categories", postgresql.ARRAY(sa.String(length=100)), nullable=False),
        sa.Column("is_approved", sa.Boolean(), nullable=False),
        sa.Column("owner_id", sa.String(length=36), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_commerces_name"), "commerces", ["name"], unique=False)
    op.create_index(op.f("ix_commerces_is_approved"), "commerces", ["is_approved"], unique=False)
    op.create_index(op.f("ix_commerces_owner_id"), "commerces", ["owner_id"], unique=False)
    # Category filter uses array containment (@>)
    op.create_index(
        "ix_commerces_categories_gin",
        "commerces",
        ["categories"],
        unique=False,
        postgresql_using="gin",
    )

    op.create_table(
        "offers",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("commerce_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("required_tier", sa.String(length=50), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["commerce_id"], ["commerces.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_offers_commerce_id"), "offers", ["commerce_id"], unique=False)
    op.create_index(op.f("ix_offers_starts_at"), "offers", ["starts_at"], unique=False)
    op.create_index(op.f("ix_offers_ends_at"), "offers", ["ends_at"], unique=False)
    op.create_index(op.f("ix_offers_created_at"), "offers", ["created_at"], unique=False)

    op.create_table(
        "commerce_follows",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("commerce_id", sa.String(length=36), nullable=False),
        sa.Column("notifications_enabled", sa.Boolean(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["commerce_id"], ["commerces.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "commerce_id", name="uq_commerce_follows_user_commerce"),
    )
    op.create_index(op.f("ix_commerce_follows_user_id"), "commerce_follows", ["user_id"], unique=False)
    op.create_index(op.f("ix_commerce_follows_commerce_id"), "commerce_follows", ["commerce_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_commerce_follows_commerce_id"), table_name="commerce_follows")
    op.drop_index(op.f("ix_commerce_follows_user_id"), table_name="commerce_follows")
    op.drop_table("commerce_follows")

    op.drop_index(op.f("ix_offers_created_at"), table_name="offers")
    op.drop_index(op.f("ix_offers_ends_at"), table_name="offers")
    op.drop_index(op.f("ix_offers_starts_at"), table_name="offers")
    op.drop_index(op.f("ix_offers_commerce_id"), table_name="offers")
    op.drop_table("offers")

    op.drop_index("ix_commerces_categories_gin", table_name="commerces")
    op.drop_index(op.f("ix_commerces_owner_id"), table_name="commerces")
    op.drop_index(op.f("ix_commerces_is_approved"), table_name="commerces")
    op.drop_index(op.f("ix_commerces_name"), table_name="commerces")
    op.drop_table("commerces")
