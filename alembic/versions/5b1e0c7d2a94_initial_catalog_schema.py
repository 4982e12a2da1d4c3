"""initial catalog schema

Revision ID: 5b1e0c7d2a94
Revises:
Create Date: 2026-10-18 09:12:40.214377

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5b1e0c7d2a94'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "brands",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.Text, unique=True, index=True, nullable=False),
        sa.Column("slug", sa.Text, unique=True, index=True, nullable=False),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime),
        sa.Column("updated_at", sa.DateTime),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.Text, unique=True, index=True, nullable=False),
        sa.Column("slug", sa.Text, unique=True, nullable=False),
        sa.Column("parent_id", sa.Integer, sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("path", sa.Text, server_default=""),
        sa.Column("level", sa.Integer, server_default="0"),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime),
    )

    op.create_table(
        "products",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("model_name", sa.Text, index=True, nullable=False),
        sa.Column("slug", sa.Text, unique=True, index=True, nullable=False),
        sa.Column("brand_id", sa.Integer, sa.ForeignKey("brands.id"), index=True, nullable=False),
        sa.Column("category_id", sa.Integer, sa.ForeignKey("categories.id"), index=True, nullable=False),
        sa.Column("model_number", sa.Text, nullable=True, index=True),
        sa.Column("specifications", sa.JSON),
        sa.Column("status", sa.Text, server_default="active"),
        sa.Column("variant_count", sa.Integer, server_default="0"),
        sa.Column("created_at", sa.DateTime),
        sa.Column("updated_at", sa.DateTime),
    )

    op.create_table(
        "product_variants",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("product_id", sa.Integer, sa.ForeignKey("products.id"), index=True, nullable=False),
        sa.Column("name", sa.Text, server_default=""),
        sa.Column("attributes", sa.JSON),
        sa.Column("images", sa.JSON),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime),
        sa.Column("updated_at", sa.DateTime),
    )

    op.create_table(
        "listings",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("variant_id", sa.Integer, sa.ForeignKey("product_variants.id"), index=True, nullable=False),
        sa.Column("store_name", sa.Text, nullable=False),
        sa.Column("url", sa.Text, nullable=False),
        sa.Column("title", sa.Text, server_default=""),
        sa.Column("price", sa.Float, server_default="0"),
        sa.Column("original_price", sa.Float, nullable=True),
        sa.Column("discount_percentage", sa.Float, nullable=True),
        sa.Column("currency", sa.Text, server_default="INR"),
        sa.Column("rating", sa.Float, nullable=True),
        sa.Column("review_count", sa.Integer, server_default="0"),
        sa.Column("availability", sa.Text, server_default=""),
        sa.Column("stock_status", sa.Text, server_default="in_stock"),
        sa.Column("price_history", sa.JSON),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        sa.Column("scraped_at", sa.DateTime),
        sa.Column("last_seen_at", sa.DateTime),
        sa.Column("created_at", sa.DateTime),
        sa.Column("updated_at", sa.DateTime),
        sa.UniqueConstraint("store_name", "url", name="uq_listing_store_url"),
    )

    # Trigram indexes for the fuzzy lookup phases (PostgreSQL only)
    if op.get_bind().dialect.name == "postgresql":
        op.execute("CREATE EXTENSION IF NOT EXISTS pg_trgm")
        op.execute(
            "CREATE INDEX IF NOT EXISTS products_model_name_trgm_idx "
            "ON products USING gist (model_name gist_trgm_ops)"
        )


def downgrade() -> None:
    if op.get_bind().dialect.name == "postgresql":
        op.execute("DROP INDEX IF EXISTS products_model_name_trgm_idx")
    op.drop_table("listings")
    op.drop_table("product_variants")
    op.drop_table("products")
    op.drop_table("categories")
    op.drop_table("brands")
