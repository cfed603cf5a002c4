"""Initial schema - products and ai_interaction_logs.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- ENUM types ---
    product_status = sa.Enum("active", "out_of_stock", "archived", name="product_status")
    interaction_type = sa.Enum("search", "recommendation", "conversation", name="interaction_type")

    # --- 1. products ---
    op.create_table(
        "products",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("price", sa.Float, nullable=False, server_default=sa.text("0")),
        sa.Column("stock_quantity", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("brand", sa.String(100), nullable=False),
        sa.Column("status", product_status, nullable=False, server_default="active"),
        sa.Column("vector_embedding", JSONB, nullable=True),
        sa.Column("embedding_version", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- 2. ai_interaction_logs (append-only) ---
    op.create_table(
        "ai_interaction_logs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("user_id", sa.String(255), nullable=True),
        sa.Column("interaction_type", interaction_type, nullable=False),
        sa.Column("query_text", sa.Text, nullable=True),
        sa.Column("related_product_ids", JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("session_id", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- Indexes ---
    op.create_index("ix_products_category", "products", ["category"])
    op.create_index("ix_products_brand", "products", ["brand"])
    op.create_index("idx_products_status_created", "products", ["status", "created_at"])
    op.create_index("ix_ai_interaction_logs_user_id", "ai_interaction_logs", ["user_id"])
    op.create_index("idx_ai_logs_user_created", "ai_interaction_logs", ["user_id", "created_at"])

    # updated_at auto-update trigger
    op.execute("""
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = NOW();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER trigger_update_products_updated_at
        BEFORE UPDATE ON products
        FOR EACH ROW EXECUTE FUNCTION update_updated_at_column();
    """)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trigger_update_products_updated_at ON products")
    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column()")

    op.drop_table("ai_interaction_logs")
    op.drop_table("products")

    for enum in ("interaction_type", "product_status"):
        op.execute(f"DROP TYPE IF EXISTS {enum}")
