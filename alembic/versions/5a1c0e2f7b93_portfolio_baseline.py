"""portfolio baseline: assets, custodians, positions, transactions, price_history

Revision ID: 5a1c0e2f7b93
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "5a1c0e2f7b93"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "assets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("symbol", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("asset_type", sa.String(length=64), nullable=False),
        sa.Column("price_source", sa.String(length=32), nullable=True),
        sa.Column("api_identifier", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
    )
    op.create_index("ix_assets_id", "assets", ["id"], unique=False)
    op.create_index("ix_assets_symbol", "assets", ["symbol"], unique=False)
    op.create_index("ix_assets_price_source", "assets", ["price_source"], unique=False)

    op.create_table(
        "custodians",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("wallet_address", sa.String(length=128), nullable=True),
    )
    op.create_index("ix_custodians_id", "custodians", ["id"], unique=False)

    op.create_table(
        "positions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("asset_id", sa.Integer(), sa.ForeignKey("assets.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "custodian_id", sa.Integer(), sa.ForeignKey("custodians.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("quantity", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("asset_id", "custodian_id", name="uq_positions_asset_custodian"),
        sa.CheckConstraint("quantity >= 0", name="ck_positions_quantity_non_negative"),
    )
    op.create_index("ix_positions_id", "positions", ["id"], unique=False)
    op.create_index("ix_positions_asset_id", "positions", ["asset_id"], unique=False)
    op.create_index("ix_positions_custodian_id", "positions", ["custodian_id"], unique=False)

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("asset_id", sa.Integer(), sa.ForeignKey("assets.id"), nullable=False),
        sa.Column("custodian_id", sa.Integer(), sa.ForeignKey("custodians.id"), nullable=False),
        sa.Column("transaction_type", sa.String(length=16), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("price_per_unit", sa.Float(), nullable=True),
        sa.Column("total_value_usd", sa.Float(), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()")),
        sa.CheckConstraint("quantity > 0", name="ck_transactions_quantity_positive"),
    )
    op.create_index("ix_transactions_id", "transactions", ["id"], unique=False)
    op.create_index("ix_transactions_asset_id", "transactions", ["asset_id"], unique=False)
    op.create_index("ix_transactions_custodian_id", "transactions", ["custodian_id"], unique=False)

    op.create_table(
        "price_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("asset_id", sa.Integer(), sa.ForeignKey("assets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("price_usd", sa.Float(), nullable=False),
        sa.Column("price_date", sa.Date(), nullable=False),
        sa.Column("source", sa.String(length=32), nullable=True),
        sa.UniqueConstraint("asset_id", "price_date", name="uq_price_history_asset_date"),
    )
    op.create_index("ix_price_history_id", "price_history", ["id"], unique=False)
    op.create_index("ix_price_history_asset_id", "price_history", ["asset_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_price_history_asset_id", table_name="price_history")
    op.drop_index("ix_price_history_id", table_name="price_history")
    op.drop_table("price_history")

    op.drop_index("ix_transactions_custodian_id", table_name="transactions")
    op.drop_index("ix_transactions_asset_id", table_name="transactions")
    op.drop_index("ix_transactions_id", table_name="transactions")
    op.drop_table("transactions")

    op.drop_index("ix_positions_custodian_id", table_name="positions")
    op.drop_index("ix_positions_asset_id", table_name="positions")
    op.drop_index("ix_positions_id", table_name="positions")
    op.drop_table("positions")

    op.drop_index("ix_custodians_id", table_name="custodians")
    op.drop_table("custodians")

    op.drop_index("ix_assets_price_source", table_name="assets")
    op.drop_index("ix_assets_symbol", table_name="assets")
    op.drop_index("ix_assets_id", table_name="assets")
    op.drop_table("assets")
