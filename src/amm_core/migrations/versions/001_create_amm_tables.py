"""Create amm markets and snapshot tables.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCHEMA = "amm"


def upgrade() -> None:
    # Schema is created by env.py before migrations run.
    op.create_table(
        "markets",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("title", sa.Text, nullable=False, server_default=""),
        sa.Column("feed_key", sa.Text, nullable=True),
        sa.Column("yes_reserve", sa.Numeric, nullable=False, server_default="0"),
        sa.Column("no_reserve", sa.Numeric, nullable=False, server_default="0"),
        sa.Column("k", sa.Numeric, nullable=False, server_default="0"),
        sa.Column("seed_liquidity", sa.Numeric, nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="0"),
        sa.Column("resolved", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        schema=SCHEMA,
    )
    op.create_index("ix_amm_markets_feed_key", "markets", ["feed_key"], schema=SCHEMA)

    op.create_table(
        "amm_snapshots",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column(
            "market_id",
            sa.Text,
            sa.ForeignKey(f"{SCHEMA}.markets.id"),
            nullable=False,
        ),
        sa.Column("yes_reserve", sa.Numeric, nullable=False),
        sa.Column("no_reserve", sa.Numeric, nullable=False),
        sa.Column("prob_yes", sa.Numeric, nullable=False),
        sa.Column("prob_no", sa.Numeric, nullable=False),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_amm_amm_snapshots_market_id", "amm_snapshots", ["market_id"], schema=SCHEMA,
    )


def downgrade() -> None:
    op.drop_index("ix_amm_amm_snapshots_market_id", table_name="amm_snapshots", schema=SCHEMA)
    op.drop_table("amm_snapshots", schema=SCHEMA)
    op.drop_index("ix_amm_markets_feed_key", table_name="markets", schema=SCHEMA)
    op.drop_table("markets", schema=SCHEMA)
