"""initial_schema

Creates holdings, portfolio_snapshot and the reference tables
(reference_metrics, benchmark_assignments, weightings_universe,
index_weightings, score_weightings).

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:01:00.000000+00:00

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


REFERENCE_METRIC_COLUMNS = (
    "pe_ntm",
    "ev_ebitda_ntm",
    "ev_sales_ntm",
    "price",
    "volatility_2m",
    "beta_3y",
    "week_52_high",
    "consensus_price_target",
    "eps_ntm",
    "eps_ntm_90d_ago",
    "sales_ntm",
    "sales_ntm_90d_ago",
    "eps_surprise",
    "sales_surprise",
    "roic_1y",
    "roic_3y",
    "gross_profit_ltm",
    "total_assets",
    "accruals_pct",
    "fcf",
    "ebitda_ltm",
    "sales_ltm",
    "net_debt",
)

MEMBERSHIP_COLUMNS = (
    "spy", "qqq", "soxx", "smh", "arkk",
    "xlk", "xlf", "xlc", "xly", "xlp", "xle",
    "xlv", "xli", "xlb", "xlre", "xlu",
    "igv", "ita",
)

INDEX_WEIGHT_COLUMNS = ("qqq", "spy", "dow", "soxx", "smh", "arkk")


def upgrade() -> None:
    """
    Upgrade database schema.

    Reference tables are filled by the upstream sync and stay read-only for
    the engine; metric cells are text so spreadsheet placeholders survive.
    """
    op.create_table(
        "holdings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("stock_ticker", sa.String(32), nullable=False),
        sa.Column("shares", sa.Numeric(20, 6), nullable=False, server_default="0"),
        sa.Column("close_price", sa.Numeric(18, 6), nullable=True),
        sa.Column("current_price", sa.Numeric(18, 6), nullable=True),
        sa.Column("market_value", sa.Numeric(20, 4), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_holdings"),
    )
    op.create_index("idx_holdings_date", "holdings", ["date"])
    op.create_index("idx_holdings_date_ticker", "holdings", ["date", "stock_ticker"])

    op.create_table(
        "portfolio_snapshot",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("snapshot_date", sa.Date(), nullable=False),
        sa.Column("nav", sa.Numeric(20, 4), nullable=False),
        sa.Column("total_cash", sa.Numeric(20, 4), nullable=False, server_default="0"),
        sa.Column("total_equity", sa.Numeric(20, 4), nullable=False, server_default="0"),
        sa.Column("holdings_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_portfolio_snapshot"),
        sa.UniqueConstraint("snapshot_date", name="uq_portfolio_snapshot_date"),
    )
    op.create_index(
        "idx_portfolio_snapshot_date",
        "portfolio_snapshot",
        [sa.text("snapshot_date DESC")],
    )

    op.create_table(
        "reference_metrics",
        sa.Column("ticker", sa.String(32), nullable=False),
        *(sa.Column(name, sa.Text(), nullable=True) for name in REFERENCE_METRIC_COLUMNS),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("ticker", name="pk_reference_metrics"),
    )

    op.create_table(
        "benchmark_assignments",
        sa.Column("ticker", sa.String(32), nullable=False),
        sa.Column("company_name", sa.String(255), nullable=True),
        sa.Column("gics_sector", sa.String(100), nullable=True),
        sa.Column("benchmark1", sa.String(20), nullable=True),
        sa.Column("benchmark2", sa.String(20), nullable=True),
        sa.Column("benchmark3", sa.String(20), nullable=True),
        sa.Column("benchmark_custom", sa.String(20), nullable=True),
        sa.Column("core_flag", sa.String(20), nullable=True),
        sa.Column("risk_on_off", sa.String(20), nullable=True),
        sa.PrimaryKeyConstraint("ticker", name="pk_benchmark_assignments"),
    )
    op.create_index("idx_benchmark_assignments_benchmark1", "benchmark_assignments", ["benchmark1"])

    op.create_table(
        "weightings_universe",
        sa.Column("ticker", sa.String(32), nullable=False),
        *(sa.Column(name, sa.Text(), nullable=True) for name in MEMBERSHIP_COLUMNS),
        sa.PrimaryKeyConstraint("ticker", name="pk_weightings_universe"),
    )

    op.create_table(
        "index_weightings",
        sa.Column("ticker", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        *(sa.Column(name, sa.Numeric(10, 6), nullable=True) for name in INDEX_WEIGHT_COLUMNS),
        sa.PrimaryKeyConstraint("ticker", name="pk_index_weightings"),
    )

    op.create_table(
        "score_weightings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("profile_name", sa.String(50), nullable=False),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("metric_name", sa.String(100), nullable=True),
        sa.Column("metric_weight", sa.Numeric(6, 4), nullable=True),
        sa.Column("category_weight", sa.Numeric(6, 4), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_score_weightings"),
        sa.UniqueConstraint(
            "profile_name", "category", "metric_name", name="uq_score_weightings_profile_metric"
        ),
    )
    op.create_index("idx_score_weightings_profile", "score_weightings", ["profile_name"])


def downgrade() -> None:
    """Drop every table created above."""
    op.drop_index("idx_score_weightings_profile", table_name="score_weightings")
    op.drop_table("score_weightings")
    op.drop_table("index_weightings")
    op.drop_table("weightings_universe")
    op.drop_index("idx_benchmark_assignments_benchmark1", table_name="benchmark_assignments")
    op.drop_table("benchmark_assignments")
    op.drop_table("reference_metrics")
    op.drop_index("idx_portfolio_snapshot_date", table_name="portfolio_snapshot")
    op.drop_table("portfolio_snapshot")
    op.drop_index("idx_holdings_date_ticker", table_name="holdings")
    op.drop_index("idx_holdings_date", table_name="holdings")
    op.drop_table("holdings")
