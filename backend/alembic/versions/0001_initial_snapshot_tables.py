"""Initial snapshot tables: providers, weekly cycles, orders, settings.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-18

Run with:
    alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def _scope_columns() -> list[sa.Column]:
    return [
        sa.Column("tenant_id", sa.String(64), nullable=False, index=True),
        sa.Column("branch_id", sa.String(64), index=True),
    ]


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id", sa.String(36), primary_key=True,
        server_default=sa.text("gen_random_uuid()::text"),
    )


def upgrade() -> None:
    # ── Providers and weekly cycles ──────────────────────────

    op.create_table(
        "providers",
        _uuid_pk(),
        *_scope_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("frequency", sa.String(20)),
        sa.Column("order_day", sa.Integer()),
        sa.Column("receive_day", sa.Integer()),
        sa.Column("responsible", sa.String(255)),
        sa.Column("status", sa.String(20)),
        sa.Column("payment_method", sa.String(20)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "provider_weeks",
        _uuid_pk(),
        *_scope_columns(),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("label", sa.String(100)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "provider_week_providers",
        _uuid_pk(),
        *_scope_columns(),
        sa.Column("week_id", sa.String(36), nullable=False),
        sa.Column("provider_id", sa.String(36), nullable=False),
        sa.Column("added_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("week_id", "provider_id", name="uq_week_provider_link"),
    )

    op.create_table(
        "provider_week_states",
        _uuid_pk(),
        *_scope_columns(),
        sa.Column("week_id", sa.String(36), nullable=False),
        sa.Column("provider_id", sa.String(36), nullable=False),
        sa.Column("status", sa.String(20), server_default="pending"),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("week_id", "provider_id", name="uq_week_provider_state"),
    )

    # ── Orders ───────────────────────────────────────────────

    op.create_table(
        "orders",
        _uuid_pk(),
        *_scope_columns(),
        sa.Column("provider_id", sa.String(36), nullable=False, index=True),
        sa.Column("status", sa.String(20)),
        sa.Column("total", sa.Float()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "order_items",
        _uuid_pk(),
        sa.Column("order_id", sa.String(36), nullable=False, index=True),
        sa.Column("product_name", sa.String(255)),
        sa.Column("brand", sa.String(255)),
        sa.Column("qty", sa.Float()),
        sa.Column("unit_price", sa.Float()),
        sa.Column("subtotal", sa.Float()),
        sa.Column("stock", sa.Float()),
    )

    op.create_table(
        "order_snapshots",
        _uuid_pk(),
        sa.Column("order_id", sa.String(36), nullable=False, index=True),
        sa.Column("title", sa.String(255)),
        sa.Column("payload", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "order_ui_state",
        sa.Column("order_id", sa.String(36), primary_key=True),
        sa.Column("group_order", sa.JSON()),
        sa.Column("checked_map", sa.JSON()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )

    # ── Aggregates ───────────────────────────────────────────

    op.create_table(
        "order_summaries",
        sa.Column("provider_id", sa.String(36), primary_key=True),
        sa.Column("total", sa.Float()),
        sa.Column("items", sa.Float()),
        sa.Column("updated_at", sa.DateTime()),
    )

    op.create_table(
        "order_summaries_week",
        _uuid_pk(),
        sa.Column("week_id", sa.String(36), nullable=False),
        sa.Column("provider_id", sa.String(36), nullable=False, index=True),
        sa.Column("total", sa.Float()),
        sa.Column("items", sa.Float()),
        sa.Column("updated_at", sa.DateTime()),
        sa.UniqueConstraint("week_id", "provider_id", name="uq_order_summary_week"),
    )

    # ── Settings ─────────────────────────────────────────────

    op.create_table(
        "app_settings",
        sa.Column("key", sa.String(255), primary_key=True),
        sa.Column("tenant_id", sa.String(64), index=True),
        sa.Column("branch_id", sa.String(64), index=True),
        sa.Column("value", sa.JSON()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )


def downgrade() -> None:
    for table in (
        "app_settings",
        "order_summaries_week",
        "order_summaries",
        "order_ui_state",
        "order_snapshots",
        "order_items",
        "orders",
        "provider_week_states",
        "provider_week_providers",
        "provider_weeks",
        "providers",
    ):
        op.drop_table(table)
