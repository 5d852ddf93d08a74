"""Initial schema: users, fleet, rentals, events and maintenance history.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_RENTAL = sa.text("status = 'active'")


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column(
            "role",
            sa.Enum("user", "admin", name="user_role"),
            nullable=False,
            server_default="user",
        ),
        sa.Column("socioeconomic_stratum", sa.Integer, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "socioeconomic_stratum IS NULL OR socioeconomic_stratum BETWEEN 1 AND 6",
            name="ck_users_stratum_range",
        ),
    )

    # ── bicycles ──────────────────────────────────────────────────────
    op.create_table(
        "bicycles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(50), unique=True, nullable=False),
        sa.Column("brand", sa.String(100), nullable=False),
        sa.Column("model", sa.String(100), nullable=True),
        sa.Column("color", sa.String(50), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "available",
                "rented",
                "maintenance",
                "retired",
                name="bicycle_status",
            ),
            nullable=False,
            server_default="available",
        ),
        sa.Column("rental_price_per_hour", sa.Numeric(12, 2), nullable=False),
        sa.Column("current_lat", sa.Float, nullable=True),
        sa.Column("current_lng", sa.Float, nullable=True),
        sa.Column("h3_cell", sa.String(20), nullable=True),
        sa.Column("purchase_date", sa.Date, nullable=True),
        sa.Column("last_maintenance_date", sa.Date, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "rental_price_per_hour > 0", name="ck_bicycles_price_positive"
        ),
    )
    op.create_index("idx_bicycles_status", "bicycles", ["status"])
    op.create_index("idx_bicycles_cell", "bicycles", ["h3_cell"])

    # ── rentals ───────────────────────────────────────────────────────
    op.create_table(
        "rentals",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column(
            "bicycle_id", sa.Integer, sa.ForeignKey("bicycles.id"), nullable=False
        ),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("start_lat", sa.Float, nullable=True),
        sa.Column("start_lng", sa.Float, nullable=True),
        sa.Column("end_lat", sa.Float, nullable=True),
        sa.Column("end_lng", sa.Float, nullable=True),
        sa.Column(
            "status",
            sa.Enum("active", "completed", "cancelled", name="rental_status"),
            nullable=False,
            server_default="active",
        ),
        sa.Column("estimated_cost", sa.Numeric(12, 2), nullable=True),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=True),
        sa.Column("discount", sa.Numeric(12, 2), nullable=True),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=True),
        sa.Column("final_cost", sa.Numeric(12, 2), nullable=True),
        sa.Column("total_cost", sa.Numeric(12, 2), nullable=True),
        sa.Column("duration_in_hours", sa.Float, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    # At most one ACTIVE rental per user and per bicycle
    op.create_index(
        "uq_rentals_active_user",
        "rentals",
        ["user_id"],
        unique=True,
        postgresql_where=ACTIVE_RENTAL,
    )
    op.create_index(
        "uq_rentals_active_bicycle",
        "rentals",
        ["bicycle_id"],
        unique=True,
        postgresql_where=ACTIVE_RENTAL,
    )
    op.create_index("idx_rentals_status", "rentals", ["status"])
    op.create_index("idx_rentals_user", "rentals", ["user_id"])
    op.create_index("idx_rentals_bicycle", "rentals", ["bicycle_id"])

    # ── events ────────────────────────────────────────────────────────
    op.create_table(
        "events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("event_type", sa.String(50), nullable=True),
        sa.Column("event_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=True),
        sa.Column("route_description", sa.Text, nullable=True),
        sa.Column("meeting_point", sa.String(255), nullable=True),
        sa.Column("max_participants", sa.Integer, nullable=True),
        sa.Column(
            "current_participants", sa.Integer, nullable=False, server_default="0"
        ),
        sa.Column(
            "status",
            sa.Enum(
                "draft",
                "published",
                "cancelled",
                "completed",
                name="event_status",
            ),
            nullable=False,
            server_default="draft",
        ),
        sa.Column(
            "created_by", sa.Integer, sa.ForeignKey("users.id"), nullable=True
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "current_participants >= 0", name="ck_events_current_non_negative"
        ),
        sa.CheckConstraint(
            "max_participants IS NULL OR current_participants <= max_participants",
            name="ck_events_within_capacity",
        ),
    )
    op.create_index("idx_events_status_date", "events", ["status", "event_date"])

    # ── event_participants ────────────────────────────────────────────
    op.create_table(
        "event_participants",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "event_id",
            sa.Integer,
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("registration_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("attended", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.UniqueConstraint(
            "event_id", "user_id", name="uq_event_participants_event_user"
        ),
    )
    op.create_index(
        "idx_event_participants_user", "event_participants", ["user_id"]
    )

    # ── maintenance_logs ──────────────────────────────────────────────
    op.create_table(
        "maintenance_logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "bicycle_id", sa.Integer, sa.ForeignKey("bicycles.id"), nullable=False
        ),
        sa.Column(
            "maintenance_type",
            sa.Enum(
                "preventive",
                "corrective",
                "inspection",
                "repair",
                "other",
                name="maintenance_type",
            ),
            nullable=False,
        ),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("cost", sa.Numeric(12, 2), nullable=True),
        sa.Column("performed_by", sa.String(120), nullable=True),
        sa.Column("maintenance_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "next_maintenance_date", sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column("completed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_maintenance_bicycle", "maintenance_logs", ["bicycle_id"])
    op.create_index(
        "idx_maintenance_next_date", "maintenance_logs", ["next_maintenance_date"]
    )


def downgrade() -> None:
    op.drop_table("maintenance_logs")
    op.drop_table("event_participants")
    op.drop_table("events")
    op.drop_table("rentals")
    op.drop_table("bicycles")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS maintenance_type")
    op.execute("DROP TYPE IF EXISTS event_status")
    op.execute("DROP TYPE IF EXISTS rental_status")
    op.execute("DROP TYPE IF EXISTS bicycle_status")
    op.execute("DROP TYPE IF EXISTS user_role")
