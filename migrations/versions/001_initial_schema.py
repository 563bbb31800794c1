"""Initial schema: drivers, permits and photos.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("phone", sa.String(20), unique=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("email", sa.String(100), nullable=True),
        sa.Column("license_number", sa.String(50), nullable=True),
        sa.Column("car_number", sa.String(20), nullable=True),
        sa.Column("car_model", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "orders_enabled", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column("last_status_check", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
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

    # ── permits ───────────────────────────────────────────────────────
    op.create_table(
        "permits",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=False
        ),
        sa.Column(
            "status",
            sa.Enum("pending", "active", "expired", "rejected", name="permitstatus"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("checklist", sa.JSON, nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        sa.Column(
            "order_routing_enabled",
            sa.Boolean,
            nullable=False,
            server_default=sa.false(),
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
    )
    op.create_index("idx_permits_driver", "permits", ["driver_id"])
    op.create_index("idx_permits_status", "permits", ["status"])
    op.create_index("idx_permits_expires", "permits", ["expires_at"])
    # At most one pending permit per driver
    op.create_index(
        "uq_permits_driver_pending",
        "permits",
        ["driver_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    # ── photos ────────────────────────────────────────────────────────
    op.create_table(
        "photos",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "permit_id",
            sa.Integer,
            sa.ForeignKey("permits.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "slot",
            sa.Enum(
                "waybill_1",
                "waybill_2",
                "car_exterior",
                "car_interior",
                name="photoslot",
            ),
            nullable=False,
        ),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("original_name", sa.String(255), nullable=False),
        sa.Column("mime_type", sa.String(100), nullable=False),
        sa.Column("size", sa.Integer, nullable=False),
        sa.Column("url", sa.String(500), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("permit_id", "slot", name="uq_photos_permit_slot"),
    )
    op.create_index("idx_photos_permit", "photos", ["permit_id"])


def downgrade() -> None:
    op.drop_table("photos")
    op.drop_table("permits")
    op.drop_table("drivers")
    op.execute("DROP TYPE IF EXISTS photoslot")
    op.execute("DROP TYPE IF EXISTS permitstatus")
